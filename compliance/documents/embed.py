"""
Embedding of e-invoice XML into a rendered PDF.

CII payloads (Factur-X / ZUGFeRD) go through the ``factur-x`` library,
which converts the PDF to PDF/A-3, attaches ``factur-x.xml`` and writes
the conformance XMP metadata.

UBL payloads (XRechnung) are attached as a plain embedded file with
``pypdf``; there is no PDF/A-3 profile for them.
"""
from __future__ import annotations

import logging
from io import BytesIO

from facturx import generate_from_binary
from pypdf import PdfReader, PdfWriter

from compliance.errors import EmbeddingError
from compliance.formats.base import SYNTAX_CII, SYNTAX_UBL

logger = logging.getLogger(__name__)

EMBED_FILENAMES = {
    SYNTAX_CII: "factur-x.xml",
    SYNTAX_UBL: "xrechnung.xml",
}

FACTURX_LEVELS = ("minimum", "basicwl", "basic", "en16931", "extended")


def embed_cii(
    pdf_bytes: bytes,
    xml_bytes: bytes,
    *,
    level: str = "en16931",
    lang: str = "en",
    check_xsd: bool = False,
    pdf_metadata: dict | None = None,
) -> bytes:
    """Embed CII XML into a PDF, producing a PDF/A-3 Factur-X file.

    Args:
        pdf_bytes: The rendered PDF.
        xml_bytes: The CII XML (UTF-8).
        level: Profile level ('minimum', 'basicwl', 'basic', 'en16931', 'extended').
        lang: PDF language tag (RFC 3066).
        check_xsd: Validate the XML against the bundled Factur-X XSD first.
        pdf_metadata: Optional dict with keys 'author', 'title', 'subject', 'keywords'.

    Raises:
        EmbeddingError: the library rejected the input or returned nothing.
    """
    level = (level or "").lower()
    if level not in FACTURX_LEVELS:
        raise EmbeddingError(f"Unknown Factur-X level '{level}'")
    logger.info("Embedding CII XML (level=%s) into PDF/A-3", level)
    try:
        result_pdf = generate_from_binary(
            pdf_bytes,
            xml_bytes,
            flavor="factur-x",
            level=level,
            check_xsd=check_xsd,
            pdf_metadata=pdf_metadata,
            lang=lang,
        )
    except Exception as e:
        raise EmbeddingError(f"Factur-X embedding failed: {e}") from e

    if not result_pdf:
        raise EmbeddingError("factur-x library returned empty PDF")

    logger.info("Generated Factur-X PDF/A-3 (%d bytes)", len(result_pdf))
    return result_pdf


def attach_xml(pdf_bytes: bytes, xml_bytes: bytes, filename: str) -> bytes:
    """Return a copy of *pdf_bytes* with *xml_bytes* attached as *filename*."""
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
        writer = PdfWriter()
        writer.append(reader)
        writer.add_attachment(filename, xml_bytes)
        out = BytesIO()
        writer.write(out)
    except Exception as e:
        raise EmbeddingError(f"Attaching {filename} failed: {e}") from e
    logger.info("Attached %s to PDF (%d bytes)", filename, out.getbuffer().nbytes)
    return out.getvalue()


def embed_xml(pdf_bytes: bytes, xml: str, syntax: str, *, level: str | None = None,
              lang: str = "en", check_xsd: bool = False, pdf_metadata: dict | None = None) -> bytes:
    """Embed *xml* of *syntax* into *pdf_bytes*."""
    xml_bytes = xml.encode("utf-8")
    if syntax == SYNTAX_CII:
        return embed_cii(pdf_bytes, xml_bytes, level=level or "en16931", lang=lang,
                         check_xsd=check_xsd, pdf_metadata=pdf_metadata)
    filename = EMBED_FILENAMES.get(syntax)
    if filename is None:
        raise EmbeddingError(f"No PDF embedding defined for {syntax} XML")
    return attach_xml(pdf_bytes, xml_bytes, filename)
