"""
Renderer state machine keyed by output format.

- ``pdf``: rasterize the build result
- hybrid (``facturx``, ``zugferd``, ``xrechnung``): rasterize, then embed
  the XML payload; without payload, or when embedding fails, the plain
  PDF is returned with a warning
- XML-only (``ubl``, ``cii``, ``fatturapa``, ``ksef``, ``ksef-fa3``,
  ``peppol-bis``): the generated XML is the artifact, nothing is rendered

MIME type and extension are looked up from the requested format alone.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from compliance.documents.embed import embed_xml
from compliance.documents.layout import build_pdf
from compliance.errors import EmbeddingError, FormatUnavailableError
from compliance.formats.base import (
    CII, FACTURX, FATTURAPA, KSEF, KSEF_FA3, PDF, PEPPOL_BIS, UBL, XRECHNUNG, ZUGFERD,
)
from compliance.settings import Settings, load_settings

logger = logging.getLogger(__name__)

HYBRID_FORMATS = (FACTURX, ZUGFERD, XRECHNUNG)
XML_ONLY_FORMATS = (UBL, CII, FATTURAPA, KSEF, KSEF_FA3, PEPPOL_BIS)

MIME_TYPES = {
    PDF: "application/pdf",
    FACTURX: "application/pdf",
    ZUGFERD: "application/pdf",
    XRECHNUNG: "application/pdf",
    UBL: "application/xml",
    CII: "application/xml",
    PEPPOL_BIS: "application/xml",
    FATTURAPA: "application/xml",
    KSEF: "application/xml",
    KSEF_FA3: "application/xml",
}

EXTENSIONS = {
    PDF: "pdf",
    FACTURX: "pdf",
    ZUGFERD: "pdf",
    XRECHNUNG: "pdf",
    UBL: "xml",
    CII: "xml",
    PEPPOL_BIS: "xml",
    FATTURAPA: "xml",
    KSEF: "xml",
    KSEF_FA3: "xml",
}


def mime_type(fmt: str) -> str:
    return MIME_TYPES.get(fmt, MIME_TYPES[PDF])


def extension(fmt: str) -> str:
    return EXTENSIONS.get(fmt, EXTENSIONS[PDF])


@dataclass
class RenderOutput:
    buffer: bytes
    format: str
    mime_type: str
    extension: str
    xml_embedded: bool = False
    warnings: list[str] = field(default_factory=list)


def _rasterize(result, settings: Settings) -> bytes:
    return build_pdf(result.context, result.layout,
                     timeout=settings.render_timeout, producer=settings.producer)


def render(result, fmt: str, *, settings: Settings | None = None,
           format_profile: str | None = None) -> RenderOutput:
    """Turn a ``BuildResult`` into the artifact for *fmt*.

    Raises:
        RenderError: rasterization failed (fatal).
        FormatUnavailableError: an XML-only format has no payload.
    """
    settings = settings or load_settings()
    output = RenderOutput(buffer=b"", format=fmt, mime_type=mime_type(fmt), extension=extension(fmt))

    if fmt in XML_ONLY_FORMATS:
        if not result.xml:
            reason = result.metadata.xml_error or "no XML generated"
            raise FormatUnavailableError(f"{fmt} output unavailable: {reason}")
        output.buffer = result.xml.encode("utf-8")
        return output

    pdf_bytes = _rasterize(result, settings)
    output.buffer = pdf_bytes
    if fmt not in HYBRID_FORMATS:
        return output

    if not result.xml:
        warning = f"{fmt}: no XML payload, returning plain PDF"
        if result.metadata.xml_error:
            warning += f" ({result.metadata.xml_error})"
        logger.warning("%s", warning)
        output.warnings.append(warning)
        return output

    ctx = result.context
    try:
        output.buffer = embed_xml(
            pdf_bytes, result.xml, result.metadata.xml_syntax,
            level=format_profile or "en16931",
            lang=settings.pdf_lang,
            check_xsd=settings.facturx_check_xsd,
            pdf_metadata={
                "author": ctx.supplier_name,
                "title": f"{ctx.title} {ctx.number}",
                "subject": f"{ctx.title} {ctx.number}",
                "keywords": f"{ctx.document_type}, {fmt}",
            },
        )
        output.xml_embedded = True
    except EmbeddingError as e:
        warning = f"{fmt}: XML embedding failed, returning plain PDF ({e})"
        logger.error("%s", warning)
        output.warnings.append(warning)
        output.buffer = pdf_bytes
    return output
