"""
Document service: the orchestrator behind ``POST /documents``.

Usage:
    from compliance.documents.service import GenerateRequest, generate

    doc = generate(GenerateRequest("invoice", data, "facturx"))
    doc.buffer, doc.mime_type, doc.filename

Steps: resolve the supplier's country config (generic fallback), soft-check
the format against the country's list, pick the builder by kind, build,
render, name the file.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping

from compliance import countries
from compliance.countries.base import CountryConfig
from compliance.documents.builders import ensure_totals, get_builder
from compliance.documents.renderers import HYBRID_FORMATS, extension, render
from compliance.documents.types import BuildRequest, StyleConfig
from compliance.errors import ConfigurationMissingError
from compliance.formats import PDF, FormatConfig, syntax_for
from compliance.formats.base import SYNTAX_CII
from compliance.model import (
    CORRECTIVE_INVOICE, CREDIT_NOTE, DEPOSIT_INVOICE, DOCUMENT_TYPES, INVOICE, PROFORMA, QUOTE,
    RECEIPT, DocumentData,
)
from compliance.settings import Settings, load_settings

logger = logging.getLogger(__name__)

FILENAME_PREFIXES = {
    INVOICE: "INVOICE",
    QUOTE: "QUOTE",
    RECEIPT: "RECEIPT",
    CREDIT_NOTE: "CREDIT_NOTE",
    PROFORMA: "PROFORMA",
    CORRECTIVE_INVOICE: "CORRECTIVE",
    DEPOSIT_INVOICE: "DEPOSIT",
}

# Document types sharing another type's format list
_FORMAT_LIST_OF = {
    CORRECTIVE_INVOICE: INVOICE,
    DEPOSIT_INVOICE: INVOICE,
    PROFORMA: QUOTE,
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class GenerateRequest:
    document_type: str
    data: DocumentData
    format: str = PDF
    supplier_country: str | None = None  # defaults to the supplier's address country
    style: StyleConfig | None = None
    format_config: FormatConfig | None = None


@dataclass
class GeneratedDocument:
    buffer: bytes
    format: str
    mime_type: str
    filename: str
    metadata: dict = field(default_factory=dict)


def _country_config(code: str | None) -> CountryConfig:
    if not countries.has(code):
        logger.warning("Country config not found for %s, using generic policy", code)
    return countries.get(code)


def _check_document_type(document_type: str):
    if document_type not in DOCUMENT_TYPES:
        raise ValueError(
            f"Unknown document type '{document_type}'. Available: {', '.join(DOCUMENT_TYPES)}"
        )


def _formats_for(document_type: str, config: CountryConfig) -> tuple[str, ...]:
    output_formats = config.documents.output_formats
    found = output_formats.get(document_type)
    if found is None:
        found = output_formats.get(_FORMAT_LIST_OF.get(document_type, document_type))
    return tuple(found or (PDF,))


def _format_config(fmt: str, config: CountryConfig, settings: Settings,
                   base: FormatConfig | None = None) -> FormatConfig:
    """Caller options, with the country's CII profile filled in when none was given."""
    base = base or FormatConfig(system_info=settings.producer)
    if (base.profile is None and syntax_for(fmt) == SYNTAX_CII
            and (config.format.syntax or "").upper() == "CII"):
        return dataclasses.replace(base, profile=config.format.profile)
    return base


def generate(request: GenerateRequest, settings: Settings | None = None) -> GeneratedDocument:
    """Build and render one document.

    Raises:
        ValueError: unknown document type.
        RenderError: rasterization failed.
        FormatUnavailableError: an XML-only format could not be produced.
    """
    settings = settings or load_settings()
    document_type = request.document_type
    _check_document_type(document_type)
    fmt = (request.format or PDF).lower()
    country = request.supplier_country or request.data.supplier.country_code

    logger.info("Generating %s %s as %s for %s", document_type, request.data.number, fmt, country)
    config = _country_config(country)

    supported = _formats_for(document_type, config)
    if fmt not in supported:
        logger.warning("Format %s not officially supported for %s in %s, using anyway. Supported: %s",
                       fmt, document_type, config.code, ", ".join(supported))

    builder = get_builder(config.documents.builder)
    resolved = fmt
    if not builder.supports(fmt):
        logger.warning("Builder %s doesn't support %s, falling back to pdf", builder.kind, fmt)
        resolved = PDF

    format_config = _format_config(resolved, config, settings, request.format_config)
    build_request = BuildRequest(
        document_type=document_type,
        data=ensure_totals(request.data, config),
        format=resolved,
        style=request.style or StyleConfig(),
        format_config=format_config,
    )
    result = builder.build(build_request, config, settings)
    output = render(result, resolved, settings=settings, format_profile=format_config.profile)

    metadata = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "builderKind": builder.kind,
        "xmlEmbedded": output.xml_embedded,
        "xmlSyntax": result.metadata.xml_syntax,
        "warnings": output.warnings,
    }
    logger.info("Generated %s (%d bytes)", resolved, len(output.buffer))
    return GeneratedDocument(
        buffer=output.buffer,
        format=resolved,
        mime_type=output.mime_type,
        filename=build_filename(document_type, request.data.number, resolved),
        metadata=metadata,
    )


def generate_document(document_type: str, data: DocumentData, supplier_country: str,
                      fmt: str | None = None, style: StyleConfig | None = None,
                      settings: Settings | None = None) -> bytes:
    """Shortcut returning only the artifact; *fmt* defaults to the country's default format."""
    fmt = fmt or default_format(supplier_country)
    request = GenerateRequest(document_type, data, fmt, supplier_country=supplier_country, style=style)
    return generate(request, settings).buffer


def supported_formats(document_type: str, supplier_country: str | None) -> list[str]:
    _check_document_type(document_type)
    return list(_formats_for(document_type, _country_config(supplier_country)))


def default_format(supplier_country: str | None) -> str:
    return _country_config(supplier_country).documents.default_format


def can_modify_invoice(supplier_country: str | None) -> bool:
    return _country_config(supplier_country).documents.invoice_editable


def requires_credit_note(supplier_country: str | None) -> bool:
    return _country_config(supplier_country).documents.requires_credit_note


def requires_pdfa(fmt: str) -> bool:
    return fmt in HYBRID_FORMATS


def build_filename(document_type: str, number: str, fmt: str) -> str:
    """``INVOICE_FA2026-000001.pdf`` style name; unsafe characters become ``_``."""
    prefix = FILENAME_PREFIXES.get(document_type, "DOCUMENT")
    safe_number = _UNSAFE_FILENAME_CHARS.sub("_", number or "")
    return f"{prefix}_{safe_number}.{extension(fmt)}"


def company_style(company: Mapping) -> StyleConfig:
    """PDF style of a company profile.

    Raises:
        ConfigurationMissingError: the company has no PDF configuration.
    """
    pdf_config = company.get("pdfConfig") or company.get("pdf_config")
    if not pdf_config:
        name = company.get("name") or company.get("id") or "company"
        raise ConfigurationMissingError(f"No PDF configuration found for {name}")
    style = dict(pdf_config)
    style.setdefault("includeLogo", bool(style.get("logoB64")))
    style.setdefault("labels", {k: v for k, v in pdf_config.items() if isinstance(v, str)})
    return StyleConfig.from_dict(style)
