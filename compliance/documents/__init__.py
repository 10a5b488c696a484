"""
Printable documents and hybrid e-invoices.

    builders   canonical data → RenderContext (+ XML for the regional builder)
    layout     reportlab stories per layout
    renderers  pdf / hybrid / XML-only state machine
    service    orchestrator used by the web API
"""
from compliance.documents.formatting import contrast_color
from compliance.documents.service import (
    GeneratedDocument, GenerateRequest, build_filename, can_modify_invoice, company_style,
    default_format, generate, generate_document, requires_credit_note, requires_pdfa,
    supported_formats,
)
from compliance.documents.types import PDFLabels, StyleConfig

__all__ = [
    "GenerateRequest", "GeneratedDocument", "PDFLabels", "StyleConfig",
    "build_filename", "can_modify_invoice", "company_style", "contrast_color",
    "default_format", "generate", "generate_document", "requires_credit_note",
    "requires_pdfa", "supported_formats",
]
