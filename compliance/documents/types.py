"""
Records passed between the builder, the renderer and the orchestrator.

A ``BuildResult`` carries the render context plus the name of the
reportlab layout that rasterizes it, optionally with the XML payload the
hybrid and XML-only renderers need.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Mapping

from compliance.formats.base import FormatConfig
from compliance.helpers import pick
from compliance.model import DocumentData

# Layout names understood by compliance.documents.layout
LAYOUT_INVOICE = "invoice"
LAYOUT_QUOTE = "quote"
LAYOUT_RECEIPT = "receipt"
LAYOUT_CREDIT_NOTE = "credit-note"


@dataclass(frozen=True)
class PDFLabels:
    """Printed labels. Defaults are English; callers pass translations."""
    invoice: str = "Invoice"
    quote: str = "Quote"
    receipt: str = "Receipt"
    credit_note: str = "Credit note"
    proforma: str = "Proforma invoice"
    corrective_invoice: str = "Corrective invoice"
    deposit_invoice: str = "Deposit invoice"

    number: str = "Number"
    date: str = "Date"
    due_date: str = "Due date"
    valid_until: str = "Valid until"
    payment_date: str = "Payment date"
    original_invoice: str = "Original invoice"
    correction_reason: str = "Reason"
    purchase_order: str = "Purchase order"

    bill_to: str = "Bill to"
    description: str = "Description"
    type: str = "Type"
    quantity: str = "Qty"
    unit_price: str = "Unit price"
    vat_rate: str = "VAT %"
    total: str = "Total"
    subtotal: str = "Subtotal"
    vat: str = "VAT"
    grand_total: str = "Total"
    vat_breakdown: str = "VAT breakdown"
    base: str = "Base"
    exempt: str = "Exempt"
    document_hash: str = "Hash"

    notes: str = "Notes"
    payment_method: str = "Payment method"
    payment_details: str = "Payment details"
    payment_terms: str = "Payment terms"
    amount_paid: str = "Amount paid"
    signed_at: str = "Signed"
    page: str = "Page"

    # Item types and payment methods
    hour: str = "Hour"
    day: str = "Day"
    service: str = "Service"
    product: str = "Product"
    deposit: str = "Deposit"
    bank_transfer: str = "Bank transfer"
    paypal: str = "PayPal"
    cash: str = "Cash"
    check: str = "Check"
    other: str = "Other"

    def title_for(self, document_type: str) -> str:
        return getattr(self, document_type.replace("-", "_"), self.invoice)

    def item_type(self, item_type: str) -> str:
        return getattr(self, (item_type or "service").lower(), item_type)

    def payment_method_label(self, method: str) -> str:
        return getattr(self, (method or "other").lower(), method)

    @classmethod
    def from_dict(cls, data: Mapping | None) -> PDFLabels:
        """Labels from a mapping; camelCase keys are accepted, unknown keys ignored."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = "".join("_" + c.lower() if c.isupper() else c for c in key)
            if name in known and value:
                values[name] = str(value)
        return cls(**values)


@dataclass(frozen=True)
class StyleConfig:
    """Company PDF style."""
    font_family: str = "Helvetica"
    padding: float = 20  # page margin in mm
    primary_color: str = "#2563eb"
    secondary_color: str = "#e8e8e8"
    include_logo: bool = False
    logo_b64: str | None = None  # data URI or bare base64; PNG, JPEG or SVG
    labels: PDFLabels = field(default_factory=PDFLabels)
    locale: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping | None) -> StyleConfig:
        if not data:
            return cls()
        if isinstance(data, StyleConfig):
            return data
        defaults = cls()
        return cls(
            font_family=pick(data, "fontFamily", "font_family", default=defaults.font_family),
            padding=float(pick(data, "padding", default=defaults.padding)),
            primary_color=pick(data, "primaryColor", "primary_color", default=defaults.primary_color),
            secondary_color=pick(data, "secondaryColor", "secondary_color",
                                 default=defaults.secondary_color),
            include_logo=bool(pick(data, "includeLogo", "include_logo", default=False)),
            logo_b64=pick(data, "logoB64", "logo_b64", "logo"),
            labels=PDFLabels.from_dict(pick(data, "labels")),
            locale=pick(data, "locale"),
        )


@dataclass
class LineRow:
    """One formatted table row."""
    position: int
    description: str
    item_type: str
    quantity: str
    unit_price: str
    vat_rate: str
    total: str


@dataclass
class RenderContext:
    """Everything a layout prints, already formatted as strings."""
    document_type: str
    title: str
    number: str
    date: str
    currency: str
    currency_symbol: str
    supplier_lines: list[str]
    customer_lines: list[str]
    meta_lines: list[tuple[str, str]]
    rows: list[LineRow]
    total_ht: str
    total_vat: str
    total_ttc: str
    vat_breakdown: list[tuple[str, str, str]]  # rate, base, vat
    style: StyleConfig
    supplier_name: str = ""
    contact_lines: list[str] = field(default_factory=list)
    tax_lines: list[str] = field(default_factory=list)
    payment_method: str | None = None
    payment_details: str | None = None
    payment_terms: str | None = None
    notes: str | None = None
    legal_mentions: list[str] = field(default_factory=list)
    reverse_charge_text: str | None = None
    vat_exempt_text: str | None = None
    table_text_color: str = "#000000"
    qr_content: str | None = None
    document_hash: str | None = None

    # Type-specific
    due_date: str | None = None
    valid_until: str | None = None
    payment_date: str | None = None
    original_invoice_ref: str | None = None
    original_invoice_number: str | None = None
    correction_reason: str | None = None
    signed_at: str | None = None

    @property
    def labels(self) -> PDFLabels:
        return self.style.labels


@dataclass
class BuildRequest:
    document_type: str
    data: DocumentData
    format: str = "pdf"
    style: StyleConfig = field(default_factory=StyleConfig)
    format_config: FormatConfig | None = None


@dataclass(frozen=True)
class BuildMetadata:
    builder_kind: str
    requires_xml_embed: bool = False
    xml_syntax: str | None = None
    xml_error: str | None = None


@dataclass
class BuildResult:
    context: RenderContext
    layout: str
    metadata: BuildMetadata
    xml: str | None = None
