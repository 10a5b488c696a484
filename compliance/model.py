"""
Canonical data structures consumed by every builder, generator and renderer.

A ``DocumentData`` is assembled once per generation call by the caller
(who owns persistence) and discarded afterwards.  Parties are frozen;
line items coerce their numeric fields to ``Decimal`` on construction.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Mapping

from compliance.helpers import (
    HUNDRED, normalize_country, parse_date, pick, round_money, to_decimal,
)

# ── Document vocabulary ─────────────────────────────────────────
INVOICE = "invoice"
QUOTE = "quote"
RECEIPT = "receipt"
CREDIT_NOTE = "credit-note"
PROFORMA = "proforma"
CORRECTIVE_INVOICE = "corrective-invoice"
DEPOSIT_INVOICE = "deposit-invoice"

DOCUMENT_TYPES = (
    INVOICE, QUOTE, RECEIPT, CREDIT_NOTE, PROFORMA, CORRECTIVE_INVOICE, DEPOSIT_INVOICE,
)

# Item types as captured by the invoicing UI; PRODUCT is the only goods type
ITEM_TYPES = ("HOUR", "DAY", "SERVICE", "PRODUCT", "DEPOSIT")
GOODS_ITEM_TYPES = ("PRODUCT",)

PAYMENT_METHODS = ("BANK_TRANSFER", "PAYPAL", "CASH", "CHECK", "OTHER")


@dataclass(frozen=True)
class PartyData:
    """Supplier or customer as it appears on one document."""
    name: str
    address: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = ""  # ISO 3166-1 alpha-2, or a country name
    vat_number: str | None = None
    legal_id: str | None = None  # SIRET, NIF, codice fiscale, ...
    identifiers: dict[str, str] = field(default_factory=dict)
    email: str | None = None
    phone: str | None = None
    peppol_id: str | None = None
    routing_code: str | None = None  # codice destinatario, Leitweg-ID
    province: str | None = None
    description: str | None = None
    is_company: bool = True
    is_public_entity: bool = False
    is_vat_registered: bool | None = None  # None = derive from vat_number
    exempt_vat: bool = False

    @property
    def country_code(self) -> str:
        return normalize_country(self.country)

    @property
    def vat_registered(self) -> bool:
        if self.is_vat_registered is not None:
            return self.is_vat_registered
        return bool(self.vat_number)

    @property
    def has_identifier(self) -> bool:
        """True when the party carries any jurisdiction identifier."""
        return bool(self.vat_number or self.legal_id or any(self.identifiers.values()))

    def identifier(self, *keys: str) -> str | None:
        """First non-empty identifier among *keys* (case-insensitive)."""
        lowered = {k.lower(): v for k, v in self.identifiers.items() if v}
        for key in keys:
            if key == "vat" and self.vat_number:
                return self.vat_number
            if key == "legal" and self.legal_id:
                return self.legal_id
            value = lowered.get(key.lower())
            if value:
                return value
        return None

    @classmethod
    def from_dict(cls, data: Mapping) -> PartyData:
        """Build from a JSON-style mapping (camelCase or snake_case keys)."""
        if isinstance(data, PartyData):
            return data
        if not data or not pick(data, "name"):
            raise ValueError("Party name is required")
        registered = pick(data, "isVatRegistered", "is_vat_registered")
        return cls(
            name=str(data["name"]),
            address=pick(data, "address", default=""),
            postal_code=str(pick(data, "postalCode", "postal_code", "zip", default="")),
            city=pick(data, "city", default=""),
            country=pick(data, "country", "countryCode", "country_code", default=""),
            vat_number=pick(data, "vatNumber", "vat_number"),
            legal_id=pick(data, "legalId", "legal_id", "siret"),
            identifiers=dict(pick(data, "identifiers", default={})),
            email=pick(data, "email"),
            phone=pick(data, "phone"),
            peppol_id=pick(data, "peppolId", "peppol_id"),
            routing_code=pick(data, "routingCode", "routing_code"),
            province=pick(data, "province"),
            description=pick(data, "description"),
            is_company=bool(pick(data, "isCompany", "is_company", default=True)),
            is_public_entity=bool(pick(data, "isPublicEntity", "is_public_entity", default=False)),
            is_vat_registered=None if registered is None else bool(registered),
            exempt_vat=bool(pick(data, "exemptVat", "exempt_vat", default=False)),
        )


@dataclass
class LineItem:
    """A single document line. Negative quantities are credit lines."""
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    vat_rate: Decimal = Decimal("0")
    item_type: str = "SERVICE"  # one of ITEM_TYPES
    unit_code: str | None = None  # UN/ECE Rec 20, overrides the kind default
    code: str | None = None  # seller item id
    is_exempt: bool = False
    id: str | None = None

    def __post_init__(self):
        self.quantity = to_decimal(self.quantity)
        self.unit_price = to_decimal(self.unit_price)
        self.vat_rate = to_decimal(self.vat_rate)
        self.item_type = (self.item_type or "SERVICE").upper()

    @classmethod
    def coerce(cls, item) -> LineItem:
        """Return *item* as a ``LineItem``; mappings use camelCase or snake_case keys."""
        if isinstance(item, LineItem):
            return item
        if not isinstance(item, Mapping):
            raise ValueError(f"Cannot read a line item from {type(item).__name__}")
        kind = pick(item, "kind")
        item_type = pick(item, "itemType", "item_type", "type")
        if item_type is None:
            item_type = "PRODUCT" if kind == "goods" else "SERVICE"
        return cls(
            description=str(pick(item, "description", "name", default="")),
            quantity=pick(item, "quantity", default=1),
            unit_price=pick(item, "unitPrice", "unit_price", default=0),
            vat_rate=pick(item, "vatRate", "vat_rate", default=0),
            item_type=item_type,
            unit_code=pick(item, "unitCode", "unit_code"),
            code=pick(item, "code"),
            is_exempt=bool(pick(item, "isExempt", "is_exempt", default=False)),
            id=pick(item, "id"),
        )

    @property
    def kind(self) -> str:
        return "goods" if self.item_type in GOODS_ITEM_TYPES else "services"

    @property
    def line_total(self) -> Decimal:
        """Unrounded net amount (quantity * unit price)."""
        return self.quantity * self.unit_price

    @property
    def vat_amount(self) -> Decimal:
        """Unrounded VAT of this line."""
        return self.line_total * self.vat_rate / HUNDRED

    @property
    def rounded_total(self) -> Decimal:
        return round_money(self.line_total)

    @property
    def rounded_vat(self) -> Decimal:
        return round_money(self.vat_amount)


# UNCL5305 duty/tax category codes
CATEGORY_STANDARD = "S"
CATEGORY_ZERO = "Z"
CATEGORY_EXEMPT = "E"
CATEGORY_REVERSE_CHARGE = "AE"


def vat_category(rate, *, exempt: bool = False, reverse_charge: bool = False) -> str:
    """UNCL5305 category: AE beats E, E beats a literal zero rate (Z), else S."""
    if reverse_charge:
        return CATEGORY_REVERSE_CHARGE
    if exempt:
        return CATEGORY_EXEMPT
    if to_decimal(rate) == 0:
        return CATEGORY_ZERO
    return CATEGORY_STANDARD


@dataclass(frozen=True)
class VATBreakdownEntry:
    """One (rate, category) group of the VAT breakdown.

    Exempt and zero-rated lines both carry rate 0 but are kept in
    separate entries; ``category`` is derived from the rate when omitted.
    """
    rate: Decimal
    base_amount: Decimal
    vat_amount: Decimal
    category: str = ""

    def __post_init__(self):
        if not self.category:
            object.__setattr__(self, "category", vat_category(self.rate))

    @property
    def is_exempt(self) -> bool:
        return self.category == CATEGORY_EXEMPT


@dataclass(frozen=True)
class VATResult:
    """Output of the VAT engine; every amount is already at 2 decimals."""
    total_ht: Decimal
    total_vat: Decimal
    total_ttc: Decimal
    breakdown: tuple[VATBreakdownEntry, ...] = ()
    reverse_charge: bool = False
    reverse_charge_text: str | None = None

    def rate_entry(self, rate) -> VATBreakdownEntry | None:
        rate = to_decimal(rate)
        for entry in self.breakdown:
            if entry.rate == rate:
                return entry
        return None

    def to_dict(self) -> dict:
        return {
            "totalHT": f"{self.total_ht:.2f}",
            "totalVAT": f"{self.total_vat:.2f}",
            "totalTTC": f"{self.total_ttc:.2f}",
            "breakdown": [
                {
                    "rate": float(e.rate),
                    "baseAmount": f"{e.base_amount:.2f}",
                    "vatAmount": f"{e.vat_amount:.2f}",
                    "category": e.category,
                }
                for e in self.breakdown
            ],
            "reverseCharge": self.reverse_charge,
            "reverseChargeText": self.reverse_charge_text,
        }


@dataclass
class DocumentData:
    """The canonical business document.

    Dates that do not apply to the document type are simply left ``None``.
    ``totals`` is normally the VAT engine result for ``items``; builders
    compute it from the supplier's VAT policy when the caller leaves it out.
    """
    document_type: str
    id: str
    number: str
    issue_date: date
    supplier: PartyData
    customer: PartyData
    items: list[LineItem] = field(default_factory=list)
    currency: str = "EUR"
    totals: VATResult | None = None

    # Type-specific dates
    due_date: date | None = None  # invoice
    valid_until: date | None = None  # quote
    payment_date: date | None = None  # receipt
    signed_at: datetime | None = None  # quote

    # Payment
    payment_method: str | None = None  # one of PAYMENT_METHODS
    payment_details: str | None = None
    payment_terms: str | None = None
    payment_reference: str | None = None
    purchase_order_ref: str | None = None

    # References (receipts, credit notes, corrective invoices)
    invoice_ref: str | None = None
    invoice_number: str | None = None
    original_invoice_ref: str | None = None
    original_invoice_number: str | None = None
    original_invoice_date: date | None = None
    correction_code: str | None = None
    correction_reason: str | None = None

    # Free text and jurisdiction extras
    notes: str | None = None
    legal_mentions: list[str] = field(default_factory=list)
    qr_code: str | None = None
    document_hash: str | None = None  # ES/PT hash chain
    atcud: str | None = None  # PT validation code + sequence
    platform_id: str | None = None  # KSeF number, IRN, SdI id

    @property
    def is_credit(self) -> bool:
        return self.document_type == CREDIT_NOTE

    @classmethod
    def from_dict(cls, data: Mapping, document_type: str | None = None) -> DocumentData:
        """Build from a JSON-style payload as posted to the web API."""
        document_type = document_type or pick(data, "documentType", "document_type", "type")
        if document_type not in DOCUMENT_TYPES:
            raise ValueError(
                f"Unknown document type '{document_type}'. "
                f"Available: {', '.join(DOCUMENT_TYPES)}"
            )
        supplier = pick(data, "supplier", "company")
        customer = pick(data, "customer", "client")
        if supplier is None or customer is None:
            raise ValueError("Both supplier and customer are required")
        issue_date = parse_date(pick(data, "issueDate", "issue_date", "date"))
        if issue_date is None:
            raise ValueError("issueDate is required")
        signed_at = pick(data, "signedAt", "signed_at")
        if isinstance(signed_at, str):
            signed_at = datetime.fromisoformat(signed_at)
        return cls(
            document_type=document_type,
            id=str(pick(data, "id", "number", default="")),
            number=str(pick(data, "number", default="")),
            issue_date=issue_date,
            supplier=PartyData.from_dict(supplier),
            customer=PartyData.from_dict(customer),
            items=[LineItem.coerce(i) for i in pick(data, "items", default=[])],
            currency=pick(data, "currency", default="EUR"),
            due_date=parse_date(pick(data, "dueDate", "due_date")),
            valid_until=parse_date(pick(data, "validUntil", "valid_until")),
            payment_date=parse_date(pick(data, "paymentDate", "payment_date")),
            signed_at=signed_at,
            payment_method=pick(data, "paymentMethod", "payment_method"),
            payment_details=pick(data, "paymentDetails", "payment_details"),
            payment_terms=pick(data, "paymentTerms", "payment_terms"),
            payment_reference=pick(data, "paymentReference", "payment_reference"),
            purchase_order_ref=pick(data, "purchaseOrderRef", "purchase_order_ref"),
            invoice_ref=pick(data, "invoiceRef", "invoice_ref"),
            invoice_number=pick(data, "invoiceNumber", "invoice_number"),
            original_invoice_ref=pick(data, "originalInvoiceRef", "original_invoice_ref"),
            original_invoice_number=pick(data, "originalInvoiceNumber", "original_invoice_number"),
            original_invoice_date=parse_date(pick(data, "originalInvoiceDate", "original_invoice_date")),
            correction_code=pick(data, "correctionCode", "correction_code"),
            correction_reason=pick(data, "correctionReason", "correction_reason", "reason"),
            notes=pick(data, "notes"),
            legal_mentions=list(pick(data, "legalMentions", "legal_mentions", default=[])),
            qr_code=pick(data, "qrCode", "qr_code"),
            document_hash=pick(data, "documentHash", "document_hash", "hash"),
            atcud=pick(data, "atcud"),
            platform_id=pick(data, "platformId", "platform_id"),
        )
