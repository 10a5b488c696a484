"""
Data records describing one jurisdiction's invoicing rules.

Every record is frozen and uses tuples for sequences, so a config
obtained from the registry can be shared between concurrent callers.
Country differences are data: no per-country subclasses.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

# Transmission models
EMAIL = "email"
PEPPOL = "peppol"
CLEARANCE = "clearance"
PDP = "pdp"
HASH_CHAIN = "hash_chain"
POST_AUDIT = "post_audit"

# Builder kinds
GENERIC_BUILDER = "generic"
REGIONAL_BUILDER = "eu"

ROUNDING_LINE = "line"
ROUNDING_TOTAL = "total"


def frozen_map(data: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(data or {}))


@dataclass(frozen=True)
class VATRate:
    code: str  # S, R1, R2, Z, ...
    rate: Decimal
    category: str = "S"  # UNCL5305 category
    label: str = ""


@dataclass(frozen=True)
class VATExemption:
    code: str
    article: str
    ubl_code: str = "VATEX-EU-O"


@dataclass(frozen=True)
class VATPolicy:
    rates: tuple[VATRate, ...]
    default_rate: Decimal
    rounding_mode: str = ROUNDING_TOTAL
    exemptions: tuple[VATExemption, ...] = ()
    number_format: str = r"^[A-Z]{2}[0-9A-Z]+$"
    number_prefix: str = ""
    reverse_charge_keys: Mapping[str, str] = field(default_factory=frozen_map)  # goods/services -> i18n key
    reverse_charge_text: str = "Reverse charge - VAT to be accounted for by the recipient (Art. 196 Directive 2006/112/EC)"

    def rate_values(self) -> tuple[Decimal, ...]:
        return tuple(r.rate for r in self.rates)


@dataclass(frozen=True)
class IdentifierDefinition:
    id: str
    format: str  # regular expression
    example: str = ""
    required: bool = False
    max_length: int | None = None
    luhn_check: bool = False
    peppol_scheme: str | None = None


@dataclass(frozen=True)
class TransmissionPolicy:
    model: str = EMAIL
    platform: str | None = None
    mandatory: bool = False
    mandatory_from: str | None = None  # ISO date
    is_async: bool = False
    deadline_days: int | None = None


@dataclass(frozen=True)
class NumberingPolicy:
    series_required: bool = False
    series_registration: bool = False
    hash_chaining: bool = False
    hash_algorithm: str | None = None
    hash_fields: tuple[str, ...] = ()
    gap_allowed: bool = True
    reset_period: str = "never"  # never | yearly | monthly
    invoice_format: str = "{prefix}{year}-{seq:06d}"
    invoice_prefix: str = "INV"
    credit_note_prefix: str = "CN"


@dataclass(frozen=True)
class ArchivingPolicy:
    retention_years: int = 10
    archival_format: str = "pdf"  # pdf | pdf-a | xml
    signature_required: bool = False
    hash_chain_required: bool = False


@dataclass(frozen=True)
class DocumentPolicy:
    builder: str = GENERIC_BUILDER
    output_formats: Mapping[str, tuple[str, ...]] = field(default_factory=frozen_map)
    default_format: str = "pdf"
    invoice_editable: bool = True
    requires_credit_note: bool = False
    required_elements: Mapping[str, tuple[str, ...]] = field(default_factory=frozen_map)
    archiving: ArchivingPolicy | None = None


@dataclass(frozen=True)
class FormatPolicy:
    preferred: str = "pdf"
    supported: tuple[str, ...] = ("pdf",)
    syntax: str = "UBL"
    version: str | None = None
    profile: str | None = None
    customization_id: str | None = None


@dataclass(frozen=True)
class SignaturePolicy:
    required: bool = False
    type: str = "none"  # none | xades | pades
    algorithm: str | None = None


@dataclass(frozen=True)
class QRCodePolicy:
    required: bool = False
    content: str | None = None  # url | structured


@dataclass(frozen=True)
class PeppolPolicy:
    enabled: bool = False
    scheme_id: str = ""
    participant_id_format: str = ""


@dataclass(frozen=True)
class CorrectionCode:
    code: str
    label: str
    ubl_type_code: str | None = None


@dataclass(frozen=True)
class CorrectionPolicy:
    allow_direct_modification: bool = True
    method: str = "credit_note"  # credit_note | void_and_reissue | platform_request
    requires_original_reference: bool = True
    requires_pre_approval: bool = False
    codes: tuple[CorrectionCode, ...] = ()


@dataclass(frozen=True)
class ConditionalMention:
    condition: str  # predicate, see compliance.rules
    text_key: str


@dataclass(frozen=True)
class LegalMentions:
    mandatory: tuple[str, ...] = ()
    conditional: tuple[ConditionalMention, ...] = ()


@dataclass(frozen=True)
class CountryConfig:
    code: str
    name: str
    currency: str
    vat: VATPolicy
    documents: DocumentPolicy
    locale: str = "en-GB"
    timezone: str = "UTC"
    is_eu: bool = False
    company_identifiers: tuple[IdentifierDefinition, ...] = ()
    client_identifiers: tuple[IdentifierDefinition, ...] = ()
    transmission: Mapping[str, TransmissionPolicy] = field(default_factory=frozen_map)  # b2b / b2g / b2c
    numbering: NumberingPolicy = field(default_factory=NumberingPolicy)
    format: FormatPolicy = field(default_factory=FormatPolicy)
    signature: SignaturePolicy = field(default_factory=SignaturePolicy)
    qr_code: QRCodePolicy = field(default_factory=QRCodePolicy)
    archiving: ArchivingPolicy = field(default_factory=ArchivingPolicy)
    correction: CorrectionPolicy = field(default_factory=CorrectionPolicy)
    peppol: PeppolPolicy | None = None
    required_fields: Mapping[str, tuple[str, ...]] = field(default_factory=frozen_map)
    legal_mentions: LegalMentions = field(default_factory=LegalMentions)

    def transmission_for(self, channel: str) -> TransmissionPolicy | None:
        return self.transmission.get(channel.lower())

    def formats_for(self, document_type: str) -> tuple[str, ...]:
        return self.documents.output_formats.get(document_type, ("pdf",))


def rates(*entries) -> tuple[VATRate, ...]:
    """Shorthand: ``rates(("S", "20", "S"), ...)``."""
    return tuple(VATRate(code=c, rate=Decimal(r), category=cat) for c, r, cat in entries)


def identifiers(*defs: IdentifierDefinition) -> tuple[IdentifierDefinition, ...]:
    return tuple(defs)


def mentions(mandatory=(), conditional=()) -> LegalMentions:
    return LegalMentions(
        mandatory=tuple(mandatory),
        conditional=tuple(ConditionalMention(c, k) for c, k in conditional),
    )


# ── Shared document policies ────────────────────────────────────
DEFAULT_DOCUMENTS = DocumentPolicy(
    builder=GENERIC_BUILDER,
    output_formats=frozen_map({
        "invoice": ("pdf",),
        "quote": ("pdf",),
        "receipt": ("pdf",),
        "credit-note": ("pdf",),
        "proforma": ("pdf",),
    }),
    default_format="pdf",
    invoice_editable=True,
    requires_credit_note=False,
    required_elements=frozen_map({
        "invoice": ("vatBreakdown",),
        "quote": ("validityDate",),
        "receipt": (),
        "credit-note": ("originalInvoiceRef",),
    }),
)

EU_DOCUMENTS = DocumentPolicy(
    builder=REGIONAL_BUILDER,
    output_formats=frozen_map({
        "invoice": ("pdf", "facturx", "zugferd", "ubl", "cii"),
        "quote": ("pdf",),
        "receipt": ("pdf",),
        "credit-note": ("pdf", "facturx", "ubl"),
        "proforma": ("pdf",),
    }),
    default_format="facturx",
    invoice_editable=False,
    requires_credit_note=True,
    required_elements=frozen_map({
        "invoice": ("vatBreakdown", "legalMentions", "dueDate", "supplierIdentifiers"),
        "quote": ("validityDate", "legalMentions"),
        "receipt": ("originalInvoiceRef",),
        "credit-note": ("originalInvoiceRef", "vatBreakdown"),
    }),
    archiving=ArchivingPolicy(retention_years=10, archival_format="pdf-a"),
)


def eu_documents(*, invoice=None, credit_note=None, default_format=None) -> DocumentPolicy:
    """EU policy with jurisdiction-specific invoice / credit-note formats."""
    formats = dict(EU_DOCUMENTS.output_formats)
    if invoice is not None:
        formats["invoice"] = tuple(invoice)
    if credit_note is not None:
        formats["credit-note"] = tuple(credit_note)
    return DocumentPolicy(
        builder=REGIONAL_BUILDER,
        output_formats=frozen_map(formats),
        default_format=default_format or EU_DOCUMENTS.default_format,
        invoice_editable=EU_DOCUMENTS.invoice_editable,
        requires_credit_note=EU_DOCUMENTS.requires_credit_note,
        required_elements=EU_DOCUMENTS.required_elements,
        archiving=EU_DOCUMENTS.archiving,
    )
