"""India: GST with IRP e-invoice clearance."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    CLEARANCE, DEFAULT_DOCUMENTS, ROUNDING_LINE,
    ArchivingPolicy, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, QRCodePolicy, SignaturePolicy,
    TransmissionPolicy, VATExemption, VATPolicy, frozen_map, identifiers,
    mentions, rates,
)

IN = CountryConfig(
    code="IN",
    name="India",
    currency="INR",
    locale="en-IN",
    timezone="Asia/Kolkata",
    is_eu=False,
    vat=VATPolicy(
        rates=rates(
            ("S28", "28", "S"),
            ("S", "18", "S"),
            ("R1", "12", "S"),
            ("R2", "5", "S"),
            ("R3", "3", "S"),
            ("R4", "0.25", "S"),
            ("Z", "0", "Z"),
        ),
        default_rate=Decimal("18"),
        rounding_mode=ROUNDING_LINE,
        exemptions=(VATExemption("NIL", "Nil rated supply under GST", "VATEX-EU-O"),),
        number_format=r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$",
        reverse_charge_text="Tax payable on reverse charge basis",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("gstin", r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$",
                             "27AAPFU0939F1ZV", required=True, max_length=15),
        IdentifierDefinition("pan", r"^[A-Z]{5}[0-9]{4}[A-Z]$", "AAPFU0939F", required=True),
        IdentifierDefinition("cin", r"^[LU][0-9]{5}[A-Z]{2}[0-9]{4}[A-Z]{3}[0-9]{6}$",
                             "U74999MH2015PTC123456"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("gstin", r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$",
                             "27AAPFU0939F1ZV", max_length=15),
    ),
    transmission=frozen_map({
        "b2b": TransmissionPolicy(model=CLEARANCE, platform="irp", mandatory=True, is_async=False),
        "b2g": TransmissionPolicy(model=CLEARANCE, platform="irp", mandatory=True, is_async=False),
        "b2c": TransmissionPolicy(model=CLEARANCE, platform="irp", mandatory=True,
                                  mandatory_from="2023-08-01"),
    }),
    numbering=NumberingPolicy(series_required=True, gap_allowed=False, reset_period="yearly",
                              invoice_format="{series}/{year}/{seq}", invoice_prefix="INV",
                              credit_note_prefix="CN"),
    format=FormatPolicy(preferred="pdf", supported=("pdf",), syntax="JSON", version="1.1"),
    signature=SignaturePolicy(required=True, type="pades"),
    qr_code=QRCodePolicy(required=True, content="structured"),
    archiving=ArchivingPolicy(retention_years=8, archival_format="pdf"),
    correction=CorrectionPolicy(allow_direct_modification=False, method="credit_note"),
    documents=DEFAULT_DOCUMENTS,
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "placeOfSupply"),
        "client": ("name", "address", "gstin"),
        "company": ("gstin", "pan"),
    }),
    legal_mentions=mentions(
        mandatory=("gstin", "pan", "stateCode", "irn", "qrCode"),
        conditional=(
            ("transaction.isExport", "export.in.lut"),
            ("transaction.reverseCharge", "reverseCharge.in"),
        ),
    ),
)
