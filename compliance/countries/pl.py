"""Poland: KSeF clearance with FA(2) / FA(3) structures."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    CLEARANCE, EMAIL, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionCode, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, PeppolPolicy, QRCodePolicy,
    TransmissionPolicy, VATExemption, VATPolicy, eu_documents, frozen_map,
    identifiers, mentions, rates,
)

_KSEF = TransmissionPolicy(model=CLEARANCE, platform="ksef", mandatory_from="2026-07-01",
                           is_async=True, deadline_days=1)

PL = CountryConfig(
    code="PL",
    name="Polska",
    currency="PLN",
    locale="pl-PL",
    timezone="Europe/Warsaw",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(("S", "23", "S"), ("R1", "8", "S"), ("R2", "5", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("23"),
        rounding_mode=ROUNDING_TOTAL,
        exemptions=(VATExemption("ZW", "Zwolnione z VAT, art. 43 ustawy o VAT", "VATEX-EU-E"),),
        number_format=r"^PL[0-9]{10}$",
        number_prefix="PL",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.pl.services",
            "goods": "reverseCharge.pl.goods",
        }),
        reverse_charge_text="Odwrotne obciążenie",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("nip", r"^[0-9]{10}$", "1234563218", required=True,
                             peppol_scheme="9945"),
        IdentifierDefinition("regon", r"^([0-9]{9}|[0-9]{14})$", "123456785"),
        IdentifierDefinition("krs", r"^[0-9]{10}$", "0000123456"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("nip", r"^[0-9]{10}$", "1234563218"),
    ),
    transmission=frozen_map({
        "b2b": _KSEF,
        "b2g": _KSEF,
        "b2c": TransmissionPolicy(model=EMAIL),
    }),
    numbering=NumberingPolicy(
        gap_allowed=False,
        reset_period="yearly",
        invoice_format="{prefix}/{seq}/{year}",
        invoice_prefix="FV",
        credit_note_prefix="FK",
    ),
    format=FormatPolicy(preferred="ksef", supported=("ksef", "ksef-fa3", "pdf"),
                        syntax="FA", version="2"),
    qr_code=QRCodePolicy(required=True, content="url"),
    archiving=ArchivingPolicy(retention_years=5, archival_format="xml"),
    correction=CorrectionPolicy(
        allow_direct_modification=False,
        method="credit_note",
        codes=(CorrectionCode("381", "Faktura korygująca", "381"),
               CorrectionCode("KOR", "Korekta", "381")),
    ),
    peppol=PeppolPolicy(enabled=True, scheme_id="9945", participant_id_format="9945:PL{nip}"),
    documents=eu_documents(
        invoice=("pdf", "ksef", "ksef-fa3", "ubl"),
        credit_note=("pdf", "ksef", "ksef-fa3"),
        default_format="ksef",
    ),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate"),
        "client": ("name", "address", "nip"),
        "company": ("nip",),
    }),
    legal_mentions=mentions(
        mandatory=("nip", "regon"),
        conditional=(("transaction.isIntraEU", "reverseCharge.pl.services"),),
    ),
)
