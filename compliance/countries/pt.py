"""Portugal: certified software, SAF-T reporting and ATCUD hash chain."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    HASH_CHAIN, ROUNDING_LINE,
    ArchivingPolicy, CorrectionCode, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, QRCodePolicy, SignaturePolicy,
    TransmissionPolicy, VATExemption, VATPolicy, eu_documents, frozen_map,
    identifiers, mentions, rates,
)

_SAFT = TransmissionPolicy(model=HASH_CHAIN, platform="saft", mandatory=True)

PT = CountryConfig(
    code="PT",
    name="Portugal",
    currency="EUR",
    locale="pt-PT",
    timezone="Europe/Lisbon",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(("S", "23", "S"), ("R1", "13", "S"), ("R2", "6", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("23"),
        rounding_mode=ROUNDING_LINE,
        exemptions=(VATExemption("M07", "Isento artigo 9.º do CIVA", "VATEX-EU-E"),),
        number_format=r"^PT[0-9]{9}$",
        number_prefix="PT",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.pt.services",
            "goods": "reverseCharge.pt.goods",
        }),
        reverse_charge_text="IVA - autoliquidação",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("nif", r"^[0-9]{9}$", "123456789", required=True),
        IdentifierDefinition("softwareCertificado", r"^[0-9]+/AT$", "1234/AT"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("nif", r"^[0-9]{9}$", "123456789"),
    ),
    transmission=frozen_map({"b2b": _SAFT, "b2g": _SAFT, "b2c": _SAFT}),
    numbering=NumberingPolicy(
        series_required=True,
        series_registration=True,
        hash_chaining=True,
        hash_algorithm="SHA-1",
        hash_fields=("issueDate", "systemEntryDate", "invoiceNumber", "totalTTC", "previousHash"),
        gap_allowed=False,
        reset_period="never",
        invoice_format="{prefix} {series}/{seq}",
        invoice_prefix="FT",
        credit_note_prefix="NC",
    ),
    format=FormatPolicy(preferred="pdf", supported=("pdf", "ubl"), syntax="UBL"),
    signature=SignaturePolicy(required=True, type="xades", algorithm="RSA-SHA1"),
    qr_code=QRCodePolicy(required=True, content="structured"),
    archiving=ArchivingPolicy(retention_years=12, archival_format="pdf-a",
                              signature_required=True, hash_chain_required=True),
    correction=CorrectionPolicy(
        allow_direct_modification=False,
        method="credit_note",
        codes=(CorrectionCode("NC", "Nota de crédito", "381"),
               CorrectionCode("ND", "Nota de débito", "383")),
    ),
    documents=eu_documents(invoice=("pdf", "ubl"), credit_note=("pdf", "ubl"), default_format="pdf"),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "series"),
        "client": ("name", "nif"),
        "company": ("nif", "softwareCertificado"),
    }),
    legal_mentions=mentions(
        mandatory=("nif", "atcud", "softwareCertificado"),
        conditional=(("transaction.isIntraEU", "reverseCharge.pt.services"),),
    ),
)
