"""Spain: VeriFactu hash-chained records, FACe for public buyers."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    CLEARANCE, HASH_CHAIN, ROUNDING_LINE,
    ArchivingPolicy, CorrectionCode, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, QRCodePolicy, TransmissionPolicy,
    VATExemption, VATPolicy, eu_documents, frozen_map, identifiers, mentions, rates,
)

_VERIFACTU = TransmissionPolicy(model=HASH_CHAIN, platform="verifactu",
                                mandatory_from="2025-07-01")

ES = CountryConfig(
    code="ES",
    name="España",
    currency="EUR",
    locale="es-ES",
    timezone="Europe/Madrid",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(("S", "21", "S"), ("R1", "10", "S"), ("R2", "4", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("21"),
        rounding_mode=ROUNDING_LINE,
        exemptions=(VATExemption("E1", "Exenta por el artículo 20 de la Ley 37/1992", "VATEX-EU-E"),),
        number_format=r"^ES[0-9A-Z][0-9]{7}[0-9A-Z]$",
        number_prefix="ES",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.es.services",
            "goods": "reverseCharge.es.goods",
        }),
        reverse_charge_text="Inversión del sujeto pasivo - art. 84 Ley 37/1992",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("nif", r"^[0-9A-Z][0-9]{7}[0-9A-Z]$", "B12345678", required=True,
                             peppol_scheme="9920"),
        IdentifierDefinition("registroMercantil", r"^.+$", "Registro Mercantil de Madrid, Tomo 1"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("nif", r"^[0-9A-Z][0-9]{7}[0-9A-Z]$", "B12345678"),
    ),
    transmission=frozen_map({
        "b2b": _VERIFACTU,
        "b2g": TransmissionPolicy(model=CLEARANCE, platform="face", mandatory=True, is_async=True),
        "b2c": _VERIFACTU,
    }),
    numbering=NumberingPolicy(
        series_required=True,
        hash_chaining=True,
        hash_algorithm="SHA-256",
        hash_fields=("supplierNIF", "invoiceNumber", "issueDate", "totalTTC", "customerNIF", "previousHash"),
        gap_allowed=False,
        reset_period="yearly",
        invoice_format="{prefix}{series}{year}-{seq:06d}",
        invoice_prefix="F",
        credit_note_prefix="R",
    ),
    format=FormatPolicy(preferred="pdf", supported=("pdf", "ubl", "facturx"), syntax="UBL"),
    qr_code=QRCodePolicy(required=True, content="url"),
    archiving=ArchivingPolicy(retention_years=6, archival_format="pdf-a", hash_chain_required=True),
    correction=CorrectionPolicy(
        allow_direct_modification=False,
        method="credit_note",
        codes=(
            CorrectionCode("R1", "Error fundado en derecho", "381"),
            CorrectionCode("R2", "Concurso de acreedores", "381"),
            CorrectionCode("R3", "Créditos incobrables", "381"),
            CorrectionCode("R4", "Resto de causas", "381"),
        ),
    ),
    documents=eu_documents(),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "series"),
        "client": ("name", "address", "nif"),
        "company": ("nif",),
    }),
    legal_mentions=mentions(
        mandatory=("nif", "registroMercantil"),
        conditional=(("transaction.isIntraEU", "reverseCharge.es.services"),),
    ),
)
