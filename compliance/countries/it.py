"""Italy: every channel is cleared through the SdI exchange."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    CLEARANCE, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionCode, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, PeppolPolicy, SignaturePolicy,
    TransmissionPolicy, VATExemption, VATPolicy, eu_documents, frozen_map,
    identifiers, mentions, rates,
)

_SDI = TransmissionPolicy(model=CLEARANCE, platform="sdi", mandatory=True,
                          is_async=True, deadline_days=12)

IT = CountryConfig(
    code="IT",
    name="Italia",
    currency="EUR",
    locale="it-IT",
    timezone="Europe/Rome",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(
            ("S", "22", "S"),
            ("R1", "10", "S"),
            ("R2", "5", "S"),
            ("R3", "4", "S"),
            ("Z", "0", "Z"),
        ),
        default_rate=Decimal("22"),
        rounding_mode=ROUNDING_TOTAL,
        exemptions=(
            VATExemption("N2.2", "Operazione non soggetta", "VATEX-EU-O"),
            VATExemption("N4", "Operazione esente, art. 10 DPR 633/72", "VATEX-EU-E"),
        ),
        number_format=r"^IT[0-9]{11}$",
        number_prefix="IT",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.it.services",
            "goods": "reverseCharge.it.goods",
        }),
        reverse_charge_text="Inversione contabile - art. 7-ter DPR 633/72",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("partitaIva", r"^[0-9]{11}$", "01234567890",
                             required=True, peppol_scheme="0211"),
        IdentifierDefinition("codiceFiscale", r"^([A-Z0-9]{16}|[0-9]{11})$", "RSSMRA80A01H501U"),
        IdentifierDefinition("rea", r"^[A-Z]{2}-[0-9]+$", "MI-1234567"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("codiceDestinatario", r"^[A-Z0-9]{7}$", "ABC1234"),
        IdentifierDefinition("pec", r"^[^@\s]+@[^@\s]+\.[^@\s]+$", "fatture@pec.example.it"),
    ),
    transmission=frozen_map({"b2b": _SDI, "b2g": _SDI, "b2c": _SDI}),
    numbering=NumberingPolicy(
        gap_allowed=False,
        reset_period="yearly",
        invoice_format="{seq}/{year}",
        invoice_prefix="",
        credit_note_prefix="NC",
    ),
    format=FormatPolicy(preferred="fatturapa", supported=("fatturapa", "pdf"),
                        syntax="FatturaPA", version="1.2.2"),
    signature=SignaturePolicy(required=False, type="xades"),
    archiving=ArchivingPolicy(retention_years=10, archival_format="xml"),
    correction=CorrectionPolicy(
        allow_direct_modification=False,
        method="credit_note",
        codes=(CorrectionCode("TD04", "Nota di credito", "381"),
               CorrectionCode("TD05", "Nota di debito", "383")),
    ),
    peppol=PeppolPolicy(enabled=True, scheme_id="0211", participant_id_format="0211:IT{partitaIva}"),
    documents=eu_documents(
        invoice=("pdf", "fatturapa", "ubl", "facturx"),
        credit_note=("pdf", "fatturapa", "ubl"),
        default_format="fatturapa",
    ),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate"),
        "client": ("name", "address", "codiceDestinatario"),
        "company": ("partitaIva", "codiceFiscale"),
    }),
    legal_mentions=mentions(
        mandatory=("partitaIva", "rea", "capitalesociale"),
        conditional=(("transaction.isIntraEU", "reverseCharge.it.services"),),
    ),
)
