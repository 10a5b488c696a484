"""Germany: XRechnung for public buyers, structured B2B receipt since 2025."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    EMAIL, PEPPOL, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, PeppolPolicy, TransmissionPolicy,
    VATExemption, VATPolicy, eu_documents, frozen_map, identifiers, mentions, rates,
)

DE = CountryConfig(
    code="DE",
    name="Deutschland",
    currency="EUR",
    locale="de-DE",
    timezone="Europe/Berlin",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(("S", "19", "S"), ("R1", "7", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("19"),
        rounding_mode=ROUNDING_TOTAL,
        exemptions=(
            VATExemption("19UStG", "Gemäß § 19 UStG wird keine Umsatzsteuer berechnet.", "VATEX-EU-O"),
            VATExemption("4UStG", "Steuerfrei gemäß § 4 UStG", "VATEX-EU-O"),
        ),
        number_format=r"^DE[0-9]{9}$",
        number_prefix="DE",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.de.services",
            "goods": "reverseCharge.de.goods",
        }),
        reverse_charge_text="Steuerschuldnerschaft des Leistungsempfängers (§ 13b UStG)",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("steuernummer", r"^[0-9]{10,13}$", "2181508150", required=True),
        IdentifierDefinition("handelsregister", r"^HR[AB] [0-9]+", "HRB 12345"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("leitwegId", r"^[0-9]{2}-[0-9A-Z]+-[0-9A-Z]+$", "04-12345-67",
                             peppol_scheme="0204"),
    ),
    transmission=frozen_map({
        "b2b": TransmissionPolicy(model=PEPPOL, mandatory_from="2025-01-01"),
        "b2g": TransmissionPolicy(model=PEPPOL, platform="xrechnung",
                                  mandatory=True, deadline_days=30),
        "b2c": TransmissionPolicy(model=EMAIL),
    }),
    numbering=NumberingPolicy(
        gap_allowed=False,
        reset_period="never",
        invoice_format="{prefix}{year}-{seq:06d}",
        invoice_prefix="RE",
        credit_note_prefix="GS",
    ),
    format=FormatPolicy(preferred="zugferd", supported=("zugferd", "xrechnung", "ubl", "cii", "pdf"),
                        syntax="CII", profile="EN16931"),
    archiving=ArchivingPolicy(retention_years=10, archival_format="pdf-a"),
    correction=CorrectionPolicy(allow_direct_modification=False, method="credit_note"),
    peppol=PeppolPolicy(enabled=True, scheme_id="0204", participant_id_format="0204:{leitwegId}"),
    documents=eu_documents(
        invoice=("pdf", "facturx", "zugferd", "xrechnung", "ubl", "cii"),
        credit_note=("pdf", "facturx", "zugferd", "xrechnung", "ubl"),
        default_format="zugferd",
    ),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate", "serviceDate"),
        "client": ("name", "address"),
        "company": ("steuernummer",),
    }),
    legal_mentions=mentions(
        mandatory=("handelsregister", "geschaeftsfuehrer"),
        conditional=(
            ("company.exemptVat", "vatExemption.de.kleinunternehmer"),
            ("transaction.isIntraEU", "reverseCharge.de.services"),
        ),
    ),
)
