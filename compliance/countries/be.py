"""Belgium: Peppol B2B mandate from 2026."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    EMAIL, PEPPOL, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, PeppolPolicy, TransmissionPolicy,
    VATExemption, VATPolicy, eu_documents, frozen_map, identifiers, mentions, rates,
)

BE = CountryConfig(
    code="BE",
    name="Belgique",
    currency="EUR",
    locale="fr-BE",
    timezone="Europe/Brussels",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(("S", "21", "S"), ("R1", "12", "S"), ("R2", "6", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("21"),
        rounding_mode=ROUNDING_TOTAL,
        exemptions=(VATExemption("56bis", "Régime particulier de franchise, art. 56bis CTVA", "VATEX-EU-O"),),
        number_format=r"^BE[01][0-9]{9}$",
        number_prefix="BE",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.be.services",
            "goods": "reverseCharge.be.goods",
        }),
        reverse_charge_text="Autoliquidation - article 196 de la directive 2006/112/CE",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("enterpriseNumber", r"^[01][0-9]{9}$", "0123456789",
                             required=True, peppol_scheme="0208"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("enterpriseNumber", r"^[01][0-9]{9}$", "0123456789"),
    ),
    transmission=frozen_map({
        "b2b": TransmissionPolicy(model=PEPPOL, mandatory_from="2026-01-01"),
        "b2g": TransmissionPolicy(model=PEPPOL, platform="mercurius", mandatory=True),
        "b2c": TransmissionPolicy(model=EMAIL),
    }),
    numbering=NumberingPolicy(gap_allowed=False, reset_period="yearly",
                              invoice_prefix="F", credit_note_prefix="NC"),
    format=FormatPolicy(preferred="ubl", supported=("ubl", "pdf", "facturx"),
                        syntax="UBL", profile="peppol-bis"),
    archiving=ArchivingPolicy(retention_years=7, archival_format="pdf-a"),
    correction=CorrectionPolicy(allow_direct_modification=False, method="credit_note"),
    peppol=PeppolPolicy(enabled=True, scheme_id="0208", participant_id_format="0208:{enterpriseNumber}"),
    documents=eu_documents(default_format="ubl"),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate"),
        "client": ("name", "address"),
        "company": ("enterpriseNumber", "bankAccount"),
    }),
    legal_mentions=mentions(
        mandatory=("enterpriseNumber", "bankAccount"),
        conditional=(("transaction.isIntraEU", "reverseCharge.be.services"),),
    ),
)
