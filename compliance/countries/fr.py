"""France: Chorus Pro for public buyers, PDP platforms for B2B from 2026."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    EMAIL, PDP, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionCode, CorrectionPolicy, CountryConfig, FormatPolicy,
    IdentifierDefinition, NumberingPolicy, PeppolPolicy, TransmissionPolicy,
    VATExemption, VATPolicy, eu_documents, frozen_map, identifiers, mentions, rates,
)

FR = CountryConfig(
    code="FR",
    name="France",
    currency="EUR",
    locale="fr-FR",
    timezone="Europe/Paris",
    is_eu=True,
    vat=VATPolicy(
        rates=rates(
            ("S", "20", "S"),
            ("R1", "10", "S"),
            ("R2", "5.5", "S"),
            ("R3", "2.1", "S"),
            ("Z", "0", "Z"),
        ),
        default_rate=Decimal("20"),
        rounding_mode=ROUNDING_TOTAL,
        exemptions=(
            VATExemption("293B", "TVA non applicable, art. 293 B du CGI", "VATEX-FR-FRANCHISE"),
            VATExemption("261", "Exonération de TVA, article 261 du CGI", "VATEX-EU-O"),
        ),
        number_format=r"^FR[0-9A-Z]{2}[0-9]{9}$",
        number_prefix="FR",
        reverse_charge_keys=frozen_map({
            "services": "reverseCharge.fr.services",
            "goods": "reverseCharge.fr.goods",
        }),
        reverse_charge_text=(
            "TVA applicable selon l'article 283-1 du Code Général des Impôts - Autoliquidation"
        ),
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("siret", r"^[0-9]{14}$", "73282932000074",
                             required=True, luhn_check=True, peppol_scheme="0009"),
        IdentifierDefinition("rcs", r"^RCS [A-Za-zÀ-ÿ\- ]+ [0-9 ]+$", "RCS Paris 732 829 320"),
    ),
    client_identifiers=identifiers(
        IdentifierDefinition("siret", r"^[0-9]{14}$", "73282932000074", luhn_check=True),
    ),
    transmission=frozen_map({
        "b2b": TransmissionPolicy(model=PDP, platform="superpdp",
                                  mandatory_from="2026-09-01", is_async=True, deadline_days=7),
        "b2g": TransmissionPolicy(model=PDP, platform="chorus",
                                  mandatory=True, is_async=True, deadline_days=10),
        "b2c": TransmissionPolicy(model=EMAIL),
    }),
    numbering=NumberingPolicy(
        gap_allowed=False,
        reset_period="yearly",
        invoice_format="{prefix}{year}-{seq:06d}",
        invoice_prefix="FA",
        credit_note_prefix="AV",
    ),
    format=FormatPolicy(preferred="facturx", supported=("facturx", "ubl", "cii", "pdf"),
                        syntax="CII", profile="EN16931"),
    archiving=ArchivingPolicy(retention_years=10, archival_format="pdf-a"),
    correction=CorrectionPolicy(
        allow_direct_modification=False,
        method="credit_note",
        codes=(CorrectionCode("381", "Avoir", "381"),),
    ),
    peppol=PeppolPolicy(enabled=True, scheme_id="0009", participant_id_format="0009:{siret}"),
    documents=eu_documents(),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate", "paymentTerms"),
        "client": ("name", "address", "siret"),
        "company": ("siret", "vatNumber", "rcs"),
    }),
    legal_mentions=mentions(
        mandatory=("siret", "rcs", "latePenalties", "recoveryIndemnity"),
        conditional=(
            ("company.exemptVat", "vatExemption.fr.293B"),
            ("transaction.isIntraEU", "reverseCharge.fr.services"),
        ),
    ),
)
