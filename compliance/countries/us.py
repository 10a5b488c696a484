"""United States: no federal VAT, sales tax handled by the caller."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    DEFAULT_DOCUMENTS, POST_AUDIT, ROUNDING_TOTAL,
    ArchivingPolicy, CorrectionPolicy, CountryConfig, IdentifierDefinition,
    NumberingPolicy, TransmissionPolicy, VATPolicy, frozen_map, identifiers,
    mentions, rates,
)

_EMAIL_AUDIT = TransmissionPolicy(model=POST_AUDIT, platform="email")

US = CountryConfig(
    code="US",
    name="United States",
    currency="USD",
    locale="en-US",
    timezone="America/New_York",
    is_eu=False,
    vat=VATPolicy(
        rates=rates(("Z", "0", "Z")),
        default_rate=Decimal("0"),
        rounding_mode=ROUNDING_TOTAL,
        number_format=r"^[0-9]{2}-[0-9]{7}$",
    ),
    company_identifiers=identifiers(
        IdentifierDefinition("ein", r"^[0-9]{2}-[0-9]{7}$", "12-3456789"),
    ),
    transmission=frozen_map({"b2b": _EMAIL_AUDIT, "b2g": _EMAIL_AUDIT, "b2c": _EMAIL_AUDIT}),
    numbering=NumberingPolicy(gap_allowed=True, reset_period="never", invoice_prefix="INV"),
    archiving=ArchivingPolicy(retention_years=7, archival_format="pdf"),
    correction=CorrectionPolicy(allow_direct_modification=True, method="void_and_reissue",
                                requires_original_reference=False),
    documents=DEFAULT_DOCUMENTS,
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate"),
        "client": ("name", "email"),
    }),
    legal_mentions=mentions(),
)
