"""Fallback policy for jurisdictions without a dedicated config."""
from __future__ import annotations

from decimal import Decimal

from compliance.countries.base import (
    DEFAULT_DOCUMENTS, EMAIL, ROUNDING_TOTAL,
    CountryConfig, CorrectionPolicy, NumberingPolicy, TransmissionPolicy, VATPolicy,
    frozen_map, mentions, rates,
)

GENERIC = CountryConfig(
    code="GENERIC",
    name="Generic",
    currency="EUR",
    locale="en-GB",
    timezone="UTC",
    is_eu=False,
    vat=VATPolicy(
        rates=rates(("S", "20", "S"), ("Z", "0", "Z")),
        default_rate=Decimal("20"),
        rounding_mode=ROUNDING_TOTAL,
        number_format=r"^[A-Z0-9]+$",
    ),
    transmission=frozen_map({
        "b2b": TransmissionPolicy(model=EMAIL),
        "b2g": TransmissionPolicy(model=EMAIL),
        "b2c": TransmissionPolicy(model=EMAIL),
    }),
    numbering=NumberingPolicy(),
    documents=DEFAULT_DOCUMENTS,
    correction=CorrectionPolicy(allow_direct_modification=True, method="credit_note"),
    required_fields=frozen_map({
        "invoice": ("clientId", "items", "dueDate"),
        "client": ("name", "email"),
    }),
    legal_mentions=mentions(),
)
