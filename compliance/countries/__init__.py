"""
Country Config Registry.

A fixed, read-only table of jurisdiction rule sets keyed by ISO 3166-1
alpha-2 code.  Lookups never fail: an unknown code returns the generic
config with only ``code`` replaced.

To add a jurisdiction:
1. Create ``compliance/countries/<code>.py`` holding one ``CountryConfig``
2. Add it to ``_CONFIGS`` below
"""
from __future__ import annotations

import dataclasses
import logging
from types import MappingProxyType

from compliance.countries.base import CountryConfig
from compliance.countries.be import BE
from compliance.countries.de import DE
from compliance.countries.es import ES
from compliance.countries.fr import FR
from compliance.countries.generic import GENERIC
from compliance.countries.in_ import IN
from compliance.countries.it import IT
from compliance.countries.pl import PL
from compliance.countries.pt import PT
from compliance.countries.us import US

logger = logging.getLogger(__name__)

# All EU member states, including those without a dedicated config
EU_MEMBERS = frozenset({
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
    "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE",
})

_CONFIGS: MappingProxyType = MappingProxyType({
    cfg.code: cfg for cfg in (FR, DE, IT, PL, ES, PT, BE, US, IN)
})


def get(code: str | None) -> CountryConfig:
    """Return the config for *code* (case-insensitive).

    Unknown or empty codes resolve to the generic config with ``code``
    substituted, so callers always receive a complete record.
    """
    key = (code or "").strip().upper()
    cfg = _CONFIGS.get(key)
    if cfg is not None:
        return cfg
    logger.debug("No dedicated config for %r, using generic policy", code)
    return dataclasses.replace(GENERIC, code=key or GENERIC.code)


def has(code: str | None) -> bool:
    return (code or "").strip().upper() in _CONFIGS


def list_codes() -> list[str]:
    """Codes of all dedicated configs, sorted."""
    return sorted(_CONFIGS)


def list_eu() -> list[str]:
    """Codes of dedicated configs for EU members, sorted."""
    return sorted(code for code, cfg in _CONFIGS.items() if cfg.is_eu)


def all_configs() -> list[CountryConfig]:
    return [_CONFIGS[code] for code in list_codes()]


def eu_member_codes() -> frozenset[str]:
    return EU_MEMBERS


def is_eu_member(code: str | None) -> bool:
    return (code or "").strip().upper() in EU_MEMBERS


__all__ = [
    "CountryConfig", "GENERIC", "EU_MEMBERS",
    "get", "has", "list_codes", "list_eu", "all_configs", "eu_member_codes", "is_eu_member",
]
