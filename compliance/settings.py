"""
Runtime configuration read from the environment.

``app.py`` calls ``load_dotenv()`` before anything else, so values from a
local ``.env`` file are visible here as regular environment variables.
"""
from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{value}'")


@dataclass(frozen=True)
class Settings:
    render_timeout: float = 30.0          # seconds per rasterization
    default_locale: str = "en-GB"
    pdf_lang: str = "en"
    facturx_check_xsd: bool = False
    producer: str = "compliance-engine"
    vies_url: str = "https://ec.europa.eu/taxation_customs/vies/services/checkVatService"
    vies_timeout: float = 10.0
    vies_cache_ttl: float = 24 * 60 * 60


def load_settings() -> Settings:
    """Build a ``Settings`` snapshot from the current environment."""
    defaults = Settings()
    return Settings(
        render_timeout=_env_float("COMPLIANCE_RENDER_TIMEOUT", defaults.render_timeout),
        default_locale=os.getenv("COMPLIANCE_DEFAULT_LOCALE", defaults.default_locale),
        pdf_lang=os.getenv("COMPLIANCE_PDF_LANG", defaults.pdf_lang),
        facturx_check_xsd=_env_bool("COMPLIANCE_FACTURX_CHECK_XSD", defaults.facturx_check_xsd),
        producer=os.getenv("COMPLIANCE_PRODUCER", defaults.producer),
        vies_url=os.getenv("VIES_URL", defaults.vies_url),
        vies_timeout=_env_float("VIES_TIMEOUT", defaults.vies_timeout),
        vies_cache_ttl=_env_float("VIES_CACHE_TTL", defaults.vies_cache_ttl),
    )
