"""
Unit tests for the country registry.
"""
import dataclasses
from decimal import Decimal

import pytest

from compliance import countries
from compliance.countries.generic import GENERIC


class TestRegistry:
    """Lookup, fallback and listing"""

    def test_known_country_is_case_insensitive(self):
        """Test that codes resolve regardless of case and blanks"""
        assert countries.get(" fr ").code == "FR"
        assert countries.has("fr")

    def test_unknown_country_falls_back_to_generic(self):
        """Test that an unknown code gets the generic policy with its own code"""
        cfg = countries.get("XX")

        assert cfg.code == "XX"
        assert cfg.vat.default_rate == Decimal("20")
        assert cfg.is_eu is False
        assert cfg.documents.builder == "generic"
        assert cfg.documents.output_formats["invoice"] == ("pdf",)
        assert not countries.has("XX")

    def test_fallback_only_substitutes_the_code(self):
        """Test that a fallback config is the generic template apart from its code"""
        cfg = countries.get("ZZ")

        assert cfg.code == "ZZ"
        assert dataclasses.replace(cfg, code=GENERIC.code) == GENERIC

    def test_empty_code_falls_back_to_generic(self):
        """Test that a missing code never raises"""
        cfg = countries.get(None)
        assert cfg.documents.default_format == "pdf"

    def test_list_eu_only_contains_members(self):
        """Test that EU listing excludes US and IN"""
        eu = countries.list_eu()

        assert eu == sorted(eu)
        assert {"FR", "DE", "IT", "PL", "BE", "ES", "PT"} <= set(eu)
        assert "US" not in eu
        assert "IN" not in eu

    def test_all_configs_match_codes(self):
        """Test that every listed code has a matching config"""
        assert [cfg.code for cfg in countries.all_configs()] == countries.list_codes()

    def test_eu_membership_is_independent_of_configs(self):
        """Test that EU members without a dedicated config are still EU"""
        assert countries.is_eu_member("NL")
        assert not countries.is_eu_member("GB")


class TestFrance:
    """Spot checks on the French configuration"""

    def test_documents_policy(self):
        """Test invoice formats and correction rules"""
        docs = countries.get("FR").documents

        assert docs.builder == "eu"
        assert docs.default_format == "facturx"
        assert docs.output_formats["invoice"] == ("pdf", "facturx", "zugferd", "ubl", "cii")
        assert docs.invoice_editable is False
        assert docs.requires_credit_note is True

    def test_format_policy_is_cii_en16931(self):
        """Test that the preferred syntax is CII with the EN 16931 profile"""
        fmt = countries.get("FR").format
        assert fmt.syntax == "CII"
        assert fmt.profile == "EN16931"

    def test_siret_definition(self):
        """Test that SIRET is required, Luhn-checked and Peppol-mapped"""
        siret = next(d for d in countries.get("FR").company_identifiers if d.id == "siret")

        assert siret.required
        assert siret.luhn_check
        assert siret.peppol_scheme == "0009"

    def test_transmission_channels(self):
        """Test B2G via Chorus and the dated B2B mandate"""
        cfg = countries.get("FR")

        assert cfg.transmission_for("b2g").platform == "chorus"
        assert cfg.transmission_for("b2g").mandatory is True
        assert cfg.transmission_for("b2b").mandatory_from == "2026-09-01"

    def test_rates_include_reduced(self):
        """Test that all French rates are present"""
        assert set(countries.get("FR").vat.rate_values()) >= {
            Decimal("20"), Decimal("10"), Decimal("5.5"), Decimal("2.1"),
        }


@pytest.mark.parametrize("code, default_format", [
    ("BE", "ubl"),
    ("DE", "zugferd"),
    ("IT", "fatturapa"),
    ("PL", "ksef"),
    ("PT", "pdf"),
    ("US", "pdf"),
    ("IN", "pdf"),
])
def test_default_formats(code, default_format):
    """Test each jurisdiction's default output format"""
    assert countries.get(code).documents.default_format == default_format


def test_poland_requires_nip_and_pln():
    """Test the Polish identifier and currency"""
    cfg = countries.get("PL")

    assert cfg.currency == "PLN"
    assert any(d.id == "nip" and d.required for d in cfg.company_identifiers)
    assert "ksef-fa3" in cfg.documents.output_formats["invoice"]
