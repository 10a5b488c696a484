"""
Unit tests for transaction context and rule resolution.
"""
import dataclasses
from datetime import date
from decimal import Decimal

import pytest

from compliance import countries
from compliance.context import build_context
from compliance.model import LineItem, PartyData
from compliance.rules import evaluate_condition, resolve_rules, validate_party


@pytest.fixture
def goods():
    return [LineItem(description="Lamp", quantity=2, unit_price=80, vat_rate=20, item_type="PRODUCT")]


class TestContext:
    """Derived transaction facts"""

    def test_domestic_b2b(self, fr_supplier, fr_customer, items):
        """Test a French supplier selling services in France"""
        ctx = build_context(fr_supplier, fr_customer, items)

        assert ctx.is_domestic
        assert not ctx.is_intra_eu
        assert not ctx.is_export
        assert ctx.transaction_type == "B2B"
        assert ctx.nature == "services"
        assert ctx.place_of_taxation == "FR"
        assert not ctx.reverse_charge

    def test_intra_eu_services_taxed_at_customer(self, fr_supplier, de_customer, items):
        """Test that B2B services follow the customer's country"""
        ctx = build_context(fr_supplier, de_customer, items)

        assert ctx.is_intra_eu
        assert ctx.reverse_charge
        assert ctx.place_of_taxation == "DE"

    def test_intra_eu_goods_taxed_at_supplier(self, fr_supplier, de_customer, goods):
        """Test that goods keep the supplier's place of taxation"""
        ctx = build_context(fr_supplier, de_customer, goods)

        assert ctx.nature == "goods"
        assert ctx.place_of_taxation == "FR"
        assert ctx.reverse_charge

    def test_unregistered_customer_is_not_reverse_charged(self, fr_supplier, de_customer, items):
        """Test that a customer without VAT registration pays VAT"""
        customer = dataclasses.replace(de_customer, is_vat_registered=False)
        assert not build_context(fr_supplier, customer, items).reverse_charge

    def test_export(self, fr_supplier, us_customer, goods):
        """Test an EU supplier selling outside the EU"""
        ctx = build_context(fr_supplier, us_customer, goods)

        assert ctx.is_export
        assert not ctx.is_intra_eu
        assert not ctx.reverse_charge

    def test_consumer_is_b2c(self, fr_supplier, consumer, items):
        """Test that a private individual makes the sale B2C"""
        assert build_context(fr_supplier, consumer, items).transaction_type == "B2C"

    def test_public_entity_is_b2g(self, fr_supplier, fr_customer, items):
        """Test that a public buyer makes the sale B2G"""
        customer = dataclasses.replace(fr_customer, is_public_entity=True)
        assert build_context(fr_supplier, customer, items).transaction_type == "B2G"

    def test_mixed_nature(self, fr_supplier, fr_customer, items, goods):
        """Test goods and services together"""
        assert build_context(fr_supplier, fr_customer, items + goods).nature == "mixed"

    def test_country_names_are_normalized(self, fr_supplier, items):
        """Test that a country name maps to its ISO code"""
        customer = PartyData(name="Rossi Srl", country="Italia", vat_number="IT12345678901")
        ctx = build_context(fr_supplier, customer, items)

        assert ctx.customer_country == "IT"
        assert ctx.is_intra_eu


class TestResolveRules:
    """ApplicableRules for common scenarios"""

    def test_domestic_rules_use_country_rates(self, fr_supplier, fr_customer, items):
        """Test that a domestic sale exposes the French rates"""
        rules = resolve_rules(build_context(fr_supplier, fr_customer, items))

        assert not rules.vat.reverse_charge
        assert rules.vat.default_rate == Decimal("20")
        assert Decimal("5.5") in [r.rate for r in rules.vat.rates]
        assert rules.format.syntax == "CII"
        assert rules.numbering.invoice_prefix == "FA"

    def test_reverse_charge_rules(self, fr_supplier, de_customer, items):
        """Test that reverse charge collapses rates to AE 0%"""
        rules = resolve_rules(build_context(fr_supplier, de_customer, items))

        assert rules.vat.reverse_charge
        assert [(r.code, r.rate) for r in rules.vat.rates] == [("AE", Decimal("0"))]
        assert rules.vat.default_rate == Decimal("0")
        assert rules.vat.reverse_charge_text_key == "reverseCharge.fr.services"

    def test_export_rules(self, fr_supplier, us_customer, items):
        """Test that export collapses rates to G 0%"""
        rules = resolve_rules(build_context(fr_supplier, us_customer, items))
        assert [(r.code, r.category) for r in rules.vat.rates] == [("G", "G")]

    def test_mentions_include_conditional_keys(self, fr_supplier, de_customer, items):
        """Test that mandatory mentions come first and conditionals follow"""
        rules = resolve_rules(build_context(fr_supplier, de_customer, items))

        assert rules.legal_mention_keys[:4] == ("siret", "rcs", "latePenalties", "recoveryIndemnity")
        assert "reverseCharge.fr.services" in rules.legal_mention_keys

    def test_exempt_supplier_mention(self, fr_supplier, fr_customer, items):
        """Test the franchise mention for a VAT-exempt supplier"""
        supplier = dataclasses.replace(fr_supplier, exempt_vat=True)
        rules = resolve_rules(build_context(supplier, fr_customer, items))

        assert "vatExemption.fr.293B" in rules.legal_mention_keys
        assert "reverseCharge.fr.services" not in rules.legal_mention_keys

    def test_dated_mandate_depends_on_now(self, fr_supplier, fr_customer, items):
        """Test that mandatory_from is compared against the caller's date"""
        ctx = build_context(fr_supplier, fr_customer, items)

        before = resolve_rules(ctx, now=date(2026, 1, 1)).transmission
        after = resolve_rules(ctx, now=date(2026, 10, 1)).transmission
        undated = resolve_rules(ctx).transmission

        assert before.channel == "b2b"
        assert before.platform == "superpdp"
        assert before.effective_mandatory is False
        assert after.effective_mandatory is True
        assert undated.effective_mandatory is False

    def test_public_buyer_uses_b2g_channel(self, fr_supplier, fr_customer, items):
        """Test Chorus Pro for a French public entity"""
        customer = dataclasses.replace(fr_customer, is_public_entity=True)
        transmission = resolve_rules(build_context(fr_supplier, customer, items)).transmission

        assert transmission.channel == "b2g"
        assert transmission.platform == "chorus"
        assert transmission.effective_mandatory is True

    def test_consumer_uses_email(self, fr_supplier, consumer, items):
        """Test that B2C falls back to email"""
        transmission = resolve_rules(build_context(fr_supplier, consumer, items)).transmission

        assert transmission.channel == "b2c"
        assert transmission.model == "email"
        assert transmission.platform is None

    def test_unknown_supplier_country(self, items):
        """Test that an unknown country resolves with the generic policy"""
        supplier = PartyData(name="Nowhere Ltd", country="XX")
        customer = PartyData(name="Someone", country="XX", is_company=False)
        rules = resolve_rules(build_context(supplier, customer, items))

        assert rules.vat.default_rate == Decimal("20")
        assert rules.transmission.model == "email"

    def test_to_dict_keys(self, fr_supplier, fr_customer, items):
        """Test the serialized shape"""
        data = resolve_rules(build_context(fr_supplier, fr_customer, items)).to_dict()

        assert set(data) == {"vat", "validation", "format", "transmission", "numbering", "legalMentionKeys"}
        assert data["vat"]["defaultRate"] == 20.0
        assert data["numbering"]["gapAllowed"] is False


class TestConditions:
    """Mention predicate evaluation"""

    @pytest.fixture
    def ctx(self, fr_supplier, de_customer, items):
        return build_context(fr_supplier, de_customer, items)

    def test_property_lookup(self, ctx):
        """Test a bare path"""
        assert evaluate_condition("transaction.isIntraEU", ctx)
        assert not evaluate_condition("transaction.isExport", ctx)

    def test_equality(self, ctx):
        """Test path=literal comparisons"""
        assert evaluate_condition("customer.country=DE", ctx)
        assert evaluate_condition("customer.country=de", ctx)
        assert evaluate_condition("supplier.exemptVat=false", ctx)
        assert not evaluate_condition("customer.country=FR", ctx)

    def test_expression(self, ctx):
        """Test the restricted boolean expression form"""
        assert evaluate_condition("expr: transaction.isIntraEU and customer.isVatRegistered", ctx)
        assert evaluate_condition("expr: customer.country in ('DE', 'AT')", ctx)
        assert not evaluate_condition("expr: not transaction.reverseCharge", ctx)

    def test_unknown_names_are_false(self, ctx):
        """Test that unknown roots and attributes evaluate to false"""
        assert not evaluate_condition("invoice.isPaid", ctx)
        assert not evaluate_condition("customer.unknown", ctx)

    def test_disallowed_expression_is_false(self, ctx):
        """Test that function calls are refused, not executed"""
        assert not evaluate_condition("expr: __import__('os').getcwd()", ctx)

    def test_malformed_expression_is_false(self, ctx):
        """Test that a syntax error is swallowed as false"""
        assert not evaluate_condition("expr: transaction.isIntraEU and", ctx)


class TestValidateParty:
    """Identifier checks against a country config"""

    def test_valid_french_company(self, fr_supplier):
        """Test that a correct SIRET and VAT number pass"""
        assert validate_party(fr_supplier, countries.get("FR"), "company") == []

    def test_missing_required_identifier(self):
        """Test that a missing SIRET is reported"""
        party = PartyData(name="Sans SIRET", country="FR")
        errors = validate_party(party, countries.get("FR"), "company")

        assert "siret is required" in errors

    def test_luhn_failure(self, fr_supplier):
        """Test that a SIRET with a bad checksum is reported"""
        party = dataclasses.replace(fr_supplier, identifiers={"siret": "73282932000075"})
        errors = validate_party(party, countries.get("FR"), "company")

        assert "siret fails the Luhn checksum" in errors

    def test_bad_vat_number(self, fr_supplier):
        """Test that a malformed VAT number is reported"""
        party = dataclasses.replace(fr_supplier, vat_number="FR123")
        assert "vatNumber has an invalid format" in validate_party(party, countries.get("FR"))

    def test_foreign_client_vat_is_not_checked(self, de_customer):
        """Test that a client's VAT number is only checked in its own country"""
        assert validate_party(de_customer, countries.get("FR"), "client") == []

    def test_unknown_role(self, fr_supplier):
        """Test that only company and client roles exist"""
        with pytest.raises(ValueError, match="Unknown party role"):
            validate_party(fr_supplier, countries.get("FR"), "supplier")
