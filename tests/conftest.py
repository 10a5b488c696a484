"""
Shared fixtures for the compliance engine tests.
"""
from datetime import date
from decimal import Decimal

import pytest

from compliance.model import DocumentData, LineItem, PartyData
from compliance.settings import Settings


@pytest.fixture
def fr_supplier():
    """A French SAS with SIRET and VAT number"""
    return PartyData(
        name="Atelier Lumière SAS",
        address="12 rue de la Paix",
        postal_code="75002",
        city="Paris",
        country="FR",
        vat_number="FR40303265045",
        legal_id="73282932000074",
        identifiers={"siret": "73282932000074", "rcs": "RCS Paris 732 829 320"},
        email="factures@atelier-lumiere.fr",
        phone="+33 1 23 45 67 89",
    )


@pytest.fixture
def fr_customer():
    """A domestic business customer"""
    return PartyData(
        name="Boulangerie Martin SARL",
        address="4 place du Marché",
        postal_code="69001",
        city="Lyon",
        country="FR",
        vat_number="FR83404833048",
        identifiers={"siret": "73282932000074"},
    )


@pytest.fixture
def de_customer():
    """A VAT-registered German business (intra-EU reverse charge)"""
    return PartyData(
        name="Müller & Söhne GmbH",
        address="Hauptstraße 5",
        postal_code="10115",
        city="Berlin",
        country="DE",
        vat_number="DE123456789",
    )


@pytest.fixture
def us_customer():
    """A customer outside the EU"""
    return PartyData(
        name="Acme Corp",
        address="1 Market Street",
        postal_code="94105",
        city="San Francisco",
        country="US",
        legal_id="12-3456789",
    )


@pytest.fixture
def consumer():
    """A private individual"""
    return PartyData(name="Jeanne Dupont", address="8 rue Victor Hugo", postal_code="33000",
                     city="Bordeaux", country="FR", is_company=False)


@pytest.fixture
def items():
    """Two service lines at the French standard rate"""
    return [
        LineItem(description="Consulting", quantity=Decimal("2"), unit_price=Decimal("400"),
                 vat_rate=Decimal("20"), item_type="DAY"),
        LineItem(description="Support hours", quantity=Decimal("5"), unit_price=Decimal("40"),
                 vat_rate=Decimal("20"), item_type="HOUR"),
    ]


@pytest.fixture
def invoice(fr_supplier, fr_customer, items):
    """A domestic French invoice without precomputed totals"""
    return DocumentData(
        document_type="invoice",
        id="inv-1",
        number="FA2026-000001",
        issue_date=date(2026, 3, 15),
        due_date=date(2026, 4, 14),
        supplier=fr_supplier,
        customer=fr_customer,
        items=items,
        payment_method="BANK_TRANSFER",
        payment_details="IBAN FR76 3000 6000 0112 3456 7890 189",
        payment_terms="30 jours fin de mois",
        notes="Merci pour votre confiance.",
    )


@pytest.fixture
def settings():
    """Settings independent of the environment"""
    return Settings(render_timeout=30.0, default_locale="en-GB", pdf_lang="fr")


@pytest.fixture
def app():
    from app import create_app
    return create_app({'TESTING': True})


@pytest.fixture
def client(app):
    return app.test_client()
