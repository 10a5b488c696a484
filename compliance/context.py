"""
ComplianceContext: the facts about one transaction that drive rule resolution.

Built fresh per document operation and never mutated.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from compliance import countries
from compliance.model import LineItem, PartyData

B2B = "B2B"
B2G = "B2G"
B2C = "B2C"

GOODS = "goods"
SERVICES = "services"
MIXED = "mixed"


@dataclass(frozen=True)
class ComplianceContext:
    supplier: PartyData
    customer: PartyData
    items: tuple[LineItem, ...]
    supplier_country: str
    customer_country: str
    transaction_type: str
    nature: str
    is_domestic: bool
    is_intra_eu: bool
    is_export: bool
    place_of_taxation: str

    @property
    def supplier_is_eu(self) -> bool:
        return countries.is_eu_member(self.supplier_country)

    @property
    def customer_is_eu(self) -> bool:
        return countries.is_eu_member(self.customer_country)

    @property
    def reverse_charge(self) -> bool:
        """Intra-EU supply to a VAT-registered business or public buyer."""
        return (
            self.is_intra_eu
            and self.customer.vat_registered
            and self.transaction_type in (B2B, B2G)
        )

    @property
    def has_goods(self) -> bool:
        return self.nature in (GOODS, MIXED)

    @property
    def has_services(self) -> bool:
        return self.nature in (SERVICES, MIXED)


def transaction_type_for(customer: PartyData) -> str:
    if customer.is_public_entity:
        return B2G
    if customer.is_company and customer.has_identifier:
        return B2B
    return B2C


def nature_of(items: Iterable[LineItem]) -> str:
    kinds = {item.kind for item in items}
    if kinds == {GOODS}:
        return GOODS
    if GOODS in kinds:
        return MIXED
    return SERVICES


def build_context(supplier: PartyData, customer: PartyData, items: Iterable = ()) -> ComplianceContext:
    """Derive the transaction facts for *supplier* selling *items* to *customer*."""
    lines = tuple(LineItem.coerce(i) for i in items)
    supplier_country = supplier.country_code
    customer_country = customer.country_code

    supplier_eu = countries.is_eu_member(supplier_country)
    customer_eu = countries.is_eu_member(customer_country)
    is_domestic = supplier_country == customer_country
    is_intra_eu = supplier_eu and customer_eu and not is_domestic
    is_export = supplier_eu and not customer_eu and bool(customer_country)

    transaction_type = transaction_type_for(customer)
    nature = nature_of(lines)

    # B2B services follow the customer (Art. 44 Directive 2006/112/EC)
    if is_intra_eu and transaction_type != B2C and nature == SERVICES:
        place_of_taxation = customer_country
    else:
        place_of_taxation = supplier_country

    return ComplianceContext(
        supplier=supplier,
        customer=customer,
        items=lines,
        supplier_country=supplier_country,
        customer_country=customer_country,
        transaction_type=transaction_type,
        nature=nature,
        is_domestic=is_domestic,
        is_intra_eu=is_intra_eu,
        is_export=is_export,
        place_of_taxation=place_of_taxation,
    )
