"""
VAT Calculation Engine.

Pure functions: line items plus a country ``VATPolicy`` give a
``VATResult``.  Two rounding modes exist:

``line``
    each line's net and VAT amounts are rounded before summation
    (ES, PT, IN).
``total``
    amounts are accumulated unrounded per rate and only the per-rate
    amounts are rounded; document totals are the sums of the rounded
    per-rate amounts (FR, DE, BE, IT, ...).

Lines are grouped by (rate, exempt), so an exempt line (category E)
and a zero-rated line (category Z) give two breakdown entries.

In both modes ``sum(breakdown.base_amount) == total_ht``,
``sum(breakdown.vat_amount) == total_vat`` and
``total_ht + total_vat == total_ttc`` hold exactly at 2 decimals.

Reverse charge is an override applied *after* the base calculation,
see :func:`apply_reverse_charge`.
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from compliance.countries.base import ROUNDING_LINE, ROUNDING_TOTAL, VATPolicy
from compliance.helpers import HUNDRED, ZERO, round_money
from compliance.model import (
    CATEGORY_REVERSE_CHARGE, LineItem, VATBreakdownEntry, VATResult, vat_category,
)


def _group_key(item: LineItem) -> tuple:
    """Exempt lines never share a group with zero-rated ones."""
    if item.is_exempt:
        return ZERO, True
    return item.vat_rate, False


def _sorted_breakdown(groups) -> tuple[VATBreakdownEntry, ...]:
    # Highest rate first; a zero-rated entry precedes the exempt one
    ordered = sorted(groups.items(), key=lambda kv: (kv[0][0], not kv[0][1]), reverse=True)
    return tuple(
        VATBreakdownEntry(rate=rate, base_amount=base, vat_amount=vat,
                          category=vat_category(rate, exempt=exempt))
        for (rate, exempt), (base, vat) in ordered
    )


def _calculate_line(items: list[LineItem]) -> VATResult:
    groups: OrderedDict = OrderedDict()
    for item in items:
        key = _group_key(item)
        net = round_money(item.line_total)
        vat = round_money(net * key[0] / HUNDRED)
        base_sum, vat_sum = groups.get(key, (ZERO, ZERO))
        groups[key] = (base_sum + net, vat_sum + vat)

    breakdown = _sorted_breakdown(groups)
    total_ht = sum((e.base_amount for e in breakdown), ZERO)
    total_vat = sum((e.vat_amount for e in breakdown), ZERO)
    return VATResult(
        total_ht=round_money(total_ht),
        total_vat=round_money(total_vat),
        total_ttc=round_money(total_ht + total_vat),
        breakdown=breakdown,
    )


def _calculate_total(items: list[LineItem]) -> VATResult:
    groups: OrderedDict = OrderedDict()
    for item in items:
        key = _group_key(item)
        net = item.line_total
        vat = net * key[0] / HUNDRED
        base_acc, vat_acc = groups.get(key, (ZERO, ZERO))
        groups[key] = (base_acc + net, vat_acc + vat)

    rounded = OrderedDict(
        (key, (round_money(base), round_money(vat))) for key, (base, vat) in groups.items()
    )
    breakdown = _sorted_breakdown(rounded)
    total_ht = sum((e.base_amount for e in breakdown), ZERO)
    total_vat = sum((e.vat_amount for e in breakdown), ZERO)
    return VATResult(
        total_ht=round_money(total_ht),
        total_vat=round_money(total_vat),
        total_ttc=round_money(total_ht + total_vat),
        breakdown=breakdown,
    )


def calculate_base(items: Iterable, policy: VATPolicy | None = None) -> VATResult:
    """Group *items* by VAT rate and total them under the policy's rounding mode."""
    lines = [LineItem.coerce(item) for item in items]
    mode = policy.rounding_mode if policy is not None else ROUNDING_TOTAL
    if mode == ROUNDING_LINE:
        return _calculate_line(lines)
    if mode == ROUNDING_TOTAL:
        return _calculate_total(lines)
    raise ValueError(f"Unknown rounding mode '{mode}'. Available: line, total")


def apply_reverse_charge(result: VATResult, text: str | None = None) -> VATResult:
    """Override *result* for a reverse-charged transaction.

    VAT drops to zero, the gross total equals the net total and the
    breakdown collapses to a single zero-rate AE entry over the full base.
    """
    return VATResult(
        total_ht=result.total_ht,
        total_vat=round_money(ZERO),
        total_ttc=result.total_ht,
        breakdown=(VATBreakdownEntry(rate=ZERO, base_amount=result.total_ht, vat_amount=round_money(ZERO),
                                     category=CATEGORY_REVERSE_CHARGE),),
        reverse_charge=True,
        reverse_charge_text=text,
    )


def calculate_vat(
    items: Iterable,
    policy: VATPolicy | None = None,
    *,
    reverse_charge: bool = False,
    reverse_charge_text: str | None = None,
) -> VATResult:
    """Compute the VAT result for *items*.

    Args:
        items: ``LineItem`` instances or dicts accepted by ``LineItem.coerce``.
        policy: The supplier country's VAT policy. ``None`` means total rounding.
        reverse_charge: Apply the reverse-charge override after the base run.
        reverse_charge_text: Mention to attach; defaults to the policy's text.
    """
    result = calculate_base(items, policy)
    if not reverse_charge:
        return result
    text = reverse_charge_text
    if text is None and policy is not None:
        text = policy.reverse_charge_text
    return apply_reverse_charge(result, text)
