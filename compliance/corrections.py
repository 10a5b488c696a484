"""
Correction of issued invoices.

Where direct edits are forbidden, an issued invoice is corrected by a
credit note referencing it.  ``build_credit_note`` supports three modes:

- full credit (no amount, no items): every total negated
- partial by amount: totals scaled by ``amount / original TTC``
- partial by items: the given lines with negated quantities
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from compliance.countries.base import CorrectionCode, CorrectionPolicy, VATPolicy
from compliance.helpers import HUNDRED, ZERO, round_money, to_decimal
from compliance.model import LineItem, VATBreakdownEntry, VATResult
from compliance.vat import calculate_vat

FINAL_STATUSES = ("PAID", "CANCELLED", "CREDITED")


@dataclass(frozen=True)
class IssuedInvoice:
    """What the caller knows about the invoice being corrected."""
    number: str
    issue_date: str
    totals: VATResult
    status: str = "SENT"
    transmitted_at: str | None = None
    platform_id: str | None = None


@dataclass
class CorrectionRequest:
    reason: str
    reason_code: str | None = None
    items: list = field(default_factory=list)
    partial_amount: object = None


@dataclass(frozen=True)
class CreditNoteDraft:
    original_invoice_ref: str
    reason: str
    reason_code: str | None
    items: tuple[LineItem, ...]
    totals: VATResult


@dataclass(frozen=True)
class CorrectionResult:
    can_correct: bool
    method: str
    requires_approval: bool = False
    message: str | None = None
    credit_note: CreditNoteDraft | None = None


def can_modify_directly(invoice: IssuedInvoice, policy: CorrectionPolicy) -> bool:
    if not policy.allow_direct_modification:
        return False
    if invoice.transmitted_at or invoice.platform_id:
        return False
    return invoice.status.upper() not in FINAL_STATUSES


def correction_codes(policy: CorrectionPolicy) -> tuple[CorrectionCode, ...]:
    return policy.codes


def _effective_rate(totals: VATResult):
    if totals.total_ht and totals.total_vat:
        return round_money(totals.total_vat / totals.total_ht * HUNDRED)
    return ZERO


def _negate(totals: VATResult) -> VATResult:
    return VATResult(
        total_ht=-totals.total_ht,
        total_vat=-totals.total_vat,
        total_ttc=-totals.total_ttc,
        breakdown=tuple(
            VATBreakdownEntry(rate=e.rate, base_amount=-e.base_amount, vat_amount=-e.vat_amount,
                              category=e.category)
            for e in totals.breakdown
        ),
        reverse_charge=totals.reverse_charge,
        reverse_charge_text=totals.reverse_charge_text,
    )


def _validate(invoice: IssuedInvoice, request: CorrectionRequest, policy: CorrectionPolicy):
    if not request.reason or not request.reason.strip():
        raise ValueError("A correction reason is required")
    if request.reason_code and policy.codes:
        valid = [c.code for c in policy.codes]
        if request.reason_code not in valid:
            raise ValueError(
                f"Unknown correction code '{request.reason_code}'. Available: {', '.join(valid)}"
            )
    if request.partial_amount is not None:
        amount = to_decimal(request.partial_amount)
        if amount <= 0 or amount > invoice.totals.total_ttc:
            raise ValueError("Partial amount must be positive and not exceed the invoice total")


def build_credit_note(
    invoice: IssuedInvoice,
    request: CorrectionRequest,
    policy: CorrectionPolicy,
    vat_policy: VATPolicy | None = None,
) -> CorrectionResult:
    """Prepare the credit note correcting *invoice*.

    Raises:
        ValueError: On a missing reason, an unknown code or an excessive amount.
    """
    _validate(invoice, request, policy)

    if policy.requires_pre_approval:
        return CorrectionResult(
            can_correct=True,
            method="platform_request",
            requires_approval=True,
            message="Correction requires platform pre-approval",
        )

    totals = invoice.totals
    if request.items:
        items = []
        for raw in request.items:
            item = LineItem.coerce(raw)
            items.append(dataclasses.replace(item, quantity=-abs(item.quantity)))
        credit_totals = calculate_vat(items, vat_policy)
    elif request.partial_amount is not None:
        amount = round_money(request.partial_amount)
        ratio = amount / totals.total_ttc
        ht = round_money(totals.total_ht * ratio)
        rate = _effective_rate(totals)
        items = [LineItem(description=f"Correction: {request.reason}", quantity=-1,
                          unit_price=ht, vat_rate=rate)]
        credit_totals = _negate(VATResult(
            total_ht=ht,
            total_vat=amount - ht,
            total_ttc=amount,
            breakdown=(VATBreakdownEntry(rate=rate, base_amount=ht, vat_amount=amount - ht),),
        ))
    else:
        items = [LineItem(description=f"Full credit: {request.reason}", quantity=-1,
                          unit_price=totals.total_ht, vat_rate=_effective_rate(totals))]
        credit_totals = _negate(totals)

    reason_code = request.reason_code or (policy.codes[0].code if policy.codes else None)
    return CorrectionResult(
        can_correct=True,
        method=policy.method,
        credit_note=CreditNoteDraft(
            original_invoice_ref=invoice.number,
            reason=request.reason,
            reason_code=reason_code,
            items=tuple(items),
            totals=credit_totals,
        ),
    )
