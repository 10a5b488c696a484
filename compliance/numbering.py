"""
Document-number formatting, reset detection and gap detection.

Stateless: the caller owns the sequence counter (a database row, or a
number assigned by a clearance platform) and passes its value in.
"""
from __future__ import annotations

from typing import Iterable

from compliance.countries.base import NumberingPolicy
from compliance.model import CREDIT_NOTE, CORRECTIVE_INVOICE

_CREDIT_TYPES = (CREDIT_NOTE, CORRECTIVE_INVOICE)


def format_number(
    sequence: int,
    policy: NumberingPolicy,
    *,
    year: int,
    series: str | None = None,
    document_type: str = "invoice",
) -> str:
    """Render *sequence* with the policy's number template.

    French invoices come out as ``FA2026-000001``, credit notes as ``AV2026-000001``.

    Raises:
        ValueError: If the sequence is not positive or a required series is missing.
    """
    if sequence < 1:
        raise ValueError(f"Sequence must be positive, got {sequence}")
    if policy.series_required and not series:
        raise ValueError("This jurisdiction requires an invoice series")
    prefix = policy.credit_note_prefix if document_type in _CREDIT_TYPES else policy.invoice_prefix
    return policy.invoice_format.format(
        prefix=prefix,
        series=series or "",
        year=year,
        seq=sequence,
    )


def should_reset(
    last_year: int | None,
    last_month: int | None,
    policy: NumberingPolicy,
    *,
    year: int,
    month: int,
) -> bool:
    """True when the counter must restart at 1 for (*year*, *month*)."""
    if last_year is None:
        return False
    if policy.reset_period == "yearly":
        return last_year != year
    if policy.reset_period == "monthly":
        return last_year != year or last_month != month
    return False


def next_sequence(last_sequence: int, reset: bool) -> int:
    return 1 if reset else last_sequence + 1


def find_gaps(numbers: Iterable[int]) -> list[int]:
    """Missing sequence values between the lowest and highest of *numbers*."""
    ordered = sorted(set(numbers))
    gaps = []
    for previous, current in zip(ordered, ordered[1:]):
        gaps.extend(range(previous + 1, current))
    return gaps
