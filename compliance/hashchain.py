"""
Invoice hash chaining (Spain VeriFactu, Portugal SAF-T).

Every function is stateless.  The previous hash of a series is read
by the caller from its own storage and passed in; the first document
of a chain links to ``INITIAL_HASH``.
"""
from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from compliance.countries.base import NumberingPolicy
from compliance.helpers import round_money, to_decimal

logger = logging.getLogger(__name__)

INITIAL_HASH = "0"

DEFAULT_HASH_FIELDS = ("invoiceNumber", "issueDate", "totalTTC", "previousHash")

_ALGORITHMS = {
    "SHA256": "sha256",
    "SHA1": "sha1",
    "SHA512": "sha512",
    "SHA3512": "sha3_512",
}


@dataclass(frozen=True)
class HashInput:
    invoice_number: str
    issue_date: str  # ISO date as printed on the invoice
    total_ttc: Decimal
    supplier_nif: str = ""
    customer_nif: str = ""
    total_ht: Decimal = Decimal("0")
    system_entry_date: str | None = None
    previous_hash: str = INITIAL_HASH


@dataclass(frozen=True)
class HashResult:
    hash: str
    input_string: str


@dataclass(frozen=True)
class ChainEntry:
    sequence: int
    data: HashInput
    hash: str


@dataclass(frozen=True)
class ChainValidation:
    valid: bool
    broken_at: int | None = None
    message: str | None = None


def _amount(value) -> str:
    return f"{round_money(to_decimal(value)):.2f}"


def compute_hash(data: str, algorithm: str = "SHA-256") -> str:
    """Base64 digest of *data* (UTF-8) with *algorithm*."""
    key = algorithm.upper().replace("-", "").replace("_", "")
    name = _ALGORITHMS.get(key)
    if name is None:
        logger.warning("Unknown hash algorithm %s, falling back to SHA-256", algorithm)
        name = "sha256"
    digest = hashlib.new(name, data.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def hash_invoice_es(data: HashInput, algorithm: str = "SHA-256") -> HashResult:
    """NIF emisor | número | fecha | importe total | NIF destinatario | hash anterior."""
    input_string = "|".join([
        data.supplier_nif,
        data.invoice_number,
        data.issue_date,
        _amount(data.total_ttc),
        data.customer_nif or "",
        data.previous_hash or INITIAL_HASH,
    ])
    return HashResult(hash=compute_hash(input_string, algorithm), input_string=input_string)


def hash_invoice_pt(data: HashInput) -> HashResult:
    """Invoice date ; system entry date ; document id ; gross total ; previous hash."""
    input_string = ";".join([
        data.issue_date,
        data.system_entry_date or data.issue_date,
        data.invoice_number,
        _amount(data.total_ttc),
        data.previous_hash or "",
    ])
    return HashResult(hash=compute_hash(input_string, "SHA-1"), input_string=input_string)


def _field_value(field_name: str, data: HashInput) -> str | None:
    if field_name == "invoiceNumber":
        return data.invoice_number
    if field_name == "issueDate":
        return data.issue_date
    if field_name == "systemEntryDate":
        return data.system_entry_date or data.issue_date
    if field_name == "totalHT":
        return _amount(data.total_ht)
    if field_name in ("totalTTC", "grossTotal"):
        return _amount(data.total_ttc)
    if field_name in ("nif", "supplierNIF"):
        return data.supplier_nif
    if field_name in ("customerNIF", "nifClient"):
        return data.customer_nif or ""
    if field_name == "previousHash":
        return data.previous_hash or INITIAL_HASH
    return None


def hash_invoice(data: HashInput, policy: NumberingPolicy | None = None) -> HashResult:
    """Hash with the policy's field list, ``;``-joined."""
    fields = (policy.hash_fields if policy and policy.hash_fields else DEFAULT_HASH_FIELDS)
    values = [v for v in (_field_value(f, data) for f in fields) if v is not None]
    input_string = ";".join(values)
    algorithm = (policy.hash_algorithm if policy and policy.hash_algorithm else "SHA-256")
    return HashResult(hash=compute_hash(input_string, algorithm), input_string=input_string)


def verify_chain(entries: Iterable[ChainEntry], policy: NumberingPolicy | None = None) -> ChainValidation:
    """Check both the links and the stored hashes of a chain.

    Entries are ordered by sequence; the first must link to ``INITIAL_HASH``.
    """
    ordered = sorted(entries, key=lambda e: e.sequence)
    expected_previous = INITIAL_HASH
    for entry in ordered:
        if entry.data.previous_hash != expected_previous:
            return ChainValidation(
                valid=False,
                broken_at=entry.sequence,
                message=(
                    f"Chain broken at sequence {entry.sequence}: previousHash mismatch. "
                    f"Expected '{expected_previous}', got '{entry.data.previous_hash}'"
                ),
            )
        recomputed = hash_invoice(entry.data, policy).hash
        if recomputed != entry.hash:
            return ChainValidation(
                valid=False,
                broken_at=entry.sequence,
                message=f"Hash mismatch at sequence {entry.sequence}: data may have been altered",
            )
        expected_previous = entry.hash
    return ChainValidation(valid=True)


def hash_changed(previous: str | None, current: str) -> bool:
    """Compare *current* against the caller's last-seen hash."""
    changed = previous != current
    if changed:
        logger.debug("Document hash changed: %s -> %s", previous, current)
    return changed


def hash_for_qr(value: str, length: int = 4) -> str:
    """Leading characters printed next to the QR code (PT ATCUD convention)."""
    return value[:length]
