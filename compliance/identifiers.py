"""Validation and formatting of jurisdiction identifiers (SIRET, NIP, ...)."""
from __future__ import annotations

import re

from compliance.countries.base import CountryConfig, IdentifierDefinition
from compliance.model import PartyData

_NIP_WEIGHTS = (6, 5, 7, 2, 3, 4, 5, 6, 7)


def clean(value: str | None) -> str:
    """Strip blanks, dots and dashes; upper-case."""
    return re.sub(r"[\s.\-]", "", value or "").upper()


def luhn_valid(value: str) -> bool:
    digits = clean(value)
    if not digits.isdigit():
        return False
    total = 0
    for i, ch in enumerate(reversed(digits)):
        n = int(ch)
        if i % 2 == 1:
            n *= 2
            if n > 9:
                n -= 9
        total += n
    return total % 10 == 0


def nip_valid(value: str) -> bool:
    """Polish NIP: weighted sum of the first nine digits mod 11 equals the tenth."""
    digits = clean(value)
    if digits.startswith("PL"):
        digits = digits[2:]
    if len(digits) != 10 or not digits.isdigit():
        return False
    checksum = sum(int(d) * w for d, w in zip(digits, _NIP_WEIGHTS)) % 11
    return checksum == int(digits[9])


def validate_identifier(value: str | None, definition: IdentifierDefinition) -> str | None:
    """Return an error message, or ``None`` when *value* is acceptable.

    A missing optional identifier is acceptable.
    """
    if not value:
        return f"{definition.id} is required" if definition.required else None
    if definition.max_length and len(value) > definition.max_length:
        return f"{definition.id} exceeds {definition.max_length} characters"
    candidate = value.strip()
    if not re.match(definition.format, candidate):
        compact = clean(candidate)
        if not re.match(definition.format, compact):
            hint = f" (e.g. {definition.example})" if definition.example else ""
            return f"{definition.id} has an invalid format{hint}"
        candidate = compact
    if definition.luhn_check and not luhn_valid(candidate):
        return f"{definition.id} fails the Luhn checksum"
    if definition.id == "nip" and not nip_valid(candidate):
        return f"{definition.id} fails the NIP checksum"
    return None


def format_identifier(value: str, identifier_id: str) -> str:
    """Human-readable grouping used on printed documents."""
    compact = clean(value)
    if identifier_id == "siret" and len(compact) == 14:
        return f"{compact[:3]} {compact[3:6]} {compact[6:9]} {compact[9:]}"
    if identifier_id == "siren" and len(compact) == 9:
        return f"{compact[:3]} {compact[3:6]} {compact[6:]}"
    if identifier_id == "nip" and len(compact) == 10:
        return f"{compact[:3]}-{compact[3:6]}-{compact[6:8]}-{compact[8:]}"
    return value.strip()


def peppol_participant_id(party: PartyData, config: CountryConfig) -> str | None:
    """``scheme:identifier`` for *party*, or ``None`` without a Peppol scheme.

    An explicit ``peppol_id`` on the party always wins.
    """
    if party.peppol_id:
        return party.peppol_id
    for definition in config.company_identifiers + config.client_identifiers:
        if not definition.peppol_scheme:
            continue
        value = party.identifier(definition.id)
        if value:
            return f"{definition.peppol_scheme}:{clean(value)}"
    if config.peppol and config.peppol.enabled and party.vat_number:
        return f"{config.peppol.scheme_id}:{clean(party.vat_number)}"
    return None
