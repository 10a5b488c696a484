"""
Boundary records for the outbound transmission layer.

This package never sends anything over the network.  It describes what
a transmission collaborator receives and returns, and which channel
policy (if any) applies to a country.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field

from compliance.countries.base import EMAIL, CountryConfig, TransmissionPolicy

CHANNELS = ("b2b", "b2g", "b2c")


class TransmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TransmissionParty:
    name: str
    email: str | None = None
    legal_id: str | None = None
    vat_number: str | None = None
    peppol_id: str | None = None


@dataclass(frozen=True)
class TransmissionPayload:
    invoice_id: str
    invoice_number: str
    document: bytes
    format: str
    sender: TransmissionParty
    recipient: TransmissionParty
    xml: str | None = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TransmissionResult:
    success: bool
    status: TransmissionStatus
    external_id: str | None = None
    message: str | None = None
    error_code: str | None = None
    qr_code_url: str | None = None
    validation_url: str | None = None


def transmission_capability(config: CountryConfig, channel: str) -> TransmissionPolicy | None:
    """Platform policy for *channel*, or ``None`` when only plain email applies.

    Callers branch on the result instead of catching "not supported" errors.
    """
    if channel.lower() not in CHANNELS:
        raise ValueError(f"Unknown channel '{channel}'. Available: {', '.join(CHANNELS)}")
    policy = config.transmission_for(channel)
    if policy is None or (policy.model == EMAIL and not policy.platform):
        return None
    return policy
