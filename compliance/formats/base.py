"""
Common contract and shared mapping rules for e-invoice XML generators.

To add a new syntax:
1. Subclass ``FormatGenerator``
2. Implement ``build()`` returning the lxml root element
3. Add an instance to ``GENERATORS`` in ``compliance/formats/__init__.py``

Every generator applies the same cross-cutting rules: free text goes
through :func:`xml_text`, countries through ``normalize_country``, tax
categories through :func:`vat_category` and units through
:func:`unit_code`.  Totals are never recomputed here; generators read
``DocumentData.totals`` as produced by the VAT engine.
"""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal

from lxml import etree

from compliance.helpers import ZERO, round_money, to_decimal
from compliance.model import (
    CATEGORY_REVERSE_CHARGE, DocumentData, LineItem, VATBreakdownEntry, VATResult, vat_category,
)

logger = logging.getLogger(__name__)

# ── Output format tokens ────────────────────────────────────────
PDF = "pdf"
FACTURX = "facturx"
ZUGFERD = "zugferd"
XRECHNUNG = "xrechnung"
UBL = "ubl"
CII = "cii"
PEPPOL_BIS = "peppol-bis"
FATTURAPA = "fatturapa"
KSEF = "ksef"
KSEF_FA3 = "ksef-fa3"

OUTPUT_FORMATS = (PDF, FACTURX, ZUGFERD, XRECHNUNG, UBL, CII, FATTURAPA, KSEF, KSEF_FA3)

# Syntax tags carried in FormatResult / BuildResult metadata
SYNTAX_CII = "cii"
SYNTAX_UBL = "ubl"
SYNTAX_FATTURAPA = "fatturapa"
SYNTAX_FA2 = "FA2"
SYNTAX_FA3 = "FA3"

# Characters outside the XML 1.0 Char production
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


class FormatGenerationError(ValueError):
    """The canonical data cannot be expressed in the target syntax."""


@dataclass(frozen=True)
class FormatConfig:
    """Per-call options for a generator.

    Attributes:
        profile: Syntax profile, e.g. ``en16931`` for CII.
        sequence_id: Caller-issued transmission sequence number
            (FatturaPA ``ProgressivoInvio``).
        generated_at: Generation timestamp written into the XML.
            Defaults to the issue date at midnight UTC.
        transmitter_id: Transmitting party id (FatturaPA ``IdTrasmittente``).
        system_info: Name of the issuing software (KSeF ``SystemInfo``).
        buyer_reference: Routing reference (XRechnung Leitweg-ID).
    """
    profile: str | None = None
    sequence_id: str | None = None
    generated_at: datetime | None = None
    transmitter_id: str | None = None
    system_info: str = "compliance-engine"
    buyer_reference: str | None = None


@dataclass(frozen=True)
class FormatResult:
    """Outcome of one generation: either ``xml`` or ``error``, never both."""
    success: bool
    format: str
    syntax: str | None = None
    version: str | None = None
    xml: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, fmt: str, xml: str, syntax: str, version: str | None) -> FormatResult:
        return cls(success=True, format=fmt, syntax=syntax, version=version, xml=xml)

    @classmethod
    def fail(cls, fmt: str, error: str, syntax: str | None = None) -> FormatResult:
        return cls(success=False, format=fmt, syntax=syntax, error=error)


class FormatGenerator(ABC):
    """Abstract base for one XML syntax (CII, UBL, FatturaPA, KSeF)."""

    #: Output format tokens handled by this generator
    formats: tuple[str, ...] = ()

    @property
    @abstractmethod
    def syntax(self) -> str:
        """Syntax tag, e.g. ``cii``."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Schema version written by this generator."""

    def supports(self, fmt: str) -> bool:
        return fmt in self.formats

    @abstractmethod
    def build(self, data: DocumentData, fmt: str, config: FormatConfig) -> etree._Element:
        """Map *data* to the root element of the target syntax.

        Raises:
            FormatGenerationError: If required data is missing.
        """

    def generate(self, data: DocumentData, fmt: str, config: FormatConfig | None = None) -> FormatResult:
        """Build and serialize; failures come back as a failed ``FormatResult``."""
        config = config or FormatConfig()
        if not self.supports(fmt):
            return FormatResult.fail(fmt, f"{type(self).__name__} does not support '{fmt}'")
        try:
            root = self.build(data, fmt, config)
        except (FormatGenerationError, LookupError, TypeError) as e:
            logger.warning("%s generation failed for %s: %s", fmt, data.number, e)
            return FormatResult.fail(fmt, str(e), self.syntax)
        xml = etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8")
        return FormatResult.ok(fmt, xml.decode("utf-8"), self.syntax, self.version)


# ── Shared mapping rules ────────────────────────────────────────

def parse_xml(xml: str | bytes) -> etree._Element:
    """Parse untrusted XML without entity expansion or network access."""
    if isinstance(xml, str):
        xml = xml.encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    return etree.fromstring(xml, parser)


def sub_element(parent: etree._Element, ns_uri: str | None, local: str,
                text=None, **attribs) -> etree._Element:
    """Create a namespaced child with optional text and attributes."""
    tag = f"{{{ns_uri}}}{local}" if ns_uri else local
    elem = etree.SubElement(parent, tag)
    if text is not None:
        elem.text = xml_text(text)
    for k, v in attribs.items():
        if v is not None:
            elem.set(k, xml_text(v))
    return elem


def xml_text(value) -> str:
    """Text safe for an XML 1.0 document.

    Markup characters are escaped by the serializer; characters XML cannot
    represent at all are dropped here.
    """
    return _INVALID_XML_CHARS.sub("", str(value))


_ITEM_TYPE_UNITS = {
    "HOUR": "HUR",
    "DAY": "DAY",
}


def unit_code(item: LineItem) -> str:
    """UN/ECE Rec 20 unit: explicit code, else by item type, else EA for goods / C62."""
    if item.unit_code:
        return item.unit_code
    if item.item_type in _ITEM_TYPE_UNITS:
        return _ITEM_TYPE_UNITS[item.item_type]
    return "EA" if item.kind == "goods" else "C62"


def fmt_amount(value) -> str:
    """Monetary amount: 2 decimals, no thousands separator."""
    return f"{round_money(value):.2f}"


def fmt_quantity(value) -> str:
    """Quantity with up to 4 decimals."""
    text = f"{to_decimal(value):.4f}".rstrip("0").rstrip(".")
    return text or "0"


def fmt_rate(value) -> str:
    return f"{to_decimal(value):.2f}"


def fmt_date_iso(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def fmt_date_102(d: date) -> str:
    """Format date as YYYYMMDD (format 102)."""
    return d.strftime("%Y%m%d")


def require_totals(data: DocumentData) -> VATResult:
    if data.totals is None:
        raise FormatGenerationError(
            f"Document {data.number or data.id} has no computed totals"
        )
    return data.totals


def require(value, label: str):
    if value is None or value == "":
        raise FormatGenerationError(f"{label} is required")
    return value


def generated_at(data: DocumentData, config: FormatConfig) -> datetime:
    if config.generated_at is not None:
        return config.generated_at
    return datetime.combine(data.issue_date, time.min, tzinfo=timezone.utc)


def is_reverse_charge(data: DocumentData) -> bool:
    return bool(data.totals and data.totals.reverse_charge)


def line_category(item: LineItem, data: DocumentData) -> str:
    return vat_category(item.vat_rate, exempt=item.is_exempt, reverse_charge=is_reverse_charge(data))


def entry_category(entry: VATBreakdownEntry, data: DocumentData) -> str:
    """Category of a breakdown entry; a reverse-charged document is AE throughout."""
    if is_reverse_charge(data):
        return CATEGORY_REVERSE_CHARGE
    return entry.category


EXEMPTION_REASON = "Exempt from VAT"


def line_rate(item: LineItem, data: DocumentData) -> Decimal:
    """Rate printed on a line; reverse-charged and exempt lines carry 0."""
    if is_reverse_charge(data) or item.is_exempt:
        return ZERO
    return item.vat_rate


def type_code(data: DocumentData) -> str:
    """UNTDID 1001: 381 credit note, 384 corrective, 386 deposit, else 380."""
    return {
        "credit-note": "381",
        "corrective-invoice": "384",
        "deposit-invoice": "386",
    }.get(data.document_type, "380")


def payment_means_code(method: str | None) -> str:
    """UNTDID 4461 for the canonical payment method."""
    return {
        "BANK_TRANSFER": "30",
        "CASH": "10",
        "CHECK": "20",
        "PAYPAL": "68",
    }.get((method or "").upper(), "30")
