"""Structural checks on generated or received e-invoice XML.

This is not schema validation: it verifies well-formedness, the root
element and the namespace a syntax requires.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from lxml import etree

from compliance.formats import cii, fatturapa, ksef, ubl
from compliance.formats.base import (
    SYNTAX_CII, SYNTAX_FA2, SYNTAX_FA3, SYNTAX_FATTURAPA, SYNTAX_UBL, parse_xml,
)

# syntax → accepted (namespace, local root name) pairs
ROOTS = {
    SYNTAX_CII: ((cii.NS["rsm"], "CrossIndustryInvoice"),),
    SYNTAX_UBL: ((ubl.NS["inv"], "Invoice"), (ubl.NS["cn"], "CreditNote")),
    SYNTAX_FATTURAPA: ((fatturapa.NS_FATTURA, "FatturaElettronica"),),
    SYNTAX_FA2: ((ksef.SCHEMAS[ksef.KSEF]["namespace"], "Faktura"),),
    SYNTAX_FA3: ((ksef.SCHEMAS[ksef.KSEF_FA3]["namespace"], "Faktura"),),
}


@dataclass
class XMLValidation:
    valid: bool
    syntax: str | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "syntax": self.syntax, "errors": list(self.errors)}


def _root_key(root: etree._Element) -> tuple[str | None, str]:
    qname = etree.QName(root)
    return qname.namespace, qname.localname


def detect_syntax(xml: str | bytes) -> str | None:
    """Syntax tag of *xml* from its root element, or ``None``."""
    try:
        root = parse_xml(xml)
    except etree.XMLSyntaxError:
        return None
    key = _root_key(root)
    for syntax, roots in ROOTS.items():
        if key in roots:
            return syntax
    return None


def validate_xml(xml: str | bytes, syntax: str | None = None) -> XMLValidation:
    """Check well-formedness, root element and namespace.

    Without *syntax*, the syntax is detected from the root element and the
    document is invalid if none matches.
    """
    if syntax is not None and syntax not in ROOTS:
        raise ValueError(f"Unknown syntax '{syntax}'. Available: {', '.join(ROOTS)}")
    try:
        root = parse_xml(xml)
    except etree.XMLSyntaxError as e:
        return XMLValidation(valid=False, syntax=syntax, errors=[f"Not well-formed: {e}"])

    key = _root_key(root)
    if syntax is None:
        detected = next((s for s, roots in ROOTS.items() if key in roots), None)
        if detected is None:
            return XMLValidation(valid=False, errors=[f"Unrecognized root element {{{key[0]}}}{key[1]}"])
        return XMLValidation(valid=True, syntax=detected)

    errors = []
    expected = ROOTS[syntax]
    if key[1] not in {name for _, name in expected}:
        errors.append(
            f"Root element '{key[1]}' does not match {syntax} "
            f"(expected {' or '.join(name for _, name in expected)})"
        )
    elif key not in expected:
        errors.append(f"Root element '{key[1]}' is not in the {syntax} namespace ({key[0]})")

    if syntax == SYNTAX_FATTURAPA and root.get("versione") not in (
        fatturapa.FORMAT_PA, fatturapa.FORMAT_PRIVATE,
    ):
        errors.append("FatturaElettronica requires versione FPA12 or FPR12")

    return XMLValidation(valid=not errors, syntax=syntax, errors=errors)
