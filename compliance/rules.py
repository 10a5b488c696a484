"""
Compliance Rules Resolver.

``resolve_rules(context)`` combines a ``ComplianceContext`` with the
supplier's (and, for public buyers, the customer's) country config into
an ``ApplicableRules`` snapshot.  Resolution is a pure function of its
inputs; effective dates are compared against the ``now`` the caller
passes in, never against the wall clock.

Conditional legal mentions use small predicates:

- ``transaction.isIntraEU``        property lookup, truthiness
- ``customer.country=FR``          equality against a literal
- ``expr:transaction.isExport and not customer.isCompany``
                                   restricted boolean expression

Roots are ``transaction``, ``customer``, ``supplier`` and its alias
``company``.  Unknown names evaluate to false.
"""
from __future__ import annotations

import ast
import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from compliance import countries
from compliance.context import B2C, B2G, GOODS, ComplianceContext
from compliance.countries.base import (
    CountryConfig, NumberingPolicy, TransmissionPolicy, VATExemption, VATRate,
)
from compliance.helpers import ZERO, parse_date
from compliance.identifiers import validate_identifier
from compliance.model import PartyData

logger = logging.getLogger(__name__)

REVERSE_CHARGE_RATE = VATRate(code="AE", rate=ZERO, category="AE", label="vat.reverseCharge")
EXPORT_RATE = VATRate(code="G", rate=ZERO, category="G", label="vat.export")


@dataclass(frozen=True)
class VATRules:
    rates: tuple[VATRate, ...]
    exemptions: tuple[VATExemption, ...]
    default_rate: Decimal
    rounding_mode: str
    reverse_charge: bool = False
    reverse_charge_text_key: str | None = None
    reverse_charge_text: str | None = None


@dataclass(frozen=True)
class ValidationRules:
    required_fields: dict
    identifier_formats: dict
    vat_number_format: str


@dataclass(frozen=True)
class FormatRules:
    preferred: str
    supported: tuple[str, ...]
    syntax: str


@dataclass(frozen=True)
class TransmissionRules:
    channel: str
    model: str
    platform: str | None
    mandatory: bool
    mandatory_from: str | None
    effective_mandatory: bool
    is_async: bool
    deadline_days: int | None


@dataclass(frozen=True)
class ApplicableRules:
    vat: VATRules
    validation: ValidationRules
    format: FormatRules
    transmission: TransmissionRules
    numbering: NumberingPolicy
    legal_mention_keys: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "vat": {
                "rates": [{"code": r.code, "rate": float(r.rate), "category": r.category}
                          for r in self.vat.rates],
                "defaultRate": float(self.vat.default_rate),
                "roundingMode": self.vat.rounding_mode,
                "reverseCharge": self.vat.reverse_charge,
                "reverseChargeTextKey": self.vat.reverse_charge_text_key,
                "reverseChargeText": self.vat.reverse_charge_text,
                "exemptions": [{"code": e.code, "article": e.article} for e in self.vat.exemptions],
            },
            "validation": {
                "requiredFields": {k: list(v) for k, v in self.validation.required_fields.items()},
                "identifierFormats": dict(self.validation.identifier_formats),
                "vatNumberFormat": self.validation.vat_number_format,
            },
            "format": {
                "preferred": self.format.preferred,
                "supported": list(self.format.supported),
                "syntax": self.format.syntax,
            },
            "transmission": {
                "channel": self.transmission.channel,
                "model": self.transmission.model,
                "platform": self.transmission.platform,
                "mandatory": self.transmission.mandatory,
                "mandatoryFrom": self.transmission.mandatory_from,
                "effectiveMandatory": self.transmission.effective_mandatory,
                "async": self.transmission.is_async,
                "deadlineDays": self.transmission.deadline_days,
            },
            "numbering": {
                "seriesRequired": self.numbering.series_required,
                "hashChaining": self.numbering.hash_chaining,
                "gapAllowed": self.numbering.gap_allowed,
                "resetPeriod": self.numbering.reset_period,
            },
            "legalMentionKeys": list(self.legal_mention_keys),
        }


# ── Predicate evaluation ────────────────────────────────────────

def _party_namespace(party: PartyData) -> dict:
    return {
        "name": party.name,
        "country": party.country_code,
        "isCompany": party.is_company,
        "isPublicEntity": party.is_public_entity,
        "isVatRegistered": party.vat_registered,
        "hasIdentifier": party.has_identifier,
        "exemptVat": party.exempt_vat,
    }


def _namespace(context: ComplianceContext) -> dict:
    supplier = _party_namespace(context.supplier)
    return {
        "transaction": {
            "type": context.transaction_type,
            "nature": context.nature,
            "isDomestic": context.is_domestic,
            "isIntraEU": context.is_intra_eu,
            "isExport": context.is_export,
            "reverseCharge": context.reverse_charge,
            "placeOfTaxation": context.place_of_taxation,
        },
        "customer": _party_namespace(context.customer),
        "supplier": supplier,
        "company": supplier,
    }


def _lookup(path: str, namespace: dict):
    root, _, attr = path.strip().partition(".")
    scope = namespace.get(root)
    if scope is None or not attr:
        return None
    return scope.get(attr)


_COMPARATORS = {
    ast.Eq: lambda a, b: a == b,
    ast.NotEq: lambda a, b: a != b,
    ast.Lt: lambda a, b: a < b,
    ast.LtE: lambda a, b: a <= b,
    ast.Gt: lambda a, b: a > b,
    ast.GtE: lambda a, b: a >= b,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


def _eval_node(node: ast.AST, namespace: dict):
    if isinstance(node, ast.BoolOp):
        values = (_eval_node(v, namespace) for v in node.values)
        return all(values) if isinstance(node.op, ast.And) else any(values)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
        return not _eval_node(node.operand, namespace)
    if isinstance(node, ast.Compare):
        left = _eval_node(node.left, namespace)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval_node(comparator, namespace)
            fn = _COMPARATORS.get(type(op))
            if fn is None:
                raise ValueError(f"Disallowed comparison: {type(op).__name__}")
            try:
                if not fn(left, right):
                    return False
            except TypeError:
                return False
            left = right
        return True
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
        return _lookup(f"{node.value.id}.{node.attr}", namespace)
    if isinstance(node, ast.Name):
        return None
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float, str, bool, type(None))):
        return node.value
    if isinstance(node, (ast.List, ast.Tuple)):
        return tuple(_eval_node(e, namespace) for e in node.elts)
    raise ValueError(f"Disallowed expression element: {type(node).__name__}")


def _literal(text: str):
    lowered = text.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return text.strip()


def evaluate_condition(condition: str, context: ComplianceContext) -> bool:
    """Evaluate one mention predicate against *context*.

    Malformed expressions are logged and treated as false.
    """
    namespace = _namespace(context)
    condition = condition.strip()

    if condition.startswith("expr:"):
        source = condition[len("expr:"):].strip()
        try:
            tree = ast.parse(source, mode="eval")
            return bool(_eval_node(tree.body, namespace))
        except (SyntaxError, ValueError) as e:
            logger.warning("Ignoring invalid mention expression %r: %s", source, e)
            return False

    if "=" in condition:
        path, _, expected = condition.partition("=")
        actual = _lookup(path, namespace)
        expected = _literal(expected)
        if isinstance(expected, bool):
            return bool(actual) is expected
        return actual is not None and str(actual).lower() == expected.lower()

    return bool(_lookup(condition, namespace))


# ── Resolution ──────────────────────────────────────────────────

def _resolve_vat(context: ComplianceContext, config: CountryConfig) -> VATRules:
    policy = config.vat
    if context.reverse_charge:
        key_kind = "goods" if context.nature == GOODS else "services"
        return VATRules(
            rates=(REVERSE_CHARGE_RATE,),
            exemptions=policy.exemptions,
            default_rate=ZERO,
            rounding_mode=policy.rounding_mode,
            reverse_charge=True,
            reverse_charge_text_key=policy.reverse_charge_keys.get(key_kind),
            reverse_charge_text=policy.reverse_charge_text,
        )
    if context.is_export:
        return VATRules(
            rates=(EXPORT_RATE,),
            exemptions=policy.exemptions,
            default_rate=ZERO,
            rounding_mode=policy.rounding_mode,
        )
    return VATRules(
        rates=policy.rates,
        exemptions=policy.exemptions,
        default_rate=policy.default_rate,
        rounding_mode=policy.rounding_mode,
    )


def _resolve_validation(supplier_cfg: CountryConfig, customer_cfg: CountryConfig | None) -> ValidationRules:
    formats = {d.id: d.format for d in supplier_cfg.company_identifiers}
    if customer_cfg is not None:
        formats.update({f"client_{d.id}": d.format for d in customer_cfg.client_identifiers})
    return ValidationRules(
        required_fields={
            "invoice": supplier_cfg.required_fields.get("invoice", ()),
            "client": supplier_cfg.required_fields.get("client", ()),
        },
        identifier_formats=formats,
        vat_number_format=supplier_cfg.vat.number_format,
    )


def _is_effective(policy: TransmissionPolicy, now: date | None) -> bool:
    if policy.mandatory:
        return True
    if policy.mandatory_from and now is not None:
        return now >= parse_date(policy.mandatory_from)
    return False


def _resolve_transmission(
    context: ComplianceContext,
    supplier_cfg: CountryConfig,
    customer_cfg: CountryConfig | None,
    now: date | None,
) -> TransmissionRules:
    if context.transaction_type == B2G and customer_cfg is not None:
        channel, source = "b2g", customer_cfg
    elif context.transaction_type == B2C:
        channel, source = "b2c", supplier_cfg
    else:
        channel, source = "b2b", supplier_cfg

    policy = source.transmission_for(channel) or TransmissionPolicy()
    return TransmissionRules(
        channel=channel,
        model=policy.model,
        platform=policy.platform,
        mandatory=policy.mandatory,
        mandatory_from=policy.mandatory_from,
        effective_mandatory=_is_effective(policy, now),
        is_async=policy.is_async,
        deadline_days=policy.deadline_days,
    )


def resolve_mentions(context: ComplianceContext, config: CountryConfig) -> tuple[str, ...]:
    keys = list(config.legal_mentions.mandatory)
    for conditional in config.legal_mentions.conditional:
        if evaluate_condition(conditional.condition, context) and conditional.text_key not in keys:
            keys.append(conditional.text_key)
    return tuple(keys)


def resolve_rules(context: ComplianceContext, *, now: date | None = None) -> ApplicableRules:
    """Resolve the rules applying to the transaction described by *context*.

    Args:
        context: Output of ``build_context``.
        now: Reference date for ``mandatory_from`` policies. Without it,
            only unconditionally mandatory channels count as mandatory.
    """
    supplier_cfg = countries.get(context.supplier_country)
    customer_cfg = countries.get(context.customer_country) if context.customer_country else None

    return ApplicableRules(
        vat=_resolve_vat(context, supplier_cfg),
        validation=_resolve_validation(supplier_cfg, customer_cfg),
        format=FormatRules(
            preferred=supplier_cfg.format.preferred,
            supported=supplier_cfg.format.supported,
            syntax=supplier_cfg.format.syntax,
        ),
        transmission=_resolve_transmission(context, supplier_cfg, customer_cfg, now),
        numbering=supplier_cfg.numbering,
        legal_mention_keys=resolve_mentions(context, supplier_cfg),
    )


def validate_party(party: PartyData, config: CountryConfig, role: str = "company") -> list[str]:
    """Check *party*'s identifiers against *config*.

    ``role`` is ``company`` (issuer definitions) or ``client``.
    Returns a list of error messages, empty when everything is valid.
    """
    if role not in ("company", "client"):
        raise ValueError(f"Unknown party role '{role}'. Available: company, client")
    definitions = config.company_identifiers if role == "company" else config.client_identifiers
    errors = []
    for definition in definitions:
        value = party.identifier(definition.id)
        if value is None and definition.id in ("siret", "nif", "nip", "gstin", "partitaIva"):
            value = party.legal_id
        error = validate_identifier(value, definition)
        if error:
            errors.append(error)
    same_country = role == "company" or party.country_code == config.code
    if party.vat_number and config.vat.number_format and same_country:
        if not re.match(config.vat.number_format, party.vat_number.replace(" ", "").upper()):
            errors.append("vatNumber has an invalid format")
    return errors
