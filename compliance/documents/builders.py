"""
Document builders: canonical data + style → ``BuildResult``.

Two builder kinds exist, selected by ``CountryConfig.documents.builder``:

- ``generic``: PDF only, no e-invoice payload
- ``eu`` (regional): PDF plus any registered XML syntax

Both share the same context assembly; they differ only in their
capability set and in whether they call the format registry.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable

from compliance import formats
from compliance.context import build_context
from compliance.countries.base import GENERIC_BUILDER, REGIONAL_BUILDER, CountryConfig
from compliance.documents.formatting import (
    contrast_color, currency_symbol, format_date, format_money, format_percent, format_quantity,
)
from compliance.documents.renderers import HYBRID_FORMATS
from compliance.documents.types import (
    LAYOUT_CREDIT_NOTE, LAYOUT_INVOICE, LAYOUT_QUOTE, LAYOUT_RECEIPT,
    BuildMetadata, BuildRequest, BuildResult, LineRow, RenderContext,
)
from compliance.helpers import ZERO
from compliance.model import (
    CORRECTIVE_INVOICE, CREDIT_NOTE, DEPOSIT_INVOICE, INVOICE, PROFORMA, QUOTE, RECEIPT,
    DocumentData, PartyData,
)
from compliance.qr import printed_hash, qr_content
from compliance.settings import Settings
from compliance.vat import calculate_vat

logger = logging.getLogger(__name__)

LAYOUTS = {
    INVOICE: LAYOUT_INVOICE,
    CORRECTIVE_INVOICE: LAYOUT_INVOICE,
    DEPOSIT_INVOICE: LAYOUT_INVOICE,
    QUOTE: LAYOUT_QUOTE,
    PROFORMA: LAYOUT_QUOTE,
    RECEIPT: LAYOUT_RECEIPT,
    CREDIT_NOTE: LAYOUT_CREDIT_NOTE,
}

# Document types that can carry an e-invoice payload
XML_DOCUMENT_TYPES = (INVOICE, CREDIT_NOTE, CORRECTIVE_INVOICE, DEPOSIT_INVOICE)


def ensure_totals(data: DocumentData, config: CountryConfig) -> DocumentData:
    """Return *data* with ``totals`` set, computing them if the caller left them out.

    Reverse charge is applied when the parties make the supply an intra-EU
    B2B/B2G one.
    """
    if data.totals is not None:
        return data
    context = build_context(data.supplier, data.customer, data.items)
    totals = calculate_vat(
        data.items,
        config.vat,
        reverse_charge=context.reverse_charge,
        reverse_charge_text=config.vat.reverse_charge_text,
    )
    return dataclasses.replace(data, totals=totals)


def _party_lines(party: PartyData) -> list[str]:
    lines = [party.name]
    lines.extend(line for line in (party.address or "").splitlines() if line.strip())
    locality = " ".join(p for p in (party.postal_code, party.city) if p)
    if locality:
        lines.append(locality)
    if party.country_code:
        lines.append(party.country_code)
    if party.vat_number:
        lines.append(party.vat_number)
    return lines


def _contact_lines(party: PartyData) -> list[str]:
    return [value for value in (party.email, party.phone) if value]


def _tax_lines(party: PartyData) -> list[str]:
    lines = []
    if party.vat_number:
        lines.append(f"VAT: {party.vat_number}")
    if party.legal_id:
        lines.append(f"ID: {party.legal_id}")
    for key, value in party.identifiers.items():
        if value and key.lower() not in ("iban", "bic"):
            lines.append(f"{key}: {value}")
    return lines


def build_render_context(request: BuildRequest, config: CountryConfig,
                         settings: Settings | None = None) -> RenderContext:
    """Format *request* for printing.

    Money is printed with 2 decimals; line totals are quantity times unit
    price, as in the VAT engine.
    """
    data = request.data
    style = request.style
    labels = style.labels
    locale = style.locale or config.locale or (settings.default_locale if settings else None)
    cur = data.currency
    totals = data.totals

    def money(value) -> str:
        return format_money(value, cur, locale)

    rows = [
        LineRow(
            position=position,
            description=item.description,
            item_type=labels.item_type(item.item_type),
            quantity=format_quantity(item.quantity, locale),
            unit_price=money(item.unit_price),
            vat_rate=format_percent(item.vat_rate, locale),
            total=money(item.rounded_total),
        )
        for position, item in enumerate(data.items, start=1)
    ]

    meta_lines = [
        (labels.number, data.number),
        (labels.date, format_date(data.issue_date, locale)),
    ]
    if data.purchase_order_ref:
        meta_lines.append((labels.purchase_order, data.purchase_order_ref))

    ctx = RenderContext(
        document_type=request.document_type,
        title=labels.title_for(request.document_type),
        number=data.number,
        date=format_date(data.issue_date, locale),
        currency=cur,
        currency_symbol=currency_symbol(cur),
        supplier_name=data.supplier.name,
        supplier_lines=_party_lines(data.supplier),
        customer_lines=_party_lines(data.customer),
        contact_lines=_contact_lines(data.supplier),
        tax_lines=_tax_lines(data.supplier),
        meta_lines=meta_lines,
        rows=rows,
        total_ht=money(totals.total_ht),
        total_vat=money(totals.total_vat),
        total_ttc=money(totals.total_ttc),
        vat_breakdown=[
            (labels.exempt if e.is_exempt else format_percent(e.rate, locale),
             money(e.base_amount), money(e.vat_amount))
            for e in totals.breakdown
        ],
        style=style,
        payment_method=labels.payment_method_label(data.payment_method) if data.payment_method else None,
        payment_details=data.payment_details,
        payment_terms=data.payment_terms,
        notes=data.notes,
        legal_mentions=list(data.legal_mentions),
        reverse_charge_text=totals.reverse_charge_text if totals.reverse_charge else None,
        table_text_color=contrast_color(style.secondary_color),
        qr_content=qr_content(data, config),
        document_hash=printed_hash(data, config),
    )
    _add_type_specific(ctx, data, locale)
    return ctx


def _add_type_specific(ctx: RenderContext, data: DocumentData, locale: str | None) -> None:
    labels = ctx.labels
    if ctx.document_type in (INVOICE, CORRECTIVE_INVOICE, DEPOSIT_INVOICE):
        ctx.due_date = format_date(data.due_date, locale) or None
        if ctx.due_date:
            ctx.meta_lines.append((labels.due_date, ctx.due_date))
    elif ctx.document_type in (QUOTE, PROFORMA):
        ctx.valid_until = format_date(data.valid_until, locale) or None
        ctx.signed_at = format_date(data.signed_at, locale) or None
        if ctx.valid_until:
            ctx.meta_lines.append((labels.valid_until, ctx.valid_until))
    elif ctx.document_type == RECEIPT:
        ctx.payment_date = format_date(data.payment_date, locale) or None
        ctx.original_invoice_ref = data.invoice_ref
        ctx.original_invoice_number = data.invoice_number
        if ctx.payment_date:
            ctx.meta_lines.append((labels.payment_date, ctx.payment_date))
        if data.invoice_number:
            ctx.meta_lines.append((labels.original_invoice, data.invoice_number))
    elif ctx.document_type == CREDIT_NOTE:
        ctx.original_invoice_ref = data.original_invoice_ref
        ctx.original_invoice_number = data.original_invoice_number
        ctx.correction_reason = data.correction_reason
        original = data.original_invoice_number or data.original_invoice_ref
        if original:
            ctx.meta_lines.append((labels.original_invoice, original))


# ── Builder strategies ──────────────────────────────────────────

@dataclass(frozen=True)
class Builder:
    kind: str
    formats: frozenset[str]
    build: Callable[[BuildRequest, CountryConfig, Settings | None], BuildResult]

    def supports(self, fmt: str) -> bool:
        return fmt in self.formats


def build_generic(request: BuildRequest, config: CountryConfig,
                  settings: Settings | None = None) -> BuildResult:
    context = build_render_context(request, config, settings)
    return BuildResult(
        context=context,
        layout=LAYOUTS.get(request.document_type, LAYOUT_INVOICE),
        metadata=BuildMetadata(builder_kind=GENERIC_BUILDER),
    )


def build_regional(request: BuildRequest, config: CountryConfig,
                   settings: Settings | None = None) -> BuildResult:
    data = request.data
    context = build_render_context(request, config, settings)

    totals = data.totals
    if (not totals.reverse_charge and totals.total_vat == ZERO and totals.total_ht > ZERO
            and config.vat.exemptions):
        context.vat_exempt_text = config.vat.exemptions[0].article

    fmt = request.format
    xml = None
    xml_error = None
    syntax = formats.syntax_for(fmt)
    if syntax and request.document_type in XML_DOCUMENT_TYPES:
        result = formats.generate(data, fmt, request.format_config)
        if result.success:
            xml = result.xml
        else:
            xml_error = result.error
            logger.warning("%s XML for %s not generated: %s", fmt, data.number, result.error)
    elif syntax:
        xml_error = f"{request.document_type} documents carry no e-invoice payload"

    return BuildResult(
        context=context,
        layout=LAYOUTS.get(request.document_type, LAYOUT_INVOICE),
        metadata=BuildMetadata(
            builder_kind=REGIONAL_BUILDER,
            requires_xml_embed=fmt in HYBRID_FORMATS,
            xml_syntax=syntax,
            xml_error=xml_error,
        ),
        xml=xml,
    )


BUILDERS = MappingProxyType({
    GENERIC_BUILDER: Builder(GENERIC_BUILDER, frozenset({formats.PDF}), build_generic),
    REGIONAL_BUILDER: Builder(REGIONAL_BUILDER, frozenset(formats.OUTPUT_FORMATS) | {formats.PEPPOL_BIS},
                              build_regional),
})


def get_builder(kind: str | None) -> Builder:
    builder = BUILDERS.get(kind or GENERIC_BUILDER)
    if builder is None:
        logger.warning("Unknown builder kind %s, using %s", kind, GENERIC_BUILDER)
        return BUILDERS[GENERIC_BUILDER]
    return builder
