"""
reportlab layouts for the printable documents.

One story builder per layout (invoice, quote, receipt, credit note).  All
share the positions table and the totals block; they differ in the
paragraphs around them:

- invoice: due date, payment terms and bank details
- quote: validity and a signature area
- receipt: paid amount and the settled invoice
- credit note: reference to the original invoice and the reason

Invoices, receipts and credit notes also print the verification QR code
and chained document hash where the jurisdiction requires them.
"""
from __future__ import annotations

import logging
import time
from io import BytesIO

from markupsafe import escape
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.platypus import Paragraph, Spacer, Table, TableStyle

from compliance.documents.pdf_base import (
    CLR_BLACK, CLR_ROW_LINE, HLine, base_styles, build_base_doc, deadline_check, hex_color,
)
from compliance.documents.types import (
    LAYOUT_CREDIT_NOTE, LAYOUT_INVOICE, LAYOUT_QUOTE, LAYOUT_RECEIPT, RenderContext,
)
from compliance.errors import RenderError, RenderTimeoutError

logger = logging.getLogger(__name__)

QR_SIZE = 80  # points


def _p(text, style) -> Paragraph:
    return Paragraph(str(escape(text or "")), style)


def _lines(text: str | None) -> list[str]:
    return [line for line in (text or "").strip().splitlines() if line.strip()]


def _positions_table(ctx: RenderContext, styles, cw: float) -> Table:
    labels = ctx.labels
    col_widths = [22, max(cw - 266, 60), 50, 34, 58, 40, 62]
    header_row = [
        _p("#", styles["table_header"]),
        _p(labels.description, styles["table_header"]),
        _p(labels.type, styles["table_header"]),
        _p(labels.quantity, styles["table_header"]),
        _p(labels.unit_price, styles["table_header"]),
        _p(labels.vat_rate, styles["table_header"]),
        _p(labels.total, styles["table_header"]),
    ]
    table_data = [header_row]
    for row in ctx.rows:
        table_data.append([
            _p(str(row.position), styles["table_cell"]),
            _p(row.description, styles["table_cell"]),
            _p(row.item_type, styles["table_cell"]),
            _p(row.quantity, styles["table_cell_right"]),
            _p(row.unit_price, styles["table_cell_right"]),
            _p(row.vat_rate, styles["table_cell_right"]),
            _p(row.total, styles["table_cell_right"]),
        ])

    table = Table(table_data, colWidths=col_widths, hAlign="LEFT", repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), hex_color(ctx.style.secondary_color, "#e8e8e8")),
        ("LINEBELOW", (0, 0), (-1, 0), 0.8, hex_color(ctx.style.primary_color, "#2563eb")),
        ("LINEBELOW", (0, 1), (-1, -1), 0.3, CLR_ROW_LINE),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
        ("RIGHTPADDING", (0, 0), (-1, -1), 4),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return table


def _totals_table(ctx: RenderContext, styles, cw: float, grand_label: str | None = None) -> Table:
    labels = ctx.labels
    summary_data = [
        [_p(labels.subtotal, styles["right"]), _p(ctx.total_ht, styles["right_bold"])],
    ]
    for rate, base, vat in ctx.vat_breakdown:
        summary_data.append([
            _p(f"{labels.vat} {rate} ({labels.base} {base})", styles["right"]),
            _p(vat, styles["right"]),
        ])
    if not ctx.vat_breakdown:
        summary_data.append([_p(labels.vat, styles["right"]), _p(ctx.total_vat, styles["right"])])
    summary_data.append([
        _p(grand_label or labels.grand_total, styles["right_bold"]),
        _p(ctx.total_ttc, styles["right_bold"]),
    ])

    summary_table = Table(summary_data, colWidths=[cw - 120, 120], hAlign="RIGHT")
    summary_table.setStyle(TableStyle([
        ("TOPPADDING", (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("RIGHTPADDING", (0, 0), (-1, -1), 0),
        ("LINEABOVE", (0, -1), (-1, -1), 0.8, CLR_BLACK),
    ]))
    return summary_table


def _tax_mentions(ctx: RenderContext, styles) -> list:
    story = []
    for text in (ctx.reverse_charge_text, ctx.vat_exempt_text):
        if text:
            story.append(_p(text, styles["small"]))
    for mention in ctx.legal_mentions:
        story.append(_p(mention, styles["small"]))
    if story:
        story.insert(0, Spacer(1, 6))
    return story


def _notes(ctx: RenderContext, styles) -> list:
    lines = _lines(ctx.notes)
    if not lines:
        return []
    story = [Paragraph(f"<b>{escape(ctx.labels.notes)}:</b>", styles["normal"])]
    story.extend(_p(line, styles["normal"]) for line in lines)
    story.append(Spacer(1, 8))
    return story


def _payment_block(ctx: RenderContext, styles, cw: float) -> list:
    labels = ctx.labels
    story = [HLine(width=cw), Spacer(1, 4)]
    if ctx.payment_method:
        story.append(Paragraph(
            f"<b>{escape(labels.payment_method)}:</b> {escape(ctx.payment_method)}", styles["normal"]))
    if ctx.payment_terms:
        story.append(Paragraph(
            f"<b>{escape(labels.payment_terms)}:</b> {escape(ctx.payment_terms)}", styles["normal"]))
    details = _lines(ctx.payment_details)
    if details:
        story.append(Spacer(1, 4))
        story.append(Paragraph(f"<b>{escape(labels.payment_details)}:</b>", styles["normal"]))
        story.extend(_p(line, styles["normal"]) for line in details)
    return story


def qr_drawing(content: str, size: float = QR_SIZE) -> Drawing:
    widget = QrCodeWidget(content)
    x1, y1, x2, y2 = widget.getBounds()
    drawing = Drawing(size, size, transform=[size / (x2 - x1), 0, 0, size / (y2 - y1), 0, 0])
    drawing.add(widget)
    return drawing


def _verification_block(ctx: RenderContext, styles, cw: float) -> list:
    """QR code and chained document hash, when the jurisdiction prints them."""
    if not ctx.qr_content and not ctx.document_hash:
        return []
    cells, widths = [], []
    if ctx.qr_content:
        cells.append(qr_drawing(ctx.qr_content))
        widths.append(QR_SIZE + 8)
    if ctx.document_hash:
        cells.append(_p(f"{ctx.labels.document_hash}: {ctx.document_hash}", styles["small"]))
        widths.append(cw - sum(widths))
    table = Table([cells], colWidths=widths, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return [Spacer(1, 8), table]


# ─── Per-layout sections ─────────────────────────────────────────

def _invoice_story(ctx: RenderContext, styles, cw: float) -> list:
    story = [_positions_table(ctx, styles, cw), Spacer(1, 8), _totals_table(ctx, styles, cw)]
    story += _tax_mentions(ctx, styles)
    story += _verification_block(ctx, styles, cw)
    story.append(Spacer(1, 14))
    story += _notes(ctx, styles)
    story += _payment_block(ctx, styles, cw)
    return story


def _quote_story(ctx: RenderContext, styles, cw: float) -> list:
    labels = ctx.labels
    story = [_positions_table(ctx, styles, cw), Spacer(1, 8), _totals_table(ctx, styles, cw)]
    story += _tax_mentions(ctx, styles)
    story.append(Spacer(1, 14))
    story += _notes(ctx, styles)
    if ctx.valid_until:
        story.append(Paragraph(
            f"<b>{escape(labels.valid_until)}:</b> {escape(ctx.valid_until)}", styles["normal"]))
    if ctx.payment_terms:
        story.append(Paragraph(
            f"<b>{escape(labels.payment_terms)}:</b> {escape(ctx.payment_terms)}", styles["normal"]))
    story.append(Spacer(1, 24))
    story.append(HLine(width=cw / 2, thickness=0.4))
    signed = f"{labels.signed_at}: {ctx.signed_at}" if ctx.signed_at else labels.signed_at
    story.append(_p(signed, styles["small"]))
    return story


def _receipt_story(ctx: RenderContext, styles, cw: float) -> list:
    labels = ctx.labels
    story = [_positions_table(ctx, styles, cw), Spacer(1, 8),
             _totals_table(ctx, styles, cw, grand_label=labels.amount_paid)]
    story += _tax_mentions(ctx, styles)
    story += _verification_block(ctx, styles, cw)
    story.append(Spacer(1, 14))
    if ctx.payment_method:
        story.append(Paragraph(
            f"<b>{escape(labels.payment_method)}:</b> {escape(ctx.payment_method)}", styles["normal"]))
    if ctx.payment_date:
        story.append(Paragraph(
            f"<b>{escape(labels.payment_date)}:</b> {escape(ctx.payment_date)}", styles["normal"]))
    story += _notes(ctx, styles)
    return story


def _credit_note_story(ctx: RenderContext, styles, cw: float) -> list:
    labels = ctx.labels
    story = []
    original = ctx.original_invoice_number or ctx.original_invoice_ref
    if original:
        story.append(Paragraph(
            f"<b>{escape(labels.original_invoice)}:</b> {escape(original)}", styles["normal"]))
    if ctx.correction_reason:
        story.append(Paragraph(
            f"<b>{escape(labels.correction_reason)}:</b> {escape(ctx.correction_reason)}", styles["normal"]))
    if story:
        story.append(Spacer(1, 8))
    story += [_positions_table(ctx, styles, cw), Spacer(1, 8), _totals_table(ctx, styles, cw)]
    story += _tax_mentions(ctx, styles)
    story += _verification_block(ctx, styles, cw)
    story.append(Spacer(1, 14))
    story += _notes(ctx, styles)
    return story


STORIES = {
    LAYOUT_INVOICE: _invoice_story,
    LAYOUT_QUOTE: _quote_story,
    LAYOUT_RECEIPT: _receipt_story,
    LAYOUT_CREDIT_NOTE: _credit_note_story,
}


def build_pdf(context: RenderContext, layout: str = LAYOUT_INVOICE, *,
              timeout: float | None = None, producer: str | None = None) -> bytes:
    """Rasterize *context* with *layout* and return the PDF bytes.

    Raises:
        RenderTimeoutError: rendering took longer than *timeout* seconds.
        RenderError: reportlab failed for any other reason.
    """
    story_builder = STORIES.get(layout)
    if story_builder is None:
        raise RenderError(f"Unknown layout '{layout}'")

    deadline = time.monotonic() + timeout if timeout else None
    buf = BytesIO()
    try:
        styles = base_styles(context.style)
        doc, cw = build_base_doc(buf, context, deadline=deadline, producer=producer)
        story = [_p(context.title, styles["title"]), Spacer(1, 10)]
        story += story_builder(context, styles, cw)
        deadline_check(deadline)
        doc.build(story)
        return buf.getvalue()
    except RenderTimeoutError:
        logger.error("Rendering %s %s timed out after %ss", context.document_type, context.number, timeout)
        raise
    except Exception as e:
        raise RenderError(f"Failed to render {context.document_type} {context.number}: {e}") from e
    finally:
        buf.close()
