"""
Page furniture for compliance documents (reportlab).

Provides the style factory, header/footer drawing and helper flowables
used by every layout in ``compliance.documents.layout``.
"""
from __future__ import annotations

import base64
import binascii
import logging
import time
from io import BytesIO

from reportlab.graphics import renderPDF
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import BaseDocTemplate, Flowable, Frame, PageTemplate
from svglib.svglib import svg2rlg

from compliance.documents.formatting import contrast_color
from compliance.documents.types import RenderContext, StyleConfig
from compliance.errors import RenderTimeoutError

logger = logging.getLogger(__name__)

# ─── Colour palette ──────────────────────────────────────────────
CLR_BLACK = colors.black
CLR_GREY_MID = colors.HexColor("#d9d9d9")
CLR_GREY_DARK = colors.HexColor("#666666")
CLR_ROW_LINE = colors.HexColor("#cccccc")

# ─── Page metrics ─────────────────────────────────────────────────
PAGE_W, PAGE_H = A4
MARGIN_TOP = 5 * mm
MARGIN_BOTTOM = 30 * mm

HEADER_HEIGHT = 70 * mm   # space reserved for header (address blocks, etc.)

# Standard PDF fonts: family → (regular, bold)
FONTS = {
    "helvetica": ("Helvetica", "Helvetica-Bold"),
    "arial": ("Helvetica", "Helvetica-Bold"),
    "times": ("Times-Roman", "Times-Bold"),
    "times new roman": ("Times-Roman", "Times-Bold"),
    "courier": ("Courier", "Courier-Bold"),
}


def font_pair(family: str | None) -> tuple[str, str]:
    return FONTS.get((family or "").strip().lower(), FONTS["helvetica"])


def margin(style: StyleConfig) -> float:
    return max(float(style.padding), 5) * mm


def content_width(style: StyleConfig) -> float:
    return PAGE_W - 2 * margin(style)


def hex_color(value: str | None, fallback: str = "#000000"):
    try:
        return colors.HexColor(value or fallback)
    except (ValueError, TypeError):
        logger.warning("Invalid colour %r, using %s", value, fallback)
        return colors.HexColor(fallback)


# ─── Reusable style factory ──────────────────────────────────────
def base_styles(style: StyleConfig) -> dict[str, ParagraphStyle]:
    """Return a dict of ParagraphStyles for *style*'s font and colours."""
    regular, bold = font_pair(style.font_family)
    primary = hex_color(style.primary_color, "#2563eb")
    ss = getSampleStyleSheet()
    base = ParagraphStyle("Base", parent=ss["Normal"], fontName=regular,
                          fontSize=9, leading=11, spaceAfter=0)
    return {
        "base": base,
        "title": ParagraphStyle("DocTitle", parent=base, fontName=bold,
                                fontSize=16, leading=19, spaceAfter=4, textColor=primary),
        "subtitle": ParagraphStyle("SubTitle", parent=base, fontName=bold,
                                   fontSize=11, leading=13, spaceAfter=2),
        "normal": ParagraphStyle("Norm", parent=base, spaceAfter=2),
        "small": ParagraphStyle("Small", parent=base, fontSize=7.5, leading=9.5, spaceAfter=1),
        "bold": ParagraphStyle("Bold", parent=base, fontName=bold),
        "right": ParagraphStyle("Right", parent=base, alignment=2),  # TA_RIGHT
        "right_bold": ParagraphStyle("RightBold", parent=base, fontName=bold, alignment=2),
        "table_header": ParagraphStyle("TH", parent=base, fontName=bold, fontSize=8.5, leading=10,
                                       textColor=hex_color(contrast_color(style.secondary_color))),
        "table_cell": ParagraphStyle("TC", parent=base, fontSize=8.5, leading=10),
        "table_cell_right": ParagraphStyle("TCR", parent=base, fontSize=8.5, leading=10, alignment=2),
        "footer": ParagraphStyle("Footer", parent=base, fontSize=7, leading=9,
                                 textColor=CLR_GREY_DARK),
    }


# ─── Helper flowables ────────────────────────────────────────────
class HLine(Flowable):
    """Horizontal rule used between document sections."""
    def __init__(self, width: float, thickness: float = 0.6,
                 color=CLR_BLACK, space_before=4, space_after=4):
        super().__init__()
        self.width = width
        self.thickness = thickness
        self.color = color
        self.space_before = space_before
        self.space_after = space_after
        self.height = self.space_before + self.thickness + self.space_after

    def draw(self):
        self.canv.saveState()
        self.canv.setStrokeColor(self.color)
        self.canv.setLineWidth(self.thickness)
        y = self.space_after
        self.canv.line(0, y, self.width, y)
        self.canv.restoreState()


# ─── Logo ─────────────────────────────────────────────────────────
def decode_logo(logo_b64: str | None) -> tuple[bytes, bool] | None:
    """Decode a data URI or bare base64 logo into ``(bytes, is_svg)``."""
    if not logo_b64:
        return None
    header, _, payload = logo_b64.partition(",") if logo_b64.startswith("data:") else ("", "", logo_b64)
    try:
        raw = base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        logger.warning("Logo is not valid base64, skipping")
        return None
    head = raw[:256].lstrip().lower()
    is_svg = "svg" in header or head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in raw[:1024])
    return raw, is_svg


def _draw_logo(canvas, style: StyleConfig):
    decoded = decode_logo(style.logo_b64)
    if decoded is None:
        return
    raw, is_svg = decoded
    max_h = 30 * mm
    max_w = 55 * mm
    right = PAGE_W - margin(style)
    try:
        if is_svg:
            drawing = svg2rlg(BytesIO(raw))
            if drawing:
                iw, ih = drawing.width, drawing.height
                ratio = min(max_w / iw, max_h / ih, 1)
                draw_w, draw_h = iw * ratio, ih * ratio
                drawing.width = draw_w
                drawing.height = draw_h
                drawing.scale(ratio, ratio)
                renderPDF.draw(drawing, canvas, right - draw_w, PAGE_H - MARGIN_TOP - draw_h)
        else:
            img = ImageReader(BytesIO(raw))
            iw, ih = img.getSize()
            ratio = min(max_w / iw, max_h / ih, 1)
            draw_w, draw_h = iw * ratio, ih * ratio
            canvas.drawImage(img, right - draw_w, PAGE_H - MARGIN_TOP - draw_h, draw_w, draw_h,
                             preserveAspectRatio=True, mask="auto")
    except Exception as e:
        logger.warning("Skipping unreadable logo: %s", e)


# ─── Common page callbacks ───────────────────────────────────────
def draw_header(canvas, doc, context: RenderContext):
    """Sender line, customer address, document meta and logo, on every page."""
    style = context.style
    regular, bold = font_pair(style.font_family)
    left = margin(style)
    right = PAGE_W - left
    canvas.saveState()

    if style.include_logo:
        _draw_logo(canvas, style)

    # ── Sender line (small, above recipient) ──
    sender_str = " – ".join(context.supplier_lines[:3])
    canvas.setFont(regular, 6.5)
    canvas.setFillColor(CLR_GREY_DARK)
    y_sender = PAGE_H - MARGIN_TOP - 35 * mm
    canvas.drawString(left, y_sender, sender_str)

    # ── Recipient block ──
    canvas.setFillColor(CLR_BLACK)
    y_recip = y_sender - 14
    for i, line in enumerate(context.customer_lines[:6]):
        canvas.setFont(bold if i == 0 else regular, 10)
        canvas.drawString(left, y_recip - i * 13, line)

    # ── Meta block (right side, below logo) ──
    canvas.setFont(regular, 8.5)
    x_meta_label = right - 70 * mm
    x_meta_value = right - 32 * mm
    for i, (label, value) in enumerate(context.meta_lines[:7]):
        y = y_sender - 14 - i * 12
        canvas.drawString(x_meta_label, y, f"{label}:")
        canvas.drawString(x_meta_value, y, value or "")

    canvas.restoreState()


def draw_footer(canvas, doc, context: RenderContext):
    """Draw the 3-column footer with business info and the page number."""
    style = context.style
    regular, _ = font_pair(style.font_family)
    left = margin(style)
    width = content_width(style)
    canvas.saveState()

    y_line = MARGIN_BOTTOM - 2 * mm
    canvas.setStrokeColor(CLR_GREY_MID)
    canvas.setLineWidth(0.5)
    canvas.line(left, y_line, left + width, y_line)

    canvas.setFont(regular, 6.5)
    canvas.setFillColor(CLR_GREY_DARK)

    col_w = width / 3
    columns = (
        context.supplier_lines[:4],
        context.contact_lines[:3] + context.tax_lines[:3],
        (context.payment_details or "").splitlines()[:5],
    )
    dy = 8.5
    y_start = y_line - 10
    for col, lines in enumerate(columns):
        for i, text in enumerate(lines):
            canvas.drawString(left + col * col_w, y_start - i * dy, text)

    canvas.drawRightString(left + width, 8 * mm,
                           f"{context.labels.page} {canvas.getPageNumber()}")
    canvas.restoreState()


def deadline_check(deadline: float | None):
    """Raise ``RenderTimeoutError`` once *deadline* (``time.monotonic``) has passed."""
    if deadline is not None and time.monotonic() > deadline:
        raise RenderTimeoutError("PDF rendering exceeded the configured timeout")


# ─── Document builder helper ─────────────────────────────────────
def build_base_doc(buf: BytesIO, context: RenderContext, *, deadline: float | None = None,
                   producer: str | None = None):
    """Create a BaseDocTemplate whose pages carry the header and footer of *context*.

    Returns ``(doc, frame_width)``; the frame width sizes the layout tables.
    """
    style = context.style
    left = margin(style)
    width = content_width(style)
    frame_top = MARGIN_TOP + HEADER_HEIGHT
    frame_height = PAGE_H - frame_top - MARGIN_BOTTOM

    def on_page(canvas, doc):
        deadline_check(deadline)
        draw_header(canvas, doc, context)
        draw_footer(canvas, doc, context)

    frame = Frame(
        left, MARGIN_BOTTOM, width, frame_height,
        leftPadding=0, rightPadding=0, topPadding=0, bottomPadding=0,
        id="main",
    )
    doc = BaseDocTemplate(
        buf, pagesize=A4,
        leftMargin=left, rightMargin=left,
        topMargin=MARGIN_TOP, bottomMargin=MARGIN_BOTTOM,
        title=f"{context.title} {context.number}", author=context.supplier_name,
        creator=producer or "",
        pageTemplates=[PageTemplate(id="default", frames=[frame], onPage=on_page)],
    )
    return doc, width
