"""
Vector backend: draws single-page forms directly with a reportlab canvas.
No browser, no external process. Canvas is created with invariant=1 so the
same view model always produces the same bytes.
"""
from __future__ import annotations

import logging
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from engine.variants import BackendKind, get_variant_spec
from errors import RenderFailure
from models import DocumentViewModel, TemplateVariant

from .format_utils import fit_font_size

_LOG = logging.getLogger(__name__)

_PAGE_SIZES = {"letter": LETTER, "a4": A4}

INK = colors.HexColor("#111111")
MUTED = colors.HexColor("#555555")
RULE = colors.HexColor("#999999")
BAND = colors.HexColor("#E6E6E6")


class CompactBillOfSalePDF:
    """One-page bill of sale: header, document number, labelled field rows, signature lines."""

    def __init__(self, view: DocumentViewModel, title: str, pagesize=LETTER):
        self.view = view
        self.title = title
        self.width, self.height = pagesize
        self.margin = 16 * mm
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=pagesize, invariant=1)
        self.c.setTitle(f"{title} {view.document_number}".strip())
        self.c.setAuthor(view.house.name)
        self.y = self.height - self.margin

    def _usable_width(self):
        return self.width - 2 * self.margin

    def _text(self, x, y, text, size=10, color=INK, font="Helvetica", align="left"):
        self.c.setFont(font, size)
        self.c.setFillColor(color)
        if align == "right":
            tw = self.c.stringWidth(text, font, size)
            self.c.drawString(x - tw, y, text)
        elif align == "center":
            tw = self.c.stringWidth(text, font, size)
            self.c.drawString(x - tw / 2, y, text)
        else:
            self.c.drawString(x, y, text)

    def _rule(self, x1, x2, y, color=RULE, width=0.6):
        self.c.setStrokeColor(color)
        self.c.setLineWidth(width)
        self.c.line(x1, y, x2, y)

    def _section(self, label):
        self.y -= 8 * mm
        self.c.setFillColor(BAND)
        self.c.rect(self.margin, self.y - 1.5 * mm, self._usable_width(), 6 * mm, fill=1, stroke=0)
        self._text(self.margin + 2 * mm, self.y, label.upper(), size=9, font="Helvetica-Bold")
        self.y -= 4 * mm

    def _field_row(self, fields):
        """fields: [(label, value, fit_field)]; drawn as equal-width boxes on one line."""
        self.y -= 8 * mm
        col_w = self._usable_width() / len(fields)
        for i, (label, value, fit_field) in enumerate(fields):
            x = self.margin + i * col_w
            size = fit_font_size(fit_field, value) - 1 if fit_field else 11
            self._text(x + 1 * mm, self.y, value, size=size, font="Helvetica-Bold")
            self._rule(x, x + col_w - 3 * mm, self.y - 1.5 * mm, color=INK)
            self._text(x + 1 * mm, self.y - 5 * mm, label, size=7, color=MUTED)
        self.y -= 3 * mm

    def _render_header(self):
        house = self.view.house
        top = self.y
        self._text(self.margin, top - 4 * mm, house.name, size=16, font="Helvetica-Bold")
        self._text(self.margin, top - 9 * mm, f"Dealer License #: {house.license_number}", size=8, color=MUTED)
        right = self.width - self.margin
        self._text(right, top - 3 * mm, house.street, size=8, align="right")
        self._text(right, top - 7 * mm, f"{house.city}, {house.state} {house.zip_code}", size=8, align="right")
        self._text(right, top - 11 * mm, f"PH: {house.phone}", size=8, align="right")
        self._text(right, top - 15 * mm, house.email, size=8, align="right")
        self.y = top - 18 * mm
        self._rule(self.margin, right, self.y, color=INK, width=1.2)

        self.y -= 9 * mm
        self._text(self.width / 2, self.y, self.title.upper(), size=15, font="Helvetica-Bold", align="center")
        self.y -= 7 * mm
        self._text(self.margin, self.y, f"Date: {self.view.document_date}", size=9)
        self._text(self.width / 2, self.y, f"Stock #: {self.view.stock_number_or_vin}", size=9, align="center")
        self._text(right, self.y, f"Document #: {self.view.document_number}", size=9, align="right")

    def _render_parties(self):
        for heading, party in (("Seller", self.view.seller), ("Buyer", self.view.buyer)):
            self._section(heading)
            self._field_row([
                ("Name", party.name, None),
                ("Dealer License #", party.license_number, None),
            ])
            self._field_row([
                ("Address", party.address or "N/A", "address"),
                ("Phone", party.phone or "N/A", None),
            ])

    def _render_vehicle(self):
        v = self.view.vehicle
        self._section("Vehicle")
        self._field_row([("Year", v.year, None), ("Make", v.make, "make"), ("Model", v.model, None)])
        self._field_row([("VIN", v.vin, "vin"), ("Mileage", v.mileage, None), ("Color", v.exterior_color, None)])

    def _render_price(self):
        self._section("Consideration")
        self._field_row([
            (self.view.price_label, self.view.price_display, None),
            ("Payment Terms", self.view.payment_terms, None),
        ])
        self.y -= 6 * mm
        self._text(
            self.margin, self.y,
            "The seller transfers the vehicle described above to the buyer AS-IS, WHERE-IS, with no warranties",
            size=8, color=MUTED,
        )
        self.y -= 4 * mm
        self._text(
            self.margin, self.y,
            "expressed or implied, and warrants that title is clear and any liens have been disclosed.",
            size=8, color=MUTED,
        )

    def _render_signatures(self):
        self.y -= 22 * mm
        col_w = self._usable_width() / 2
        for i, label in enumerate(("Seller Signature / Date", "Buyer Signature / Date")):
            x = self.margin + i * col_w
            self._rule(x, x + col_w - 8 * mm, self.y, color=INK)
            self._text(x, self.y - 4 * mm, label, size=8, color=MUTED)

    def _render_footer(self):
        footer = self.view.house.footer_text or self.view.house.legal_name
        self._text(self.width / 2, self.margin / 2, footer, size=7, color=MUTED, align="center")

    def render(self) -> bytes:
        self._render_header()
        self._render_parties()
        self._render_vehicle()
        self._render_price()
        self._render_signatures()
        self._render_footer()
        self.c.showPage()
        self.c.save()
        return self.buffer.getvalue()


_DRAWERS = {
    TemplateVariant.WHOLESALE_BILL_OF_SALE_COMPACT: CompactBillOfSalePDF,
}


class VectorBackend:
    kind = BackendKind.VECTOR

    def __init__(self, page_format: str = "Letter"):
        self.pagesize = _PAGE_SIZES.get(page_format.lower(), LETTER)

    def supports(self, variant: TemplateVariant) -> bool:
        return variant in _DRAWERS

    async def render(self, variant: TemplateVariant, view: DocumentViewModel) -> bytes:
        drawer = _DRAWERS.get(variant)
        if drawer is None:
            raise RenderFailure(self.kind.value, variant, "variant has no vector layout")
        try:
            pdf = drawer(view, get_variant_spec(variant).title, pagesize=self.pagesize).render()
        except Exception as exc:
            raise RenderFailure(self.kind.value, variant, exc) from exc
        _LOG.debug("Vector render %s: %d bytes", variant.value, len(pdf))
        return pdf
