"""
Build document HTML from a variant template + normalized view model.

Templates live in reporting/templates and use __PLACEHOLDER__ tokens. Static
house-account content (stylesheet, letterhead, footer, page size) is
substituted once per compile and cached by the TemplateCache; deal fields are
escaped and filled per render. All numbers arrive pre-formatted in the view
model.
"""
from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Callable, Mapping

from cache.template_cache import TemplateCache
from engine.variants import VariantSpec, get_variant_spec
from models import DocumentViewModel, FinancialView, HouseAccount, TemplateVariant

from .format_utils import NOT_AVAILABLE, fit_font_size

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_PLACEHOLDER = re.compile(r"__([A-Z][A-Z0-9]*(?:_[A-Z0-9]+)*)__")


class TemplateFillError(ValueError):
    """A template still has unfilled placeholders after substitution."""

    def __init__(self, template: str, names: list[str]):
        self.template = template
        self.names = names
        super().__init__(f"Template {template} has unfilled placeholders: {', '.join(names)}")


def _escape(s: str) -> str:
    return html.escape(str(s), quote=True)


def read_template(name: str) -> str:
    return (_TEMPLATE_DIR / name).read_text(encoding="utf-8")


def _substitute(text: str, values: Mapping[str, str]) -> str:
    """Single pass, so substituted values are never re-scanned for placeholders."""
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), m.group(0)), text)


def compile_template(
    spec: VariantSpec,
    house: HouseAccount,
    page_format: str = "Letter",
    reader: Callable[[str], str] = read_template,
) -> str:
    """Template with the static house letterhead, stylesheet and title filled in."""
    if not spec.template_file:
        raise ValueError(f"{spec.variant.value} has no HTML template")
    fragments = {
        "BASE_CSS": reader("_base.css"),
        "HOUSE_HEADER": reader("_house_header.html"),
    }
    text = _substitute(reader(spec.template_file), fragments)
    static = {
        "PAGE_FORMAT": page_format,
        "DOCUMENT_TITLE": _escape(spec.title),
        "HOUSE_NAME": _escape(house.name),
        "HOUSE_LICENSE": _escape(house.license_number),
        "HOUSE_STREET": _escape(house.street),
        "HOUSE_CITY_LINE": _escape(f"{house.city}, {house.state} {house.zip_code}"),
        "HOUSE_PHONE": _escape(house.phone),
        "HOUSE_EMAIL": _escape(house.email),
        "HOUSE_FOOTER": _escape(house.footer_text or house.legal_name),
    }
    return _substitute(text, static)


def _row(label: str, value: str) -> str:
    return f'<tr><td>{_escape(label)}</td><td class="num">{_escape(value)}</td></tr>'


def _build_financial_rows(variant: TemplateVariant, view: DocumentViewModel) -> str:
    f: FinancialView = view.financial
    house_due = f"Amount Due to {view.house.name}"
    if variant in (TemplateVariant.RETAIL_PRIVATE_PARTY_BUY, TemplateVariant.VEHICLE_RECORD_RETAIL_PP):
        rows = [
            (view.price_label, view.price_display),
            ("Payoff Amount", f.payoff_balance_display),
            ("Amount Due to Customer", f.amount_due_to_customer_display),
            (house_due, f.amount_due_to_house_display),
        ]
    elif variant == TemplateVariant.VEHICLE_RECORD_DEALER_FLIP:
        rows = [
            ("Purchase Price", f.purchase_price_display),
            ("Sale Price", f.sale_price_display),
            ("Broker Fee", f.broker_fee_display),
            ("Broker Fee Paid To", f.broker_fee_paid_to),
            ("Commission Rate", f.commission_rate_display),
            ("Payment Terms", view.payment_terms),
        ]
    else:
        rows = [
            (view.price_label, view.price_display),
            ("List Price", f.list_price_display),
            ("Payoff Amount", f.payoff_balance_display),
            ("Amount Due to Customer", f.amount_due_to_customer_display),
            (house_due, f.amount_due_to_house_display),
            ("Commission Rate", f.commission_rate_display),
            ("Broker Fee", f.broker_fee_display),
            ("Broker Fee Paid To", f.broker_fee_paid_to),
        ]
    return "".join(_row(label, value) for label, value in rows)


def _label(value: str) -> str:
    return value.replace("-", " ").title() if value else NOT_AVAILABLE


def build_field_values(variant: TemplateVariant, view: DocumentViewModel) -> dict[str, str]:
    """Escaped per-deal values for every dynamic placeholder."""
    v = view.vehicle
    values = {
        "DOCUMENT_NUMBER": view.document_number or NOT_AVAILABLE,
        "DOCUMENT_DATE": view.document_date,
        "DOCUMENT_DATE_LONG": view.document_date_long,
        "STOCK_NUMBER": view.stock_number_or_vin,
        "DEAL_TYPE": _label(view.deal_type),
        "SUB_TYPE": _label(view.sub_type),
        "VIN": v.vin,
        "YEAR": v.year,
        "MAKE": v.make,
        "MODEL": v.model,
        "MILEAGE": v.mileage,
        "EXTERIOR_COLOR": v.exterior_color,
        "INTERIOR_COLOR": v.interior_color,
        "BODY_TYPE": v.body_type or NOT_AVAILABLE,
        "PRICE_LABEL": view.price_label,
        "PRICE_LABEL_LOWER": view.price_label.lower(),
        "PRICE": view.price_display,
        "PAYMENT_TERMS": view.payment_terms,
        "NOTES": view.notes or "None.",
        "GENERATED_BY": view.generated_by,
    }
    for prefix, party in (("SELLER", view.seller), ("BUYER", view.buyer)):
        values.update({
            f"{prefix}_NAME": party.name,
            f"{prefix}_TYPE": _label(party.party_type),
            f"{prefix}_PHONE": party.phone or NOT_AVAILABLE,
            f"{prefix}_EMAIL": party.email or NOT_AVAILABLE,
            f"{prefix}_ADDRESS": party.address or NOT_AVAILABLE,
            f"{prefix}_LICENSE": party.license_number,
            f"{prefix}_TIER": party.tier,
        })
    escaped = {k: _escape(val) for k, val in values.items()}
    # Markup and numeric values: not escaped.
    escaped["FINANCIAL_ROWS"] = _build_financial_rows(variant, view)
    escaped["VIN_FONT_SIZE"] = str(fit_font_size("vin", v.vin))
    escaped["MAKE_FONT_SIZE"] = str(fit_font_size("make", v.make))
    escaped["SELLER_ADDRESS_FONT_SIZE"] = str(fit_font_size("address", view.seller.address))
    escaped["BUYER_ADDRESS_FONT_SIZE"] = str(fit_font_size("address", view.buyer.address))
    return escaped


class DocumentHtmlBuilder:
    """Compiles templates through the cache and fills them for one view model at a time."""

    def __init__(
        self,
        cache: TemplateCache | None = None,
        page_format: str = "Letter",
        reader: Callable[[str], str] = read_template,
    ):
        self.cache = cache if cache is not None else TemplateCache()
        self.page_format = page_format
        self._reader = reader

    def compiled(self, variant: TemplateVariant, house: HouseAccount) -> str:
        spec = get_variant_spec(variant)
        key = (variant.value, house.account_id, self.page_format)
        return self.cache.get_or_compile(
            key, lambda: compile_template(spec, house, self.page_format, self._reader)
        )

    def build(self, variant: TemplateVariant, view: DocumentViewModel) -> str:
        compiled = self.compiled(variant, view.house)
        values = build_field_values(variant, view)
        leftover = sorted(set(_PLACEHOLDER.findall(compiled)) - values.keys())
        if leftover:
            raise TemplateFillError(get_variant_spec(variant).template_file or variant.value, leftover)
        return _substitute(compiled, values)


def build_document_html(
    variant: TemplateVariant,
    view: DocumentViewModel,
    cache: TemplateCache | None = None,
) -> str:
    return DocumentHtmlBuilder(cache).build(variant, view)
