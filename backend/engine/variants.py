"""
Template variant registry.

Each entry binds a TemplateVariant to its public document type, the short
form code used in document numbers, the backend that renders it and the
HTML template (browser variants only).
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from models import TemplateVariant


class BackendKind(str, Enum):
    VECTOR = "vector"
    BROWSER = "browser"


class VariantSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    variant: TemplateVariant
    document_type: str
    form_code: str
    backend: BackendKind
    title: str
    template_file: str | None = None
    page_count: int = 1


VARIANT_REGISTRY: dict[TemplateVariant, VariantSpec] = {
    TemplateVariant.RETAIL_PRIVATE_PARTY_BUY: VariantSpec(
        variant=TemplateVariant.RETAIL_PRIVATE_PARTY_BUY,
        document_type="retail_pp_buy",
        form_code="PP",
        backend=BackendKind.BROWSER,
        title="Vehicle Purchase Agreement",
        template_file="retail_pp_buy.html",
        page_count=2,
    ),
    TemplateVariant.WHOLESALE_BILL_OF_SALE: VariantSpec(
        variant=TemplateVariant.WHOLESALE_BILL_OF_SALE,
        document_type="wholesale_bos",
        form_code="WS-BOS",
        backend=BackendKind.BROWSER,
        title="Wholesale Sales Order / Bill of Sale",
        template_file="wholesale_bos.html",
    ),
    TemplateVariant.WHOLESALE_BILL_OF_SALE_COMPACT: VariantSpec(
        variant=TemplateVariant.WHOLESALE_BILL_OF_SALE_COMPACT,
        document_type="bill_of_sale",
        form_code="BOS",
        backend=BackendKind.VECTOR,
        title="Bill of Sale",
    ),
    TemplateVariant.WHOLESALE_PURCHASE_AGREEMENT: VariantSpec(
        variant=TemplateVariant.WHOLESALE_PURCHASE_AGREEMENT,
        document_type="wholesale_purchase_agreement",
        form_code="WPP",
        backend=BackendKind.BROWSER,
        title="Wholesale Purchase Agreement",
        template_file="wholesale_purchase_agreement.html",
        page_count=2,
    ),
    TemplateVariant.WHOLESALE_PURCHASE_ORDER: VariantSpec(
        variant=TemplateVariant.WHOLESALE_PURCHASE_ORDER,
        document_type="wholesale_purchase_order",
        form_code="WPO",
        backend=BackendKind.BROWSER,
        title="Wholesale Purchase Order",
        template_file="wholesale_purchase_order.html",
    ),
    TemplateVariant.VEHICLE_RECORD_STANDARD: VariantSpec(
        variant=TemplateVariant.VEHICLE_RECORD_STANDARD,
        document_type="vehicle_record_pdf",
        form_code="VR",
        backend=BackendKind.BROWSER,
        title="Vehicle Record",
        template_file="vehicle_record.html",
    ),
    TemplateVariant.VEHICLE_RECORD_DEALER_FLIP: VariantSpec(
        variant=TemplateVariant.VEHICLE_RECORD_DEALER_FLIP,
        document_type="vehicle_record_pdf",
        form_code="VR",
        backend=BackendKind.BROWSER,
        title="Vehicle Record - Dealer to Dealer Flip",
        template_file="vehicle_record.html",
    ),
    TemplateVariant.VEHICLE_RECORD_RETAIL_PP: VariantSpec(
        variant=TemplateVariant.VEHICLE_RECORD_RETAIL_PP,
        document_type="vehicle_record_pdf",
        form_code="VR",
        backend=BackendKind.BROWSER,
        title="Vehicle Record - Private Party Purchase",
        template_file="vehicle_record.html",
    ),
    TemplateVariant.POWER_OF_ATTORNEY: VariantSpec(
        variant=TemplateVariant.POWER_OF_ATTORNEY,
        document_type="power_of_attorney",
        form_code="POA",
        backend=BackendKind.BROWSER,
        title="Limited Power of Attorney",
        template_file="power_of_attorney.html",
    ),
}


def get_variant_spec(variant: TemplateVariant) -> VariantSpec:
    return VARIANT_REGISTRY[variant]
