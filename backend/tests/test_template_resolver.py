from __future__ import annotations

import pytest

from engine.template_resolver import (
    DealTaxonomy,
    DocumentRole,
    SUPPORTED_DEAL_TYPES,
    TemplateResolver,
    decision_table,
    resolve_taxonomy,
    resolve_template,
    resolve_vehicle_record_variant,
)
from errors import MissingSubType, TemplateResolutionError, UnsupportedDealType
from models import DealSnapshot, TemplateVariant as V


def _tx(deal_type, sub_type=None, seller_type=None, buyer_type=None, is_seller_document=None, is_buyer_document=None):
    return DealTaxonomy.build(deal_type, sub_type, seller_type, buyer_type, is_seller_document, is_buyer_document)


@pytest.mark.parametrize(
    "taxonomy, expected",
    [
        (_tx("wholesale-flip", "buy-sell", "private", "dealer", True), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("wholesale-flip", "buy-sell", "dealer", "dealer", True), V.WHOLESALE_PURCHASE_AGREEMENT),
        (_tx("wholesale-flip", "buy-sell", "dealer", "dealer", False), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-flip", "buy-sell", "private", "private", False), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-d2d", "buy", "dealer", "dealer"), V.WHOLESALE_PURCHASE_AGREEMENT),
        (_tx("wholesale-d2d", "sale", "dealer", "dealer"), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-flip", "sale", "dealer", "private"), V.WHOLESALE_PURCHASE_ORDER),
        (_tx("wholesale-flip", "sale", "dealer", "private", False), V.WHOLESALE_PURCHASE_ORDER),
        (_tx("wholesale-flip", "buy", "private", "dealer", True), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("wholesale-flip", "buy", "private", "dealer", False), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-flip", "buy", "dealer", "dealer", True), V.WHOLESALE_PURCHASE_AGREEMENT),
        (_tx("wholesale-flip", "buy", "dealer", "dealer", None, True), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-flip", "buy", "private", "private"), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("retail"), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("retail-pp", "buy"), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("retail-d2d", "sale", "dealer", "dealer"), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("wholesale", "sale"), V.WHOLESALE_BILL_OF_SALE_COMPACT),
        (_tx("wholesale-pp", "sale"), V.WHOLESALE_BILL_OF_SALE),
        (_tx("wholesale-pp", "buy"), V.WHOLESALE_PURCHASE_AGREEMENT),
        (_tx("wholesale-pp"), V.WHOLESALE_PURCHASE_AGREEMENT),
        (_tx("consignment", "buy"), V.RETAIL_PRIVATE_PARTY_BUY),
        (_tx("auction", "buy", "dealer"), V.VEHICLE_RECORD_STANDARD),
    ],
)
def test_decision_table_rows(taxonomy, expected):
    assert resolve_taxonomy(taxonomy) == expected


def test_resolution_is_deterministic_for_every_row():
    tuples = [
        (deal_type, sub_type, seller, buyer, flag)
        for deal_type in sorted(SUPPORTED_DEAL_TYPES)
        for sub_type in ("buy", "sale", "buy-sell")
        for seller in ("private", "dealer")
        for buyer in ("private", "dealer")
        for flag in (True, False, None)
    ]

    def outcome(args):
        try:
            return resolve_taxonomy(_tx(*args))
        except TemplateResolutionError as exc:
            return type(exc)

    for args in tuples:
        first = outcome(args)
        for _ in range(3):
            assert outcome(args) == first


def test_taxonomy_values_are_cleaned():
    assert resolve_taxonomy(_tx("  Wholesale_D2D ", " SALE ")) == V.WHOLESALE_BILL_OF_SALE
    assert resolve_taxonomy(_tx("Wholesale-Flip", "Buy-Sell", "DEALER", "Dealer", True)) == V.WHOLESALE_PURCHASE_AGREEMENT


@pytest.mark.parametrize("sub_type", [None, "", "   ", "buy-sell", "trade"])
def test_d2d_without_buy_or_sale_is_missing_sub_type(sub_type):
    with pytest.raises(MissingSubType) as exc_info:
        resolve_taxonomy(_tx("wholesale-d2d", sub_type))
    assert exc_info.value.deal_type == "wholesale-d2d"
    assert "dealType2SubType" in str(exc_info.value)


@pytest.mark.parametrize("deal_type", ["lease", "", None, "wholesale-xyz"])
def test_unknown_deal_type_is_an_error(deal_type):
    with pytest.raises(UnsupportedDealType) as exc_info:
        resolve_taxonomy(_tx(deal_type, "buy"))
    assert isinstance(exc_info.value, TemplateResolutionError)
    assert repr(exc_info.value.deal_type) in str(exc_info.value)


def test_party_types_default_to_party_type_then_private():
    deal = DealSnapshot.model_validate({
        "dealType": "wholesale-flip",
        "dealType2SubType": "sale",
        "seller": {"name": "ABC Motors", "type": "dealer"},
        "buyer": {"name": "Jane Roe"},
    })
    taxonomy = DealTaxonomy.from_deal(deal)
    assert (taxonomy.seller_type, taxonomy.buyer_type) == ("dealer", "private")
    assert resolve_template(deal) == V.WHOLESALE_PURCHASE_ORDER


def test_explicit_party_types_win_over_party_records():
    deal = DealSnapshot.model_validate({
        "dealType": "wholesale-flip",
        "dealType2SubType": "sale",
        "sellerType": "private",
        "buyerType": "private",
        "seller": {"name": "ABC Motors", "type": "dealer"},
    })
    assert resolve_template(deal) == V.RETAIL_PRIVATE_PARTY_BUY


def test_role_defaults_to_seller_and_buyer_flags_switch_it():
    assert _tx("auction").role == DocumentRole.SELLER
    assert _tx("auction", is_seller_document=False).role == DocumentRole.BUYER
    assert _tx("auction", is_buyer_document=True).role == DocumentRole.BUYER
    assert _tx("auction", is_seller_document=True, is_buyer_document=True).role == DocumentRole.SELLER


def test_for_role_switches_only_the_role():
    seller_side = _tx("wholesale-flip", "buy-sell", "private", "dealer", True)
    buyer_side = seller_side.for_role(DocumentRole.BUYER)
    assert buyer_side.deal_type == seller_side.deal_type
    assert resolve_taxonomy(seller_side) == V.RETAIL_PRIVATE_PARTY_BUY
    assert resolve_taxonomy(buyer_side) == V.WHOLESALE_BILL_OF_SALE


def test_retail_pp_ignores_buyer_fields():
    base = {"dealType": "retail-pp", "seller": {"name": "John Doe", "type": "private"}}
    for buyer in (None, {"name": "Gateway Auto", "type": "dealer"}, {"name": "Jane", "type": "private"}):
        deal = DealSnapshot.model_validate({**base, "buyer": buyer, "buyerType": buyer and buyer["type"]})
        assert resolve_template(deal) == V.RETAIL_PRIVATE_PARTY_BUY


def test_decision_table_is_ordered_and_every_row_reachable():
    rows = decision_table()
    assert rows[0].deal_types == frozenset({"wholesale-flip"})
    assert rows[-1].outcome == V.VEHICLE_RECORD_STANDARD
    assert SUPPORTED_DEAL_TYPES == {
        "wholesale-flip", "wholesale-d2d", "retail", "retail-pp", "retail-d2d",
        "wholesale", "wholesale-pp", "consignment", "auction",
    }


@pytest.mark.parametrize(
    "taxonomy, expected",
    [
        (_tx("retail-pp", "buy"), V.VEHICLE_RECORD_RETAIL_PP),
        (_tx("wholesale-flip", "buy-sell", "dealer", "dealer"), V.VEHICLE_RECORD_DEALER_FLIP),
        (_tx("wholesale-flip", "buy-sell", "private", "dealer"), V.VEHICLE_RECORD_STANDARD),
        (_tx("retail-pp", "sale"), V.VEHICLE_RECORD_STANDARD),
        (_tx("auction"), V.VEHICLE_RECORD_STANDARD),
    ],
)
def test_vehicle_record_variant(taxonomy, expected):
    assert resolve_vehicle_record_variant(taxonomy) == expected


def test_resolver_object_wraps_functions():
    resolver = TemplateResolver()
    deal = DealSnapshot.model_validate({"dealType": "wholesale-d2d", "dealType2SubType": "buy"})
    assert resolver.resolve(deal) == V.WHOLESALE_PURCHASE_AGREEMENT
    assert resolver.resolve_vehicle_record(deal) == V.VEHICLE_RECORD_STANDARD
