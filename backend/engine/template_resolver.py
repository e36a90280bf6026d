"""
Template resolution: deal taxonomy -> TemplateVariant.

Pure and deterministic. The policy is an ordered decision table over
(dealType, subType, sellerType, buyerType, role); rows are listed most
specific first and the first matching row wins. A row either names a
variant or a resolution error. Taxonomy that matches no row is an
unsupported deal type, never a silent default.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from errors import MissingSubType, UnsupportedDealType
from models import DealSnapshot, PartyType, TemplateVariant


class DocumentRole(str, Enum):
    SELLER = "seller"
    BUYER = "buyer"


class RuleError(str, Enum):
    MISSING_SUB_TYPE = "missing_sub_type"


def _clean(value: Optional[str]) -> Optional[str]:
    text = (value or "").strip().lower().replace("_", "-")
    return text or None


def _party_type(explicit: Optional[str], party_type: Optional[str]) -> str:
    """Only 'dealer' is a dealer; anything else (including absent) is a private party."""
    value = _clean(explicit) or _clean(party_type) or PartyType.PRIVATE.value
    return PartyType.DEALER.value if value == PartyType.DEALER.value else PartyType.PRIVATE.value


@dataclass(frozen=True)
class DealTaxonomy:
    deal_type: Optional[str]
    sub_type: Optional[str]
    seller_type: str
    buyer_type: str
    role: DocumentRole

    @classmethod
    def build(
        cls,
        deal_type: Optional[str],
        sub_type: Optional[str] = None,
        seller_type: Optional[str] = None,
        buyer_type: Optional[str] = None,
        is_seller_document: Optional[bool] = None,
        is_buyer_document: Optional[bool] = None,
    ) -> "DealTaxonomy":
        if is_seller_document is True:
            role = DocumentRole.SELLER
        elif is_buyer_document is True or is_seller_document is False:
            role = DocumentRole.BUYER
        else:
            role = DocumentRole.SELLER
        return cls(
            deal_type=_clean(deal_type),
            sub_type=_clean(sub_type),
            seller_type=_party_type(seller_type, None),
            buyer_type=_party_type(buyer_type, None),
            role=role,
        )

    @classmethod
    def from_deal(cls, deal: DealSnapshot) -> "DealTaxonomy":
        seller = deal.seller_party()
        buyer = deal.buyer_party()
        return cls.build(
            deal.deal_type,
            deal.deal_type2_sub_type,
            seller_type=deal.seller_type or (seller.type if seller else None),
            buyer_type=deal.buyer_type or (buyer.type if buyer else None),
            is_seller_document=deal.is_seller_document,
            is_buyer_document=deal.is_buyer_document,
        )

    def for_role(self, role: DocumentRole) -> "DealTaxonomy":
        return DealTaxonomy(self.deal_type, self.sub_type, self.seller_type, self.buyer_type, role)


@dataclass(frozen=True)
class DecisionRule:
    """One row of the decision table. None in a match column means 'any'."""

    deal_types: frozenset[str]
    outcome: Union[TemplateVariant, RuleError]
    sub_types: Optional[frozenset[str]] = None
    seller_type: Optional[str] = None
    buyer_type: Optional[str] = None
    role: Optional[DocumentRole] = None

    def matches(self, taxonomy: DealTaxonomy) -> bool:
        if taxonomy.deal_type not in self.deal_types:
            return False
        if self.sub_types is not None and taxonomy.sub_type not in self.sub_types:
            return False
        if self.seller_type is not None and taxonomy.seller_type != self.seller_type:
            return False
        if self.buyer_type is not None and taxonomy.buyer_type != self.buyer_type:
            return False
        if self.role is not None and taxonomy.role != self.role:
            return False
        return True


_DEALER = PartyType.DEALER.value
_PRIVATE = PartyType.PRIVATE.value
_SELLER = DocumentRole.SELLER
_BUYER = DocumentRole.BUYER
_V = TemplateVariant

_FLIP = frozenset({"wholesale-flip"})
_BUY_SELL = frozenset({"buy-sell"})

DECISION_TABLE: tuple[DecisionRule, ...] = (
    # Wholesale flip, buy-sell: one document per side.
    DecisionRule(_FLIP, _V.RETAIL_PRIVATE_PARTY_BUY, _BUY_SELL, seller_type=_PRIVATE, role=_SELLER),
    DecisionRule(_FLIP, _V.WHOLESALE_PURCHASE_AGREEMENT, _BUY_SELL, seller_type=_DEALER, role=_SELLER),
    DecisionRule(_FLIP, _V.WHOLESALE_BILL_OF_SALE, _BUY_SELL, role=_BUYER),
    # Dealer to dealer: sub-type is mandatory.
    DecisionRule(frozenset({"wholesale-d2d"}), _V.WHOLESALE_PURCHASE_AGREEMENT, frozenset({"buy"})),
    DecisionRule(frozenset({"wholesale-d2d"}), _V.WHOLESALE_BILL_OF_SALE, frozenset({"sale"})),
    DecisionRule(frozenset({"wholesale-d2d"}), RuleError.MISSING_SUB_TYPE),
    # Wholesale flip, any other sub-type: seller/buyer cross product.
    DecisionRule(_FLIP, _V.WHOLESALE_PURCHASE_ORDER, seller_type=_DEALER, buyer_type=_PRIVATE),
    DecisionRule(_FLIP, _V.RETAIL_PRIVATE_PARTY_BUY, seller_type=_PRIVATE, buyer_type=_DEALER, role=_SELLER),
    DecisionRule(_FLIP, _V.WHOLESALE_BILL_OF_SALE, seller_type=_PRIVATE, buyer_type=_DEALER, role=_BUYER),
    DecisionRule(_FLIP, _V.WHOLESALE_PURCHASE_AGREEMENT, seller_type=_DEALER, buyer_type=_DEALER, role=_SELLER),
    DecisionRule(_FLIP, _V.WHOLESALE_BILL_OF_SALE, seller_type=_DEALER, buyer_type=_DEALER, role=_BUYER),
    DecisionRule(_FLIP, _V.RETAIL_PRIVATE_PARTY_BUY, seller_type=_PRIVATE, buyer_type=_PRIVATE),
    # Single-document deal types.
    DecisionRule(frozenset({"retail", "retail-pp", "retail-d2d"}), _V.RETAIL_PRIVATE_PARTY_BUY),
    DecisionRule(frozenset({"wholesale"}), _V.WHOLESALE_BILL_OF_SALE_COMPACT),
    DecisionRule(frozenset({"wholesale-pp"}), _V.WHOLESALE_BILL_OF_SALE, frozenset({"sale"})),
    DecisionRule(frozenset({"wholesale-pp"}), _V.WHOLESALE_PURCHASE_AGREEMENT),
    DecisionRule(frozenset({"consignment"}), _V.RETAIL_PRIVATE_PARTY_BUY),
    DecisionRule(frozenset({"auction"}), _V.VEHICLE_RECORD_STANDARD),
)

SUPPORTED_DEAL_TYPES: frozenset[str] = frozenset().union(*(rule.deal_types for rule in DECISION_TABLE))


def decision_table() -> tuple[DecisionRule, ...]:
    return DECISION_TABLE


def resolve_taxonomy(taxonomy: DealTaxonomy) -> TemplateVariant:
    """Return the variant for the taxonomy or raise UnsupportedDealType / MissingSubType."""
    for rule in DECISION_TABLE:
        if not rule.matches(taxonomy):
            continue
        if rule.outcome is RuleError.MISSING_SUB_TYPE:
            raise MissingSubType(taxonomy.deal_type or "", taxonomy.sub_type)
        return rule.outcome
    raise UnsupportedDealType(taxonomy.deal_type)


def resolve_template(deal: DealSnapshot) -> TemplateVariant:
    return resolve_taxonomy(DealTaxonomy.from_deal(deal))


def resolve_vehicle_record_variant(taxonomy: DealTaxonomy) -> TemplateVariant:
    """Vehicle record layout: private-party buy, dealer-to-dealer flip, or the standard record."""
    if taxonomy.deal_type == "retail-pp" and taxonomy.sub_type == "buy":
        return TemplateVariant.VEHICLE_RECORD_RETAIL_PP
    if (
        taxonomy.deal_type == "wholesale-flip"
        and taxonomy.seller_type == _DEALER
        and taxonomy.buyer_type == _DEALER
    ):
        return TemplateVariant.VEHICLE_RECORD_DEALER_FLIP
    return TemplateVariant.VEHICLE_RECORD_STANDARD


class TemplateResolver:
    """Injectable wrapper around the decision table."""

    def resolve(self, deal: DealSnapshot) -> TemplateVariant:
        return resolve_template(deal)

    def resolve_taxonomy(self, taxonomy: DealTaxonomy) -> TemplateVariant:
        return resolve_taxonomy(taxonomy)

    def resolve_vehicle_record(self, deal: DealSnapshot) -> TemplateVariant:
        return resolve_vehicle_record_variant(DealTaxonomy.from_deal(deal))
