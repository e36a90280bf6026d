"""
Field normalizer: every DealSnapshot shape normalizes to one DocumentViewModel.

Accepts: vehicle fields at root or under `vehicle`, money at root or under
`financial`, addresses as strings or structured objects, party contact data
at root or under `contact`. Returns a new, render-ready view model; the
incoming snapshot is never modified.

Required vehicle fields (VIN, year, make, model) are checked before anything
else so that no rendering work starts for an incomplete deal.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, List, Optional, Union

from engine.template_resolver import DocumentRole
from errors import InconsistentDealData, MissingVehicleFields
from house_accounts import is_house_party
from models import (
    Address,
    DealSnapshot,
    DealerTier,
    DocumentViewModel,
    FinancialView,
    HouseAccount,
    Party,
    PartyType,
    PartyView,
    VehicleView,
)
from reporting.format_utils import (
    NOT_AVAILABLE,
    coerce_amount,
    display_money,
    format_date_long,
    format_date_short,
    format_mileage,
    format_percent,
    is_present_amount,
)

_LOG = logging.getLogger(__name__)

REQUIRED_VEHICLE_FIELDS = ("vin", "year", "make", "model")

PAY_UPON_RELEASE = "Pay upon release."
PAY_UPON_TITLE = "Pay upon title."

_MONEY_FIELDS = (
    "purchase_price",
    "list_price",
    "payoff_balance",
    "amount_due_to_customer",
    "amount_due_to_house",
    "broker_fee",
)


def _text(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    return "" if text.upper() == NOT_AVAILABLE else text


def format_address(addr: Union[Address, str, None]) -> str:
    """Structured address -> 'street, city, state zip' with empty parts dropped; strings pass through."""
    if addr is None:
        return ""
    if isinstance(addr, str):
        return addr.strip()
    state_zip = " ".join(p for p in (_text(addr.state), _text(addr.zip_code)) if p)
    return ", ".join(p for p in (_text(addr.street), _text(addr.city), state_zip) if p)


def extract_license_number(party: Optional[Party], dealer_record: Optional[Party] = None) -> str:
    """party.licenseNumber -> party.contact.licenseNumber -> dealer record -> 'N/A'."""
    candidates = []
    if party is not None:
        candidates.append(party.license_number)
        if party.contact is not None:
            candidates.append(party.contact.license_number)
    if dealer_record is not None:
        candidates.append(dealer_record.license_number)
    for candidate in candidates:
        if _text(candidate):
            return _text(candidate)
    return NOT_AVAILABLE


def normalize_tier(value: Optional[str]) -> str:
    compact = (value or "").replace(" ", "").lower()
    if compact in {"tier2", "2"}:
        return DealerTier.TIER_2.value
    return DealerTier.TIER_1.value


def payment_terms_for_tier(tier: str) -> str:
    return PAY_UPON_TITLE if normalize_tier(tier) == DealerTier.TIER_2.value else PAY_UPON_RELEASE


def _vehicle_value(deal: DealSnapshot, name: str) -> str:
    root = _text(getattr(deal, name, None))
    if root:
        return root
    if deal.vehicle is not None:
        return _text(getattr(deal.vehicle, name, None))
    return ""


def _money_value(deal: DealSnapshot, name: str) -> Any:
    root = getattr(deal, name, None)
    if is_present_amount(root):
        return root
    if deal.financial is not None:
        return getattr(deal.financial, name, None)
    return root


def missing_vehicle_fields(deal: DealSnapshot) -> List[str]:
    return [name for name in REQUIRED_VEHICLE_FIELDS if not _vehicle_value(deal, name)]


def require_vehicle_fields(deal: DealSnapshot) -> None:
    missing = missing_vehicle_fields(deal)
    if missing:
        raise MissingVehicleFields(missing)


def _party_view(party: Optional[Party], dealer_record: Optional[Party], house: HouseAccount) -> PartyView:
    if party is None:
        return PartyView()
    contact = party.contact
    phone = _text(party.phone) or (_text(contact.phone) if contact else "")
    email = _text(party.email) or (_text(contact.email) if contact else "")
    address = format_address(party.address) or (format_address(contact.address) if contact else "")
    party_type = PartyType.DEALER.value if _text(party.type).lower() == PartyType.DEALER.value else PartyType.PRIVATE.value
    return PartyView(
        name=_text(party.name) or NOT_AVAILABLE,
        party_type=party_type,
        phone=phone,
        email=email,
        address=address,
        license_number=extract_license_number(party, dealer_record),
        tier=normalize_tier(party.tier or (dealer_record.tier if dealer_record else None)),
        is_house=is_house_party(party, house),
    )


def _stock_number_or_vin(deal: DealSnapshot, vin: str) -> str:
    for candidate in (
        deal.stock_number,
        deal.rp_stock_number,
        deal.vehicle.stock_number if deal.vehicle else None,
    ):
        if _text(candidate):
            return _text(candidate)
    return vin


class FieldNormalizer:
    """Builds the render-ready view model for one deal against one house account."""

    def __init__(self, house: HouseAccount, today: Callable[[], date] | None = None):
        self.house = house
        self._today = today or date.today

    def map_parties(self, deal: DealSnapshot) -> tuple[Optional[Party], Optional[Party], List[str]]:
        """Seller/buyer as they should appear on the document, plus any data warnings."""
        deal_type = _text(deal.deal_type).lower()
        sub_type = _text(deal.deal_type2_sub_type).lower()
        seller = deal.seller_party()
        buyer = deal.buyer_party()
        house_party = self.house.to_party()
        warnings: List[str] = []

        if sub_type == "buy" and buyer is not None and buyer.is_populated() \
                and not is_house_party(buyer, self.house) and is_house_party(seller, self.house):
            reason = (
                f"dealType2SubType is 'buy' but the seller is the house account "
                f"and buyer {buyer.name!r} is populated"
            )
            if deal_type != "wholesale-d2d":
                raise InconsistentDealData(reason, fields=["dealType2SubType", "seller", "buyer"])
            # wholesale-d2d is left unmodified: sub-type stays authoritative.
            warnings.append(reason)
            _LOG.warning("Deal %s: %s", deal.deal_id or "?", reason)

        if deal_type == "wholesale-d2d" and sub_type == "sale":
            return house_party, buyer, warnings
        if deal_type == "wholesale-d2d" and sub_type == "buy":
            return seller, house_party, warnings
        if buyer is None or not buyer.is_populated():
            buyer = house_party if sub_type != "sale" else buyer
        if (seller is None or not seller.is_populated()) and sub_type == "sale":
            seller = house_party
        return seller, buyer, warnings

    def normalize(self, deal: DealSnapshot, role: Optional[DocumentRole] = None) -> DocumentViewModel:
        """`role` picks the side of a buy-sell deal; the buyer side is priced as a sale."""
        require_vehicle_fields(deal)

        vin = _vehicle_value(deal, "vin")
        vehicle = VehicleView(
            vin=vin,
            year=_vehicle_value(deal, "year"),
            make=_vehicle_value(deal, "make"),
            model=_vehicle_value(deal, "model"),
            mileage=format_mileage(deal.mileage if is_present_amount(deal.mileage)
                                   else (deal.vehicle.mileage if deal.vehicle else None)),
            exterior_color=(_vehicle_value(deal, "exterior_color") or _vehicle_value(deal, "color") or NOT_AVAILABLE),
            interior_color=_vehicle_value(deal, "interior_color") or NOT_AVAILABLE,
            body_type=_vehicle_value(deal, "body_type"),
            stock_number=_stock_number_or_vin(deal, NOT_AVAILABLE),
        )

        seller, buyer, warnings = self.map_parties(deal)
        seller_view = _party_view(seller, deal.seller_dealer_record, self.house)
        buyer_view = _party_view(buyer, deal.buyer_dealer_record, self.house)

        money = {name: _money_value(deal, name) for name in _MONEY_FIELDS}
        sale_raw = next(
            (v for v in (_money_value(deal, "wholesale_price"), _money_value(deal, "sale_price"), money["purchase_price"])
             if is_present_amount(v)),
            None,
        )
        commission = _money_value(deal, "commission_rate")
        paid_to = _text(deal.broker_fee_paid_to) or (
            _text(deal.financial.broker_fee_paid_to) if deal.financial else ""
        )
        financial = FinancialView(
            sale_price=coerce_amount(sale_raw),
            sale_price_display=display_money(sale_raw),
            commission_rate=coerce_amount(commission),
            commission_rate_display=format_percent(commission),
            broker_fee_paid_to=paid_to or NOT_AVAILABLE,
            **{name: coerce_amount(value) for name, value in money.items()},
            **{f"{name}_display": display_money(value) for name, value in money.items()},
        )

        sub_type = _text(deal.deal_type2_sub_type).lower()
        if sub_type == "sale" or (sub_type == "buy-sell" and role == DocumentRole.BUYER):
            price_label, price_display = "Sale Price", financial.sale_price_display
        else:
            price_label, price_display = "Purchase Price", financial.purchase_price_display

        counterparty = buyer_view if seller_view.is_house else seller_view
        payment_terms = _text(deal.payment_terms) or payment_terms_for_tier(counterparty.tier)

        today = self._today()
        return DocumentViewModel(
            deal_type=_text(deal.deal_type).lower(),
            sub_type=sub_type,
            seller_type=_text(deal.seller_type).lower() or seller_view.party_type,
            buyer_type=_text(deal.buyer_type).lower() or buyer_view.party_type,
            vehicle=vehicle,
            seller=seller_view,
            buyer=buyer_view,
            financial=financial,
            house=self.house,
            stock_number_or_vin=_stock_number_or_vin(deal, vin),
            payment_terms=payment_terms,
            price_label=price_label,
            price_display=price_display,
            document_date=format_date_short(today),
            document_date_long=format_date_long(today),
            generated_by=_text(deal.generated_by) or "system",
            notes=_text(deal.notes),
            warnings=tuple(warnings),
        )
