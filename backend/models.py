from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Amount = Union[int, float, str, None]


class _SnapshotModel(BaseModel):
    """Inbound deal data: camelCase or snake_case keys, unknown keys ignored, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class PartyType(str, Enum):
    PRIVATE = "private"
    DEALER = "dealer"


class DealerTier(str, Enum):
    TIER_1 = "Tier 1"
    TIER_2 = "Tier 2"


class Address(_SnapshotModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = Field(default=None, alias="zip")


class ContactInfo(_SnapshotModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Union[Address, str, None] = None
    license_number: Optional[str] = None


class Party(_SnapshotModel):
    """Seller or buyer as stored on the deal. Contact details may live at root or under `contact`."""

    name: Optional[str] = None
    type: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Union[Address, str, None] = None
    contact: Optional[ContactInfo] = None
    license_number: Optional[str] = None
    tier: Optional[str] = None
    company: Optional[str] = None

    def is_populated(self) -> bool:
        return bool((self.name or "").strip())


class VehicleInfo(_SnapshotModel):
    vin: Optional[str] = None
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Amount = None
    color: Optional[str] = None
    exterior_color: Optional[str] = None
    interior_color: Optional[str] = None
    body_type: Optional[str] = None
    stock_number: Optional[str] = None


class FinancialInfo(_SnapshotModel):
    purchase_price: Amount = None
    list_price: Amount = None
    wholesale_price: Amount = None
    sale_price: Amount = None
    payoff_balance: Amount = None
    amount_due_to_customer: Amount = None
    amount_due_to_house: Amount = Field(default=None, alias="amountDueToRP")
    broker_fee: Amount = None
    broker_fee_paid_to: Optional[str] = None
    commission_rate: Amount = None


class DealSnapshot(_SnapshotModel):
    """
    Immutable snapshot of a deal as handed over by the persistence layer.

    Vehicle fields may live at root or under `vehicle`; money fields at root or
    under `financial`. Party data may be under `seller`/`buyer` or the older
    `sellerInfo`/`buyerInfo` keys.
    """

    deal_id: Optional[str] = Field(default=None, alias="id")
    stock_number: Optional[str] = None
    rp_stock_number: Optional[str] = None

    vin: Optional[str] = None
    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Amount = None
    color: Optional[str] = None
    exterior_color: Optional[str] = None
    interior_color: Optional[str] = None
    body_type: Optional[str] = None
    vehicle: Optional[VehicleInfo] = None

    purchase_price: Amount = None
    list_price: Amount = None
    wholesale_price: Amount = None
    sale_price: Amount = None
    payoff_balance: Amount = None
    amount_due_to_customer: Amount = None
    amount_due_to_house: Amount = Field(default=None, alias="amountDueToRP")
    broker_fee: Amount = None
    broker_fee_paid_to: Optional[str] = None
    commission_rate: Amount = None
    financial: Optional[FinancialInfo] = None

    seller: Optional[Party] = None
    buyer: Optional[Party] = None
    seller_info: Optional[Party] = None
    buyer_info: Optional[Party] = None
    seller_dealer_record: Optional[Party] = Field(default=None, alias="sellerFromDB")
    buyer_dealer_record: Optional[Party] = Field(default=None, alias="buyerFromDB")

    deal_type: Optional[str] = None
    deal_type2_sub_type: Optional[str] = Field(default=None, alias="dealType2SubType")
    seller_type: Optional[str] = None
    buyer_type: Optional[str] = None
    is_seller_document: Optional[bool] = None
    is_buyer_document: Optional[bool] = None

    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    generated_by: Optional[str] = None

    @field_validator("generated_by", mode="before")
    @classmethod
    def flatten_generated_by(cls, v):
        """Accept a user object ({firstName, lastName} or {name}/{email}) as caller identity."""
        if isinstance(v, dict):
            full = " ".join(p for p in (v.get("firstName"), v.get("lastName")) if p)
            return full or v.get("name") or v.get("email") or v.get("id")
        return v

    def seller_party(self) -> Optional[Party]:
        return self.seller_info or self.seller

    def buyer_party(self) -> Optional[Party]:
        return self.buyer_info or self.buyer


class HouseAccount(BaseModel):
    """The dealership's own identity; stands in as seller or buyer on its side of a deal."""

    account_id: str
    name: str
    legal_name: str
    license_number: str
    tier: str = DealerTier.TIER_1.value
    street: str
    city: str
    state: str
    zip_code: str
    phone: str
    email: str
    footer_text: str = ""

    @property
    def address_line(self) -> str:
        return f"{self.street}, {self.city}, {self.state} {self.zip_code}"

    def to_party(self) -> Party:
        return Party(
            name=self.name,
            type=PartyType.DEALER.value,
            phone=self.phone,
            email=self.email,
            address=Address(street=self.street, city=self.city, state=self.state, zip=self.zip_code),
            license_number=self.license_number,
            tier=self.tier,
        )


class TemplateVariant(str, Enum):
    RETAIL_PRIVATE_PARTY_BUY = "RetailPrivatePartyBuy"
    WHOLESALE_BILL_OF_SALE = "WholesaleBillOfSale"
    WHOLESALE_BILL_OF_SALE_COMPACT = "WholesaleBillOfSaleCompact"
    WHOLESALE_PURCHASE_AGREEMENT = "WholesalePurchaseAgreement"
    WHOLESALE_PURCHASE_ORDER = "WholesalePurchaseOrder"
    VEHICLE_RECORD_STANDARD = "VehicleRecordStandard"
    VEHICLE_RECORD_DEALER_FLIP = "VehicleRecordDealerFlip"
    VEHICLE_RECORD_RETAIL_PP = "VehicleRecordRetailPP"
    POWER_OF_ATTORNEY = "PowerOfAttorney"


# ---------------------------------------------------------------------------
# Render-ready view model (output of the field normalizer)
# ---------------------------------------------------------------------------

class _ViewModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class PartyView(_ViewModel):
    name: str = "N/A"
    party_type: str = PartyType.PRIVATE.value
    phone: str = ""
    email: str = ""
    address: str = ""
    license_number: str = "N/A"
    tier: str = DealerTier.TIER_1.value
    is_house: bool = False


class VehicleView(_ViewModel):
    vin: str
    year: str
    make: str
    model: str
    mileage: str = "N/A"
    exterior_color: str = "N/A"
    interior_color: str = "N/A"
    body_type: str = ""
    stock_number: str = "N/A"


class FinancialView(_ViewModel):
    """Numeric values for arithmetic, display values for rendering (`N/A` when absent)."""

    purchase_price: float = 0.0
    list_price: float = 0.0
    sale_price: float = 0.0
    payoff_balance: float = 0.0
    amount_due_to_customer: float = 0.0
    amount_due_to_house: float = 0.0
    broker_fee: float = 0.0
    commission_rate: float = 0.0
    purchase_price_display: str = "N/A"
    list_price_display: str = "N/A"
    sale_price_display: str = "N/A"
    payoff_balance_display: str = "N/A"
    amount_due_to_customer_display: str = "N/A"
    amount_due_to_house_display: str = "N/A"
    broker_fee_display: str = "N/A"
    broker_fee_paid_to: str = "N/A"
    commission_rate_display: str = "N/A"


class DocumentViewModel(_ViewModel):
    deal_type: str
    sub_type: str
    seller_type: str
    buyer_type: str
    vehicle: VehicleView
    seller: PartyView
    buyer: PartyView
    financial: FinancialView
    house: HouseAccount
    stock_number_or_vin: str
    payment_terms: str
    price_label: str
    price_display: str
    document_date: str
    document_date_long: str
    generated_by: str = "system"
    notes: str = ""
    warnings: tuple[str, ...] = ()
    document_number: str = ""

    def with_document_number(self, document_number: str) -> "DocumentViewModel":
        return self.model_copy(update={"document_number": document_number})


# ---------------------------------------------------------------------------
# Output contract
# ---------------------------------------------------------------------------

class DocumentArtifact(BaseModel):
    """Descriptor of a generated, stored document. Created once per generation call."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    file_name: str
    storage_key: str
    retrieval_url: str
    byte_size: int = Field(ge=0)
    document_number: str
    document_type: str
    variant: TemplateVariant
    generated_at: datetime
    generated_by: str
    content_checksum: str
    content_type: str = "application/pdf"
    storage_type: Literal["s3", "local"] = "s3"
    local_path: Optional[str] = None
