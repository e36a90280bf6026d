"""In-repo house account registry: the dealership identity printed on its side of each document."""
from __future__ import annotations

from models import HouseAccount, Party

HOUSE_ACCOUNTS: dict[str, HouseAccount] = {
    "default": HouseAccount(
        account_id="default",
        name="RP Exotics",
        legal_name="RP Exotics, LLC",
        license_number="D4865",
        tier="Tier 1",
        street="1155 N Warson Rd",
        city="Saint Louis",
        state="MO",
        zip_code="63132",
        phone="(314) 970-2427",
        email="titling@rpexotics.com",
        footer_text="A Cseris Holdings LLC Company",
    ),
    "sample": HouseAccount(
        account_id="sample",
        name="Sample Motors",
        legal_name="Sample Motors, Inc.",
        license_number="D0001",
        tier="Tier 1",
        street="123 Market Street",
        city="Springfield",
        state="IL",
        zip_code="62701",
        phone="(555) 123-4567",
        email="office@samplemotors.example",
        footer_text="",
    ),
}


def get_house_account(account_id: str) -> HouseAccount | None:
    return HOUSE_ACCOUNTS.get(account_id)


def list_house_accounts() -> list[HouseAccount]:
    return list(HOUSE_ACCOUNTS.values())


def is_house_party(party: Party | None, house: HouseAccount) -> bool:
    """True when the party is the house account (name or dealer licence match, case-insensitive)."""
    if party is None:
        return False
    name = (party.name or "").strip().lower()
    if name and name in {house.name.lower(), house.legal_name.lower()}:
        return True
    licence = (party.license_number or (party.contact.license_number if party.contact else None) or "").strip()
    return bool(licence) and licence.upper() == house.license_number.upper()
