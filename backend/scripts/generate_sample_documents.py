"""
Generate one sample document per decision-table scenario.

Usage:
  cd backend
  python3 scripts/generate_sample_documents.py              # PDFs (needs Playwright Chromium)
  python3 scripts/generate_sample_documents.py --html-only  # HTML previews, no browser

Without S3_BUCKET set (and APP_ENV != production) the PDFs stay in the output
directory (--out) and their file:// URLs are printed.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
import sys

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from config import GenerationSettings
from engine.variants import BackendKind, get_variant_spec
from events import InMemoryEventRecorder
from house_accounts import list_house_accounts
from services.generation import GenerationFacade


OUT_DIR = BACKEND_DIR / "reports" / "samples"

_VEHICLE = {
    "vin": "WP0AB2A93KS123456",
    "year": "2019",
    "make": "Porsche",
    "model": "911 Carrera S",
    "mileage": 18250,
    "exteriorColor": "GT Silver Metallic",
    "interiorColor": "Black",
}
_PRIVATE_SELLER = {
    "name": "John Doe",
    "type": "private",
    "phone": "(314) 555-0101",
    "email": "john.doe@example.com",
    "address": {"street": "42 Elm Street", "city": "Clayton", "state": "MO", "zip": "63105"},
}
_DEALER_SELLER = {
    "name": "ABC Motors",
    "type": "dealer",
    "licenseNumber": "D1234",
    "tier": "Tier 2",
    "contact": {"phone": "(636) 555-0199", "email": "sales@abcmotors.example", "address": "900 Dealer Row, Chesterfield, MO 63017"},
}
_DEALER_BUYER = {
    "name": "Gateway Auto Group",
    "type": "dealer",
    "licenseNumber": "D5678",
    "phone": "(618) 555-0142",
    "address": {"street": "17 Commerce Dr", "city": "O'Fallon", "state": "IL", "zip": "62269"},
}
_PRIVATE_BUYER = {"name": "Jane Roe", "type": "private", "phone": "(314) 555-0177"}


def _deal(stock: str, deal_type: str, sub_type: str = "", **extra) -> dict:
    deal = {
        "id": f"sample-{stock.lower()}",
        "stockNumber": stock,
        "dealType": deal_type,
        "dealType2SubType": sub_type,
        "purchasePrice": 84500,
        "wholesalePrice": 91000,
        "listPrice": 96900,
        "payoffBalance": 41250.5,
        "amountDueToCustomer": 43249.5,
        "amountDueToRP": 0,
        "brokerFee": 750,
        "commissionRate": 0.05,
        "generatedBy": {"firstName": "Sample", "lastName": "Operator"},
        **_VEHICLE,
    }
    deal.update(extra)
    return deal


def sample_deals() -> dict[str, dict]:
    return {
        "retail_pp": _deal("RP1001", "retail-pp", "buy", seller=_PRIVATE_SELLER),
        "d2d_buy": _deal("RP1002", "wholesale-d2d", "buy", seller=_DEALER_SELLER),
        "d2d_sale": _deal("RP1003", "wholesale-d2d", "sale", buyer=_DEALER_BUYER),
        "flip_dealer_private": _deal(
            "RP1004", "wholesale-flip", "sale", seller=_DEALER_SELLER, buyer=_PRIVATE_BUYER,
            sellerType="dealer", buyerType="private",
        ),
        "wholesale_compact": _deal("RP1005", "wholesale", "sale", buyer=_DEALER_BUYER),
        "wholesale_pp": _deal("RP1006", "wholesale-pp", "buy", seller=_PRIVATE_SELLER),
        "consignment": _deal("RP1007", "consignment", "buy", seller=_PRIVATE_SELLER),
        "auction": _deal("RP1008", "auction", "buy", seller=_DEALER_SELLER, notes="Purchased at Manheim St. Louis, lane 12."),
    }


def _write_html(facade: GenerationFacade, out_dir: Path) -> None:
    for name, deal in sample_deals().items():
        variant, _ = facade.prepare(deal)
        if get_variant_spec(variant).backend != BackendKind.BROWSER:
            print(f"{name}: {variant.value} is drawn directly; skipped in --html-only")
            continue
        _, html_doc = facade.render_html(deal, variant)
        path = out_dir / f"{name}_{get_variant_spec(variant).document_type}.html"
        path.write_text(html_doc, encoding="utf-8")
        print(f"{name}: {variant.value} -> {path}")


async def _write_pdfs(facade: GenerationFacade, recorder: InMemoryEventRecorder) -> None:
    deals = sample_deals()
    async with facade:
        results = await facade.generate_batch(list(deals.values()), return_exceptions=True)
        record = await facade.generate_vehicle_record(deals["retail_pp"])
        poa = await facade.generate_power_of_attorney(deals["retail_pp"])
    for name, result in zip(deals, results):
        if isinstance(result, BaseException):
            print(f"{name}: FAILED {result}")
        else:
            print(f"{name}: {result.document_number} [{result.storage_type}] {result.retrieval_url}")
    for artifact in (record, poa):
        print(f"{artifact.document_type}: {artifact.document_number} {artifact.retrieval_url}")
    summary = {k: v.model_dump() for k, v in recorder.summary().items()}
    print(json.dumps(summary, indent=2))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--html-only", action="store_true", help="write HTML previews without launching a browser")
    parser.add_argument("--out", type=Path, default=OUT_DIR, help="output directory for HTML previews and local PDFs")
    parser.add_argument(
        "--house",
        choices=[house.account_id for house in list_house_accounts()],
        help="house account printed on the documents (default: HOUSE_ACCOUNT_ID)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = GenerationSettings.from_env()
    if args.house:
        settings = settings.model_copy(update={"house_account_id": args.house})
    if not args.html_only:
        settings = settings.model_copy(update={"temp_dir": args.out})
    recorder = InMemoryEventRecorder()
    facade = GenerationFacade.from_settings(settings, events=recorder)

    if args.html_only:
        args.out.mkdir(parents=True, exist_ok=True)
        _write_html(facade, args.out)
    else:
        asyncio.run(_write_pdfs(facade, recorder))


if __name__ == "__main__":
    main()
