"""
Manually claim resolved positions.
Usage: python3 claim.py          (redeem everything redeemable now)
       python3 claim.py --list   (only list redeemable condition ids)
"""

from dotenv import load_dotenv
load_dotenv(override=True)

import asyncio
import json
import logging
import sys

from core.config import settings
from core.positions import PositionFetchError
from core.reconciler import ClaimReconciler

logging.basicConfig(level=logging.INFO, format="%(levelname)-5s | %(message)s")

cfg = settings.claim
reconciler = ClaimReconciler(cfg)


def list_redeemable() -> None:
    ids = asyncio.run(reconciler.find_redeemable(cfg.wallet_address))
    if not ids:
        print("No redeemable positions")
        return
    print(f"Found {len(ids)} redeemable condition(s) (strategy: {reconciler.strategy.name})")
    for cid in ids:
        print(f"  {cid}")


def claim_all() -> None:
    print(f"Claiming for {cfg.wallet_address} via {reconciler.strategy.name} redeemer...")
    result = asyncio.run(reconciler.claim_winnings(cfg.private_key, cfg.wallet_address))
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    if not cfg.private_key or not cfg.wallet_address:
        print("Set PRIVATE_KEY and MY_ADDRESS in .env")
        sys.exit(1)

    try:
        if len(sys.argv) > 1 and sys.argv[1] == "--list":
            list_redeemable()
        elif len(sys.argv) > 1:
            print("Usage:")
            print("  python3 claim.py")
            print("  python3 claim.py --list")
            sys.exit(1)
        else:
            claim_all()
    except PositionFetchError as exc:
        print(f"Could not read positions: {exc}")
        sys.exit(2)
