from __future__ import annotations

import os

import pytest

os.environ.setdefault("PRIVATE_KEY", "0x" + "11" * 32)
os.environ.setdefault("MY_ADDRESS", "0x370e81c93aa113274321339e69049187cce03bb9")
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("TELEGRAM_CHAT_ID", "")
for _var in (
    "POLY_BUILDER_API_KEY", "BUILDER_API_KEY",
    "POLY_BUILDER_SECRET", "BUILDER_SECRET",
    "POLY_BUILDER_PASSPHRASE", "BUILDER_PASSPHRASE",
):
    os.environ.pop(_var, None)


@pytest.fixture
def sample_positions():
    """Mixed wallet: duplicate condition, zero size, not yet redeemable."""
    from core.positions import Position

    return [
        Position(condition_id="abc", size=5.0, redeemable=True),
        Position(condition_id="abc", size=3.0, redeemable=True),
        Position(condition_id="def", size=0.0, redeemable=True),
        Position(condition_id="ghi", size=2.0, redeemable=False),
    ]
