from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(_ENV_PATH)

CHAIN_ID = 137


class ConfigError(Exception):
    """Raised when configuration validation fails."""


def _first_env(primary: str, fallback: str, default: str = "") -> str:
    """Return the first non-empty of two env vars (primary wins)."""
    return os.getenv(primary) or os.getenv(fallback) or default


@dataclass(frozen=True, slots=True)
class BuilderCreds:
    key: str = ""
    secret: str = ""
    passphrase: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.key and self.secret and self.passphrase)

    @property
    def partial(self) -> bool:
        """Some but not all of the three values are set."""
        return not self.complete and bool(self.key or self.secret or self.passphrase)


def _builder_creds_from_env() -> BuilderCreds:
    return BuilderCreds(
        key=_first_env("POLY_BUILDER_API_KEY", "BUILDER_API_KEY"),
        secret=_first_env("POLY_BUILDER_SECRET", "BUILDER_SECRET"),
        passphrase=_first_env("POLY_BUILDER_PASSPHRASE", "BUILDER_PASSPHRASE"),
    )


@dataclass(frozen=True, slots=True)
class ClaimConfig:
    private_key: str = field(
        default_factory=lambda: _first_env("PRIVATE_KEY", "POLY_PRIVATE_KEY")
    )
    wallet_address: str = field(
        default_factory=lambda: _first_env("MY_ADDRESS", "POLYMARKET_ADDRESS")
    )
    rpc_url: str = field(
        default_factory=lambda: os.getenv("POLYGON_RPC_URL", "https://polygon-rpc.com")
    )
    relayer_url: str = field(
        default_factory=lambda: os.getenv("RELAYER_URL", "https://relayer-v2.polymarket.com/")
    )
    data_api_url: str = field(
        default_factory=lambda: os.getenv("DATA_API_URL", "https://data-api.polymarket.com")
    )
    clob_host: str = field(
        default_factory=lambda: os.getenv("CLOB_HOST", "https://clob.polymarket.com")
    )
    signature_type: int = field(
        default_factory=lambda: int(os.getenv("POLY_SIGNATURE_TYPE", "0"))
    )
    builder: BuilderCreds = field(default_factory=_builder_creds_from_env)
    position_limit: int = field(
        default_factory=lambda: int(os.getenv("POSITION_LIMIT", "200"))
    )

    @property
    def has_builder_creds(self) -> bool:
        return self.builder.complete


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    bot_token: str = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN", ""))
    chat_id: str = field(default_factory=lambda: os.getenv("TELEGRAM_CHAT_ID", ""))

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    claim_interval_seconds: float = field(
        default_factory=lambda: float(os.getenv("CLAIM_INTERVAL_SECONDS", "900.0"))
    )
    claim_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("CLAIM_TIMEOUT_SECONDS", "600.0"))
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("API_PORT", "8080"))
    )
    state_path: str = field(
        default_factory=lambda: os.getenv("STATE_PATH", "data/claim_state.json")
    )


@dataclass(frozen=True, slots=True)
class Settings:
    claim: ClaimConfig = field(default_factory=ClaimConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)


_HEX_RE = re.compile(r"^(0x)?[0-9a-fA-F]+$")


def validate_config(s: Settings) -> list[str]:
    """
    Validate all configuration values at startup.

    Returns a list of error messages. An empty list means config is valid.
    """
    errors: list[str] = []
    c = s.claim
    svc = s.service

    # -- Wallet --
    if not c.private_key:
        errors.append("PRIVATE_KEY (or POLY_PRIVATE_KEY) is not set")
    elif not _HEX_RE.match(c.private_key) or len(c.private_key.removeprefix("0x")) != 64:
        errors.append("PRIVATE_KEY must be a 32-byte hex string")
    if not c.wallet_address:
        errors.append("MY_ADDRESS (or POLYMARKET_ADDRESS) is not set")
    elif not c.wallet_address.startswith("0x") or not _HEX_RE.match(c.wallet_address):
        errors.append(f"MY_ADDRESS must be a hex address (0x...): got '{c.wallet_address}'")
    elif len(c.wallet_address) != 42:
        errors.append(f"MY_ADDRESS must be 42 characters (got {len(c.wallet_address)})")

    # -- Endpoints --
    for name, url in (
        ("POLYGON_RPC_URL", c.rpc_url),
        ("RELAYER_URL", c.relayer_url),
        ("DATA_API_URL", c.data_api_url),
        ("CLOB_HOST", c.clob_host),
    ):
        if not url.startswith("http"):
            errors.append(f"{name} must be an HTTP(S) URL: got '{url}'")

    if c.position_limit < 1:
        errors.append(f"POSITION_LIMIT must be >= 1: got {c.position_limit}")

    # -- Service --
    if svc.claim_interval_seconds < 0:
        errors.append(f"CLAIM_INTERVAL_SECONDS must be >= 0: got {svc.claim_interval_seconds}")
    if svc.claim_timeout_seconds <= 0:
        errors.append(f"CLAIM_TIMEOUT_SECONDS must be > 0: got {svc.claim_timeout_seconds}")
    if not (1 <= svc.api_port <= 65535):
        errors.append(f"API_PORT must be in [1, 65535]: got {svc.api_port}")

    return errors


settings = Settings()
