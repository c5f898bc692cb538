from __future__ import annotations

import asyncio
import logging

from py_clob_client.client import ClobClient
from py_clob_client.clob_types import AssetType, BalanceAllowanceParams

from core.config import CHAIN_ID, ClaimConfig

log = logging.getLogger("polyclaim.polymarket")


class ClobBalanceClient:
    """Async-friendly wrapper around py-clob-client for collateral balance reads."""

    def __init__(self, config: ClaimConfig) -> None:
        self._config = config
        self._client: ClobClient | None = None
        self._lock = asyncio.Lock()
        self._api_ready: bool = False

    @property
    def ready(self) -> bool:
        return self._api_ready

    async def init(self) -> None:
        async with self._lock:
            if self._client is not None:
                return
            cfg = self._config
            loop = asyncio.get_running_loop()

            def _build_client() -> ClobClient:
                kwargs: dict = {"key": cfg.private_key, "chain_id": CHAIN_ID}
                if cfg.signature_type != 0:
                    kwargs["signature_type"] = cfg.signature_type
                if cfg.wallet_address:
                    kwargs["funder"] = cfg.wallet_address
                return ClobClient(cfg.clob_host, **kwargs)

            try:
                self._client = await loop.run_in_executor(None, _build_client)
                creds = await loop.run_in_executor(None, self._client.create_or_derive_api_creds)
                await loop.run_in_executor(None, self._client.set_api_creds, creds)
                self._api_ready = True
                log.info("CLOB client ready (signature_type=%d)", cfg.signature_type)
            except Exception as exc:
                log.warning("CLOB API key derivation failed, balance unavailable: %s", exc)

    async def get_balance_usdc(self) -> float:
        """Fetch available USDC.e balance from the CLOB (in dollars)."""
        if not self._api_ready or self._client is None:
            return 0.0
        client = self._client
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(
                None,
                lambda: client.get_balance_allowance(
                    BalanceAllowanceParams(asset_type=AssetType.COLLATERAL)
                ),
            )
            raw = result.get("balance", "0") if isinstance(result, dict) else getattr(result, "balance", "0")
            return int(raw) / 1e6
        except Exception as exc:
            log.warning("Failed to fetch CLOB balance: %s", exc)
            return 0.0

    async def refresh_balance(self) -> None:
        """Force the CLOB to re-check on-chain balance (call after redeem/claim)."""
        if not self._api_ready or self._client is None:
            return
        client = self._client
        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None,
                lambda: client.update_balance_allowance(
                    BalanceAllowanceParams(asset_type=AssetType.COLLATERAL)
                ),
            )
            log.info("CLOB balance refreshed")
        except Exception as exc:
            log.warning("Failed to refresh CLOB balance: %s", exc)
