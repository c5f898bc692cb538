from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from core.config import BuilderCreds, ClaimConfig
from core.polymarket import ClobBalanceClient
from tests.fakes import SIGNING_KEY, WALLET


def _config() -> ClaimConfig:
    return ClaimConfig(
        private_key=SIGNING_KEY,
        wallet_address=WALLET,
        rpc_url="https://rpc.example",
        relayer_url="https://relayer.example/",
        data_api_url="https://data.example",
        clob_host="https://clob.example",
        signature_type=1,
        builder=BuilderCreds(),
        position_limit=200,
    )


def _ready_client(sdk: MagicMock) -> ClobBalanceClient:
    client = ClobBalanceClient(_config())
    client._client = sdk
    client._api_ready = True
    return client


class TestClobBalanceClient:
    @pytest.mark.asyncio
    async def test_balance_zero_when_not_ready(self):
        client = ClobBalanceClient(_config())
        assert await client.get_balance_usdc() == 0.0

    @pytest.mark.asyncio
    async def test_balance_converts_from_micro_usdc(self):
        sdk = MagicMock()
        sdk.get_balance_allowance = MagicMock(return_value={"balance": "12345678"})
        assert await _ready_client(sdk).get_balance_usdc() == pytest.approx(12.345678)

    @pytest.mark.asyncio
    async def test_balance_error_returns_zero(self):
        sdk = MagicMock()
        sdk.get_balance_allowance = MagicMock(side_effect=RuntimeError("401"))
        assert await _ready_client(sdk).get_balance_usdc() == 0.0

    @pytest.mark.asyncio
    async def test_refresh_calls_update(self):
        sdk = MagicMock()
        await _ready_client(sdk).refresh_balance()
        sdk.update_balance_allowance.assert_called_once()

    @pytest.mark.asyncio
    async def test_refresh_noop_when_not_ready(self):
        client = ClobBalanceClient(_config())
        await client.refresh_balance()
        assert not client.ready

    @pytest.mark.asyncio
    async def test_init_failure_is_non_fatal(self, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("clob down")

        monkeypatch.setattr("core.polymarket.ClobClient", _boom)
        client = ClobBalanceClient(_config())
        await client.init()
        assert not client.ready

    @pytest.mark.asyncio
    async def test_init_derives_creds(self, monkeypatch):
        sdk = MagicMock()
        sdk.create_or_derive_api_creds = MagicMock(return_value="creds")
        captured = {}

        def _factory(host, **kwargs):
            captured["host"] = host
            captured.update(kwargs)
            return sdk

        monkeypatch.setattr("core.polymarket.ClobClient", _factory)
        client = ClobBalanceClient(_config())
        await client.init()
        assert client.ready
        sdk.set_api_creds.assert_called_once_with("creds")
        assert captured["host"] == "https://clob.example"
        assert captured["signature_type"] == 1
        assert captured["funder"] == WALLET
