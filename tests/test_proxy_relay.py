"""Tests for the PROXY relay client, against an in-process fake relayer."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from eth_abi import decode as abi_decode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from core.ctf import CTF_ADDRESS, encode_redeem_data
from core.proxy_relay import (
    PROXY_FACTORY,
    PROXY_SELECTOR,
    RELAY_GAS_LIMIT,
    RELAY_HUB,
    ProxyRelayClient,
    RelayError,
    encode_proxy_call,
    proxy_struct_hash,
    sign_struct_hash,
)
from tests.fakes import SIGNING_KEY, WALLET

RELAY = "0x7db63fe6d62eb73fb01f8009416f4c2bb4fbda6a"
REDEEM_DATA = encode_redeem_data("0x" + "cd" * 32)
SIGNER = Account.from_key(SIGNING_KEY).address


def _builder_config():
    cfg = MagicMock()
    cfg.generate_builder_headers = MagicMock(
        return_value=SimpleNamespace(to_dict=lambda: {"POLY_BUILDER_API_KEY": "k"})
    )
    return cfg


def _relayer_app(seen: dict, state: str = "STATE_MINED", submit_status: int = 200, tx_id: str | None = "tx-1"):
    async def relay_payload(request):
        seen["payload_query"] = dict(request.query)
        seen["api_key"] = request.headers.get("POLY_BUILDER_API_KEY")
        return web.json_response({"address": RELAY, "nonce": "7"})

    async def submit(request):
        seen["submit_raw"] = await request.text()
        seen["submit"] = json.loads(seen["submit_raw"])
        if submit_status != 200:
            return web.json_response({"error": "invalid signature"}, status=submit_status)
        if tx_id is None:
            return web.json_response({"transactionHash": "0xsubmitted"})
        return web.json_response({"transactionID": tx_id, "state": "STATE_NEW"})

    async def transaction(request):
        seen["polls"] = seen.get("polls", 0) + 1
        seen["poll_id"] = request.query.get("id")
        return web.json_response([
            {"state": state, "transactionHash": "0xmined", "errorMsg": "transaction reverted"}
        ])

    app = web.Application()
    app.router.add_get("/relay-payload", relay_payload)
    app.router.add_post("/submit", submit)
    app.router.add_get("/transaction", transaction)
    return app


@pytest.fixture
async def relayer():
    servers = []

    async def _start(**kw):
        seen: dict = {}
        server = TestServer(_relayer_app(seen, **kw))
        await server.start_server()
        servers.append(server)
        builder = _builder_config()
        client = ProxyRelayClient(
            str(server.make_url("/")), SIGNING_KEY, builder, WALLET,
            poll_interval=0, max_polls=3,
        )
        return client, seen, builder

    yield _start
    for server in servers:
        await server.close()


# ------------------------------------------------------------------
# Encoding and signing
# ------------------------------------------------------------------
class TestProxyEncoding:
    def test_wraps_single_call(self):
        data = encode_proxy_call(CTF_ADDRESS, REDEEM_DATA)
        raw = bytes.fromhex(data[2:])
        assert raw[:4] == PROXY_SELECTOR
        (calls,) = abi_decode(["(uint8,address,uint256,bytes)[]"], raw[4:])
        assert len(calls) == 1
        type_code, to, value, inner = calls[0]
        assert type_code == 1
        assert to.lower() == CTF_ADDRESS.lower()
        assert value == 0
        assert inner == bytes.fromhex(REDEEM_DATA[2:])

    def test_selector(self):
        expected = Web3.keccak(text="proxy((uint8,address,uint256,bytes)[])")[:4]
        assert PROXY_SELECTOR == bytes(expected)

    def test_struct_hash_covers_nonce_and_relay(self):
        data = encode_proxy_call(CTF_ADDRESS, REDEEM_DATA)
        base = proxy_struct_hash(SIGNER, data, 7, RELAY)
        assert len(base) == 32
        assert proxy_struct_hash(SIGNER, data, "7", RELAY) == base
        assert proxy_struct_hash(SIGNER, data, 8, RELAY) != base
        assert proxy_struct_hash(SIGNER, data, 7, RELAY_HUB) != base

    def test_signature_recovers_signer(self):
        struct_hash = proxy_struct_hash(SIGNER, encode_proxy_call(CTF_ADDRESS, REDEEM_DATA), 7, RELAY)
        signature = sign_struct_hash(SIGNING_KEY, struct_hash)
        assert signature.startswith("0x")
        recovered = Account.recover_message(encode_defunct(struct_hash), signature=signature)
        assert recovered == SIGNER


# ------------------------------------------------------------------
# Relayer round trip
# ------------------------------------------------------------------
class TestProxyRelayClient:
    async def test_mined_returns_hash(self, relayer):
        client, seen, _ = await relayer()
        assert await client.execute(CTF_ADDRESS, REDEEM_DATA, "Redeem winnings") == "0xmined"
        assert seen["poll_id"] == "tx-1"

    async def test_relay_payload_requested_for_signer(self, relayer):
        client, seen, _ = await relayer()
        await client.execute(CTF_ADDRESS, REDEEM_DATA)
        assert seen["payload_query"] == {"address": SIGNER, "type": "PROXY"}
        assert seen["api_key"] == "k"

    async def test_submit_body(self, relayer):
        client, seen, _ = await relayer()
        await client.execute(CTF_ADDRESS, REDEEM_DATA, "Redeem winnings")

        body = seen["submit"]
        assert body["type"] == "PROXY"
        assert body["from"] == SIGNER
        assert body["to"] == PROXY_FACTORY
        assert body["proxyWallet"] == Web3.to_checksum_address(WALLET)
        assert body["data"] == encode_proxy_call(CTF_ADDRESS, REDEEM_DATA)
        assert body["nonce"] == "7"
        assert body["metadata"] == "Redeem winnings"
        assert body["signatureParams"] == {
            "gasPrice": "0",
            "gasLimit": str(RELAY_GAS_LIMIT),
            "relayerFee": "0",
            "relayHub": RELAY_HUB,
            "relay": RELAY,
        }
        struct_hash = proxy_struct_hash(SIGNER, body["data"], 7, RELAY)
        assert Account.recover_message(encode_defunct(struct_hash), signature=body["signature"]) == SIGNER

    async def test_headers_signed_over_sent_body(self, relayer):
        client, seen, builder = await relayer()
        await client.execute(CTF_ADDRESS, REDEEM_DATA)
        submit_calls = [c for c in builder.generate_builder_headers.call_args_list if c[0][1] == "/submit"]
        assert len(submit_calls) == 1
        assert submit_calls[0][0][2] == seen["submit_raw"]

    async def test_failed_state_raises(self, relayer):
        client, _, _ = await relayer(state="STATE_FAILED")
        with pytest.raises(RelayError, match="STATE_FAILED: transaction reverted"):
            await client.execute(CTF_ADDRESS, REDEEM_DATA)

    async def test_never_final_returns_none(self, relayer):
        client, seen, _ = await relayer(state="STATE_EXECUTED")
        assert await client.execute(CTF_ADDRESS, REDEEM_DATA) is None
        assert seen["polls"] == 3

    async def test_submit_rejected_raises(self, relayer):
        client, _, _ = await relayer(submit_status=400)
        with pytest.raises(RelayError, match="400"):
            await client.execute(CTF_ADDRESS, REDEEM_DATA)

    async def test_no_transaction_id_returns_submit_hash(self, relayer):
        client, seen, _ = await relayer(tx_id=None)
        assert await client.execute(CTF_ADDRESS, REDEEM_DATA) == "0xsubmitted"
        assert "polls" not in seen

    async def test_unreachable_relayer_raises(self):
        client = ProxyRelayClient("http://127.0.0.1:1", SIGNING_KEY, _builder_config(), WALLET)
        with pytest.raises(RelayError, match="unreachable"):
            await client.execute(CTF_ADDRESS, REDEEM_DATA)

    def test_unsigned_headers_raise(self):
        builder = MagicMock()
        builder.generate_builder_headers = MagicMock(return_value=None)
        client = ProxyRelayClient("https://relayer.example", SIGNING_KEY, builder, WALLET)
        with pytest.raises(RelayError, match="Builder credentials"):
            client._headers("GET", "/relay-payload")
