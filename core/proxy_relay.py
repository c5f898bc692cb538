"""
Builder relayer client for Polymarket proxy wallets (PROXY transactions).

A proxy wallet only executes calls routed through ProxyWalletFactory.proxy();
the relayer pays gas for them when the signing key authorises a GSN-style
struct hash. One relayed call:
  1. GET  /relay-payload?address=<signer>&type=PROXY  -> relay address + nonce
  2. sign keccak("rlx:" | from | factory | data | fee | gasPrice | gasLimit
     | nonce | relayHub | relay) with personal_sign
  3. POST /submit (type PROXY)
  4. poll GET /transaction?id=... until mined / confirmed or failed

Every request carries the builder HMAC headers.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

log = logging.getLogger("polyclaim.proxy_relay")

PROXY_FACTORY = "0xaB45c5A4B0c941a2F231C04C3f49182e1A254052"
RELAY_HUB = "0xD216153c06E857cD7f72665E0aF1d7D82172F494"

# redeemPositions uses ~100-150k gas; the relay rejects much larger limits.
RELAY_GAS_LIMIT = 300_000

CALL_TYPE_CALL = 1
PROXY_SELECTOR = bytes(Web3.keccak(text="proxy((uint8,address,uint256,bytes)[])")[:4])

DONE_STATES = frozenset({"STATE_MINED", "STATE_CONFIRMED"})
FAILED_STATES = frozenset({"STATE_FAILED", "STATE_INVALID"})

_TIMEOUT = aiohttp.ClientTimeout(total=30)


class RelayError(Exception):
    """The relayer rejected, failed or could not be reached for a transaction."""


def _hex_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _word(value: int | str) -> bytes:
    return int(value).to_bytes(32, "big")


def encode_proxy_call(to: str, data: str, value: int = 0) -> str:
    """Calldata for ProxyWalletFactory.proxy([(CALL, to, value, data)])."""
    calls = [(CALL_TYPE_CALL, Web3.to_checksum_address(to), value, _hex_bytes(data))]
    args = abi_encode(["(uint8,address,uint256,bytes)[]"], [calls])
    return "0x" + (PROXY_SELECTOR + args).hex()


def proxy_struct_hash(
    from_address: str,
    data: str,
    nonce: int | str,
    relay: str,
    gas_limit: int = RELAY_GAS_LIMIT,
    to: str = PROXY_FACTORY,
    relay_hub: str = RELAY_HUB,
    fee: int = 0,
    gas_price: int = 0,
) -> bytes:
    packed = b"".join([
        b"rlx:",
        _hex_bytes(from_address),
        _hex_bytes(to),
        _hex_bytes(data),
        _word(fee),
        _word(gas_price),
        _word(gas_limit),
        _word(nonce),
        _hex_bytes(relay_hub),
        _hex_bytes(relay),
    ])
    return bytes(Web3.keccak(packed))


def sign_struct_hash(private_key: str, struct_hash: bytes) -> str:
    """EIP-191 personal signature over the struct hash, ``0x``-prefixed."""
    signed = Account.sign_message(encode_defunct(struct_hash), private_key)
    return "0x" + bytes(signed.signature).hex()


class ProxyRelayClient:
    """Submits calls from a proxy wallet through the builder relayer."""

    def __init__(
        self,
        relayer_url: str,
        private_key: str,
        builder_config: Any,
        proxy_wallet: str,
        poll_interval: float = 2.0,
        max_polls: int = 30,
    ) -> None:
        self._base_url = relayer_url.rstrip("/")
        self._pk = private_key
        self._builder = builder_config
        self.signer = Account.from_key(private_key).address
        self.proxy_wallet = Web3.to_checksum_address(proxy_wallet)
        self._poll_interval = poll_interval
        self._max_polls = max_polls

    def _headers(self, method: str, path: str, body: str | None = None) -> dict[str, str]:
        payload = self._builder.generate_builder_headers(method, path, body)
        if payload is None:
            raise RelayError("Builder credentials could not sign the relayer request")
        headers = dict(payload.to_dict())
        headers["Content-Type"] = "application/json"
        return headers

    async def _request(
        self,
        sess: aiohttp.ClientSession,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        data = json.dumps(body) if body is not None else None
        headers = self._headers(method, path, data)
        url = f"{self._base_url}{path}"
        try:
            async with sess.request(method, url, params=params, data=data, headers=headers) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise RelayError(f"Relayer {method} {path} returned {resp.status}: {text[:200]}")
        except aiohttp.ClientError as exc:
            raise RelayError(f"Relayer unreachable: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise RelayError(f"Relayer {method} {path} timed out") from exc

        try:
            return json.loads(text)
        except ValueError as exc:
            raise RelayError(f"Relayer {path} returned invalid JSON") from exc

    async def execute(self, to: str, data: str, metadata: str = "") -> str | None:
        """
        Relay one call from the proxy wallet.

        Returns the mined transaction hash, or None when the relayer never
        reported a final state. Raises RelayError when the relayer rejects
        or fails the transaction.
        """
        proxy_data = encode_proxy_call(to, data)

        async with aiohttp.ClientSession(timeout=_TIMEOUT) as sess:
            relay_payload = await self._request(
                sess, "GET", "/relay-payload",
                params={"address": self.signer, "type": "PROXY"},
            )
            try:
                relay = relay_payload["address"]
                nonce = str(relay_payload["nonce"])
            except (KeyError, TypeError) as exc:
                raise RelayError(f"Unexpected relay payload: {relay_payload!r}"[:200]) from exc

            struct_hash = proxy_struct_hash(self.signer, proxy_data, nonce, relay)
            body = {
                "type": "PROXY",
                "from": self.signer,
                "to": PROXY_FACTORY,
                "proxyWallet": self.proxy_wallet,
                "data": proxy_data,
                "nonce": nonce,
                "signature": sign_struct_hash(self._pk, struct_hash),
                "signatureParams": {
                    "gasPrice": "0",
                    "gasLimit": str(RELAY_GAS_LIMIT),
                    "relayerFee": "0",
                    "relayHub": RELAY_HUB,
                    "relay": relay,
                },
                "metadata": metadata,
            }
            submitted = await self._request(sess, "POST", "/submit", body=body)
            if not isinstance(submitted, dict):
                raise RelayError(f"Unexpected submit response: {submitted!r}"[:200])

            tx_id = submitted.get("transactionID") or submitted.get("id")
            tx_hash = submitted.get("transactionHash") or submitted.get("hash")
            log.info("Relay submitted: id=%s nonce=%s", tx_id, nonce)
            if not tx_id:
                return tx_hash or None
            return await self._wait(sess, tx_id, tx_hash)

    async def _wait(self, sess: aiohttp.ClientSession, tx_id: str, tx_hash: str | None) -> str | None:
        for attempt in range(1, self._max_polls + 1):
            try:
                data = await self._request(sess, "GET", "/transaction", params={"id": tx_id})
            except RelayError as exc:
                log.warning("Relay poll %d/%d for %s failed: %s", attempt, self._max_polls, tx_id, exc)
                data = []

            for tx in data if isinstance(data, list) else [data]:
                if not isinstance(tx, dict):
                    continue
                state = tx.get("state", "")
                if state in DONE_STATES:
                    return tx.get("transactionHash") or tx_hash
                if state in FAILED_STATES:
                    raise RelayError(f"Relay tx {state}: {tx.get('errorMsg') or tx_id}")

            await asyncio.sleep(self._poll_interval)

        log.warning("Relay tx %s not final after %d polls", tx_id, self._max_polls)
        return None
