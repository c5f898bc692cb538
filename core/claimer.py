"""
Direct on-chain redemption from the signing key's own address.

Used when no builder relayer credentials are configured. The EOA itself
must hold the outcome tokens and enough POL to pay gas; each condition is
one signed redeemPositions transaction against the CTF contract.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.config import CHAIN_ID
from core.ctf import CTF_ADDRESS, CTF_REDEEM_ABI, redeem_args

log = logging.getLogger("polyclaim.claimer")

FALLBACK_RPCS = [
    "https://polygon-bor-rpc.publicnode.com",
    "https://1rpc.io/matic",
    "https://polygon.meowrpc.com",
]

RECEIPT_TIMEOUT = 120


def polygon_rpcs(rpc_url: str | None = None) -> list[str]:
    """Configured RPC first, then the public fallbacks."""
    return ([rpc_url] if rpc_url else []) + [r for r in FALLBACK_RPCS if r != rpc_url]


def connect_polygon(rpcs: list[str]) -> Any:
    """First RPC that answers chain_id. Raises ConnectionError if none does."""
    from web3 import Web3

    for rpc in rpcs:
        try:
            w3 = Web3(Web3.HTTPProvider(rpc, request_kwargs={"timeout": 15}))
            w3.eth.chain_id
            return w3
        except Exception as exc:
            log.debug("RPC %s unavailable: %s", rpc, exc)
            continue

    raise ConnectionError("No working Polygon RPC found")


class DirectRedeemer:
    """Claims resolved positions by calling redeemPositions from the EOA."""

    name = "direct"

    def __init__(self, private_key: str, rpc_url: str | None = None, w3: Any = None) -> None:
        self._pk = private_key
        self._rpcs = polygon_rpcs(rpc_url)
        self._w3: Any = w3
        self._eoa: str | None = None

    @property
    def address(self) -> str:
        if self._eoa is None:
            from eth_account import Account

            self._eoa = Account.from_key(self._pk).address
        return self._eoa

    def _connect(self) -> Any:
        if self._w3 is not None:
            try:
                self._w3.eth.chain_id
                return self._w3
            except Exception:
                self._w3 = None

        self._w3 = connect_polygon(self._rpcs)
        return self._w3

    async def redeem(self, condition_id: str) -> str | None:
        """Send one redeemPositions transaction and wait for its receipt. Raises on failure."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._redeem_sync, condition_id)

    def _redeem_sync(self, condition_id: str) -> str | None:
        from web3 import Web3

        w3 = self._connect()
        ctf = w3.eth.contract(address=Web3.to_checksum_address(CTF_ADDRESS), abi=CTF_REDEEM_ABI)

        tx = ctf.functions.redeemPositions(*redeem_args(condition_id)).build_transaction({
            "from": self.address,
            "nonce": w3.eth.get_transaction_count(self.address, "pending"),
            "gasPrice": w3.eth.gas_price,
            "chainId": CHAIN_ID,
        })

        signed_tx = w3.eth.account.sign_transaction(tx, self._pk)
        raw_hash = w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        receipt = w3.eth.wait_for_transaction_receipt(raw_hash, timeout=RECEIPT_TIMEOUT)

        status = receipt.get("status", 0)
        tx_hex = Web3.to_hex(receipt.get("transactionHash") or raw_hash)
        log.info(
            "REDEEM (direct) %s | status=%s gas=%d tx=%s",
            condition_id[:16], "OK" if status == 1 else "FAILED",
            receipt.get("gasUsed", 0), tx_hex[:20],
        )

        if status != 1:
            raise RuntimeError(f"Redeem tx reverted: {tx_hex}")

        return tx_hex
