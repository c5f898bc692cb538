"""
Gasless redemption through the Polymarket builder relayer.

The outcome tokens sit in the Polymarket proxy wallet (MY_ADDRESS) owned by
the signing key. Each condition is redeemed with one relayed PROXY
transaction: the relayer pays gas and the proxy wallet calls
redeemPositions on the CTF contract.

Before the first submission the key's proxy wallet is looked up on chain
and must equal MY_ADDRESS; otherwise the relay would redeem from a wallet
that holds none of the positions.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from core.claimer import connect_polygon, polygon_rpcs
from core.config import BuilderCreds
from core.ctf import CTF_ADDRESS, encode_redeem_data
from core.proxy_relay import ProxyRelayClient, RelayError

log = logging.getLogger("polyclaim.relayer")

RELAY_MEMO = "Redeem winnings"

CTF_EXCHANGE = "0x4bFb41d5B3570DeFd03C39a9A4D8dE6Bd8B8982E"

PROXY_LOOKUP_ABI = [
    {
        "inputs": [{"name": "_addr", "type": "address"}],
        "name": "getPolyProxyWalletAddress",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    }
]


class ProxyWalletMismatchError(RelayError):
    """The signing key's proxy wallet is not the configured wallet."""


def lookup_proxy_wallet(w3: Any, signer: str) -> str:
    """Proxy wallet address the CTF Exchange derives for ``signer``."""
    from web3 import Web3

    exchange = w3.eth.contract(address=Web3.to_checksum_address(CTF_EXCHANGE), abi=PROXY_LOOKUP_ABI)
    proxy = exchange.functions.getPolyProxyWalletAddress(Web3.to_checksum_address(signer)).call()
    return Web3.to_checksum_address(proxy)


class RelayedRedeemer:
    """Redeems conditions from the proxy wallet, one relayed call per condition."""

    name = "relayed"

    def __init__(
        self,
        private_key: str,
        creds: BuilderCreds,
        relayer_url: str,
        wallet_address: str,
        rpc_url: str | None = None,
        client: ProxyRelayClient | None = None,
        w3: Any = None,
    ) -> None:
        self._pk = private_key if private_key.startswith("0x") else "0x" + private_key
        self._creds = creds
        self._relayer_url = relayer_url
        self._wallet = wallet_address
        self._rpcs = polygon_rpcs(rpc_url)
        self._client = client
        self._w3: Any = w3
        self._verified = False

    def _build_client(self) -> ProxyRelayClient:
        from py_builder_signing_sdk.config import BuilderConfig
        from py_builder_signing_sdk.sdk_types import BuilderApiKeyCreds

        builder_config = BuilderConfig(
            local_builder_creds=BuilderApiKeyCreds(
                key=self._creds.key,
                secret=self._creds.secret,
                passphrase=self._creds.passphrase,
            )
        )
        client = ProxyRelayClient(self._relayer_url, self._pk, builder_config, self._wallet)
        log.info("Relay client ready (%s, proxy %s)", self._relayer_url, client.proxy_wallet)
        return client

    @property
    def client(self) -> ProxyRelayClient:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def _proxy_wallet_sync(self) -> str:
        if self._w3 is None:
            self._w3 = connect_polygon(self._rpcs)
        return lookup_proxy_wallet(self._w3, self.client.signer)

    async def _verify_proxy_wallet(self) -> None:
        if self._verified:
            return
        loop = asyncio.get_running_loop()
        proxy = await loop.run_in_executor(None, self._proxy_wallet_sync)
        if proxy.lower() != self._wallet.lower():
            raise ProxyWalletMismatchError(
                f"Signing key's proxy wallet {proxy} is not MY_ADDRESS {self._wallet}"
            )
        self._verified = True

    async def redeem(self, condition_id: str) -> str | None:
        """Relay one redemption and wait for it. Raises on any failure."""
        await self._verify_proxy_wallet()
        tx_hash = await self.client.execute(CTF_ADDRESS, encode_redeem_data(condition_id), RELAY_MEMO)
        log.info(
            "REDEEM (relayed) %s | tx=%s",
            condition_id[:16], tx_hash[:20] if tx_hash else "none",
        )
        return tx_hash
