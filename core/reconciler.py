"""
Claim Reconciler

One claim cycle:
  1. read the wallet's positions from the Data API
  2. keep the redeemable ones with a positive size
  3. dedupe by condition id
  4. pick the execution strategy once (relayed or direct)
  5. redeem each condition sequentially and fold the outcomes into a ClaimResult

Per-condition failures are captured in the result; only a failure to read
positions propagates. A failed condition stays redeemable and is retried
naturally on the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Iterable, Protocol, Union

from core.claimer import DirectRedeemer
from core.config import ClaimConfig
from core.positions import Position, PositionSource
from core.relayer import RelayedRedeemer
from core.strategy import RelayedStrategy, Strategy, select_strategy

log = logging.getLogger("polyclaim.reconciler")

ERROR_ID_CHARS = 10
ERROR_MSG_CHARS = 80


class Redeemer(Protocol):
    name: str

    async def redeem(self, condition_id: str) -> str | None: ...


# (strategy, signing key, wallet address) -> redeemer
RedeemerFactory = Callable[[Strategy, str, str], Redeemer]

# A redeem() outcome: tx hash, no hash, or the exception it raised.
Outcome = Union[str, None, BaseException]


@dataclass(frozen=True, slots=True)
class ClaimResult:
    claimed: int = 0
    failed: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)
    tx_hashes: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "claimed": self.claimed,
            "failed": self.failed,
            "errors": list(self.errors),
            "txHashes": list(self.tx_hashes),
        }


def format_claim_error(condition_id: str, exc: BaseException) -> str:
    msg = str(exc) or type(exc).__name__
    return f"{condition_id[:ERROR_ID_CHARS]}…: {msg[:ERROR_MSG_CHARS]}"


def apply_outcome(result: ClaimResult, condition_id: str, outcome: Outcome) -> ClaimResult:
    """Fold one condition's outcome into the running result."""
    if isinstance(outcome, BaseException):
        return replace(
            result,
            failed=result.failed + 1,
            errors=result.errors + (format_claim_error(condition_id, outcome),),
        )
    if outcome:
        return replace(
            result,
            claimed=result.claimed + 1,
            tx_hashes=result.tx_hashes + (outcome,),
        )
    # Relay/receipt came back without a hash: neither claimed nor failed.
    return result


def redeemable_condition_ids(positions: Iterable[Position]) -> list[str]:
    """Unique condition ids of redeemable, non-empty positions (first-seen order)."""
    seen: dict[str, None] = {}
    for p in positions:
        if not (p.redeemable and p.size > 0):
            continue
        cid = p.condition_id
        if isinstance(cid, str) and cid:
            seen.setdefault(cid, None)
    return list(seen)


def build_redeemer(config: ClaimConfig) -> RedeemerFactory:
    """Default factory: real relay / web3 redeemers built from config."""

    def _factory(strategy: Strategy, signing_key: str, wallet_address: str) -> Redeemer:
        if isinstance(strategy, RelayedStrategy):
            return RelayedRedeemer(
                signing_key, strategy.creds, config.relayer_url, wallet_address,
                rpc_url=config.rpc_url,
            )
        return DirectRedeemer(signing_key, rpc_url=config.rpc_url)

    return _factory


class ClaimReconciler:
    def __init__(
        self,
        config: ClaimConfig,
        source: PositionSource | None = None,
        redeemer_factory: RedeemerFactory | None = None,
    ) -> None:
        self._config = config
        self._source = source or PositionSource(config.data_api_url)
        self._factory = redeemer_factory or build_redeemer(config)

    @property
    def strategy(self) -> Strategy:
        return select_strategy(self._config.builder)

    async def find_redeemable(self, wallet_address: str) -> list[str]:
        """Condition ids currently redeemable for the wallet. Raises PositionFetchError."""
        positions = await self._source.get_positions(wallet_address, self._config.position_limit)
        return redeemable_condition_ids(positions)

    async def claim_winnings(
        self,
        signing_key: str,
        wallet_address: str,
        stop: asyncio.Event | None = None,
    ) -> ClaimResult:
        """
        Redeem every redeemable condition of the wallet.

        When ``stop`` is set the run ends before its next condition; a
        submission already in flight is never interrupted.
        """
        result = ClaimResult()

        condition_ids = await self.find_redeemable(wallet_address)
        if not condition_ids:
            log.info("No redeemable positions for %s", wallet_address[:10])
            return result

        strategy = self.strategy
        redeemer = self._factory(strategy, signing_key, wallet_address)
        log.info(
            "CLAIM  %d condition(s) via %s redeemer",
            len(condition_ids), strategy.name,
        )

        for done, cid in enumerate(condition_ids):
            if stop is not None and stop.is_set():
                log.warning(
                    "CLAIM STOPPED  %d condition(s) left for the next cycle",
                    len(condition_ids) - done,
                )
                break
            result = await self._redeem_one(redeemer, result, cid)

        log.info(
            "CLAIM DONE  claimed=%d failed=%d",
            result.claimed, result.failed,
        )
        return result

    async def _redeem_one(self, redeemer: Redeemer, result: ClaimResult, condition_id: str) -> ClaimResult:
        try:
            outcome: Outcome = await redeemer.redeem(condition_id)
        except Exception as exc:
            log.error(
                "Claim (%s) failed for condition %s: %s",
                redeemer.name, condition_id, exc,
            )
            outcome = exc
        return apply_outcome(result, condition_id, outcome)
