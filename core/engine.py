"""
Claim Engine

Runs claim cycles for the configured wallet, either on a fixed schedule or
on demand (HTTP "claim now"). Includes:
  - asyncio.Lock so at most one cycle is in flight (shared wallet nonce)
  - an overall timeout around each cycle
  - state persistence + Telegram alerts after every cycle
  - a CLOB balance refresh after any successful claim
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from core.config import ClaimConfig
from core.persistence import ClaimState
from core.reconciler import ClaimReconciler, ClaimResult
from utils.alerts import alert_claim_error, alert_claim_result

if TYPE_CHECKING:
    from core.persistence import StateStore
    from core.polymarket import ClobBalanceClient

log = logging.getLogger("polyclaim.engine")


class ClaimInProgressError(Exception):
    """Another claim cycle is already running."""


class ClaimEngine:
    def __init__(
        self,
        reconciler: ClaimReconciler,
        config: ClaimConfig,
        state_store: StateStore | None = None,
        state: ClaimState | None = None,
        balance: ClobBalanceClient | None = None,
        interval: float = 900.0,
        timeout: float = 600.0,
    ) -> None:
        self._reconciler = reconciler
        self._config = config
        self._state_store = state_store
        if state is None:
            state = state_store.load() if state_store else ClaimState()
        self._state = state
        self._balance = balance
        self._interval = interval
        self._timeout = timeout
        self._lock = asyncio.Lock()
        self._stopped = False

    @property
    def state(self) -> ClaimState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @property
    def configured(self) -> bool:
        return bool(self._config.private_key and self._config.wallet_address)

    @property
    def strategy_name(self) -> str:
        return self._reconciler.strategy.name

    async def run_cycle(self, trigger: str = "manual") -> ClaimResult:
        """
        Run one claim cycle.

        Raises ClaimInProgressError if a cycle is already running, and
        re-raises run-fatal errors (position discovery, timeout) after
        recording them.

        At the timeout the run stops before its next condition; the lock is
        held until the submission in flight has finished, so no later cycle
        can overlap it.
        """
        if self._lock.locked():
            raise ClaimInProgressError("A claim cycle is already running")

        async with self._lock:
            log.info("Claim cycle started (%s)", trigger)
            stop = asyncio.Event()
            claim = asyncio.ensure_future(
                self._reconciler.claim_winnings(
                    self._config.private_key, self._config.wallet_address, stop=stop
                )
            )
            try:
                result = await asyncio.wait_for(asyncio.shield(claim), timeout=self._timeout)
            except asyncio.TimeoutError as exc:
                partial = await self._drain(claim, stop)
                if partial is not None:
                    log.warning(
                        "Timed-out cycle stopped after claimed=%d failed=%d",
                        partial.claimed, partial.failed,
                    )
                error = f"Claim cycle timed out after {self._timeout:g}s"
                await self._record_error(error)
                raise TimeoutError(error) from exc
            except asyncio.CancelledError:
                await self._drain(claim, stop)
                raise
            except Exception as exc:
                await self._record_error(str(exc) or type(exc).__name__)
                raise

            self._state.record_result(result)
            self._save_state()

            if result.claimed > 0 and self._balance is not None:
                await self._balance.refresh_balance()
            await alert_claim_result(result, trigger)
            return result

    @staticmethod
    async def _drain(claim: asyncio.Future, stop: asyncio.Event) -> ClaimResult | None:
        """Stop the run at its next condition and wait for the current one."""
        stop.set()
        try:
            return await claim
        except Exception as exc:
            log.warning("Claim run ended with error while stopping: %s", exc)
            return None

    async def _record_error(self, error: str) -> None:
        log.error("Claim cycle failed: %s", error)
        self._state.record_error(error)
        self._save_state()
        await alert_claim_error(error)

    def _save_state(self) -> None:
        if self._state_store:
            try:
                self._state_store.save(self._state)
            except OSError as exc:
                log.error("Failed to save claim state: %s", exc)

    async def run(self) -> None:
        if self._interval <= 0:
            log.info("Scheduled claiming disabled (interval=0)")
            return

        log.info("Claim scheduler started — every %.0fs", self._interval)
        try:
            while not self._stopped:
                try:
                    await self.run_cycle("scheduled")
                except ClaimInProgressError:
                    log.info("Skipping scheduled cycle — manual claim in progress")
                except Exception as exc:
                    log.warning("Scheduled claim cycle failed: %s", exc)
                await asyncio.sleep(self._interval)
        except asyncio.CancelledError:
            log.info("Claim scheduler stopped.")

    def stop(self) -> None:
        self._stopped = True
