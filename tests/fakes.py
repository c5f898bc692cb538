"""Network-free stand-ins for the position source and redeemers."""

from __future__ import annotations

import asyncio
import threading
import time

WALLET = "0x370e81c93aa113274321339e69049187cce03bb9"
SIGNING_KEY = "0x" + "11" * 32


class FakeSource:
    """In-memory position source."""

    def __init__(self, positions=None, error: Exception | None = None) -> None:
        self.positions = positions or []
        self.error = error
        self.calls: list[tuple[str, int]] = []

    async def get_positions(self, address: str, limit: int = 200):
        self.calls.append((address, limit))
        if self.error:
            raise self.error
        return list(self.positions)


class FakeRedeemer:
    """Scripted redeemer: maps condition id -> tx hash, None, or exception."""

    def __init__(self, outcomes=None, name: str = "fake") -> None:
        self.outcomes = outcomes or {}
        self.name = name
        self.calls: list[str] = []

    async def redeem(self, condition_id: str) -> str | None:
        self.calls.append(condition_id)
        outcome = self.outcomes.get(condition_id, f"0xhash_{condition_id}")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ThreadedRedeemer(FakeRedeemer):
    """Blocks an executor thread per submission and tracks peak overlap."""

    def __init__(self, delay: float = 0.3, name: str = "threaded") -> None:
        super().__init__(name=name)
        self.delay = delay
        self.active = 0
        self.peak = 0
        self._guard = threading.Lock()

    def _submit(self, condition_id: str) -> str:
        with self._guard:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
        finally:
            with self._guard:
                self.active -= 1
        return f"0xhash_{condition_id}"

    async def redeem(self, condition_id: str) -> str | None:
        self.calls.append(condition_id)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._submit, condition_id)
