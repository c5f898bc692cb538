"""
Lightweight JSON persistence for claim run history.

Keeps the last claim time/result and run counters so the status API can
report them across restarts. Uses atomic write (tmp + rename) to prevent
corruption.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

from core.reconciler import ClaimResult

log = logging.getLogger("polyclaim.persistence")

DEFAULT_STATE_PATH = Path("data/claim_state.json")


@dataclass
class ClaimState:
    last_claim_at: float | None = None
    last_claim_result: dict[str, int] | None = None
    last_error: str = ""
    runs: int = 0
    runs_since_last_claim: int = 0
    history: list[dict] = field(default_factory=list)

    HISTORY_LIMIT = 50

    def record_result(self, result: ClaimResult, now: float | None = None) -> None:
        ts = time.time() if now is None else now
        self.runs += 1
        self.last_claim_at = ts
        self.last_claim_result = {"claimed": result.claimed, "failed": result.failed}
        self.last_error = ""
        if result.claimed > 0:
            self.runs_since_last_claim = 0
        else:
            self.runs_since_last_claim += 1
        self._push({"at": ts, "claimed": result.claimed, "failed": result.failed})

    def record_error(self, error: str, now: float | None = None) -> None:
        ts = time.time() if now is None else now
        self.runs += 1
        self.runs_since_last_claim += 1
        self.last_error = error
        self._push({"at": ts, "error": error})

    def _push(self, entry: dict) -> None:
        self.history.append(entry)
        del self.history[:-self.HISTORY_LIMIT]

    def to_dict(self) -> dict:
        return {"version": 1, **asdict(self)}

    @classmethod
    def from_dict(cls, data: dict) -> ClaimState:
        return cls(
            last_claim_at=data.get("last_claim_at"),
            last_claim_result=data.get("last_claim_result"),
            last_error=data.get("last_error", ""),
            runs=int(data.get("runs", 0)),
            runs_since_last_claim=int(data.get("runs_since_last_claim", 0)),
            history=list(data.get("history", [])),
        )


class StateStore:
    def __init__(self, path: Path | str | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_STATE_PATH

    @property
    def path(self) -> Path:
        return self._path

    def save(self, state: ClaimState) -> None:
        """Persist the claim state to disk (atomic write)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(state.to_dict(), f, indent=2)
        tmp.replace(self._path)
        log.debug("Claim state saved: runs=%d → %s", state.runs, self._path)

    def load(self) -> ClaimState:
        """Load persisted state, or a fresh one if missing/corrupt."""
        if not self._path.exists():
            log.info("No saved claim state found at %s", self._path)
            return ClaimState()
        try:
            with open(self._path) as f:
                data = json.load(f)
            return ClaimState.from_dict(data)
        except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as exc:
            log.error("Failed to load claim state from %s: %s", self._path, exc)
            return ClaimState()
