"""
Polymarket Data API position source.

Fetches the positions currently held by an address
(data-api.polymarket.com/positions). Every claim cycle reads a fresh
snapshot; nothing is cached here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

log = logging.getLogger("polyclaim.positions")

_HEADERS = {"User-Agent": "PolyClaim/1.0", "Accept": "application/json"}
_TIMEOUT = aiohttp.ClientTimeout(total=20)


class PositionFetchError(Exception):
    """The position source could not be read (distinct from zero positions)."""


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True, slots=True)
class Position:
    condition_id: str
    size: float
    redeemable: bool
    asset: str = ""
    title: str = ""
    outcome: str = ""
    current_value: float = 0.0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Position:
        cid = data.get("conditionId")
        return cls(
            condition_id=cid if isinstance(cid, str) else "",
            size=_to_float(data.get("size")),
            redeemable=data.get("redeemable") is True,
            asset=str(data.get("asset") or ""),
            title=str(data.get("title") or ""),
            outcome=str(data.get("outcome") or ""),
            current_value=_to_float(data.get("currentValue")),
        )


class PositionSource:
    """Async client for the Data API ``/positions`` endpoint."""

    def __init__(self, base_url: str = "https://data-api.polymarket.com") -> None:
        self._base_url = base_url.rstrip("/")

    async def get_positions(self, address: str, limit: int = 200) -> list[Position]:
        url = f"{self._base_url}/positions"
        params = {"user": address, "limit": limit}

        try:
            async with aiohttp.ClientSession(headers=_HEADERS, timeout=_TIMEOUT) as sess:
                async with sess.get(url, params=params) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise PositionFetchError(
                            f"Data API positions returned {resp.status}: {body[:200]}"
                        )
                    data = await resp.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise PositionFetchError(f"Data API unreachable: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise PositionFetchError("Data API request timed out") from exc
        except ValueError as exc:
            raise PositionFetchError(f"Data API returned invalid JSON: {exc}") from exc

        if not isinstance(data, list):
            raise PositionFetchError(f"Unexpected positions payload: {type(data).__name__}")

        positions = [Position.from_api(p) for p in data if isinstance(p, dict)]
        log.debug("Fetched %d position(s) for %s", len(positions), address[:10])
        return positions
