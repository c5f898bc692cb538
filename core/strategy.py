"""
Execution strategy selection.

A run redeems either through the Polymarket relayer (gas paid by the relay,
tokens held by the proxy wallet) or directly from the signing key's own
address. The choice is made once per run from the builder credentials.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from core.config import BuilderCreds


@dataclass(frozen=True, slots=True)
class RelayedStrategy:
    creds: BuilderCreds
    name: str = "relayed"


@dataclass(frozen=True, slots=True)
class DirectStrategy:
    name: str = "direct"


Strategy = Union[RelayedStrategy, DirectStrategy]


def select_strategy(creds: BuilderCreds) -> Strategy:
    """Relayed iff key, secret and passphrase are all non-empty."""
    if creds.complete:
        return RelayedStrategy(creds)
    return DirectStrategy()
