"""
Condition id helpers.

Polymarket reports condition ids as hex strings of varying shape (with or
without ``0x``, occasionally unpadded). The CTF contract wants a bytes32,
so every id is canonicalized to ``0x`` + 64 lowercase hex digits first.
"""

from __future__ import annotations

ZERO_BYTES32 = b"\x00" * 32

# Both outcome slots of a binary market.
BINARY_INDEX_SETS = [1, 2]


def normalize_condition_id(value: str) -> str:
    """Left-pad to 64 hex digits, keep the last 64, re-prefix with ``0x``."""
    raw = value[2:] if value.startswith("0x") else value
    return "0x" + raw.rjust(64, "0")[-64:].lower()


def condition_id_bytes(value: str) -> bytes:
    """32-byte form for ABI encoding. Raises ValueError on non-hex ids."""
    return bytes.fromhex(normalize_condition_id(value)[2:])
