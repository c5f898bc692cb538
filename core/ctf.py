"""
Conditional Tokens Framework (CTF) contract constants and call encoding.
"""

from __future__ import annotations

from eth_abi import encode as abi_encode
from web3 import Web3

from core.conditions import BINARY_INDEX_SETS, ZERO_BYTES32, condition_id_bytes

CTF_ADDRESS = "0x4D97DCd97eC945f40cF65F87097ACe5EA0476045"
USDC_E = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"

CTF_REDEEM_ABI = [
    {
        "inputs": [
            {"name": "collateralToken", "type": "address"},
            {"name": "parentCollectionId", "type": "bytes32"},
            {"name": "conditionId", "type": "bytes32"},
            {"name": "indexSets", "type": "uint256[]"},
        ],
        "name": "redeemPositions",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    }
]

_REDEEM_SIGNATURE = "redeemPositions(address,bytes32,bytes32,uint256[])"
REDEEM_SELECTOR = bytes(Web3.keccak(text=_REDEEM_SIGNATURE)[:4])


def redeem_args(condition_id: str) -> list:
    """Fixed redeemPositions arguments for a binary market condition."""
    return [
        Web3.to_checksum_address(USDC_E),
        ZERO_BYTES32,
        condition_id_bytes(condition_id),
        list(BINARY_INDEX_SETS),
    ]


def encode_redeem_data(condition_id: str) -> str:
    """ABI-encoded calldata (``0x``-prefixed) for redeemPositions."""
    params = abi_encode(
        ["address", "bytes32", "bytes32", "uint256[]"],
        redeem_args(condition_id),
    )
    return "0x" + (REDEEM_SELECTOR + params).hex()
