"""Felt helpers: parsing, address normalisation, selectors and entity hashes."""

from __future__ import annotations

from functools import lru_cache

from poseidon_py.poseidon_hash import poseidon_hash_many
from web3 import Web3

MASK_250 = (1 << 250) - 1


def felt(value: str | int) -> int:
    """Parse a felt given as hex string, decimal string or int."""
    if isinstance(value, int):
        return value
    if value.startswith(("0x", "0X")):
        return int(value, 16)
    return int(value)


def to_hex(value: int) -> str:
    return hex(value)


def to_address(value: str | int) -> str:
    """Canonical 64-nibble, zero-padded lowercase address string."""
    return "0x" + format(felt(value), "064x")


def is_zero_address(value: str | int) -> bool:
    return felt(value) == 0


@lru_cache(maxsize=None)
def get_selector(name: str) -> int:
    """Starknet selector: keccak256(name) truncated to 250 bits."""
    digest = Web3.keccak(text=name)
    return int.from_bytes(digest, "big") & MASK_250


def compute_entity_hash(beast_id: int, prefix: int, suffix: int) -> str:
    """Loot Survivor entity hash for a beast: poseidon(id, prefix, suffix)."""
    return to_address(poseidon_hash_many([beast_id, prefix, suffix]))
