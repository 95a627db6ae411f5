"""Deterministic named test accounts (bech32, default prefix)."""

from __future__ import annotations

from .address import bech32_encode
from .config import DEFAULT_ADDRESS_HRP

NAMES = ["Admin", "Alice", "Bob", "Carol", "Dave", "Eve"]


def _account(seed_byte: int) -> str:
    return bech32_encode(DEFAULT_ADDRESS_HRP, bytes([seed_byte]) * 20)


ADMIN = _account(1)
ALICE = _account(2)
BOB = _account(3)
CAROL = _account(4)
DAVE = _account(5)
EVE = _account(6)

ACCOUNTS: dict[str, str] = {name: _account(i + 1) for i, name in enumerate(NAMES)}
