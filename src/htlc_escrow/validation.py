"""Input validation helpers shared by single and batch escrow creation."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from .config import HASHLOCK_SIZE, U64_MAX, U128_MAX, AmountPolicy
from .errors import ErrorCode, EscrowError, err, insufficient_funds, invalid_timelock
from .types import Coin

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def canonical_hashlock(value: str) -> str:
    """Lower-case, unprefixed hex of a 32-byte hashlock.

    Raises INVALID_HASHLOCK for anything that is not exactly 32 bytes of hex.
    """
    if not isinstance(value, str):
        raise EscrowError(ErrorCode.INVALID_HASHLOCK, "hashlock must be a hex string")
    v = _strip_hex_prefix(value)
    if not _HEX_RE.fullmatch(v) or len(v) % 2:
        raise err(ErrorCode.INVALID_HASHLOCK, f"hashlock must be 32-byte hex (got {value})")
    if len(v) != HASHLOCK_SIZE * 2:
        raise err(ErrorCode.INVALID_HASHLOCK, f"hashlock must be 32-byte hex (got {value})")
    return v.lower()


def lookup_key(value: str) -> Optional[str]:
    """Store key for a lookup; None when the id cannot name any escrow."""
    try:
        return canonical_hashlock(value)
    except EscrowError:
        return None


def require_future_timelock(timelock: int, now: int) -> None:
    if timelock <= now or timelock > U64_MAX:
        raise invalid_timelock(now, timelock)


def require_positive_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise EscrowError(ErrorCode.INVALID_FUNDS, "amount must be an integer")
    if amount <= 0:
        raise EscrowError(ErrorCode.INVALID_FUNDS, "amount must be > 0")
    if amount > U128_MAX:
        raise EscrowError(ErrorCode.INVALID_FUNDS, "amount exceeds Uint128")


def require_valid_funds(funds: Iterable[Coin]) -> None:
    for coin in funds:
        if coin.amount < 0:
            raise EscrowError(ErrorCode.INVALID_FUNDS, f"negative coin amount for {coin.denom}")


def sent_amount(funds: Iterable[Coin], denom: str) -> int:
    return sum(coin.amount for coin in funds if coin.denom == denom)


def check_funds(required: int, sent: int, policy: AmountPolicy) -> None:
    """Compare attached funds to the amount being locked.

    MINIMUM accepts any surplus (it stays with the engine); EXACT rejects it.
    """
    if sent < required:
        raise insufficient_funds(required, sent)
    if policy is AmountPolicy.EXACT and sent != required:
        raise err(
            ErrorCode.INVALID_FUNDS,
            f"sent funds must equal amount (required {required}, got {sent})",
            required=required,
            sent=sent,
        )
