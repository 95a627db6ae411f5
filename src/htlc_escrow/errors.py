"""HTLC escrow error codes and exceptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


class ErrorCategory(IntEnum):
    SUCCESS = 0x00
    VALIDATION = 0x01
    FUNDS = 0x02
    STATE = 0x03
    TIME = 0x04
    AUTHORIZATION = 0x05
    SECRET = 0x06
    OPERATIONAL = 0x07
    INTERNAL = 0xFF


class ErrorCode(IntEnum):
    # Success
    SUCCESS = 0x0000

    # Validation
    INVALID_ADDRESS = 0x0100
    INVALID_HASHLOCK = 0x0101
    INVALID_TIMELOCK = 0x0102
    INVALID_BATCH_SIZE = 0x0103
    UNSUPPORTED_TOKEN = 0x0104
    INVALID_MESSAGE = 0x0105

    # Funds
    INSUFFICIENT_FUNDS = 0x0200
    NO_FUNDS_SENT = 0x0201
    INVALID_FUNDS = 0x0202

    # State
    ESCROW_NOT_FOUND = 0x0300
    ESCROW_ALREADY_EXISTS = 0x0301
    ESCROW_CLOSED = 0x0302
    NOT_INSTANTIATED = 0x0303

    # Time
    TIMELOCK_NOT_EXPIRED = 0x0400
    TIMELOCK_EXPIRED = 0x0401

    # Authorization
    UNAUTHORIZED = 0x0500
    UNAUTHORIZED_REFUND = 0x0501
    UNAUTHORIZED_REDEEM = 0x0502

    # Secret
    INVALID_SECRET = 0x0600

    # Operational
    CONTRACT_PAUSED = 0x0700

    # Internal
    INTERNAL_ERROR = 0xFF00
    NOT_IMPLEMENTED = 0xFF01

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


@dataclass(frozen=True)
class EscrowError(Exception):
    code: ErrorCode
    message: str
    details: dict[str, int] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


# Allow Python's Exception machinery to set __traceback__/__context__/__cause__
# (plus `raise ... from` and add_note bookkeeping) while keeping dataclass
# fields frozen (Python 3.13 contextlib compat).
_EXCEPTION_ATTRS = frozenset(
    ("__traceback__", "__context__", "__cause__", "__suppress_context__", "__notes__")
)
_frozen_setattr = EscrowError.__setattr__


def _escrow_error_setattr(self: EscrowError, name: str, value: object) -> None:
    if name in _EXCEPTION_ATTRS:
        object.__setattr__(self, name, value)
    else:
        _frozen_setattr(self, name, value)


EscrowError.__setattr__ = _escrow_error_setattr  # type: ignore[method-assign]


def err(code: ErrorCode, message: str, **details: int) -> EscrowError:
    return EscrowError(code=code, message=message, details=details)


# --- constructors for the diagnostic-carrying kinds ---


def invalid_timelock(current: int, timelock: int) -> EscrowError:
    return err(
        ErrorCode.INVALID_TIMELOCK,
        f"timelock must be in future (current {current}, got {timelock})",
        current=current,
        timelock=timelock,
    )


def insufficient_funds(required: int, sent: int) -> EscrowError:
    return err(
        ErrorCode.INSUFFICIENT_FUNDS,
        f"insufficient funds (required {required}, got {sent})",
        required=required,
        sent=sent,
    )


def timelock_not_expired(expires: int, current: int) -> EscrowError:
    return err(
        ErrorCode.TIMELOCK_NOT_EXPIRED,
        f"timelock not expired (expires: {expires}, current: {current})",
        expires=expires,
        current=current,
    )
