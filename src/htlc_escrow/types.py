"""Core types for the HTLC escrow engine.

Escrows are keyed by their canonical hashlock (lower-case hex, no prefix).
Account ids are the normalized strings returned by the address validator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple


class EscrowStatus(IntEnum):
    ACTIVE = 0
    CLAIMED = 1
    REFUNDED = 2

    @property
    def is_terminal(self) -> bool:
        return self is not EscrowStatus.ACTIVE


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


@dataclass
class Escrow:
    creator: str
    recipient: str
    hashlock: str
    timelock: int
    token: str
    amount: int
    status: EscrowStatus = EscrowStatus.ACTIVE


@dataclass
class UserEscrows:
    escrow_ids: List[str] = field(default_factory=list)
    count: int = 0


@dataclass
class Config:
    claim_fee: int
    refund_fee: int
    max_batch_size: int
    paused: bool = False


@dataclass
class EscrowState:
    escrows: dict[str, Escrow] = field(default_factory=dict)
    user_escrows: dict[str, UserEscrows] = field(default_factory=dict)
    config: Optional[Config] = None
    admin: Optional[str] = None


# --- Call context / outputs ---


@dataclass(frozen=True)
class CallContext:
    """Per-call host data: authenticated sender, attached funds, wall clock.

    `now` is read once by the host and stays fixed for the whole call.
    """

    sender: str
    now: int
    funds: Tuple[Coin, ...] = ()


@dataclass(frozen=True)
class BankSend:
    """Transfer instruction for the ledger."""

    to_address: str
    amount: Tuple[Coin, ...]


@dataclass
class Response:
    messages: List[BankSend] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def add_message(self, message: BankSend) -> "Response":
        self.messages.append(message)
        return self

    def add_attribute(self, key: str, value: object) -> "Response":
        if isinstance(value, bool):
            value = "true" if value else "false"
        self.attributes.append((key, str(value)))
        return self

    def attribute(self, key: str) -> Optional[str]:
        for k, v in self.attributes:
            if k == key:
                return v
        return None

    @property
    def action(self) -> Optional[str]:
        return self.attribute("action")
