"""Request, query and view messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from .types import Config, Escrow, UserEscrows


# --- execute messages ---


@dataclass
class Instantiate:
    admin: Optional[str] = None


@dataclass
class EscrowInput:
    recipient: str
    hashlock: str
    timelock: int
    token: str
    amount: int


@dataclass
class CreateEscrow(EscrowInput):
    pass


@dataclass
class CreateBatchEscrows:
    escrows: List[EscrowInput] = field(default_factory=list)


@dataclass
class Claim:
    hashlock: str
    secret: str


# Cross-chain HTLC clients call the claim operation "redeem".
Redeem = Claim


@dataclass
class Refund:
    hashlock: str


@dataclass
class UpdateConfig:
    claim_fee: Optional[int] = None
    refund_fee: Optional[int] = None
    max_batch_size: Optional[int] = None
    paused: Optional[bool] = None


ExecuteMsg = Union[Instantiate, CreateEscrow, CreateBatchEscrows, Claim, Refund, UpdateConfig]


# --- query messages ---


class Role(Enum):
    CREATOR = "creator"
    RECIPIENT = "recipient"

    @classmethod
    def parse(cls, value: str) -> "Role":
        if value == "initiator":
            return cls.CREATOR
        return cls(value)


@dataclass
class GetEscrow:
    hashlock: str


@dataclass
class GetBatchEscrows:
    hashlocks: List[str] = field(default_factory=list)


@dataclass
class GetEscrowsByAccount:
    account: str
    role: Role = Role.CREATOR


@dataclass
class GetUserEscrows:
    account: str


@dataclass
class GetConfig:
    pass


@dataclass
class GetAdmin:
    pass


QueryMsg = Union[GetEscrow, GetBatchEscrows, GetEscrowsByAccount, GetUserEscrows, GetConfig, GetAdmin]


# --- views ---


@dataclass(frozen=True)
class EscrowView:
    hashlock: str
    creator: str
    recipient: str
    timelock: int
    token: str
    amount: int
    status: str

    @classmethod
    def from_escrow(cls, escrow: Escrow) -> "EscrowView":
        return cls(
            hashlock=escrow.hashlock,
            creator=escrow.creator,
            recipient=escrow.recipient,
            timelock=escrow.timelock,
            token=escrow.token,
            amount=escrow.amount,
            status=escrow.status.name.lower(),
        )


@dataclass(frozen=True)
class UserEscrowsView:
    escrow_ids: List[str]
    count: int

    @classmethod
    def from_index(cls, entry: UserEscrows) -> "UserEscrowsView":
        return cls(escrow_ids=list(entry.escrow_ids), count=entry.count)


@dataclass(frozen=True)
class ConfigView:
    claim_fee: int
    refund_fee: int
    max_batch_size: int
    paused: bool

    @classmethod
    def from_config(cls, config: Config) -> "ConfigView":
        return cls(
            claim_fee=config.claim_fee,
            refund_fee=config.refund_fee,
            max_batch_size=config.max_batch_size,
            paused=config.paused,
        )
