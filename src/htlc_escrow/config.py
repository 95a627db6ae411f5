"""HTLC escrow configuration constants and engine settings.

Constants describe the fixed shape of the protocol (digest size, integer
ranges). `EngineSettings` carries the selectable policy points that differ
between deployments: digest algorithm, claim authorization, amount matching.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet

# Hashlock
HASHLOCK_SIZE = 32
SECRET_SIZE = 32

# Integer ranges (u64 seconds, Uint128 amounts, u32 batch size)
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1
U32_MAX = (1 << 32) - 1

# Denominations
NATIVE_DENOM = "native"

# Config defaults
DEFAULT_CLAIM_FEE = 1000
DEFAULT_REFUND_FEE = 500
DEFAULT_MAX_BATCH_SIZE = 10

# Addresses
DEFAULT_ADDRESS_HRP = "cosmos"
MAX_ADDRESS_LENGTH = 90
ADDRESS_PAYLOAD_SIZES = (20, 32)

# Coin strings ("1000native")
COIN_DENOM_PATTERN = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"


class DigestAlgorithm(Enum):
    SHA256 = "sha256"
    KECCAK256 = "keccak256"
    SHA3_256 = "sha3_256"
    BLAKE3 = "blake3"


class ClaimPolicy(Enum):
    RECIPIENT_ONLY = "recipient_only"
    OPEN = "open"


class AmountPolicy(Enum):
    MINIMUM = "minimum"
    EXACT = "exact"


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class EngineSettings:
    """Deployment-level policy points for the escrow state machine."""

    digest_algorithm: DigestAlgorithm = DigestAlgorithm.SHA256
    claim_policy: ClaimPolicy = ClaimPolicy.RECIPIENT_ONLY
    amount_policy: AmountPolicy = AmountPolicy.MINIMUM
    supported_denoms: FrozenSet[str] = field(default_factory=lambda: frozenset({NATIVE_DENOM}))
    address_hrp: str = DEFAULT_ADDRESS_HRP

    # Initial Config values written at instantiation
    claim_fee: int = DEFAULT_CLAIM_FEE
    refund_fee: int = DEFAULT_REFUND_FEE
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    paused: bool = False

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Load settings from environment variables."""
        defaults = cls()
        denoms = os.environ.get("HTLC_DENOMS")
        return cls(
            digest_algorithm=DigestAlgorithm(
                os.environ.get("HTLC_DIGEST", defaults.digest_algorithm.value)
            ),
            claim_policy=ClaimPolicy(
                os.environ.get("HTLC_CLAIM_POLICY", defaults.claim_policy.value)
            ),
            amount_policy=AmountPolicy(
                os.environ.get("HTLC_AMOUNT_POLICY", defaults.amount_policy.value)
            ),
            supported_denoms=(
                frozenset(d.strip() for d in denoms.split(",") if d.strip())
                if denoms
                else defaults.supported_denoms
            ),
            address_hrp=os.environ.get("HTLC_ADDRESS_HRP", defaults.address_hrp),
            max_batch_size=int(
                os.environ.get("HTLC_MAX_BATCH_SIZE", defaults.max_batch_size)
            ),
            paused=_env_flag("HTLC_START_PAUSED"),
        )
