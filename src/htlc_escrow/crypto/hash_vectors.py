"""Hashlock test vector generators.

Each vector pairs a secret (as the text a claimant would reveal) with the
hashlock it commits to under one digest algorithm.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import HASHLOCK_SIZE, DigestAlgorithm
from .hash_algorithms import digest, secret_bytes

# (name, secret, description)
_SECRETS: List[tuple[str, str, Optional[str]]] = [
    ("empty_secret", "", "Empty preimage"),
    ("secret1", "secret1", None),
    ("wrong", "wrong", None),
    ("hex_secret", "00" * 32, "32 zero bytes rendered as hex text"),
    ("unicode_secret", "sécrét", "Non-ASCII secret, hashed as UTF-8"),
    ("long_secret", "a" * 200, "Multi-block input (200 bytes)"),
]


@dataclass
class HashlockVector:
    name: str
    description: Optional[str]
    secret: str
    secret_hex: str
    secret_length: int
    hashlock_hex: str


def hashlock_vectors(algorithm: DigestAlgorithm) -> Dict[str, Any]:
    vectors: List[HashlockVector] = []
    for name, secret, description in _SECRETS:
        raw = secret_bytes(secret)
        vectors.append(
            HashlockVector(
                name=name,
                description=description,
                secret=secret,
                secret_hex=raw.hex(),
                secret_length=len(raw),
                hashlock_hex=digest(algorithm, raw).hex(),
            )
        )

    return {
        "algorithm": algorithm.value,
        "output_size": HASHLOCK_SIZE,
        "test_vectors": [v.__dict__ for v in vectors],
    }


def all_hashlock_vectors() -> Dict[str, Dict[str, Any]]:
    return {alg.value: hashlock_vectors(alg) for alg in DigestAlgorithm}
