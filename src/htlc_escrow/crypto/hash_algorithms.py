"""Hashlock digest algorithms.

Every supported algorithm produces a 32-byte digest, so a hashlock is always
HASHLOCK_SIZE bytes regardless of which one a deployment selects.
"""

from __future__ import annotations

import hashlib
import secrets
from typing import Callable

from blake3 import blake3
from Crypto.Hash import keccak

from ..config import HASHLOCK_SIZE, SECRET_SIZE, DigestAlgorithm
from ..errors import ErrorCode, EscrowError

DigestFn = Callable[[bytes], bytes]


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """Pre-standard Keccak-256 (the EVM hash), not NIST SHA3-256."""
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def sha3_256(data: bytes) -> bytes:
    return hashlib.sha3_256(data).digest()


def blake3_hash(data: bytes) -> bytes:
    return blake3(data).digest()


_DIGESTS: dict[DigestAlgorithm, DigestFn] = {
    DigestAlgorithm.SHA256: sha256,
    DigestAlgorithm.KECCAK256: keccak256,
    DigestAlgorithm.SHA3_256: sha3_256,
    DigestAlgorithm.BLAKE3: blake3_hash,
}


def digest_fn(algorithm: DigestAlgorithm) -> DigestFn:
    return _DIGESTS[algorithm]


def digest(algorithm: DigestAlgorithm, data: bytes) -> bytes:
    out = _DIGESTS[algorithm](data)
    if len(out) != HASHLOCK_SIZE:
        raise EscrowError(ErrorCode.INTERNAL_ERROR, f"{algorithm.value} produced {len(out)} bytes")
    return out


def secret_bytes(secret: str) -> bytes:
    """Secrets are revealed as text; the preimage is its UTF-8 encoding."""
    try:
        return secret.encode("utf-8")
    except UnicodeEncodeError:
        raise EscrowError(ErrorCode.INVALID_SECRET, "secret is not valid UTF-8 text") from None


def hashlock_for(secret: str, algorithm: DigestAlgorithm = DigestAlgorithm.SHA256) -> str:
    """Hex hashlock committing to `secret`."""
    return digest(algorithm, secret_bytes(secret)).hex()


def generate_secret(algorithm: DigestAlgorithm = DigestAlgorithm.SHA256) -> tuple[str, str]:
    """Random secret (hex text) and the hashlock of that text."""
    secret = secrets.token_bytes(SECRET_SIZE).hex()
    return secret, hashlock_for(secret, algorithm)
