"""Canonical escrow state digest (v1)."""
from __future__ import annotations

from typing import Any

from blake3 import blake3

_STATUS_CODES = {"active": 0, "claimed": 1, "refunded": 2}


def _hex_to_bytes(value: str | None) -> bytes:
    if value is None:
        return b""
    if not isinstance(value, str):
        raise TypeError("hex value must be string")
    v = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(v)


def _u64_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u64 must be non-negative")
    return int(value).to_bytes(8, "big", signed=False)


def _u128_be(value: int) -> bytes:
    if value < 0:
        raise ValueError("u128 must be non-negative")
    return int(value).to_bytes(16, "big", signed=False)


def _str(value: str | None) -> bytes:
    raw = (value or "").encode("utf-8")
    return _u64_be(len(raw)) + raw


def compute_state_digest(state: dict[str, Any]) -> str:
    """Compute state digest v1 from a `state_to_json` snapshot.

    Fields are encoded in canonical order and hashed with BLAKE3-256:
    config, admin, escrows sorted by hashlock, user index sorted by account.
    """
    buf = bytearray()

    config = state.get("config")
    if config is None:
        buf += b"\x00"
    else:
        buf += b"\x01"
        buf += _u128_be(int(config.get("claim_fee", 0)))
        buf += _u128_be(int(config.get("refund_fee", 0)))
        buf += _u64_be(int(config.get("max_batch_size", 0)))
        buf += b"\x01" if config.get("paused") else b"\x00"
    buf += _str(state.get("admin"))

    escrows = sorted(state.get("escrows", []), key=lambda e: e["hashlock"])
    buf += _u64_be(len(escrows))
    for e in escrows:
        hashlock = _hex_to_bytes(e["hashlock"])
        if len(hashlock) != 32:
            raise ValueError(f"hashlock must be 32 bytes, got {len(hashlock)}")
        buf += hashlock
        buf += _str(e["creator"])
        buf += _str(e["recipient"])
        buf += _u64_be(int(e["timelock"]))
        buf += _str(e["token"])
        buf += _u128_be(int(e["amount"]))
        buf += bytes([_STATUS_CODES[e["status"]]])

    users = sorted(state.get("user_escrows", []), key=lambda u: u["account"])
    buf += _u64_be(len(users))
    for u in users:
        buf += _str(u["account"])
        ids = u.get("escrow_ids", [])
        buf += _u64_be(len(ids))
        for escrow_id in ids:
            buf += _hex_to_bytes(escrow_id)

    return blake3(buf).hexdigest()
