"""Escrow, user-index and config stores."""

from __future__ import annotations

import pytest

from htlc_escrow.errors import ErrorCode, EscrowError
from htlc_escrow.storage import Storage
from htlc_escrow.types import Config, Escrow, EscrowState, EscrowStatus


def _escrow(hashlock: str) -> Escrow:
    return Escrow(creator="c", recipient="r", hashlock=hashlock, timelock=10, token="native", amount=1)


def test_escrow_store_roundtrip() -> None:
    storage = Storage()
    storage.escrows.save(_escrow("bb" * 32))
    assert storage.escrows.has("bb" * 32)
    assert storage.escrows.load("bb" * 32).amount == 1
    assert storage.escrows.get("cc" * 32) is None
    with pytest.raises(EscrowError) as exc:
        storage.escrows.load("cc" * 32)
    assert exc.value.code == ErrorCode.ESCROW_NOT_FOUND


def test_escrow_store_range_ordered() -> None:
    storage = Storage()
    for key in ("cc" * 32, "aa" * 32, "bb" * 32):
        storage.escrows.save(_escrow(key))
    assert [k for k, _ in storage.escrows.range()] == ["aa" * 32, "bb" * 32, "cc" * 32]
    assert len(storage.escrows) == 3


def test_user_index_append() -> None:
    storage = Storage()
    assert storage.user_index.load("c").count == 0
    storage.user_index.append("c", "aa" * 32)
    storage.user_index.append("c", "bb" * 32)
    entry = storage.user_index.load("c")
    assert entry.escrow_ids == ["aa" * 32, "bb" * 32]
    assert entry.count == 2


def test_config_store() -> None:
    storage = Storage()
    assert not storage.config.is_initialized()
    with pytest.raises(EscrowError) as exc:
        storage.config.load()
    assert exc.value.code == ErrorCode.NOT_INSTANTIATED
    storage.config.save(Config(1, 2, 3))
    storage.config.admin = "admin"
    assert storage.config.load() == Config(1, 2, 3, False)
    assert storage.config.admin == "admin"


def test_transaction_commits() -> None:
    storage = Storage()
    with storage.transaction() as working:
        working.escrows.save(_escrow("aa" * 32))
        assert not storage.escrows.has("aa" * 32)
    assert storage.escrows.has("aa" * 32)


def test_transaction_rolls_back_on_error() -> None:
    state = EscrowState()
    state.escrows["aa" * 32] = _escrow("aa" * 32)
    storage = Storage(state)
    with pytest.raises(EscrowError):
        with storage.transaction() as working:
            working.escrows.load("aa" * 32).status = EscrowStatus.CLAIMED
            working.user_index.append("c", "aa" * 32)
            raise EscrowError(ErrorCode.INVALID_SECRET, "boom")
    assert storage.state is state
    assert storage.escrows.load("aa" * 32).status is EscrowStatus.ACTIVE
    assert storage.user_index.load("c").count == 0


def test_reset() -> None:
    storage = Storage()
    storage.escrows.save(_escrow("aa" * 32))
    storage.reset()
    assert len(storage.escrows) == 0
