"""CreateBatchEscrows fixtures."""

from __future__ import annotations

import pytest

from htlc_escrow.config import EngineSettings
from htlc_escrow.crypto.hash_algorithms import hashlock_for
from htlc_escrow.errors import ErrorCode
from htlc_escrow.msg import CreateBatchEscrows, CreateEscrow, EscrowInput
from htlc_escrow.test_accounts import ADMIN, ALICE, BOB, CAROL
from htlc_escrow.types import CallContext, Coin, Config, EscrowState

NOW = 1_700_000_000
REL = "escrow/create_batch_escrows.json"


def _base_state(max_batch_size: int = 10, paused: bool = False) -> EscrowState:
    return EscrowState(config=Config(1000, 500, max_batch_size, paused), admin=ADMIN)


def _item(secret: str, amount: int = 100, recipient: str = BOB, **overrides) -> EscrowInput:
    fields = dict(
        recipient=recipient,
        hashlock=hashlock_for(secret),
        timelock=NOW + 3600,
        token="native",
        amount=amount,
    )
    fields.update(overrides)
    return EscrowInput(**fields)


def _ctx(funds: int) -> CallContext:
    return CallContext(sender=ALICE, now=NOW, funds=(Coin("native", funds),))


def test_batch_success(escrow_case) -> None:
    items = [_item("s1", 100), _item("s2", 200, recipient=CAROL), _item("s3", 300)]
    engine, results = escrow_case(
        REL, "batch_success", _base_state(), [(_ctx(600), CreateBatchEscrows(items))]
    )
    assert results[0].ok
    assert len(engine.storage.escrows) == 3
    index = engine.storage.user_index.load(ALICE)
    assert index.count == 3
    assert index.escrow_ids == [hashlock_for(s) for s in ("s1", "s2", "s3")]
    assert results[0].response.attributes == [
        ("action", "create_batch_escrows"),
        ("creator", ALICE),
        ("count", "3"),
        ("total_amount", "600"),
    ]


def test_batch_max_size_accepted(escrow_case) -> None:
    items = [_item(f"s{i}", 10) for i in range(3)]
    _, results = escrow_case(
        REL, "batch_at_max_size", _base_state(max_batch_size=3), [(_ctx(30), CreateBatchEscrows(items))]
    )
    assert results[0].ok


@pytest.mark.parametrize("size", [0, 4])
def test_batch_invalid_size(escrow_case, size: int) -> None:
    items = [_item(f"s{i}", 10) for i in range(size)]
    engine, results = escrow_case(
        REL, f"batch_size_{size}", _base_state(max_batch_size=3), [(_ctx(1000), CreateBatchEscrows(items))]
    )
    assert results[0].error.code == ErrorCode.INVALID_BATCH_SIZE
    assert len(engine.storage.escrows) == 0


def test_batch_invalid_item_rolls_back_all(escrow_case) -> None:
    items = [_item("s1"), _item("s2"), _item("s3", timelock=NOW)]
    engine, results = escrow_case(
        REL, "batch_invalid_item_rolls_back", _base_state(), [(_ctx(300), CreateBatchEscrows(items))]
    )
    assert results[0].error.code == ErrorCode.INVALID_TIMELOCK
    assert len(engine.storage.escrows) == 0
    assert engine.storage.user_index.load(ALICE).count == 0


def test_batch_duplicate_within_batch(escrow_case) -> None:
    items = [_item("s1"), _item("s1", recipient=CAROL)]
    engine, results = escrow_case(
        REL, "batch_duplicate_within_batch", _base_state(), [(_ctx(200), CreateBatchEscrows(items))]
    )
    assert results[0].error.code == ErrorCode.ESCROW_ALREADY_EXISTS
    assert len(engine.storage.escrows) == 0


def test_batch_duplicate_of_existing(escrow_case) -> None:
    first = CreateBatchEscrows([_item("s1")])
    second = CreateBatchEscrows([_item("s2"), _item("s1")])
    engine, results = escrow_case(
        REL,
        "batch_duplicate_of_existing",
        _base_state(),
        [(_ctx(100), first), (_ctx(200), second)],
    )
    assert results[0].ok
    assert results[1].error.code == ErrorCode.ESCROW_ALREADY_EXISTS
    assert len(engine.storage.escrows) == 1


def test_batch_insufficient_total(escrow_case) -> None:
    items = [_item("s1", 100), _item("s2", 200)]
    engine, results = escrow_case(
        REL, "batch_insufficient_total", _base_state(), [(_ctx(299), CreateBatchEscrows(items))]
    )
    assert results[0].error.code == ErrorCode.INSUFFICIENT_FUNDS
    assert results[0].error.details == {"required": 300, "sent": 299}
    assert len(engine.storage.escrows) == 0


def test_batch_paused(escrow_case) -> None:
    _, results = escrow_case(
        REL, "batch_paused", _base_state(paused=True), [(_ctx(100), CreateBatchEscrows([_item("s1")]))]
    )
    assert results[0].error.code == ErrorCode.CONTRACT_PAUSED


def test_batch_mixed_denoms_checked_per_denom(escrow_case) -> None:
    settings = EngineSettings(supported_denoms=frozenset({"native", "uatom"}))
    items = [_item("s1", 100), _item("s2", 50, token="uatom")]
    funds = (Coin("native", 100), Coin("uatom", 49))
    _, results = escrow_case(
        REL,
        "batch_mixed_denoms_short",
        _base_state(),
        [(CallContext(sender=ALICE, now=NOW, funds=funds), CreateBatchEscrows(items))],
        settings=settings,
    )
    assert results[0].error.code == ErrorCode.INSUFFICIENT_FUNDS


def test_batch_user_index_appends_after_single(escrow_case) -> None:
    single = CreateEscrow(
        recipient=BOB, hashlock=hashlock_for("solo"), timelock=NOW + 60, token="native", amount=5
    )
    engine, results = escrow_case(
        REL,
        "batch_after_single",
        _base_state(),
        [(_ctx(5), single), (_ctx(200), CreateBatchEscrows([_item("s1"), _item("s2")]))],
    )
    assert all(r.ok for r in results)
    index = engine.storage.user_index.load(ALICE)
    assert index.escrow_ids == [hashlock_for("solo"), hashlock_for("s1"), hashlock_for("s2")]
    assert index.count == len(index.escrow_ids)
