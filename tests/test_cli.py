"""Command line interface."""

from __future__ import annotations

import json

import pytest
import yaml
from click.testing import CliRunner

from htlc_escrow.cli import cli
from htlc_escrow.crypto.hash_algorithms import hashlock_for
from htlc_escrow.test_accounts import ADMIN, ALICE, BOB

NOW = 1_700_000_000
LOCK = hashlock_for("secret1")


@pytest.fixture
def run(tmp_path, monkeypatch):
    for name in (
        "HTLC_DIGEST",
        "HTLC_CLAIM_POLICY",
        "HTLC_AMOUNT_POLICY",
        "HTLC_DENOMS",
        "HTLC_ADDRESS_HRP",
        "HTLC_MAX_BATCH_SIZE",
        "HTLC_START_PAUSED",
    ):
        monkeypatch.delenv(name, raising=False)
    state = tmp_path / "state.json"
    runner = CliRunner()

    def _run(*args: str, expect: int = 0):
        result = runner.invoke(cli, ["--state", str(state), *args])
        assert result.exit_code == expect, result.output
        return result

    _run("init", "--sender", ADMIN, "--now", str(NOW))
    return _run


def _create_args(amount: int = 1000, funds: str = "1000native") -> list[str]:
    return [
        "create",
        "--sender", ALICE,
        "--now", str(NOW),
        "--funds", funds,
        "--recipient", BOB,
        "--hashlock", LOCK,
        "--timelock", str(NOW + 3600),
        "--amount", str(amount),
    ]


def test_create_and_query(run) -> None:
    out = json.loads(run(*_create_args()).output)
    assert out["success"] is True
    assert {"key": "action", "value": "create_escrow"} in out["response"]["attributes"]

    view = json.loads(run("query", "escrow", LOCK).output)["result"]
    assert view["status"] == "active"
    assert view["amount"] == "1000"


def test_failed_create_exits_nonzero(run) -> None:
    out = json.loads(run(*_create_args(funds="10native"), expect=1).output)
    assert out["error"]["code"] == "INSUFFICIENT_FUNDS"
    assert json.loads(run("query", "user", ALICE).output)["result"]["count"] == 0


def test_claim_via_redeem_alias(run) -> None:
    run(*_create_args())
    out = json.loads(
        run("redeem", "--sender", BOB, "--now", str(NOW + 1), "--hashlock", LOCK, "--secret", "secret1").output
    )
    assert out["response"]["messages"][0]["bank_send"]["to_address"] == BOB
    assert json.loads(run("query", "escrow", LOCK).output)["result"]["status"] == "claimed"


def test_refund_before_and_after_expiry(run) -> None:
    run(*_create_args())
    early = json.loads(run("refund", "--sender", ALICE, "--now", str(NOW), "--hashlock", LOCK, expect=1).output)
    assert early["error"]["code"] == "TIMELOCK_NOT_EXPIRED"
    run("refund", "--sender", ALICE, "--now", str(NOW + 3600), "--hashlock", LOCK)
    assert json.loads(run("query", "escrow", LOCK).output)["result"]["status"] == "refunded"


def test_create_batch_from_file(run, tmp_path) -> None:
    items = [
        {"recipient": BOB, "hashlock": hashlock_for(s), "timelock": NOW + 60, "amount": 10}
        for s in ("a", "b")
    ]
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({"escrows": items}))
    run("create-batch", "--sender", ALICE, "--now", str(NOW), "--funds", "20native", str(path))
    views = json.loads(run("query", "by-account", ALICE).output)["result"]
    assert len(views) == 2
    batch = json.loads(run("query", "batch", hashlock_for("a"), hashlock_for("zzz")).output)["result"]
    assert [v["hashlock"] for v in batch] == [hashlock_for("a")]


def test_update_config_and_yaml_output(run) -> None:
    run("update-config", "--sender", ADMIN, "--now", str(NOW), "--paused", "--max-batch-size", "4")
    out = yaml.safe_load(run("--format", "yaml", "query", "config").output)
    assert out["result"] == {"claim_fee": "1000", "refund_fee": "500", "max_batch_size": 4, "paused": True}
    paused = json.loads(run(*_create_args(), expect=1).output)
    assert paused["error"]["code"] == "CONTRACT_PAUSED"
    run("update-config", "--sender", ADMIN, "--now", str(NOW), "--unpaused")
    run(*_create_args())


def test_update_config_non_admin(run) -> None:
    out = json.loads(run("update-config", "--sender", ALICE, "--now", str(NOW), "--claim-fee", "1", expect=1).output)
    assert out["error"]["code"] == "UNAUTHORIZED"


def test_query_admin(run) -> None:
    assert json.loads(run("query", "admin").output)["result"] == ADMIN


def test_invalid_funds_string(run) -> None:
    out = json.loads(run(*_create_args(funds="lots"), expect=1).output)
    assert out["error"]["code"] == "INVALID_MESSAGE"


def test_hashlock_and_new_secret() -> None:
    runner = CliRunner()
    out = json.loads(runner.invoke(cli, ["hashlock", "secret1"]).output)
    assert out["hashlock"] == LOCK
    out = json.loads(runner.invoke(cli, ["hashlock", "secret1", "--algorithm", "keccak256"]).output)
    assert out["hashlock"] != LOCK
    fresh = json.loads(runner.invoke(cli, ["new-secret"]).output)
    assert hashlock_for(fresh["secret"]) == fresh["hashlock"]
