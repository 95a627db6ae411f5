"""Fixture replay and the conformance harness against a live service."""

from __future__ import annotations

import asyncio
import importlib
from pathlib import Path

import pytest
from aiohttp import test_utils

from htlc_escrow.codec import state_to_json
from htlc_escrow.config import ClaimPolicy, EngineSettings
from htlc_escrow.crypto.hash_algorithms import hashlock_for
from htlc_escrow.engine import EscrowStateMachine
from htlc_escrow.msg import Claim, CreateEscrow
from htlc_escrow.server import create_app
from htlc_escrow.state_digest import compute_state_digest
from htlc_escrow.test_accounts import ADMIN, ALICE, BOB
from htlc_escrow.types import CallContext, Coin, Config, EscrowState
from tools.fixtures_io import call_to_json, replay_case, settings_to_json

NOW = 1_700_000_000
LOCK = hashlock_for("secret1")
HARNESS_DIR = Path(__file__).resolve().parent.parent / "conformance" / "harness"


def _case(settings: EngineSettings | None = None) -> dict:
    pre_state = state_to_json(EscrowState(config=Config(1000, 500, 10, False), admin=ADMIN))
    create = CreateEscrow(recipient=BOB, hashlock=LOCK, timelock=NOW + 60, token="native", amount=10)
    calls = [
        (CallContext(ALICE, NOW, (Coin("native", 10),)), create),
        (CallContext(BOB, NOW + 1), Claim(LOCK, "wrong")),
        (CallContext(BOB, NOW + 1), Claim(LOCK, "secret1")),
    ]
    case = {
        "name": "lifecycle",
        "settings": settings_to_json(settings or EngineSettings()),
        "pre_state": pre_state,
        "pre_state_digest": compute_state_digest(pre_state),
        "calls": [call_to_json(ctx, msg) for ctx, msg in calls],
    }
    case["expected"] = replay_case(case)
    return case


def test_replay_case_outputs() -> None:
    case = _case()
    expected = case["expected"]
    assert [r["ok"] for r in expected["results"]] == [True, False, True]
    assert expected["results"][1]["error"] == "INVALID_SECRET"
    assert expected["transfers"] == [
        {"to_address": BOB, "amount": [{"denom": "native", "amount": "10"}]}
    ]
    assert expected["post_state"]["escrows"][0]["status"] == "claimed"
    assert replay_case(case) == expected


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.syspath_prepend(str(HARNESS_DIR))
    return importlib.import_module("runner")


def _run_harness(runner, case: dict):
    async def _main():
        client = test_utils.TestClient(test_utils.TestServer(create_app(EscrowStateMachine())))
        await client.start_server()
        config = runner.HarnessConfig(endpoint=str(client.make_url("")))
        harness = runner.ConformanceHarness(config)
        try:
            await harness.setup()
            return await harness.run_case("lifecycle", case)
        finally:
            await harness.teardown()
            await client.close()

    return asyncio.run(_main())


def test_harness_passes_matching_service(runner) -> None:
    result = _run_harness(runner, _case())
    assert result.passed, result.divergences
    assert not result.skipped


def test_harness_reports_digest_divergence(runner) -> None:
    case = _case()
    case["expected"]["state_digest"] = "00" * 32
    result = _run_harness(runner, case)
    assert not result.passed
    assert any("state digest" in d for d in result.divergences)


def test_harness_skips_non_default_settings(runner) -> None:
    result = _run_harness(runner, _case(EngineSettings(claim_policy=ClaimPolicy.OPEN)))
    assert result.skipped


def test_harness_config_from_env(runner, monkeypatch) -> None:
    monkeypatch.setenv("HTLC_ENDPOINT", "http://escrow:9000")
    monkeypatch.setenv("STOP_ON_FIRST_FAILURE", "yes")
    config = runner.HarnessConfig.from_env()
    assert config.endpoint == "http://escrow:9000"
    assert config.stop_on_first_failure is True
