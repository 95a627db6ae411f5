"""Pytest hooks to generate escrow fixtures while testing."""

from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

from htlc_escrow.codec import state_to_json
from htlc_escrow.config import EngineSettings
from htlc_escrow.engine import EscrowStateMachine, TransitionResult
from htlc_escrow.state_digest import compute_state_digest
from htlc_escrow.types import CallContext, EscrowState
from tools.fixtures_io import (
    ADDRESS_BECH32,
    build_engine,
    call_to_json,
    ledger_to_json,
    result_to_json,
    settings_to_json,
)

_STATE_CASES: dict[str, list[dict[str, Any]]] = {}
_VECTOR_CASES: dict[str, list[dict[str, Any]]] = {}

Call = tuple[CallContext, Any]


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--output",
        action="store",
        default=None,
        help="Output directory for generated fixtures",
    )


@pytest.fixture
def escrow_case() -> Callable[..., tuple[EscrowStateMachine, list[TransitionResult]]]:
    """Run calls against a pre-state, record the case, return engine and results."""

    def _escrow_case(
        rel_path: str,
        name: str,
        pre_state: EscrowState,
        calls: Sequence[Call],
        *,
        settings: EngineSettings | None = None,
        address_mode: str = ADDRESS_BECH32,
    ) -> tuple[EscrowStateMachine, list[TransitionResult]]:
        settings = settings or EngineSettings()
        pre_json = state_to_json(pre_state)
        engine = build_engine(settings, address_mode, deepcopy(pre_state))
        results = [engine.execute(ctx, msg) for ctx, msg in calls]
        post_json = state_to_json(engine.storage.state)
        _STATE_CASES.setdefault(rel_path, []).append(
            {
                "name": name,
                "settings": settings_to_json(settings, address_mode),
                "pre_state": pre_json,
                "pre_state_digest": compute_state_digest(pre_json),
                "calls": [call_to_json(ctx, msg) for ctx, msg in calls],
                "expected": {
                    "results": [result_to_json(r) for r in results],
                    "transfers": ledger_to_json(engine.ledger),
                    "post_state": post_json,
                    "state_digest": compute_state_digest(post_json),
                },
            }
        )
        return engine, results

    return _escrow_case


@pytest.fixture
def vector_test_group() -> Callable[[str, dict[str, Any]], None]:
    """Collect pre-built test_vectors under a specific fixture path."""

    def _vector_test_group(rel_path: str, vector: dict[str, Any]) -> None:
        _VECTOR_CASES.setdefault(rel_path, []).append(vector)

    return _vector_test_group


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    output_dir = session.config.getoption("--output")
    if not output_dir:
        return

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    for rel_path, cases in _STATE_CASES.items():
        if not cases:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"cases": cases}, indent=2))

    for rel_path, vectors in _VECTOR_CASES.items():
        if not vectors:
            continue
        target = out / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps({"test_vectors": vectors}, indent=2))
