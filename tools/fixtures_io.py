"""Helpers to serialize/deserialize escrow fixture cases.

A case is a pre-state snapshot, the engine settings it runs under and an
ordered list of calls. Expected outputs are one result per call plus the
post-state and its digest.
"""

from __future__ import annotations

from typing import Any

from htlc_escrow.address import PermissiveAddressValidator
from htlc_escrow.codec import (
    coin_to_json,
    context_from_json,
    context_to_json,
    execute_msg_from_json,
    execute_msg_to_json,
    response_to_json,
    state_from_json,
    state_to_json,
)
from htlc_escrow.config import AmountPolicy, ClaimPolicy, DigestAlgorithm, EngineSettings
from htlc_escrow.engine import EscrowStateMachine, TransitionResult
from htlc_escrow.ledger import InMemoryLedger
from htlc_escrow.state_digest import compute_state_digest
from htlc_escrow.storage import Storage
from htlc_escrow.types import CallContext, EscrowState

ADDRESS_BECH32 = "bech32"
ADDRESS_PERMISSIVE = "permissive"


def settings_to_json(settings: EngineSettings, address_mode: str = ADDRESS_BECH32) -> dict[str, Any]:
    return {
        "digest_algorithm": settings.digest_algorithm.value,
        "claim_policy": settings.claim_policy.value,
        "amount_policy": settings.amount_policy.value,
        "supported_denoms": sorted(settings.supported_denoms),
        "address_hrp": settings.address_hrp,
        "address_mode": address_mode,
    }


def settings_from_json(data: dict[str, Any]) -> tuple[EngineSettings, str]:
    defaults = EngineSettings()
    settings = EngineSettings(
        digest_algorithm=DigestAlgorithm(data.get("digest_algorithm", defaults.digest_algorithm.value)),
        claim_policy=ClaimPolicy(data.get("claim_policy", defaults.claim_policy.value)),
        amount_policy=AmountPolicy(data.get("amount_policy", defaults.amount_policy.value)),
        supported_denoms=frozenset(data.get("supported_denoms", defaults.supported_denoms)),
        address_hrp=data.get("address_hrp", defaults.address_hrp),
    )
    return settings, data.get("address_mode", ADDRESS_BECH32)


def is_default_settings(data: dict[str, Any]) -> bool:
    return data == settings_to_json(EngineSettings())


def build_engine(
    settings: EngineSettings,
    address_mode: str,
    state: EscrowState | None = None,
) -> EscrowStateMachine:
    validator = PermissiveAddressValidator() if address_mode == ADDRESS_PERMISSIVE else None
    return EscrowStateMachine(
        Storage(state),
        settings=settings,
        validate_address=validator,
        ledger=InMemoryLedger(),
    )


def call_to_json(ctx: CallContext, msg: Any) -> dict[str, Any]:
    out = context_to_json(ctx)
    out["msg"] = execute_msg_to_json(msg)
    return out


def call_from_json(data: dict[str, Any]) -> tuple[CallContext, Any]:
    return context_from_json(data), execute_msg_from_json(data["msg"])


def result_to_json(result: TransitionResult) -> dict[str, Any]:
    if result.ok:
        return {"ok": True, "error": None, **response_to_json(result.response)}
    return {"ok": False, "error": result.error.code.name, "messages": [], "attributes": []}


def ledger_to_json(ledger: InMemoryLedger) -> list[dict[str, Any]]:
    return [
        {"to_address": t.to_address, "amount": [coin_to_json(c) for c in t.amount]}
        for t in ledger.transfers
    ]


def replay_case(case: dict[str, Any]) -> dict[str, Any]:
    """Run a case in-process and return its expected block."""
    settings, address_mode = settings_from_json(case.get("settings", {}))
    engine = build_engine(settings, address_mode, state_from_json(case["pre_state"]))
    results = []
    for raw in case["calls"]:
        ctx, msg = call_from_json(raw)
        results.append(result_to_json(engine.execute(ctx, msg)))
    post_state = state_to_json(engine.storage.state)
    return {
        "results": results,
        "transfers": ledger_to_json(engine.ledger),
        "post_state": post_state,
        "state_digest": compute_state_digest(post_state),
    }
