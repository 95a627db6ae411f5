"""Consume fixtures and validate them against the Python engine."""

from __future__ import annotations

import json
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from htlc_escrow.crypto.hash_algorithms import digest  # noqa: E402
from htlc_escrow.config import DigestAlgorithm  # noqa: E402
from fixtures_io import replay_case  # noqa: E402


def _check_case(case: dict) -> str | None:
    actual = replay_case(case)
    expected = case["expected"]

    for i, (got, want) in enumerate(zip(actual["results"], expected["results"])):
        if got["ok"] != want["ok"]:
            return f"{case['name']}: call {i} ok_mismatch"
        if got["error"] != want["error"]:
            return f"{case['name']}: call {i} error_mismatch"
        if got["attributes"] != want["attributes"]:
            return f"{case['name']}: call {i} attributes_mismatch"

    if len(actual["results"]) != len(expected["results"]):
        return f"{case['name']}: call_count_mismatch"
    if actual["transfers"] != expected["transfers"]:
        return f"{case['name']}: transfers_mismatch"
    if actual["state_digest"] != expected["state_digest"]:
        return f"{case['name']}: state_digest_mismatch"
    return None


def _check_state_cases(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for case in data.get("cases", []):
        failure = _check_case(case)
        if failure:
            failures.append(failure)
    return failures


def _check_hash_vectors(path: Path) -> list[str]:
    failures: list[str] = []
    data = json.loads(path.read_text())
    for vec in data.get("test_vectors", []):
        inp = vec["input"]
        got = digest(DigestAlgorithm(inp["algorithm"]), bytes.fromhex(inp["secret_hex"])).hex()
        if got != vec["expected"]["hashlock_hex"]:
            failures.append(f"{vec['name']}: hashlock_mismatch")
    return failures


def main() -> None:
    fixtures = ROOT / "fixtures"

    failures: list[str] = []
    checked = 0
    for path in sorted(fixtures.rglob("*.json")):
        checked += 1
        if path.parent.name == "crypto":
            failures.extend(_check_hash_vectors(path))
        else:
            failures.extend(_check_state_cases(path))

    if failures:
        for f in failures:
            print("FAIL", f)
        raise SystemExit(1)

    print(f"All fixtures passed ({checked} files)")


if __name__ == "__main__":
    main()
