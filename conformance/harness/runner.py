#!/usr/bin/env python3
"""
HTLC Escrow Conformance Test Runner

Replays generated fixture cases against a running escrow service and checks
per-call outcomes and the final state digest.
"""

import asyncio
import glob
import json
import logging
import os
import sys
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiohttp
import click

from config import HarnessConfig

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Settings the service runs with unless started with HTLC_* overrides.
DEFAULT_SETTINGS = {
    "digest_algorithm": "sha256",
    "claim_policy": "recipient_only",
    "amount_policy": "minimum",
    "supported_denoms": ["native"],
    "address_hrp": "cosmos",
    "address_mode": "bech32",
}


@dataclass
class CaseResult:
    name: str
    suite: str
    passed: bool
    skipped: bool = False
    execution_time_ms: float = 0.0
    divergences: List[str] = field(default_factory=list)
    error: Optional[str] = None


class EscrowClient:
    """HTTP client for the escrow service."""

    def __init__(self, endpoint: str, timeout: float):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize HTTP session."""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()

    async def reset_state(self) -> bool:
        async with self.session.post(f"{self.endpoint}/state/reset") as resp:
            data = await resp.json()
            return data.get("success", False)

    async def load_state(self, state: Dict[str, Any]) -> Optional[str]:
        """
        Load state from JSON.

        Returns state digest on success, None on failure.
        """
        async with self.session.post(f"{self.endpoint}/state/load", json=state) as resp:
            data = await resp.json()
            if data.get("success"):
                return data.get("state_digest")
            logger.error(f"Load state rejected: {data.get('error')}")
            return None

    async def get_state_digest(self) -> Optional[str]:
        async with self.session.get(f"{self.endpoint}/state/digest") as resp:
            data = await resp.json()
            return data.get("state_digest")

    async def execute(self, call: Dict[str, Any]) -> Dict[str, Any]:
        async with self.session.post(f"{self.endpoint}/execute", json=call) as resp:
            return await resp.json()


class ConformanceHarness:
    """Main test harness for conformance testing."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        self.client = EscrowClient(config.endpoint, config.request_timeout)

    async def setup(self) -> None:
        await self.client.connect()
        logger.info(f"Connected to escrow service at {self.config.endpoint}")

    async def teardown(self) -> None:
        await self.client.close()

    async def run_case(self, suite: str, case: Dict[str, Any]) -> CaseResult:
        """Run a single fixture case."""
        name = case.get("name", "unknown")
        start_time = time.time()
        result = CaseResult(name=name, suite=suite, passed=False)

        if case.get("settings", DEFAULT_SETTINGS) != DEFAULT_SETTINGS:
            result.passed = True
            result.skipped = True
            return result

        try:
            if not await self.client.reset_state():
                result.error = "Failed to reset state"
                return result

            digest = await self.client.load_state(case["pre_state"])
            if digest != case.get("pre_state_digest", digest):
                result.divergences.append(f"pre_state digest {digest}")

            expected = case["expected"]
            for i, (call, want) in enumerate(zip(case["calls"], expected["results"])):
                got = await self.client.execute(call)
                got_error = (got.get("error") or {}).get("code")
                if got.get("success") != want["ok"] or got_error != want["error"]:
                    result.divergences.append(
                        f"call {i}: expected ok={want['ok']} error={want['error']}, "
                        f"got ok={got.get('success')} error={got_error}"
                    )
                elif want["ok"] and got["response"]["attributes"] != want["attributes"]:
                    result.divergences.append(f"call {i}: attributes differ")

            final = await self.client.get_state_digest()
            if final != expected["state_digest"]:
                result.divergences.append(
                    f"state digest {final} != {expected['state_digest']}"
                )

            result.passed = not result.divergences

        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError) as e:
            logger.exception(f"Error running case {name}")
            result.error = str(e)

        finally:
            result.execution_time_ms = (time.time() - start_time) * 1000

        return result

    async def run_suite(self, suite_path: str) -> List[CaseResult]:
        """Run every case in a fixture JSON file."""
        suite_name = Path(suite_path).stem
        logger.info(f"Running suite: {suite_name}")

        with open(suite_path) as f:
            suite = json.load(f)

        results = []
        for case in suite.get("cases", []):
            result = await self.run_case(suite_name, case)
            results.append(result)

            status = "SKIP" if result.skipped else ("PASS" if result.passed else "FAIL")
            logger.info(f"  [{status}] {result.name}")
            for divergence in result.divergences:
                logger.debug(f"      {divergence}")

            if not result.passed and self.config.stop_on_first_failure:
                break

        return results


def find_fixture_files(fixture_dir: str) -> List[str]:
    """Find all case fixture files (crypto vectors are checked in-process)."""
    pattern = os.path.join(fixture_dir, "**", "*.json")
    return sorted(
        p for p in glob.glob(pattern, recursive=True)
        if Path(p).parent.name != "crypto"
    )


def write_report(result_dir: str, results: List[CaseResult]) -> Path:
    out = Path(result_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / "conformance_report.json"
    summary = {
        "total": len(results),
        "passed": sum(1 for r in results if r.passed and not r.skipped),
        "failed": sum(1 for r in results if not r.passed),
        "skipped": sum(1 for r in results if r.skipped),
        "results": [asdict(r) for r in results],
    }
    path.write_text(json.dumps(summary, indent=2))
    return path


@click.command()
@click.option(
    "--vectors",
    default=None,
    help="Path to fixtures directory or specific JSON file",
)
@click.option(
    "--endpoint",
    default=None,
    help="Escrow service endpoint URL",
)
@click.option(
    "--result-dir",
    default=None,
    help="Directory to write results",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop on first test failure",
)
def main(
    vectors: Optional[str],
    endpoint: Optional[str],
    result_dir: Optional[str],
    verbose: bool,
    stop_on_failure: bool,
) -> None:
    """Run HTLC escrow conformance tests."""

    # Load config from environment, then override with CLI args
    config = HarnessConfig.from_env()

    if endpoint:
        config.endpoint = endpoint
    if result_dir:
        config.result_dir = result_dir
    if verbose:
        config.verbose = True
        logging.getLogger().setLevel(logging.DEBUG)
    if stop_on_failure:
        config.stop_on_first_failure = True

    fixture_dir = vectors or config.vector_dir
    if os.path.isfile(fixture_dir):
        fixture_files = [fixture_dir]
    else:
        fixture_files = find_fixture_files(fixture_dir)

    if not fixture_files:
        logger.error(f"No fixture files found in {fixture_dir}")
        sys.exit(1)

    logger.info(f"Found {len(fixture_files)} fixture files")

    async def run() -> int:
        harness = ConformanceHarness(config)
        results: List[CaseResult] = []

        try:
            await harness.setup()
            for path in fixture_files:
                results.extend(await harness.run_suite(path))
                if config.stop_on_first_failure and not all(r.passed for r in results):
                    break
        finally:
            await harness.teardown()

        report = write_report(config.result_dir, results)
        failed = sum(1 for r in results if not r.passed)
        logger.info(f"{len(results) - failed}/{len(results)} cases passed, report at {report}")
        return 0 if failed == 0 else 1

    exit_code = asyncio.run(run())
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
