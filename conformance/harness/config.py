"""
Configuration management for the conformance test harness.
"""

import os
from dataclasses import dataclass


@dataclass
class HarnessConfig:
    """Main configuration for the test harness."""
    # Engine under test
    endpoint: str = "http://localhost:8080"

    # Paths
    vector_dir: str = "fixtures"
    result_dir: str = "results"

    # Execution settings
    stop_on_first_failure: bool = False
    verbose: bool = False

    # Timeouts
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "HarnessConfig":
        """Load configuration from environment variables."""
        config = cls()

        config.endpoint = os.environ.get("HTLC_ENDPOINT", config.endpoint)

        # Load paths
        config.vector_dir = os.environ.get("VECTOR_DIR", config.vector_dir)
        config.result_dir = os.environ.get("RESULT_DIR", config.result_dir)

        # Load settings
        config.verbose = os.environ.get("VERBOSE", "").lower() in ("true", "1", "yes")
        config.stop_on_first_failure = os.environ.get(
            "STOP_ON_FIRST_FAILURE", ""
        ).lower() in ("true", "1", "yes")
        config.request_timeout = float(
            os.environ.get("REQUEST_TIMEOUT", config.request_timeout)
        )

        return config
