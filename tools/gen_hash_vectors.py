"""Generate hashlock YAML vectors for every supported digest algorithm."""

from __future__ import annotations

from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT / "tools"))

from htlc_escrow.crypto.hash_vectors import all_hashlock_vectors  # noqa: E402
from yaml_dump import write_yaml  # noqa: E402


def main() -> None:
    out = ROOT / "fixtures" / "crypto"
    out.mkdir(parents=True, exist_ok=True)

    for algorithm, payload in all_hashlock_vectors().items():
        write_yaml(out / f"{algorithm}.yaml", payload)
        print(f"wrote {algorithm}.yaml ({len(payload['test_vectors'])} vectors)")


if __name__ == "__main__":
    main()
