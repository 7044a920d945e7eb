#!/usr/bin/env python3
"""
Verify a sealed attestation capsule.

Checks the snapshot digest, re-derives both record keys and re-verifies every
signature the recorded state depends on.

Usage:
    python scripts/verify_capsule.py capsule.json
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from covenant.app.domain.errors import CovenantError
from covenant.capsule import AttestationCapsule


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify an attestation capsule JSON file.")
    parser.add_argument("path", type=Path, help="Capsule file written by attest_demo.py")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    try:
        capsule = AttestationCapsule.from_json(args.path.read_text(encoding="utf-8"))
    except (OSError, CovenantError) as exc:
        print(f"[ERROR] cannot load {args.path}: {exc}", file=sys.stderr)
        return 1

    result = capsule.verify()
    if not result["ok"]:
        for problem in result["problems"]:
            print(f"[WARN] {problem}", file=sys.stderr)
        return 1

    attestation = capsule.attestation
    print(f"Verified attestation {attestation['id']}; state {attestation['state']}, digest {capsule.digest}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
