#!/usr/bin/env python3
"""
Run an attestation and a commitment end to end between two fresh participants.

Prints the sealed attestation capsule (JSON) on stdout; progress goes to the
log on stderr.

Usage:
    python scripts/attest_demo.py [--payload TEXT] [--no-discharge] [--out capsule.json]
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from covenant.app.domain.models import AssetPayload
from covenant.app.infra.logging_config import configure_logging
from covenant.app.services.ledger import AttestationLedger
from covenant.app.services.registry import ParticipantRegistry
from covenant.capsule import AttestationCapsule

logger = logging.getLogger("covenant.demo")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run both record lifecycles and seal the attestation")
    parser.add_argument("--payload", default="deliver 100 grams of gold by Friday")
    parser.add_argument("--no-discharge", action="store_true", help="Stop the attestation at EFFECTIVE")
    parser.add_argument("--out", type=Path, help="Also write the capsule to this file")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging(args.log_level)

    registry = ParticipantRegistry()
    alice = registry.register("Alice")
    bob = registry.register("Bob")
    ledger = AttestationLedger(registry)

    # Alice commits, Bob acknowledges as committee
    record = ledger.open_attestation(alice.id, bob.id, args.payload)
    record.set_committee_signature(record.sign(bob.mnemonic))
    record.acknowledge()
    record.set_committer_signature(record.sign(alice.mnemonic))
    record.accept()
    if not args.no_discharge:
        record.set_discharge_signature(record.sign_discharge(alice.mnemonic))
        record.discharge()

    commitment = ledger.open_commitment(
        alice.id, bob.id, AssetPayload(asset_name="Gold", quantity=100, unit="grams")
    )
    commitment.sign_commitment(alice.id, alice.mnemonic)
    commitment.sign_commitment(bob.id, bob.mnemonic)
    commitment.discharge_commitment()
    logger.info("commitment %d finished in %s", commitment.id, commitment.status.value)

    capsule = AttestationCapsule.seal(record, notes={"commitment": commitment.read().model_dump(mode="json")})
    text = capsule.to_json()
    if args.out:
        args.out.write_text(text + "\n", encoding="utf-8")
    print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
