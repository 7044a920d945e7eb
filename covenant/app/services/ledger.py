"""Ledger service opens records between registered participants."""
from __future__ import annotations

import logging
from typing import Optional

from ..domain.attestation import AttestationRecord
from ..domain.commitment import CommitmentRecord
from ..domain.errors import ValidationError
from ..domain.sign import Payload
from .registry import ParticipantRegistry
from .repository import RecordRepository

logger = logging.getLogger(__name__)


class AttestationLedger:
    """Application layer over a participant registry and a record repository."""

    def __init__(self, registry: ParticipantRegistry, repository: Optional[RecordRepository] = None) -> None:
        self.registry = registry
        self.repository = repository or RecordRepository()

    def open_attestation(
        self,
        committer_id: int,
        committee_id: int,
        payload: Payload,
        attestation_id: Optional[str] = None,
    ) -> AttestationRecord:
        if committer_id == committee_id:
            raise ValidationError("Committer and committee must be different participants")
        committer = self.registry.require(committer_id)
        committee = self.registry.require(committee_id)

        record = AttestationRecord(
            committer_xpub=committer.xpub,
            committee_xpub=committee.xpub,
            payload=payload,
            attestation_id=attestation_id,
            derivation_path=self.registry.account_path,
        )
        self.repository.add_attestation(record)
        logger.info(
            "opened attestation %s (committer=%d, committee=%d)", record.id, committer_id, committee_id
        )
        return record

    def open_commitment(self, creator_id: int, committer_id: int, payload: Payload) -> CommitmentRecord:
        record = CommitmentRecord(
            commitment_id=self.repository.next_commitment_id(),
            creator_id=creator_id,
            committer_id=committer_id,
            payload=payload,
            registry=self.registry,
        )
        self.repository.add_commitment(record)
        logger.info("opened commitment %d (creator=%d, committer=%d)", record.id, creator_id, committer_id)
        return record

    def attestation(self, attestation_id: str) -> AttestationRecord:
        record = self.repository.get_attestation(attestation_id)
        if record is None:
            raise ValidationError(f"Unknown attestation: {attestation_id}")
        return record

    def commitment(self, commitment_id: int) -> CommitmentRecord:
        record = self.repository.get_commitment(commitment_id)
        if record is None:
            raise ValidationError(f"Unknown commitment: {commitment_id}")
        return record
