"""In-memory store for attestation and commitment records."""
from __future__ import annotations

import itertools
import threading
from typing import Dict, List, Optional

from ..domain.attestation import AttestationRecord
from ..domain.commitment import CommitmentRecord
from ..domain.errors import ValidationError
from ..domain.models import AttestationRead, CommitmentRead


class RecordRepository:
    """Owns record storage and commitment id allocation for one application.

    Records themselves hold no global state; whoever needs persistence
    swaps this class for one backed by a real store.
    """

    def __init__(self) -> None:
        self._attestations: Dict[str, AttestationRecord] = {}
        self._commitments: Dict[int, CommitmentRecord] = {}
        self._commitment_ids = itertools.count(1)
        self._lock = threading.Lock()

    def next_commitment_id(self) -> int:
        with self._lock:
            return next(self._commitment_ids)

    def add_attestation(self, record: AttestationRecord) -> AttestationRecord:
        with self._lock:
            if record.id in self._attestations:
                raise ValidationError(f"Attestation {record.id} already exists")
            self._attestations[record.id] = record
        return record

    def get_attestation(self, attestation_id: str) -> Optional[AttestationRecord]:
        return self._attestations.get(attestation_id)

    def list_attestations(self) -> List[AttestationRead]:
        return [record.read() for record in self._attestations.values()]

    def add_commitment(self, record: CommitmentRecord) -> CommitmentRecord:
        with self._lock:
            if record.id in self._commitments:
                raise ValidationError(f"Commitment {record.id} already exists")
            self._commitments[record.id] = record
        return record

    def get_commitment(self, commitment_id: int) -> Optional[CommitmentRecord]:
        return self._commitments.get(commitment_id)

    def list_commitments(self) -> List[CommitmentRead]:
        return [record.read() for record in self._commitments.values()]
