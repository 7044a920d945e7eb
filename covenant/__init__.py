"""
Covenant: a two-party attestation and commitment protocol.

Participants hand out an account-level extended public key once. For every
record, both sides derive a record-specific key pair from it, sign the
payload, and the record only moves through its lifecycle when the expected
signatures verify against those derived keys.

Transport and storage are left to the embedding application.
"""

__all__ = [
    "AttestationCapsule",
    "AttestationLedger",
    "AttestationRecord",
    "AttestationState",
    "CommitmentRecord",
    "CommitmentStatus",
    "CovenantError",
    "DerivationError",
    "InvalidSignatureError",
    "InvalidStateError",
    "MissingSignatureError",
    "ParticipantRegistry",
    "RecordRepository",
    "Role",
    "SignatureError",
    "SignatureKind",
    "ValidationError",
]

from .app.domain.attestation import AttestationRecord
from .app.domain.commitment import CommitmentRecord
from .app.domain.errors import (
    CovenantError,
    DerivationError,
    InvalidSignatureError,
    InvalidStateError,
    MissingSignatureError,
    SignatureError,
    ValidationError,
)
from .app.domain.models import AttestationState, CommitmentStatus, Role, SignatureKind
from .app.services.ledger import AttestationLedger
from .app.services.registry import ParticipantRegistry
from .app.services.repository import RecordRepository
from .capsule import AttestationCapsule

__version__ = "0.1.0"
