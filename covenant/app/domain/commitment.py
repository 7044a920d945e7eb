"""Two-party commitment: both sides sign, then the commitment can be discharged."""
from __future__ import annotations

import copy
import logging
import threading
from typing import TYPE_CHECKING, Dict, Optional

from .derivation import derive_child_public_key, derive_private_key, public_key_bytes
from .errors import InvalidSignatureError, InvalidStateError, MissingSignatureError, ValidationError
from .models import CommitmentRead, CommitmentStatus, Role
from .sign import (
    Payload,
    canonical_bytes,
    create_signature,
    decode_signature,
    plain_payload,
    public_key_from_private,
    verify_signature,
)

if TYPE_CHECKING:
    from ..services.registry import ParticipantRegistry

logger = logging.getLogger(__name__)


class CommitmentRecord:
    """Commitment between a creator (committee side) and a committer.

    Participants are resolved from the injected registry at construction and
    each side's commitment key is derived from its account xpub and the
    commitment id, with the same index formula attestations use.
    """

    def __init__(
        self,
        commitment_id: int,
        creator_id: int,
        committer_id: int,
        payload: Payload,
        registry: "ParticipantRegistry",
    ) -> None:
        if isinstance(commitment_id, bool) or not isinstance(commitment_id, int) or commitment_id < 1:
            raise ValidationError(f"Commitment id must be a positive integer, got {commitment_id!r}")
        if creator_id == committer_id:
            raise ValidationError("Creator and committer must be different participants")

        creator = registry.require(creator_id)
        committer = registry.require(committer_id)
        message = canonical_bytes(payload)

        self._lock = threading.RLock()
        self._id = commitment_id
        self._creator_id = creator_id
        self._committer_id = committer_id
        self._payload = copy.deepcopy(payload)
        self._message = message
        self._derivation_path = registry.account_path
        self._status = CommitmentStatus.INITIATED

        scope = str(commitment_id)
        self._keys: Dict[Role, str] = {
            Role.COMMITTEE: derive_child_public_key(creator.xpub, scope),
            Role.COMMITTER: derive_child_public_key(committer.xpub, scope),
        }
        self._signatures: Dict[Role, Optional[str]] = {Role.COMMITTEE: None, Role.COMMITTER: None}

    @property
    def id(self) -> int:
        return self._id

    @property
    def creator_id(self) -> int:
        return self._creator_id

    @property
    def committer_id(self) -> int:
        return self._committer_id

    @property
    def payload(self) -> Payload:
        return copy.deepcopy(self._payload)

    @property
    def status(self) -> CommitmentStatus:
        return self._status

    @property
    def committee_key(self) -> str:
        return self._keys[Role.COMMITTEE]

    @property
    def committer_key(self) -> str:
        return self._keys[Role.COMMITTER]

    @property
    def committee_signature(self) -> Optional[str]:
        return self._signatures[Role.COMMITTEE]

    @property
    def committer_signature(self) -> Optional[str]:
        return self._signatures[Role.COMMITTER]

    def resolve_role(self, user_id: int) -> Role:
        if user_id == self._creator_id:
            return Role.COMMITTEE
        if user_id == self._committer_id:
            return Role.COMMITTER
        raise ValidationError(f"User {user_id} is neither the creator nor the committer")

    def set_signature(self, role: Role, signature: str) -> None:
        role = Role(role)
        decode_signature(signature)
        with self._lock:
            if self._status is CommitmentStatus.DISCHARGED:
                raise InvalidStateError("Commitment is already discharged")
            self._signatures[role] = signature
            if self._status is CommitmentStatus.INITIATED and all(self._signatures.values()):
                self._status = CommitmentStatus.ACKNOWLEDGED
                logger.info("commitment %d acknowledged by both parties", self._id)

    def sign_commitment(self, user_id: int, mnemonic: str, passphrase: Optional[str] = None) -> str:
        """Sign the payload as ``user_id`` and store it in that user's slot."""
        role = self.resolve_role(user_id)
        private_key = derive_private_key(mnemonic, self._derivation_path, str(self._id), passphrase)
        if public_key_from_private(private_key) != public_key_bytes(self._keys[role]):
            raise InvalidSignatureError(
                f"Mnemonic does not match the {role.value} key of commitment {self._id}"
            )
        signature = create_signature(private_key, self._message)
        self.set_signature(role, signature)
        return signature

    def verify_commitment_signature(self, user_id: int, signature: str) -> bool:
        role = self.resolve_role(user_id)
        return verify_signature(self._keys[role], self._message, signature)

    def discharge_commitment(self) -> bool:
        with self._lock:
            if self._status is CommitmentStatus.DISCHARGED:
                raise InvalidStateError("Commitment is already discharged")
            missing = [role.value for role, sig in self._signatures.items() if not sig]
            if missing:
                raise MissingSignatureError(f"Cannot discharge: missing {', '.join(missing)} signature")
            invalid = [
                role.value
                for role, sig in self._signatures.items()
                if not verify_signature(self._keys[role], self._message, sig)
            ]
            if invalid:
                raise InvalidSignatureError(f"Cannot discharge: invalid {', '.join(invalid)} signature")
            self._status = CommitmentStatus.DISCHARGED
        logger.info("commitment %d discharged", self._id)
        return True

    def read(self) -> CommitmentRead:
        payload = plain_payload(self._payload)
        with self._lock:
            return CommitmentRead(
                commitment_id=self._id,
                creator_id=self._creator_id,
                committer_id=self._committer_id,
                status=self._status,
                payload=payload,
                committee_key=self.committee_key,
                committer_key=self.committer_key,
                committee_signature=self.committee_signature,
                committer_signature=self.committer_signature,
            )

    def __repr__(self) -> str:
        return f"<CommitmentRecord id={self._id} status={self._status.value}>"
