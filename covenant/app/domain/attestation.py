"""Attestation lifecycle gated by committee, committer and discharge signatures."""
from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, Mapping, Optional, Tuple
from uuid import uuid4

from .. import config
from .derivation import derive_child_public_key, derive_private_key, validate_path
from .errors import InvalidSignatureError, InvalidStateError, MissingSignatureError, ValidationError
from .models import AttestationRead, AttestationState, SignatureKind
from .sign import (
    Payload,
    canonical_bytes,
    create_signature,
    decode_signature,
    hash_payload,
    plain_payload,
    verify_signature,
)

logger = logging.getLogger(__name__)

_ORDER = {
    AttestationState.INITIATED: 0,
    AttestationState.ACKNOWLEDGED: 1,
    AttestationState.EFFECTIVE: 2,
    AttestationState.DISCHARGED: 3,
}

# action -> (required state, next state, signature checked at the gate)
_TRANSITIONS: Dict[str, Tuple[AttestationState, AttestationState, SignatureKind]] = {
    "acknowledge": (AttestationState.INITIATED, AttestationState.ACKNOWLEDGED, SignatureKind.COMMITTEE),
    "accept": (AttestationState.ACKNOWLEDGED, AttestationState.EFFECTIVE, SignatureKind.COMMITTER),
    "discharge": (AttestationState.EFFECTIVE, AttestationState.DISCHARGED, SignatureKind.DISCHARGE),
}

# A slot is frozen once the gate that consumes it has been passed.
_SEALED_AT = {kind: target for _, target, kind in _TRANSITIONS.values()}


class AttestationRecord:
    """One attestation between a committer and a committee over a payload.

    The committer/committee keys are derived once, from each party's account
    xpub and this record's id, and never change afterwards. A signature made
    for one attestation therefore cannot be replayed against another.

    Every transition and setter holds the record lock, so a verify-then-mutate
    sequence cannot interleave with another caller on the same record.
    """

    def __init__(
        self,
        committer_xpub: str,
        committee_xpub: str,
        payload: Payload,
        attestation_id: Optional[str] = None,
        derivation_path: str = config.DEFAULT_DERIVATION_PATH,
        committee_signature: Optional[str] = None,
        committer_signature: Optional[str] = None,
        discharge_signature: Optional[str] = None,
        state: AttestationState = AttestationState.INITIATED,
    ) -> None:
        self._lock = threading.RLock()
        self._id = str(uuid4()) if attestation_id is None else attestation_id
        self._committer_xpub = committer_xpub
        self._committee_xpub = committee_xpub
        self._derivation_path = validate_path(derivation_path)
        self._message = canonical_bytes(payload)
        self._payload = copy.deepcopy(payload)

        self._committer_key = derive_child_public_key(committer_xpub, self._id)
        self._committee_key = derive_child_public_key(committee_xpub, self._id)

        self._signatures: Dict[SignatureKind, Optional[str]] = {kind: None for kind in SignatureKind}
        supplied = {
            SignatureKind.COMMITTEE: committee_signature,
            SignatureKind.COMMITTER: committer_signature,
            SignatureKind.DISCHARGE: discharge_signature,
        }
        for kind, signature in supplied.items():
            if not signature:
                continue
            if not self.verify_signature(kind, signature):
                raise InvalidSignatureError(f"Invalid {kind.value} signature")
            self._signatures[kind] = signature

        try:
            self._state = AttestationState(state)
        except ValueError as exc:
            raise ValidationError(f"Unknown attestation state: {state!r}") from exc
        for kind, sealed_at in _SEALED_AT.items():
            if _ORDER[self._state] >= _ORDER[sealed_at] and not self._signatures[kind]:
                raise MissingSignatureError(
                    f"{kind.value} signature required for {self._state.value} state"
                )
        logger.debug("attestation %s created in state %s", self._id, self._state.value)

    @property
    def id(self) -> str:
        return self._id

    @property
    def committer_xpub(self) -> str:
        return self._committer_xpub

    @property
    def committee_xpub(self) -> str:
        return self._committee_xpub

    @property
    def derivation_path(self) -> str:
        return self._derivation_path

    @property
    def payload(self) -> Payload:
        return copy.deepcopy(self._payload)

    @property
    def committer_key(self) -> str:
        return self._committer_key

    @property
    def committee_key(self) -> str:
        return self._committee_key

    @property
    def state(self) -> AttestationState:
        return self._state

    # -- signature slots -------------------------------------------------

    @property
    def committee_signature(self) -> Optional[str]:
        return self._signatures[SignatureKind.COMMITTEE]

    @property
    def committer_signature(self) -> Optional[str]:
        return self._signatures[SignatureKind.COMMITTER]

    @property
    def discharge_signature(self) -> Optional[str]:
        return self._signatures[SignatureKind.DISCHARGE]

    def set_committee_signature(self, signature: Optional[str]) -> None:
        self.set_signature(SignatureKind.COMMITTEE, signature)

    def set_committer_signature(self, signature: Optional[str]) -> None:
        self.set_signature(SignatureKind.COMMITTER, signature)

    def set_discharge_signature(self, signature: Optional[str]) -> None:
        self.set_signature(SignatureKind.DISCHARGE, signature)

    def set_signature(self, kind: SignatureKind, signature: Optional[str]) -> None:
        """Replace a signature slot. ``None`` clears it."""
        kind = SignatureKind(kind)
        if signature:
            decode_signature(signature)
        with self._lock:
            if _ORDER[self._state] >= _ORDER[_SEALED_AT[kind]]:
                raise InvalidStateError(
                    f"{kind.value} signature is frozen in {self._state.value} state"
                )
            self._signatures[kind] = signature or None

    # -- signing / verification -------------------------------------------

    def discharge_message(self) -> Dict[str, str]:
        return {
            "action": "discharge",
            "attestation_id": self._id,
            "payload_hash": hash_payload(self._message).hex(),
        }

    def _message_for(self, kind: SignatureKind) -> Payload:
        if kind is SignatureKind.DISCHARGE:
            return self.discharge_message()
        return self._message

    def _key_for(self, kind: SignatureKind) -> str:
        if kind is SignatureKind.COMMITTEE:
            return self._committee_key
        # discharge is signed by the committer
        return self._committer_key

    def verify_signature(self, kind: SignatureKind, signature: str) -> bool:
        kind = SignatureKind(kind)
        return verify_signature(self._key_for(kind), self._message_for(kind), signature)

    def sign(self, mnemonic: str, passphrase: Optional[str] = None) -> str:
        """Sign the payload with the key derived for this attestation.

        Works for either party: the result verifies against whichever derived
        key belongs to the owner of ``mnemonic``.
        """
        private_key = derive_private_key(mnemonic, self._derivation_path, self._id, passphrase)
        return create_signature(private_key, self._message)

    def sign_discharge(self, mnemonic: str, passphrase: Optional[str] = None) -> str:
        private_key = derive_private_key(mnemonic, self._derivation_path, self._id, passphrase)
        return create_signature(private_key, self.discharge_message())

    # -- transitions --------------------------------------------------------

    def acknowledge(self) -> AttestationState:
        """INITIATED -> ACKNOWLEDGED, gated by the committee signature."""
        return self._advance("acknowledge")

    def accept(self) -> AttestationState:
        """ACKNOWLEDGED -> EFFECTIVE, gated by the committer signature."""
        return self._advance("accept")

    def discharge(self) -> AttestationState:
        """EFFECTIVE -> DISCHARGED, gated by the discharge signature."""
        return self._advance("discharge")

    def _advance(self, action: str) -> AttestationState:
        source, target, kind = _TRANSITIONS[action]
        with self._lock:
            if self._state is not source:
                raise InvalidStateError(
                    f"Invalid state transition. Expected {source.value}, got {self._state.value}"
                )
            signature = self._signatures[kind]
            if not signature:
                raise MissingSignatureError(f"{kind.value} signature required for {target.value} state")
            if not self.verify_signature(kind, signature):
                logger.warning("attestation %s: %s rejected, bad %s signature", self._id, action, kind.value)
                raise InvalidSignatureError(f"Invalid {kind.value} signature")
            self._state = target
        logger.info("attestation %s: %s -> %s", self._id, source.value, target.value)
        return target

    # -- serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "id": self._id,
                "committer_xpub": self._committer_xpub,
                "committee_xpub": self._committee_xpub,
                "derivation_path": self._derivation_path,
                "payload": plain_payload(self._payload),
                "committer_key": self._committer_key,
                "committee_key": self._committee_key,
                "committee_signature": self.committee_signature,
                "committer_signature": self.committer_signature,
                "discharge_signature": self.discharge_signature,
                "state": self._state.value,
            }

    def read(self) -> AttestationRead:
        return AttestationRead(**self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttestationRecord":
        """Rebuild a record; keys are re-derived and signatures re-verified."""
        if not isinstance(data, Mapping):
            raise ValidationError(f"Attestation snapshot must be a mapping, got {type(data).__name__}")
        attestation_id = data.get("id")
        if not isinstance(attestation_id, str) or not attestation_id:
            raise ValidationError("Attestation snapshot has no id")
        try:
            record = cls(
                committer_xpub=data["committer_xpub"],
                committee_xpub=data["committee_xpub"],
                payload=data["payload"],
                attestation_id=attestation_id,
                derivation_path=data.get("derivation_path", config.DEFAULT_DERIVATION_PATH),
                committee_signature=data.get("committee_signature"),
                committer_signature=data.get("committer_signature"),
                discharge_signature=data.get("discharge_signature"),
                state=data.get("state", AttestationState.INITIATED),
            )
        except KeyError as exc:
            raise ValidationError(f"Missing attestation field: {exc.args[0]}") from exc

        for field in ("committer_key", "committee_key"):
            stored = data.get(field)
            if stored and stored != getattr(record, field):
                raise ValidationError(f"{field} does not match the key derived for {record.id}")
        return record

    def __repr__(self) -> str:
        return f"<AttestationRecord id={self._id} state={self._state.value}>"
