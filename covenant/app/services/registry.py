"""In-memory participant registry: id -> (mnemonic, account xpub)."""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from mnemonic import Mnemonic

from .. import config
from ..domain.derivation import derive_account_xpub, validate_path
from ..domain.errors import ValidationError
from ..domain.models import ParticipantRead

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Participant:
    id: int
    name: str
    mnemonic: str
    xpub: str

    def __repr__(self) -> str:
        # keep the mnemonic out of logs and tracebacks
        return f"Participant(id={self.id}, name={self.name!r})"


class ParticipantRegistry:
    """Participants known to one application instance.

    Ids increase monotonically per registry; nothing is shared between
    instances.
    """

    def __init__(
        self,
        account_path: str = config.DEFAULT_DERIVATION_PATH,
        language: str = config.MNEMONIC_LANGUAGE,
        passphrase: Optional[str] = None,
    ) -> None:
        self.account_path = validate_path(account_path)
        self.passphrase = passphrase
        self._wordlist = Mnemonic(language)
        self._participants: Dict[int, Participant] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def generate_mnemonic(self, strength: int = config.MNEMONIC_STRENGTH) -> str:
        try:
            return self._wordlist.generate(strength=strength)
        except ValueError as exc:
            raise ValidationError(f"Cannot generate mnemonic: {exc}") from exc

    def register(self, name: str, mnemonic: Optional[str] = None) -> Participant:
        if not name or not name.strip():
            raise ValidationError("Participant name must be non-empty")
        if mnemonic is None:
            mnemonic = self.generate_mnemonic()
        mnemonic = " ".join(mnemonic.split())
        if not mnemonic or not self._wordlist.check(mnemonic):
            raise ValidationError(f"Invalid mnemonic for participant {name!r}")

        xpub = derive_account_xpub(mnemonic, self.account_path, self.passphrase)
        with self._lock:
            participant = Participant(id=next(self._ids), name=name, mnemonic=mnemonic, xpub=xpub)
            self._participants[participant.id] = participant
        logger.info("registered participant %d (%s)", participant.id, name)
        return participant

    def get(self, participant_id: int) -> Optional[Participant]:
        return self._participants.get(participant_id)

    def require(self, participant_id: int) -> Participant:
        participant = self.get(participant_id)
        if participant is None:
            raise ValidationError(f"Unknown participant: {participant_id}")
        return participant

    def list(self) -> List[ParticipantRead]:
        return [
            ParticipantRead.model_validate(p)
            for p in sorted(self._participants.values(), key=lambda p: p.id)
        ]

    def __len__(self) -> int:
        return len(self._participants)
