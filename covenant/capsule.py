from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .app.domain.attestation import AttestationRecord
from .app.domain.errors import CovenantError, ValidationError

CAPSULE_VERSION = "1"


def _canonical_json(obj: Any) -> bytes:
    """Return canonicalized JSON bytes (sorted keys, fixed separators, UTF-8)."""
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class AttestationCapsule:
    """Sealed snapshot of an attestation record.

    The digest covers the record snapshot only. Opening a capsule rebuilds
    the record, which re-derives both keys and re-verifies every signature,
    so a capsule cannot smuggle in a state its signatures do not back.
    """

    attestation: Dict[str, Any]
    digest: Optional[str] = None
    sealed_at: Optional[str] = None
    version: str = CAPSULE_VERSION
    notes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def seal(cls, record: AttestationRecord, notes: Optional[Dict[str, Any]] = None) -> "AttestationCapsule":
        snapshot = record.to_dict()
        try:
            digest = _sha256_hex(_canonical_json(snapshot))
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"attestation {record.id} cannot be sealed as JSON: {exc}") from exc
        return cls(
            attestation=snapshot,
            digest=digest,
            sealed_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            notes=dict(notes or {}),
        )

    def open(self) -> AttestationRecord:
        if self.digest != _sha256_hex(_canonical_json(self.attestation)):
            raise ValidationError("capsule digest mismatch")
        return AttestationRecord.from_dict(self.attestation)

    def verify(self) -> Dict[str, Any]:
        """Check digest and rebuild the record.

        Returns a dict with `ok: bool` and minimal diagnostics.
        """
        problems: List[str] = []
        if self.version != CAPSULE_VERSION:
            problems.append(f"unsupported capsule version {self.version!r}")
        if self.digest != _sha256_hex(_canonical_json(self.attestation)):
            problems.append("digest mismatch")
        try:
            AttestationRecord.from_dict(self.attestation)
        except CovenantError as exc:
            problems.append(f"{exc.code.value}: {exc.message}")
        return {"ok": len(problems) == 0, "problems": problems}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "sealed_at": self.sealed_at,
            "digest": self.digest,
            "attestation": self.attestation,
            "notes": self.notes,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttestationCapsule":
        if not isinstance(data, Mapping):
            raise ValidationError("capsule must be a JSON object")
        if "attestation" not in data:
            raise ValidationError("capsule has no attestation")
        return cls(
            attestation=data["attestation"],
            digest=data.get("digest"),
            sealed_at=data.get("sealed_at"),
            version=data.get("version", CAPSULE_VERSION),
            notes=data.get("notes", {}),
        )

    @classmethod
    def from_json(cls, text: str) -> "AttestationCapsule":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"capsule is not valid JSON: {exc}") from exc
        return cls.from_dict(data)
