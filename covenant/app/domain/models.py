"""Lifecycle enums and read models shared by records, services and scripts."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class AttestationState(str, Enum):
    INITIATED = "INITIATED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    EFFECTIVE = "EFFECTIVE"
    DISCHARGED = "DISCHARGED"


class CommitmentStatus(str, Enum):
    INITIATED = "INITIATED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    DISCHARGED = "DISCHARGED"


class Role(str, Enum):
    """Side of a two-party record. Creators of a commitment act as committee."""

    COMMITTER = "committer"
    COMMITTEE = "committee"


class SignatureKind(str, Enum):
    COMMITTEE = "committee"
    COMMITTER = "committer"
    DISCHARGE = "discharge"


class AssetPayload(BaseModel):
    """Typical commitment payload: a quantity of some asset."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    asset_name: str = Field(alias="assetName", min_length=1)
    quantity: Union[int, float] = Field(gt=0)
    unit: str = Field(min_length=1)


class ParticipantRead(BaseModel):
    id: int
    name: str
    xpub: str

    model_config = ConfigDict(from_attributes=True)


class AttestationRead(BaseModel):
    id: str
    committer_xpub: str
    committee_xpub: str
    derivation_path: str
    payload: Any
    committer_key: str
    committee_key: str
    committee_signature: Optional[str]
    committer_signature: Optional[str]
    discharge_signature: Optional[str]
    state: AttestationState


class CommitmentRead(BaseModel):
    commitment_id: int
    creator_id: int
    committer_id: int
    status: CommitmentStatus
    payload: Any
    committee_key: str
    committer_key: str
    committee_signature: Optional[str]
    committer_signature: Optional[str]
