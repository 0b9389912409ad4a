"""
Data models for persisted intake records and their evaluation history.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from intake_engine.schemas.transcript import Channel


class AddressQuality(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    INTERSECTION = "intersection"
    APPROXIMATE = "approximate"
    MISSING = "missing"


class IntakeRecordCreate(BaseModel):
    """Schema for creating a new intake record."""

    client_id: str
    channel: Channel
    name: str
    phone: str
    address: str
    address_raw: Optional[str] = None
    address_quality: AddressQuality = AddressQuality.MISSING
    needs_review: bool = False
    intent: str
    department: str
    transcript_summary: str
    language: str = "English"
    raw_transcript: Optional[str] = None
    duration_seconds: int = 0
    cost: float = 0.0
    timestamp: datetime
    call_metadata: dict[str, Any] = Field(default_factory=dict)


class IntakeRecord(IntakeRecordCreate):
    """Schema for a stored intake record."""

    id: str


class EvaluationType(str, Enum):
    INITIAL = "initial"
    RE_EVALUATION = "re-evaluation"


class EvaluationStatus(str, Enum):
    CANDIDATE = "candidate"
    APPLIED = "applied"
    SUPERSEDED = "superseded"
