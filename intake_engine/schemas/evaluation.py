"""
Data models for re-evaluation proposals and their diffs.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from intake_engine.schemas.record import EvaluationStatus, EvaluationType


class CandidateResult(BaseModel):
    """Structured values proposed by a re-run of the pipeline."""

    name: Optional[str] = None
    address: Optional[str] = None
    intent: Optional[str] = None
    department: Optional[str] = None
    summary: Optional[str] = None
    extraction_meta: dict[str, Any] = Field(default_factory=dict)


class CurrentValues(BaseModel):
    """The values a record currently holds, as compared by the diff."""

    name: Optional[str] = None
    address: Optional[str] = None
    intent: Optional[str] = None
    department: Optional[str] = None
    summary: Optional[str] = None


class DiffField(BaseModel):
    current: Optional[str] = None
    candidate: Optional[str] = None
    changed: bool = False


class DiffResult(BaseModel):
    name: DiffField
    address: DiffField
    intent: DiffField
    department: DiffField
    summary: DiffField

    @property
    def changed_fields(self) -> list[str]:
        return [
            key for key in ("name", "address", "intent", "department", "summary")
            if getattr(self, key).changed
        ]

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_fields)


class EvaluationEntry(BaseModel):
    """One row of evaluation history for a record."""

    id: str
    record_id: str
    evaluation_type: EvaluationType
    candidate: CandidateResult
    status: EvaluationStatus = EvaluationStatus.CANDIDATE
    applied_at: Optional[datetime] = None
    applied_by: Optional[str] = None
    created_at: datetime


class ReEvaluationProposal(BaseModel):
    """A persisted re-evaluation candidate and its diff against the record."""

    record_id: str
    candidate: CandidateResult
    diff: DiffResult
    evaluation: Optional[EvaluationEntry] = None  # None when persisting the candidate failed
