"""
Data models for guided SMS intake sessions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SessionField(str, Enum):
    NAME = "name"
    ADDRESS = "address"
    ISSUE = "issue"


# Fixed order in which missing fields are asked for
ASK_ORDER: tuple[SessionField, ...] = (SessionField.ISSUE, SessionField.ADDRESS, SessionField.NAME)


class SessionState(str, Enum):
    COLLECTING = "collecting"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SessionAction(str, Enum):
    ASK = "ask"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class GuidedSession(BaseModel):
    """Per-caller state while name, address and issue are being collected."""

    identity: str  # Normalized phone number
    state: SessionState = SessionState.COLLECTING
    name: Optional[str] = None
    address: Optional[str] = None
    address_raw: Optional[str] = None
    issue: Optional[str] = None
    asked_fields: set[SessionField] = Field(default_factory=set)
    last_asked: Optional[SessionField] = None
    message_history: list[str] = Field(default_factory=list)
    message_count: int = 0
    completed: bool = False
    created_at: datetime
    last_activity_at: datetime

    def value_of(self, field: SessionField) -> Optional[str]:
        return getattr(self, field.value)

    def missing_fields(self) -> list[SessionField]:
        """Missing fields, in ask order."""
        return [f for f in ASK_ORDER if not self.value_of(f)]

    @property
    def has_data(self) -> bool:
        return bool(self.name or self.address or self.issue)


class SessionTransitionResult(BaseModel):
    """What happened to a session after one inbound message."""

    state: SessionState
    action: SessionAction
    session: GuidedSession
    field: Optional[SessionField] = None  # Field being asked for
    prompt: Optional[str] = None
    re_ask: bool = False


class SmsReply(BaseModel):
    """Outcome of one inbound SMS at the integration layer."""

    action: SessionAction
    message: Optional[str] = None  # Text to send back to the caller
    record_id: Optional[str] = None
    escalated: bool = False  # Completed early by the max-messages policy
    salvaged: bool = False  # Record built from an expired session
