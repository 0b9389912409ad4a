"""
Data models for inbound transcripts and utterances.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    CALLER = "caller"
    SYSTEM = "system"


class Channel(str, Enum):
    VOICE = "Voice"
    SMS = "SMS"


class Utterance(BaseModel):
    """A single turn of a conversation. Immutable once received."""

    model_config = ConfigDict(frozen=True)

    role: Role
    text: str
    position: int = 0


class VoiceCallReport(BaseModel):
    """The fields of a voice platform's end-of-call report the engine consumes."""

    call_id: Optional[str] = None
    phone: str = ""
    client_id: Optional[str] = None
    messages: list[Utterance] = Field(default_factory=list)
    transcript: Optional[str] = None
    summary: Optional[str] = None  # Provider-generated call summary
    duration_seconds: int = 0
    cost: float = 0.0
    ended_reason: Optional[str] = None
    analysis_success: Optional[bool] = None
    recording_url: Optional[str] = None
    ended_at: Optional[datetime] = None
