"""
Department Notifications.

Delivery is done by an injected ``DepartmentNotifier``. This module only
decides which department a record goes to and what the message says.
"""

from __future__ import annotations

from typing import Optional, Protocol

from pydantic import BaseModel, Field

from intake_engine.logging_config import get_logger
from intake_engine.schemas.extraction import NOT_PROVIDED, UNKNOWN_CALLER
from intake_engine.schemas.record import IntakeRecord
from intake_engine.schemas.transcript import Channel
from intake_engine.services.address_quality import NORMAL_CALL_ENDINGS

logger = get_logger(__name__)

# Departments that have a notification route. Wider than the classifier's
# vocabulary: records edited by staff may carry any of these.
KNOWN_DEPARTMENTS: tuple[str, ...] = (
    "Public Works",
    "Public Safety",
    "Finance",
    "Parks & Public Property",
    "Parks & Recreation",
    "Sanitation",
    "Utilities",
    "Planning and Zoning",
    "General",
)
FALLBACK_DEPARTMENT = "General"
TRANSCRIPT_PREVIEW_CHARS = 500


class DepartmentNotification(BaseModel):
    department: str
    subject: str
    body: str
    review_reasons: list[str] = Field(default_factory=list)


class DepartmentNotifier(Protocol):
    async def notify(self, notification: DepartmentNotification, record: IntakeRecord) -> bool: ...


def normalize_department(department: Optional[str]) -> str:
    """Exact match, then case-insensitive match, else ``General``."""
    if department in KNOWN_DEPARTMENTS:
        return department
    for known in KNOWN_DEPARTMENTS:
        if department and known.lower() == department.strip().lower():
            return known
    logger.info("unknown_department", department=department, mapped_to=FALLBACK_DEPARTMENT)
    return FALLBACK_DEPARTMENT


def review_reasons(record: IntakeRecord) -> list[str]:
    """Human-readable reasons behind ``needs_review``; empty when not flagged."""
    if not record.needs_review:
        return []

    reasons: list[str] = []
    if not record.address or not record.address.strip() or record.address == NOT_PROVIDED:
        reasons.append("No address was captured.")
    if not record.name or not record.name.strip() or record.name in (NOT_PROVIDED, UNKNOWN_CALLER):
        reasons.append("Caller name was not identified.")

    if record.channel == Channel.VOICE:
        ended_reason = record.call_metadata.get("ended_reason")
        abnormal = bool(ended_reason) and ended_reason not in NORMAL_CALL_ENDINGS
        if abnormal:
            reasons.append(f"Call ended unexpectedly ({ended_reason}).")
        elif record.call_metadata.get("analysis_success") is False:
            reasons.append("Call analysis did not complete successfully.")

    return reasons or ["This record was flagged for review."]


def build_notification(record: IntakeRecord) -> DepartmentNotification:
    department = normalize_department(record.department)
    reasons = review_reasons(record)

    lines = [
        f"Issue: {record.transcript_summary}",
        f"Name: {record.name}",
        f"Phone: {record.phone}",
        f"Address: {record.address}",
        f"Intent: {record.intent}",
        f"Department: {department}",
        f"Channel: {record.channel.value}",
        f"Language: {record.language}",
    ]
    if reasons:
        lines.append("")
        lines.append("Note: Some details may need verification")
        lines.extend(f"- {r}" for r in reasons)
    if record.channel == Channel.VOICE and record.raw_transcript:
        preview = record.raw_transcript[:TRANSCRIPT_PREVIEW_CHARS]
        if len(record.raw_transcript) > TRANSCRIPT_PREVIEW_CHARS:
            preview += "..."
        lines.extend(["", "Call Transcript:", preview])
    lines.extend(["", "---", f"Record ID: {record.id}"])

    return DepartmentNotification(
        department=department,
        subject=f"[{department}] New Intake: {record.name}",
        body="\n".join(lines),
        review_reasons=reasons,
    )


class LoggingNotifier:
    """Notifier that only logs. Used when no delivery channel is wired in."""

    async def notify(self, notification: DepartmentNotification, record: IntakeRecord) -> bool:
        logger.info(
            "department_notification",
            record_id=record.id,
            department=notification.department,
            needs_review=bool(notification.review_reasons),
        )
        return True
