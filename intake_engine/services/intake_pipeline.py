"""
Intake Pipeline.

Turns a finished voice call or an inbound SMS into a persisted intake
record. The record is written first with a "Pending" classification and
the caller-facing reply is produced immediately; classification runs in
the background through the ``ClassificationDispatcher``.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from intake_engine.config import Settings, get_settings
from intake_engine.db import RecordStore
from intake_engine.logging_config import generate_trace_id, get_logger, mask_phone, trace_id_var
from intake_engine.schemas.classification import PENDING_CLASSIFICATION
from intake_engine.schemas.extraction import NOT_PROVIDED, UNKNOWN_SMS_CALLER
from intake_engine.schemas.record import IntakeRecord, IntakeRecordCreate
from intake_engine.schemas.session import GuidedSession, SessionAction, SmsReply
from intake_engine.schemas.transcript import Channel, Role, Utterance, VoiceCallReport
from intake_engine.services.address_quality import derive_address_quality, derive_needs_review
from intake_engine.services.entity_extraction import extract_address, extract_name, extract_sms_fields
from intake_engine.services.guided_session import (
    CANCELLED_MESSAGE,
    GuidedSessionMachine,
    finalized_fields,
    normalize_phone_number,
    thank_you_message,
)
from intake_engine.workers.classification_worker import ClassificationDispatcher

logger = get_logger(__name__)

SPANISH_INDICATORS = re.compile(
    r"\b(hola|gracias|por favor|calle|donde|necesito|problema|ayuda)\b", re.IGNORECASE
)
NO_ISSUE_TEXT = "No issue description provided"
SUMMARY_PLACEHOLDER_CHARS = 200
PROCESSING_PLACEHOLDER = "Processing..."
COST_PER_SMS = 0.0075


def detect_language(utterances: Sequence[Utterance]) -> str:
    """Spanish when a caller turn carries a Spanish indicator word, else English."""
    caller_text = " ".join(u.text for u in utterances if u.role == Role.CALLER)
    return "Spanish" if SPANISH_INDICATORS.search(caller_text) else "English"


def build_raw_issue_text(
    utterances: Sequence[Utterance],
    transcript: Optional[str] = None,
    provider_summary: Optional[str] = None,
) -> str:
    """Caller turns joined; falls back to the transcript, then the provider summary."""
    caller_text = " ".join(u.text for u in utterances if u.role == Role.CALLER).strip()
    return caller_text or (transcript or "").strip() or (provider_summary or "").strip() or NO_ISSUE_TEXT


def _placeholder_summary(text: str) -> str:
    return text[:SUMMARY_PLACEHOLDER_CHARS] or PROCESSING_PLACEHOLDER


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IntakePipeline:
    """Voice end-of-call processing and the SMS integration layer."""

    def __init__(
        self,
        store: RecordStore,
        dispatcher: ClassificationDispatcher,
        machine: Optional[GuidedSessionMachine] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.machine = machine
        self.settings = settings or get_settings()
        self.clock = clock

    # ── Voice ────────────────────────────────────────────────────

    async def process_voice_report(self, report: VoiceCallReport) -> Optional[IntakeRecord]:
        trace_id_var.set(generate_trace_id())
        logger.info(
            "voice_report_received",
            call_id=report.call_id,
            phone=mask_phone(report.phone),
            messages=len(report.messages),
        )

        address = extract_address(report.messages, report.transcript)
        name = extract_name(
            report.messages,
            report.transcript,
            known_address=None if address.is_default else address.value,
        )
        issue_text = build_raw_issue_text(report.messages, report.transcript, report.summary)
        quality = derive_address_quality(address.value)

        record = IntakeRecordCreate(
            client_id=report.client_id or self.settings.default_client_id,
            channel=Channel.VOICE,
            name=name.value,
            phone=normalize_phone_number(report.phone) if report.phone else "",
            address=address.value,
            address_raw=address.raw_value,
            address_quality=quality,
            needs_review=derive_needs_review(
                quality,
                name.value,
                channel=Channel.VOICE,
                ended_reason=report.ended_reason,
                analysis_success=report.analysis_success,
            ),
            intent=PENDING_CLASSIFICATION,
            department=PENDING_CLASSIFICATION,
            transcript_summary=_placeholder_summary(issue_text),
            language=detect_language(report.messages),
            raw_transcript=report.transcript,
            duration_seconds=report.duration_seconds,
            cost=report.cost,
            timestamp=report.ended_at or self.clock(),
            call_metadata={
                "call_id": report.call_id,
                "ended_reason": report.ended_reason,
                "analysis_success": report.analysis_success,
                "recording_url": report.recording_url,
            },
        )
        return await self._persist_and_dispatch(
            record,
            issue_text,
            {"name_source": name.provenance, "address_source": address.provenance, "address_raw": address.raw_value},
        )

    # ── SMS ──────────────────────────────────────────────────────

    async def process_sms_message(self, phone: str, body: str, client_id: Optional[str] = None) -> SmsReply:
        trace_id_var.set(generate_trace_id())
        body = body or ""
        if not self.settings.guided_sms_enabled or self.machine is None:
            return await self._process_single_sms(phone, body, client_id)

        result = await self.machine.process_message(phone, body)

        if result.action == SessionAction.CANCELLED:
            return SmsReply(action=SessionAction.CANCELLED, message=CANCELLED_MESSAGE)

        if result.action == SessionAction.EXPIRED:
            if result.session.has_data:
                record = await self.salvage_session(result.session, client_id)
                return self._thank_you(SessionAction.COMPLETE, record, salvaged=True)
            logger.info("session_restarted", phone=mask_phone(phone))
            result = await self.machine.process_message(phone, body)

        if result.action == SessionAction.COMPLETE:
            record = await self.finalize_session(result.session, client_id)
            return self._thank_you(SessionAction.COMPLETE, record)

        session = result.session
        if (
            self.settings.force_complete_on_max_messages
            and session.message_count >= self.settings.max_messages_per_session
        ):
            closed = await self.machine.close_session(session.identity, session.message_count)
            if closed is not None:
                logger.info("session_escalated", message_count=closed.message_count)
                record = await self.finalize_session(closed, client_id)
                return self._thank_you(SessionAction.COMPLETE, record, escalated=True)

        return SmsReply(action=SessionAction.ASK, message=result.prompt)

    async def finalize_session(self, session: GuidedSession, client_id: Optional[str] = None) -> Optional[IntakeRecord]:
        """Persist a session, filling defaults for whatever is still missing."""
        name, address, issue = finalized_fields(session)
        quality = derive_address_quality(address)
        record = IntakeRecordCreate(
            client_id=client_id or self.settings.default_client_id,
            channel=Channel.SMS,
            name=name,
            phone=session.identity,
            address=address,
            address_raw=session.address_raw,
            address_quality=quality,
            needs_review=derive_needs_review(quality, name, channel=Channel.SMS),
            intent=PENDING_CLASSIFICATION,
            department=PENDING_CLASSIFICATION,
            transcript_summary=_placeholder_summary(issue),
            raw_transcript=" | ".join(session.message_history),
            cost=COST_PER_SMS * session.message_count,
            timestamp=self.clock(),
            call_metadata={"message_count": session.message_count, "asked_fields": sorted(f.value for f in session.asked_fields)},
        )
        return await self._persist_and_dispatch(record, issue, {"session_messages": session.message_count})

    async def salvage_session(self, session: GuidedSession, client_id: Optional[str] = None) -> Optional[IntakeRecord]:
        """Persist an expired session that collected something; skip empty ones."""
        if not session.has_data:
            logger.info("session_salvage_skipped", phone=mask_phone(session.identity))
            return None
        logger.info("session_salvaged", phone=mask_phone(session.identity), message_count=session.message_count)
        return await self.finalize_session(session, client_id)

    async def _process_single_sms(self, phone: str, body: str, client_id: Optional[str]) -> SmsReply:
        extraction = extract_sms_fields(body)
        name = UNKNOWN_SMS_CALLER if extraction.name.is_default else extraction.name.value
        address = NOT_PROVIDED if extraction.address.is_default else extraction.address.value
        quality = derive_address_quality(address)

        record = IntakeRecordCreate(
            client_id=client_id or self.settings.default_client_id,
            channel=Channel.SMS,
            name=name,
            phone=normalize_phone_number(phone),
            address=address,
            address_raw=extraction.address.raw_value,
            address_quality=quality,
            needs_review=derive_needs_review(quality, name, channel=Channel.SMS),
            intent=PENDING_CLASSIFICATION,
            department=PENDING_CLASSIFICATION,
            transcript_summary=_placeholder_summary(body),
            raw_transcript=body,
            cost=COST_PER_SMS,
            timestamp=self.clock(),
        )
        created = await self._persist_and_dispatch(
            record,
            body,
            {
                "name_source": extraction.name.provenance,
                "address_source": extraction.address.provenance,
                "completeness": extraction.completeness,
            },
        )
        return self._thank_you(SessionAction.COMPLETE, created)

    # ── Helpers ──────────────────────────────────────────────────

    async def _persist_and_dispatch(
        self, record: IntakeRecordCreate, issue_text: str, extraction_meta: dict[str, Any]
    ) -> Optional[IntakeRecord]:
        created = await self.store.create_record(record)
        if created is None:
            logger.error("record_persist_failed", channel=record.channel.value, phone=mask_phone(record.phone))
            return None

        logger.info(
            "record_created",
            record_id=created.id,
            channel=created.channel.value,
            address_quality=created.address_quality.value,
            needs_review=created.needs_review,
        )
        self.dispatcher.dispatch(created, issue_text, extraction_meta)
        return created

    @staticmethod
    def _thank_you(
        action: SessionAction,
        record: Optional[IntakeRecord],
        escalated: bool = False,
        salvaged: bool = False,
    ) -> SmsReply:
        if record is None:
            return SmsReply(
                action=action,
                message="Thank you for your report. A representative will follow up.",
                escalated=escalated,
                salvaged=salvaged,
            )
        return SmsReply(
            action=action,
            message=thank_you_message(record.id),
            record_id=record.id,
            escalated=escalated,
            salvaged=salvaged,
        )
