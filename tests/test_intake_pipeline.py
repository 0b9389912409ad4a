"""Tests for the voice and SMS intake pipeline."""

from unittest.mock import AsyncMock

import pytest

from intake_engine.config import Settings
from intake_engine.schemas.record import AddressQuality, EvaluationType
from intake_engine.schemas.session import SessionAction, SessionField
from intake_engine.schemas.transcript import Channel, Role, Utterance, VoiceCallReport
from intake_engine.services.guided_session import PROMPTS, GuidedSessionMachine, thank_you_message
from intake_engine.services.intake_classifier import IntakeClassifier
from intake_engine.services.intake_pipeline import (
    NO_ISSUE_TEXT,
    IntakePipeline,
    build_raw_issue_text,
    detect_language,
)
from intake_engine.services.session_store import InMemorySessionStore
from intake_engine.workers.classification_worker import ClassificationDispatcher

from conftest import caller

PHONE = "+15551234567"


@pytest.fixture
def notifier():
    mock = AsyncMock()
    mock.notify.return_value = True
    return mock


@pytest.fixture
def session_store():
    return InMemorySessionStore(max_entries=100)


def _pipeline(record_store, session_store, notifier, clock, **settings) -> IntakePipeline:
    dispatcher = ClassificationDispatcher(
        record_store, classifier=IntakeClassifier(backend=None), notifier=notifier
    )
    machine = GuidedSessionMachine(session_store, ttl_seconds=60, clock=clock)
    return IntakePipeline(record_store, dispatcher, machine=machine, settings=Settings(**settings), clock=clock)


@pytest.fixture
def pipeline(record_store, session_store, notifier, clock):
    return _pipeline(record_store, session_store, notifier, clock)


class TestHelpers:
    def test_detect_language(self):
        assert detect_language(caller("Hola, necesito ayuda con un bache")) == "Spanish"
        assert detect_language(caller("Hello, I need help")) == "English"

    def test_system_turns_do_not_set_language(self):
        utterances = [Utterance(role=Role.SYSTEM, text="Hola, gracias por llamar")]
        assert detect_language(utterances) == "English"

    def test_build_raw_issue_text(self):
        assert build_raw_issue_text(caller("pothole", "on Elm")) == "pothole on Elm"
        assert build_raw_issue_text([], "User: pothole") == "User: pothole"
        assert build_raw_issue_text([], None, "Caller reported a pothole.") == "Caller reported a pothole."
        assert build_raw_issue_text([], "", "") == NO_ISSUE_TEXT


class TestVoice:
    def _report(self, **overrides) -> VoiceCallReport:
        messages = [
            Utterance(role=Role.SYSTEM, text="Thanks for calling the city. How can I help?", position=0),
            Utterance(role=Role.CALLER, text="Hi, my name is Maria Garcia.", position=1),
            Utterance(role=Role.SYSTEM, text="What is the address?", position=2),
            Utterance(role=Role.CALLER, text="There's a big pothole in front of 742 Evergreen Terrace.", position=3),
        ]
        values = dict(
            call_id="call-1",
            phone="5551234567",
            messages=messages,
            transcript="\n".join(f"{'User' if m.role == Role.CALLER else 'AI'}: {m.text}" for m in messages),
            duration_seconds=95,
            cost=0.12,
            ended_reason="customer-ended-call",
            analysis_success=True,
        )
        values.update(overrides)
        return VoiceCallReport(**values)

    @pytest.mark.asyncio
    async def test_record_created_pending_then_classified(self, pipeline, record_store, notifier):
        record = await pipeline.process_voice_report(self._report())

        assert record.channel == Channel.VOICE
        assert record.name == "Maria Garcia"
        assert record.address == "742 Evergreen Terrace"
        assert record.address_quality == AddressQuality.COMPLETE
        assert record.phone == PHONE
        assert not record.needs_review
        assert record.intent == "Pending"
        assert record.call_metadata["call_id"] == "call-1"

        await pipeline.dispatcher.drain()

        stored = record_store.records[record.id]
        assert stored.intent == "Pothole / Road Damage"
        assert stored.department == "Public Works"
        evaluations = list(record_store.evaluations.values())
        assert [e.evaluation_type for e in evaluations] == [EvaluationType.INITIAL]
        assert evaluations[0].candidate.extraction_meta["address_source"] == "messages/numeric"
        notifier.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_abnormal_ending_flags_review(self, pipeline):
        record = await pipeline.process_voice_report(self._report(ended_reason="pipeline-error"))
        assert record.needs_review
        await pipeline.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_persist_failure_returns_none(self, pipeline, record_store):
        record_store.fail_creates = True
        assert await pipeline.process_voice_report(self._report()) is None
        assert pipeline.dispatcher.pending == 0


class TestGuidedSms:
    @pytest.mark.asyncio
    async def test_conversation_to_record(self, pipeline, record_store):
        first = await pipeline.process_sms_message(PHONE, "There's a pothole")
        assert first.action == SessionAction.ASK
        assert first.message == PROMPTS[SessionField.ADDRESS]

        await pipeline.process_sms_message(PHONE, "123 Main Street")
        reply = await pipeline.process_sms_message(PHONE, "John Smith")

        assert reply.action == SessionAction.COMPLETE
        record = record_store.records[reply.record_id]
        assert reply.message == thank_you_message(record.id)
        assert record.channel == Channel.SMS
        assert record.name == "John Smith"
        assert record.address == "123 Main Street"
        assert record.raw_transcript == "There's a pothole | 123 Main Street | John Smith"
        assert record.cost == pytest.approx(0.0225)

        await pipeline.dispatcher.drain()
        assert record_store.records[record.id].intent == "Pothole / Road Damage"

    @pytest.mark.asyncio
    async def test_cancel_creates_nothing(self, pipeline, record_store):
        await pipeline.process_sms_message(PHONE, "There's a pothole")
        reply = await pipeline.process_sms_message(PHONE, "cancel")
        assert reply.action == SessionAction.CANCELLED
        assert reply.record_id is None
        assert record_store.records == {}

    @pytest.mark.asyncio
    async def test_expired_session_with_data_is_salvaged(self, pipeline, record_store, clock):
        await pipeline.process_sms_message(PHONE, "There's a pothole")
        clock.advance(61)

        reply = await pipeline.process_sms_message(PHONE, "anyone there?")

        assert reply.salvaged
        assert reply.action == SessionAction.COMPLETE
        record = record_store.records[reply.record_id]
        assert record.name == "Unknown (SMS)"
        assert record.address == "Not provided"
        assert record.needs_review
        await pipeline.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_expired_empty_session_restarts(self, pipeline, record_store, clock):
        await pipeline.process_sms_message(PHONE, "?")
        clock.advance(61)

        reply = await pipeline.process_sms_message(
            PHONE, "There's a pothole at 123 Main Street. My name is John Smith."
        )

        assert reply.action == SessionAction.COMPLETE
        assert not reply.salvaged
        assert record_store.records[reply.record_id].name == "John Smith"
        await pipeline.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_force_complete_at_message_cap(self, record_store, session_store, notifier, clock):
        pipeline = _pipeline(
            record_store,
            session_store,
            notifier,
            clock,
            force_complete_on_max_messages=True,
            max_messages_per_session=2,
        )
        await pipeline.process_sms_message(PHONE, "There's a pothole")
        reply = await pipeline.process_sms_message(PHONE, "idk")

        assert reply.escalated
        assert reply.action == SessionAction.COMPLETE
        assert await session_store.get(PHONE) is None
        assert record_store.records[reply.record_id].transcript_summary == "There's a pothole"
        await pipeline.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_re_ask_continues_without_cap(self, pipeline):
        await pipeline.process_sms_message(PHONE, "There's a pothole")
        for _ in range(6):
            reply = await pipeline.process_sms_message(PHONE, "?")
        assert reply.action == SessionAction.ASK


class TestSinglePassSms:
    @pytest.mark.asyncio
    async def test_single_message_record(self, record_store, session_store, notifier, clock):
        pipeline = _pipeline(record_store, session_store, notifier, clock, guided_sms_enabled=False)

        reply = await pipeline.process_sms_message(
            "(555) 123-4567", "This is John Smith, there's a pothole at 123 Main Street"
        )

        record = record_store.records[reply.record_id]
        assert record.phone == PHONE
        assert record.name == "John Smith"
        assert record.address == "123 Main Street"
        assert len(session_store) == 0
        await pipeline.dispatcher.drain()

    @pytest.mark.asyncio
    async def test_persist_failure_still_replies(self, record_store, session_store, notifier, clock):
        record_store.fail_creates = True
        pipeline = _pipeline(record_store, session_store, notifier, clock, guided_sms_enabled=False)

        reply = await pipeline.process_sms_message(PHONE, "pothole on Elm")

        assert reply.action == SessionAction.COMPLETE
        assert reply.record_id is None
        assert reply.message
