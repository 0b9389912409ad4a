"""Tests for the background classification dispatcher and the session sweeper."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from intake_engine.schemas.record import AddressQuality, IntakeRecordCreate
from intake_engine.schemas.session import GuidedSession
from intake_engine.schemas.transcript import Channel
from intake_engine.services.guided_session import GuidedSessionMachine
from intake_engine.services.intake_classifier import IntakeClassifier
from intake_engine.services.intake_pipeline import IntakePipeline
from intake_engine.services.session_store import InMemorySessionStore
from intake_engine.workers.classification_worker import ClassificationDispatcher
from intake_engine.workers.session_sweeper import SessionSweeperWorker, main

from conftest import START


def _create() -> IntakeRecordCreate:
    return IntakeRecordCreate(
        client_id="client_demo",
        channel=Channel.SMS,
        name="John Smith",
        phone="+15551234567",
        address="123 Main Street",
        address_quality=AddressQuality.COMPLETE,
        intent="Pending",
        department="Pending",
        transcript_summary="Processing...",
        timestamp=START,
    )


class TestClassificationDispatcher:
    @pytest.mark.asyncio
    async def test_classifies_in_background(self, record_store):
        notifier = AsyncMock()
        notifier.notify.return_value = True
        dispatcher = ClassificationDispatcher(record_store, IntakeClassifier(backend=None), notifier)
        record = await record_store.create_record(_create())

        dispatcher.dispatch(record, "streetlight is out on my block", {"name_source": "messages/this_is"})
        assert dispatcher.pending == 1
        await dispatcher.drain()

        assert dispatcher.pending == 0
        stored = record_store.records[record.id]
        assert stored.intent == "Streetlight Issue"
        assert stored.department == "Public Works"
        entry = next(iter(record_store.evaluations.values()))
        assert entry.candidate.name == "John Smith"
        assert entry.candidate.extraction_meta == {"name_source": "messages/this_is", "classifier_method": "fallback"}
        notifier.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_classifier_failure_is_contained(self, record_store):
        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=RuntimeError("boom"))
        dispatcher = ClassificationDispatcher(record_store, classifier, AsyncMock())
        record = await record_store.create_record(_create())

        dispatcher.dispatch(record, "anything")
        await dispatcher.drain()

        assert record_store.records[record.id].intent == "Pending"
        assert record_store.evaluations == {}

    @pytest.mark.asyncio
    async def test_writeback_failure_skips_evaluation(self, record_store):
        notifier = AsyncMock()
        dispatcher = ClassificationDispatcher(record_store, IntakeClassifier(backend=None), notifier)
        record = await record_store.create_record(_create())
        del record_store.records[record.id]

        dispatcher.dispatch(record, "pothole")
        await dispatcher.drain()

        assert record_store.evaluations == {}
        notifier.notify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self, record_store):
        await ClassificationDispatcher(record_store, IntakeClassifier(backend=None), AsyncMock()).drain()


def _stale(identity: str) -> GuidedSession:
    at = START - timedelta(hours=1)
    return GuidedSession(identity=identity, issue="pothole", created_at=at, last_activity_at=at)


class TestSessionSweeper:
    @pytest.mark.asyncio
    async def test_sweep_hands_expired_sessions_to_callback(self, clock):
        store = InMemorySessionStore(max_entries=10)
        await store.put(_stale("+15550000001"))
        await store.put(GuidedSession(identity="+15550000002", created_at=START, last_activity_at=START))
        on_expired = AsyncMock()

        worker = SessionSweeperWorker(store, on_expired, interval_seconds=1, ttl_seconds=600, clock=clock)

        assert await worker.sweep_once() == 1
        on_expired.assert_awaited_once()
        assert on_expired.await_args.args[0].identity == "+15550000001"
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_stop_sweep(self, clock):
        store = InMemorySessionStore(max_entries=10)
        await store.put(_stale("+15550000001"))
        await store.put(_stale("+15550000002"))
        on_expired = AsyncMock(side_effect=[RuntimeError("db down"), None])

        worker = SessionSweeperWorker(store, on_expired, interval_seconds=1, ttl_seconds=600, clock=clock)

        assert await worker.sweep_once() == 2
        assert on_expired.await_count == 2

    @pytest.mark.asyncio
    async def test_loop_survives_errors_until_stopped(self, clock):
        worker = SessionSweeperWorker(
            InMemorySessionStore(max_entries=10), AsyncMock(), interval_seconds=0.001, ttl_seconds=600, clock=clock
        )
        calls = []

        async def sweep_once():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("redis unavailable")
            await worker.stop()
            return 0

        worker.sweep_once = sweep_once
        await worker.start()

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_runs_inside_pipeline_process(self, record_store, clock):
        store = InMemorySessionStore(max_entries=10)
        dispatcher = ClassificationDispatcher(record_store, IntakeClassifier(backend=None), AsyncMock())
        pipeline = IntakePipeline(
            record_store, dispatcher, machine=GuidedSessionMachine(store, ttl_seconds=60, clock=clock), clock=clock
        )
        await pipeline.process_sms_message("+15550000001", "There's a pothole")
        clock.advance(61)

        worker = SessionSweeperWorker.for_pipeline(pipeline, interval_seconds=60)
        task = worker.start_background()
        for _ in range(100):
            if record_store.records:
                break
            await asyncio.sleep(0.01)
        await worker.stop()
        await asyncio.wait_for(task, timeout=1)

        [record] = record_store.records.values()
        assert record.phone == "+15550000001"
        assert record.name == "Unknown (SMS)"
        assert len(store) == 0
        await dispatcher.drain()

    def test_for_pipeline_requires_guided_sessions(self, record_store):
        dispatcher = ClassificationDispatcher(record_store, IntakeClassifier(backend=None), AsyncMock())
        with pytest.raises(ValueError):
            SessionSweeperWorker.for_pipeline(IntakePipeline(record_store, dispatcher))

    @pytest.mark.asyncio
    async def test_standalone_process_refuses_process_local_store(self):
        with patch("intake_engine.workers.session_sweeper.load_dotenv"), patch(
            "intake_engine.workers.session_sweeper.setup_logging"
        ), patch("intake_engine.workers.session_sweeper.get_db") as get_db, patch.object(
            SessionSweeperWorker, "start", new=AsyncMock()
        ) as start:
            await main()

        get_db.assert_not_called()
        start.assert_not_awaited()
