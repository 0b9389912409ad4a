"""Shared pytest fixtures.

Provides an in-memory record store fake, a scripted classification backend,
a controllable clock and helpers for building utterances, so no test needs
Supabase, Redis or a network connection.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from intake_engine.config import get_settings
from intake_engine.schemas.evaluation import CandidateResult, EvaluationEntry
from intake_engine.schemas.record import (
    EvaluationStatus,
    EvaluationType,
    IntakeRecord,
    IntakeRecordCreate,
)
from intake_engine.schemas.transcript import Channel, Role, Utterance
from intake_engine.services.intake_classifier import get_classifier

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakeRecordStore:
    """Dict-backed ``RecordStore`` with the same apply semantics as the database."""

    def __init__(self) -> None:
        self.records: dict[str, IntakeRecord] = {}
        self.evaluations: dict[str, EvaluationEntry] = {}
        self.fail_creates = False

    async def create_record(self, record: IntakeRecordCreate) -> Optional[IntakeRecord]:
        if self.fail_creates:
            return None
        stored = IntakeRecord(id=str(uuid.uuid4()), **record.model_dump())
        self.records[stored.id] = stored
        return stored

    async def get_record(self, record_id: str) -> Optional[IntakeRecord]:
        return self.records.get(record_id)

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> Optional[IntakeRecord]:
        record = self.records.get(record_id)
        if record is None:
            return None
        updated = record.model_copy(update=updates)
        self.records[record_id] = updated
        return updated

    async def record_evaluation(
        self,
        record_id: str,
        evaluation_type: EvaluationType,
        candidate: CandidateResult,
    ) -> Optional[EvaluationEntry]:
        entry = EvaluationEntry(
            id=str(uuid.uuid4()),
            record_id=record_id,
            evaluation_type=evaluation_type,
            candidate=candidate,
            created_at=START,
        )
        self.evaluations[entry.id] = entry
        return entry

    async def apply_evaluation(self, evaluation_id: str, applied_by: str) -> Optional[dict[str, Any]]:
        entry = self.evaluations.get(evaluation_id)
        if entry is None:
            return None
        if entry.status != EvaluationStatus.CANDIDATE:
            return {"applied": False, "status": entry.status.value}

        c = entry.candidate
        updates = {
            key: value
            for key, value in {
                "name": c.name,
                "address": c.address,
                "intent": c.intent,
                "department": c.department,
                "transcript_summary": c.summary,
            }.items()
            if value is not None
        }
        await self.update_record(entry.record_id, updates)

        for other in self.evaluations.values():
            if other.record_id == entry.record_id and other.status == EvaluationStatus.CANDIDATE:
                other.status = EvaluationStatus.SUPERSEDED
        entry.status = EvaluationStatus.APPLIED
        entry.applied_by = applied_by
        entry.applied_at = START
        return {"applied": True, "status": entry.status.value}


class StubBackend:
    """Classification backend returning a fixed payload, or raising it."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.calls: list[tuple[str, Channel]] = []

    async def complete(self, text: str, channel: Channel) -> dict[str, Any]:
        self.calls.append((text, channel))
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class Clock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def caller(*texts: str) -> list[Utterance]:
    """Caller utterances with positions set."""
    return [Utterance(role=Role.CALLER, text=t, position=i) for i, t in enumerate(texts)]


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Default settings for every test, with no classification key configured."""
    monkeypatch.setenv("OPENAI_API_KEY", "")
    get_settings.cache_clear()
    get_classifier.cache_clear()
    yield
    get_settings.cache_clear()
    get_classifier.cache_clear()


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def clock() -> Clock:
    return Clock()
