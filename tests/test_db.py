"""Tests for the Supabase record store with the client mocked out."""

from unittest.mock import MagicMock, patch

import pytest

from intake_engine.db import SupabaseRecordStore, evaluation_from_row, evaluation_to_row, get_db
from intake_engine.schemas.evaluation import CandidateResult
from intake_engine.schemas.record import AddressQuality, EvaluationStatus, EvaluationType, IntakeRecordCreate
from intake_engine.schemas.transcript import Channel

from conftest import START

RECORD_ROW = {
    "id": "rec-1",
    "client_id": "client_demo",
    "channel": "SMS",
    "name": "John Smith",
    "phone": "+15551234567",
    "address": "123 Main Street",
    "address_quality": "complete",
    "needs_review": False,
    "intent": "Pending",
    "department": "Pending",
    "transcript_summary": "Processing...",
    "timestamp": "2026-03-02T09:00:00+00:00",
}


@pytest.fixture
def client():
    mock = MagicMock()
    SupabaseRecordStore._instance = None
    with patch("intake_engine.db.create_client", return_value=mock):
        yield mock
    SupabaseRecordStore._instance = None


def test_singleton(client):
    assert get_db() is get_db()
    assert get_db().client is client


@pytest.mark.asyncio
async def test_create_record(client):
    client.table.return_value.insert.return_value.execute.return_value.data = [RECORD_ROW]
    create = IntakeRecordCreate(
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

    record = await get_db().create_record(create)

    client.table.assert_called_with("interactions")
    inserted = client.table.return_value.insert.call_args.args[0]
    assert inserted["channel"] == "SMS"
    assert inserted["address_quality"] == "complete"
    assert record.id == "rec-1"


@pytest.mark.asyncio
async def test_errors_are_logged_and_return_none(client):
    client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.side_effect = RuntimeError("down")
    assert await get_db().get_record("rec-1") is None


@pytest.mark.asyncio
async def test_update_record(client):
    client.table.return_value.update.return_value.eq.return_value.execute.return_value.data = [
        {**RECORD_ROW, "intent": "Pothole / Road Damage"}
    ]
    record = await get_db().update_record("rec-1", {"intent": "Pothole / Road Damage"})
    client.table.return_value.update.assert_called_with({"intent": "Pothole / Road Damage"})
    assert record.intent == "Pothole / Road Damage"


@pytest.mark.asyncio
async def test_apply_evaluation_calls_rpc(client):
    client.rpc.return_value.execute.return_value.data = {"applied": True}
    result = await get_db().apply_evaluation("eval-1", "staff")
    client.rpc.assert_called_once_with("apply_evaluation", {"eval_id": "eval-1", "applied_by_user": "staff"})
    assert result == {"applied": True}


def test_evaluation_row_mapping():
    candidate = CandidateResult(name="Jane", address=None, intent="General Inquiry", extraction_meta={"a": 1})
    row = evaluation_to_row("rec-1", EvaluationType.RE_EVALUATION, candidate)
    assert row["interaction_id"] == "rec-1"
    assert row["evaluation_type"] == "re-evaluation"
    assert row["candidate_address"] is None
    assert row["status"] == "candidate"

    entry = evaluation_from_row({**row, "id": "eval-1", "created_at": "2026-03-02T09:00:00+00:00"})
    assert entry.candidate == candidate
    assert entry.status == EvaluationStatus.CANDIDATE
