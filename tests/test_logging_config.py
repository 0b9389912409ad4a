"""Tests for log correlation and phone redaction."""

from intake_engine.logging_config import (
    _add_correlation,
    _redact_phones,
    mask_phone,
    session_context,
    session_id_var,
    trace_id_var,
)


def test_mask_phone():
    assert mask_phone("+15551234567") == "*4567"
    assert mask_phone("") == "*"
    assert mask_phone(None) == "*"
    assert mask_phone("*4567") == "*4567"


def test_redacts_phone_fields_only():
    event = _redact_phones(None, "info", {"event": "x", "phone": "+15551234567", "address": "123 Main Street"})
    assert event["phone"] == "*4567"
    assert event["address"] == "123 Main Street"


def test_session_context_sets_and_resets():
    with session_context("+15551234567"):
        assert session_id_var.get() == "*4567"
        event = _add_correlation(None, "info", {"event": "x"})
        assert event["session_id"] == "*4567"
    assert session_id_var.get() == ""


def test_trace_id_added_when_set():
    token = trace_id_var.set("abc123")
    try:
        assert _add_correlation(None, "info", {"event": "x"})["trace_id"] == "abc123"
    finally:
        trace_id_var.reset(token)
    assert "trace_id" not in _add_correlation(None, "info", {"event": "x"})
