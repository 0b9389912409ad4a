"""Tests for candidate scoring and name/address selection."""

import math

import pytest

from intake_engine.schemas.extraction import NOT_PROVIDED, UNKNOWN_CALLER
from intake_engine.services.candidate_scoring import (
    Candidate,
    is_organization,
    name_overlaps_address,
    rank,
    score_name,
)
from intake_engine.services.entity_extraction import (
    extract_address,
    extract_name,
    extract_sms_fields,
)

from conftest import caller


def _candidate(value: str, base: float = 50, ratio: float = 0.0, index: int = 0) -> Candidate:
    return Candidate(
        value=value,
        pattern_id="test",
        base_score=base,
        source="messages",
        source_index=0,
        position_ratio=ratio,
        registration_index=index,
        raw_match=value,
    )


class TestAddressExtraction:
    def test_numeric_address_from_messages(self):
        result = extract_address(caller("Hi, my name is John Smith.", "I live at 123 Main Street."))
        assert result.value == "123 Main Street"
        assert result.provenance == "messages/numeric"
        assert not result.is_default

    def test_sentence_period_not_part_of_address(self):
        result = extract_address(caller("I live at 742 Evergreen Terrace."))
        assert result.value == "742 Evergreen Terrace"

    def test_abbreviated_street_type_keeps_its_dot(self):
        result = extract_address(caller("The pothole is at 9 Oak Ave. near the school"))
        assert result.value == "9 Oak Ave."

    def test_spoken_address_normalized_with_raw_kept(self):
        result = extract_address(caller("Five Three La Cienega Boulevard"))
        assert result.value == "53 La Cienega Boulevard"
        assert result.raw_value == "Five Three La Cienega Boulevard"
        assert result.pattern_id == "spoken"

    def test_transcript_fallback_strips_speaker_labels(self):
        transcript = "AI: What's your address?\nUser: I live at 42 Elm Street"
        result = extract_address([], transcript)
        assert result.value == "42 Elm Street"
        assert result.provenance == "transcript/numeric"

    def test_miss_returns_default(self):
        result = extract_address(caller("hello there"))
        assert result.value == NOT_PROVIDED
        assert result.provenance == "default"
        assert result.is_default
        assert result.pattern_id is None


class TestNameExtraction:
    def test_my_name_is(self):
        result = extract_name(
            caller("Hi, my name is John Smith.", "I live at 123 Main Street."),
            known_address="123 Main Street",
        )
        assert result.value == "John Smith"
        assert result.provenance == "messages/my_name_is"

    def test_name_trimmed_at_stop_word(self):
        result = extract_name(caller("My name is Ana Lopez and I need help"))
        assert result.value == "Ana Lopez"

    def test_intent_phrase_is_not_a_name(self):
        result = extract_name(caller("I'm calling about a pothole"))
        assert result.value == UNKNOWN_CALLER
        assert result.is_default

    @pytest.mark.parametrize(
        "text, expected, pattern_id",
        [("I'm Maria", "Maria", "i_am"), ("It's Bill", "Bill", "its"), ("I'm Maria Garcia", "Maria Garcia", "i_am")],
    )
    def test_lead_in_is_not_part_of_name(self, text, expected, pattern_id):
        result = extract_name(caller(text))
        assert result.value == expected
        assert result.pattern_id == pattern_id

    def test_organization_is_never_a_name(self):
        result = extract_name(caller("This is the Sanitation Department"))
        assert result.is_default

    def test_address_fragment_disqualified_by_known_address(self):
        utterances = caller("Five Three La Cienega Boulevard")
        assert extract_name(utterances).value == "La Cienega"

        result = extract_name(utterances, known_address="53 La Cienega Boulevard")
        assert result.is_default

    def test_not_provided_is_not_a_known_address(self):
        result = extract_name(caller("My name is Main Street Smith"), known_address=NOT_PROVIDED)
        assert result.value == "Main Street Smith"


class TestScoring:
    @pytest.mark.parametrize(
        "value", ["Public Works Department", "Department of Transportation", "City of Springfield", "Vapi"]
    )
    def test_organizations(self, value):
        assert is_organization(value)

    def test_person_is_not_an_organization(self):
        assert not is_organization("Maria Garcia")

    def test_name_overlap_with_address(self):
        assert name_overlaps_address("La Cienega", "53 La Cienega Boulevard")
        assert name_overlaps_address("Five Three", "53 La Cienega Boulevard")
        assert not name_overlaps_address("Maria Garcia", "53 La Cienega Boulevard")
        assert not name_overlaps_address("Five Three", None)

    def test_organization_scores_disqualified(self):
        assert score_name(_candidate("Police Department")) == -math.inf

    def test_position_bonus_for_later_turns(self):
        early = score_name(_candidate("Maria Garcia", ratio=0.0))
        late = score_name(_candidate("Maria Garcia", ratio=0.8))
        assert late - early == 100

    def test_rank_orders_by_score_then_registration(self):
        a = _candidate("A", index=0)
        b = _candidate("B", index=1)
        c = _candidate("C", index=2)
        d = _candidate("D", index=3)
        a.adjusted_score, b.adjusted_score, c.adjusted_score, d.adjusted_score = 10, 30, 30, -math.inf
        assert [x.value for x in rank([d, c, b, a])] == ["B", "C", "A"]


class TestSmsExtraction:
    def test_name_and_address(self):
        result = extract_sms_fields("This is John Smith, there's a pothole at 123 Main Street")
        assert result.name.value == "John Smith"
        assert result.address.value == "123 Main Street"
        assert result.completeness == 1.0
        assert result.address_is_complete

    def test_empty_message(self):
        result = extract_sms_fields("")
        assert result.name.is_default
        assert result.address.is_default
        assert result.completeness == 0.0
        assert not result.address_is_complete
