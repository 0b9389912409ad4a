"""Tests for the transcript text normalizer."""

import pytest
from hypothesis import given, strategies as st

from intake_engine.services.text_normalizer import normalize_text


@given(st.text())
def test_normalize_text_never_crashes(text):
    normalize_text(text)


@given(st.text())
def test_normalize_text_idempotency(text):
    first = normalize_text(text)
    assert normalize_text(first) == first


DISFLUENT_PIECES = ["um", "uh", "the", "Main", "five", " ", ",", "...", "I-I", "-", "you know"]


@given(st.lists(st.sampled_from(DISFLUENT_PIECES), max_size=30).map("".join))
def test_normalize_text_idempotent_on_disfluent_text(text):
    first = normalize_text(text)
    assert normalize_text(first) == first


@pytest.mark.parametrize("value", [None, ""])
def test_empty_input_returned_unchanged(value):
    assert normalize_text(value) == value


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("um my name is uh John Smith", "my name is John Smith"),
        ("I-I live at the the corner", "I live at the corner"),
        ("so... it's on Main", "so. it's on Main"),
        ("hello   there", "hello there"),
        ("you know, the light is out", "the light is out"),
        ("hmm.. ok", "ok"),
        (", . the light", "the light"),
    ],
)
def test_disfluencies_removed(raw, expected):
    assert normalize_text(raw) == expected


def test_repeated_number_words_are_kept():
    assert normalize_text("five five three Oak Street") == "five five three Oak Street"
    assert normalize_text("2 2 Elm Road") == "2 2 Elm Road"


def test_words_containing_filler_letters_survive():
    assert normalize_text("Emma Hammond called about Ahmed's drum") == "Emma Hammond called about Ahmed's drum"
