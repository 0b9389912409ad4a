"""Tests for spoken-number address normalization."""

import pytest

from intake_engine.services.spoken_numbers import normalize_spoken_address


@pytest.mark.parametrize(
    "spoken, expected",
    [
        ("eleven twenty two Main Street", "1122 Main Street"),
        ("five four eight four Oak Drive", "5484 Oak Drive"),
        ("forty Main Street", "40 Main Street"),
        ("one hundred twenty three Elm Street", "123 Elm Street"),
        ("twelve oh five Pine Road", "1205 Pine Road"),
        ("two thousand Ocean Avenue", "2000 Ocean Avenue"),
        ("twenty-one Jump Street", "21 Jump Street"),
        ("Five, Oak Lane", "5 Oak Lane"),
        ("nine O Street", "9 O Street"),
        ("four Oh Street", "4 Oh Street"),
    ],
)
def test_leading_number_words_become_digits(spoken, expected):
    assert normalize_spoken_address(spoken) == expected


@pytest.mark.parametrize("address", ["Main Street", "123 Main Street", "oh five Main Street"])
def test_addresses_without_leading_number_words_unchanged(address):
    assert normalize_spoken_address(address) == address


@pytest.mark.parametrize("value", [None, ""])
def test_empty_input_returned_unchanged(value):
    assert normalize_spoken_address(value) == value
