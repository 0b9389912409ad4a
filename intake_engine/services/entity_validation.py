"""
Structural validation of selected entity values.

Scoring decides the order candidates are tried in; these checks decide
whether a candidate is acceptable at all. Each validator returns
``(ok, reason)`` so the selector can log why a candidate was skipped.
"""

from __future__ import annotations

import re

from intake_engine.schemas.extraction import APPROXIMATE_TAG
from intake_engine.services.candidate_scoring import is_proper_case, tokens_of
from intake_engine.services.entity_patterns import (
    ALLOWED_SHORT_NAMES,
    COMMON_NON_NAMES,
    CROSS_STREET_MARKER,
    NAME_INTENT_TOKENS,
    NON_ENTITY_NAME_SHAPES,
    NUMBER_WORDS,
    STREET_PREFIX_WORDS,
    STREET_TYPE_WORDS,
    VERB_PHRASE_PATTERN,
)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
ADDRESS_MIN_LENGTH = 5
HUMAN_NAME_MIN_POINTS = 2

STRICT_FIRST_LAST = re.compile(r"^[A-ZÀ-Ý][a-zß-ÿ'’-]+ [A-ZÀ-Ý][a-zß-ÿ'’-]+$")
PURE_NUMERIC = re.compile(r"^[\d\s.,#-]+$")

Verdict = tuple[bool, str]


def human_name_points(value: str) -> int:
    """Score the composite human-name shape; two points are needed to pass."""
    words = value.split()
    points = 0
    if 2 <= len(words) <= 3:
        points += 1
    if any(is_proper_case(w) for w in words):
        points += 1
    if STRICT_FIRST_LAST.match(value):
        points += 2
    if not any(t in NAME_INTENT_TOKENS for t in tokens_of(value)):
        points += 1
    return points


def validate_name(value: str) -> Verdict:
    value = value.strip()
    if not NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH:
        return False, "length"
    if PURE_NUMERIC.match(value):
        return False, "numeric"
    if VERB_PHRASE_PATTERN.match(value):
        return False, "verb_phrase"
    if any(shape.search(value) for shape in NON_ENTITY_NAME_SHAPES):
        return False, "non_entity_phrase"

    words = value.split()
    if len(words) == 1 and words[0].lower() in COMMON_NON_NAMES and words[0] not in ALLOWED_SHORT_NAMES:
        return False, "common_word"

    if human_name_points(value) < HUMAN_NAME_MIN_POINTS:
        return False, "not_human_name"
    return True, "ok"


def _begins_like_address(value: str) -> bool:
    if CROSS_STREET_MARKER in value or value.endswith(APPROXIMATE_TAG):
        return True
    first = value.split()[0].strip(",.").lower()
    if first[:1].isdigit():
        return True
    first_word = first.split("-")[0]
    return first_word in NUMBER_WORDS or first_word in STREET_PREFIX_WORDS


def _number_and_bare_type(value: str) -> bool:
    # "40 Street": a house number and a street type with no street name
    words = [w.strip(",.").lower() for w in value.split()]
    return len(words) == 2 and words[0].isdigit() and words[1] in STREET_TYPE_WORDS


def validate_address(value: str, relaxed: bool = False) -> Verdict:
    """
    Check an address candidate.

    ``relaxed`` drops the begins-with rule; voice re-evaluation uses it to
    recover street names that were spoken without a house number.
    """
    value = value.strip()
    if len(value) < ADDRESS_MIN_LENGTH:
        return False, "length"
    if PURE_NUMERIC.match(value):
        return False, "numeric"
    if _number_and_bare_type(value):
        return False, "no_street_name"
    if not relaxed and not _begins_like_address(value):
        return False, "no_address_prefix"
    return True, "ok"
