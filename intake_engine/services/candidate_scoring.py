"""
Candidate generation and confidence scoring.

Every match of every registry pattern, over every view of the conversation,
becomes a ``Candidate``. Nothing is de-duplicated here: precedence is decided
entirely by ``adjusted_score`` and, on ties, by ``registration_index``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from intake_engine.logging_config import get_logger
from intake_engine.schemas.transcript import Role, Utterance
from intake_engine.services.entity_patterns import (
    ADDRESS_INTENT_TOKENS,
    ADDRESS_PATTERNS,
    NAME_INTENT_TOKENS,
    NAME_PATTERNS,
    NAME_STOP_WORDS,
    NUMBER_WORDS,
    ORGANIZATION_SHAPES,
    ORGANIZATION_TOKENS,
    EntityPattern,
)
from intake_engine.services.text_normalizer import normalize_text

logger = get_logger(__name__)

DISQUALIFIED = -math.inf

# Score adjustments
INTENT_TOKEN_PENALTY = -300
SINGLE_LOWERCASE_PENALTY = -200
DIGITS_PENALTY = -80
LEADING_NUMBER_WORD_PENALTY = -150
PROPER_NAME_BONUS = 150
POSITION_BONUS = 50
POSITION_THRESHOLDS = (0.5, 0.75)
NAME_OVERLAP_LIMIT = 0.5

SOURCE_MESSAGES = "messages"
SOURCE_TRANSCRIPT = "transcript"

# "AI: ..." / "User: ..." labels in stored transcripts
SPEAKER_LABEL_PATTERN = re.compile(
    r"^[ \t]*(?:AI|Assistant|Bot|Agent|User|Customer|Caller)[ \t]*:[ \t]*",
    re.IGNORECASE | re.MULTILINE,
)
TOKEN_PATTERN = re.compile(r"[^\W_]+(?:['’-][^\W_]+)*")


@dataclass
class Candidate:
    """A scored value proposed by one pattern match. Never persisted."""

    value: str
    pattern_id: str
    base_score: float
    source: str
    source_index: int
    position_ratio: float
    registration_index: int
    raw_match: str
    adjusted_score: float = 0.0

    @property
    def provenance(self) -> str:
        return f"{self.source}/{self.pattern_id}"


def tokens_of(value: str) -> list[str]:
    return [t.lower() for t in TOKEN_PATTERN.findall(value)]


def is_proper_case(token: str) -> bool:
    return len(token) > 1 and token[0].isupper() and token[1:].islower()


# ── Generation ───────────────────────────────────────────────────


def _views(
    utterances: Sequence[Utterance], transcript: Optional[str]
) -> Iterable[tuple[str, int, float, str]]:
    """Yield (source, source_index, position_ratio, text) for every view."""
    caller_turns = [u for u in utterances if u.role == Role.CALLER and u.text]
    for i, utterance in enumerate(caller_turns):
        ratio = i / (len(caller_turns) - 1) if len(caller_turns) > 1 else 0.0
        for text in _variants(utterance.text):
            yield SOURCE_MESSAGES, utterance.position, ratio, text

    if transcript:
        unlabeled = SPEAKER_LABEL_PATTERN.sub("", transcript)
        for text in _variants(unlabeled):
            yield SOURCE_TRANSCRIPT, -1, -1.0, text


def _variants(text: str) -> list[str]:
    normalized = normalize_text(text) or ""
    variants = [normalized] if normalized else []
    if text.strip() and text != normalized:
        variants.append(text)
    return variants


def _trim_name(value: str) -> str:
    words: list[str] = []
    for word in value.split():
        if word.lower() in NAME_STOP_WORDS:
            break
        words.append(word)
    return " ".join(words)


def generate_candidates(
    entity: str,
    utterances: Sequence[Utterance],
    transcript: Optional[str] = None,
) -> list[Candidate]:
    """
    Run the ``entity`` ("name" or "address") registry over all views.

    Views are the caller utterances first, in order, then the whole
    transcript. Each text is tried normalized and, when different, raw.
    """
    registry: Sequence[EntityPattern] = NAME_PATTERNS if entity == "name" else ADDRESS_PATTERNS
    candidates: list[Candidate] = []

    for source, source_index, ratio, text in _views(utterances, transcript):
        for pattern in registry:
            for match in pattern.regex.finditer(text):
                value = " ".join(pattern.value_of(match).split()).strip(" ,;:")
                if entity == "name":
                    value = _trim_name(value)
                if not value:
                    continue
                if ratio < 0:
                    position = match.start() / max(len(text), 1)
                    index = match.start()
                else:
                    position = ratio
                    index = source_index
                candidates.append(
                    Candidate(
                        value=value,
                        pattern_id=pattern.pattern_id,
                        base_score=pattern.base_score,
                        source=source,
                        source_index=index,
                        position_ratio=position,
                        registration_index=len(candidates),
                        raw_match=match.group(0),
                    )
                )

    logger.debug("candidates_generated", entity=entity, count=len(candidates))
    return candidates


# ── Scoring ──────────────────────────────────────────────────────


def is_organization(value: str) -> bool:
    if any(token in ORGANIZATION_TOKENS for token in tokens_of(value)):
        return True
    return any(shape.search(value) for shape in ORGANIZATION_SHAPES)


def name_overlaps_address(name: str, address: Optional[str]) -> bool:
    """True when ``name`` is really a fragment of ``address``."""
    if not address:
        return False
    name_tokens = tokens_of(name)
    if not name_tokens:
        return False
    address_tokens = set(tokens_of(address))
    overlap = sum(1 for t in name_tokens if t in address_tokens) / len(name_tokens)
    if overlap >= NAME_OVERLAP_LIMIT:
        return True
    # "Five Three" next to "53 La Cienega Boulevard"
    has_digits = any(ch.isdigit() for ch in address)
    return has_digits and any(t in NUMBER_WORDS for t in name_tokens)


def _position_bonus(ratio: float) -> float:
    return sum(POSITION_BONUS for threshold in POSITION_THRESHOLDS if ratio > threshold)


def score_name(candidate: Candidate, known_address: Optional[str] = None) -> float:
    value = candidate.value
    if is_organization(value) or name_overlaps_address(value, known_address):
        return DISQUALIFIED

    words = value.split()
    tokens = tokens_of(value)
    score = candidate.base_score
    score += INTENT_TOKEN_PENALTY * sum(1 for t in tokens if t in NAME_INTENT_TOKENS)
    if len(words) == 1 and value.islower():
        score += SINGLE_LOWERCASE_PENALTY
    if any(ch.isdigit() for ch in value):
        score += DIGITS_PENALTY
    if tokens and tokens[0] in NUMBER_WORDS:
        score += LEADING_NUMBER_WORD_PENALTY
    if 2 <= len(words) <= 3 and all(is_proper_case(w) for w in words):
        score += PROPER_NAME_BONUS
    return score + _position_bonus(candidate.position_ratio)


def score_address(candidate: Candidate) -> float:
    if is_organization(candidate.value):
        return DISQUALIFIED
    tokens = tokens_of(candidate.value)
    score = candidate.base_score
    score += INTENT_TOKEN_PENALTY * sum(1 for t in tokens if t in ADDRESS_INTENT_TOKENS)
    return score + _position_bonus(candidate.position_ratio)


def score_candidates(
    entity: str,
    candidates: list[Candidate],
    known_address: Optional[str] = None,
) -> list[Candidate]:
    """Fill in ``adjusted_score`` on every candidate and return them."""
    for candidate in candidates:
        if entity == "name":
            candidate.adjusted_score = score_name(candidate, known_address)
        else:
            candidate.adjusted_score = score_address(candidate)
    return candidates


def rank(candidates: list[Candidate]) -> list[Candidate]:
    """Order by score descending, then registration order. Drops disqualified."""
    live = [c for c in candidates if c.adjusted_score != DISQUALIFIED]
    return sorted(live, key=lambda c: (-c.adjusted_score, c.registration_index))
