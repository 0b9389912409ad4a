"""
Transcript text normalizer.

Cleans speech-to-text output before pattern matching: filler words,
stutters ("I-I"), doubled tokens ("the the") and ellipses are removed and
whitespace is collapsed. The transformation is applied to a fixed point, so
``normalize_text(normalize_text(x)) == normalize_text(x)`` for every input.
"""

from __future__ import annotations

import re

from intake_engine.services.entity_patterns import NUMBER_WORDS

# Fillers and discourse markers, English and Spanish
FILLER_PATTERN = re.compile(
    r"(?<![\w'-])(?:u+h+m*|u+m+|h*m{2,}|e+r+m+|a+h+|e+h+|e+m+|"
    r"you know|i mean|o sea|este\.\.\.)(?![\w'-])[,]?",
    re.IGNORECASE,
)
ELLIPSIS_PATTERN = re.compile(r"\.{2,}|…")
STUTTER_PATTERN = re.compile(r"\b(\w+)(?:-\1\b)+", re.IGNORECASE)
REPEAT_PATTERN = re.compile(r"\b(\w+)(?:\s+\1\b)+", re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r"\s+")
REPEATED_COMMA_PATTERN = re.compile(r",(?:\s*,)+")
SPACE_BEFORE_PUNCT_PATTERN = re.compile(r"\s+([,.!?])")
LEADING_PUNCT_PATTERN = re.compile(r"^[\s,.]+")


def _keep_numbers(match: re.Match[str]) -> str:
    # "five five three" is an address, not a repetition
    word = match.group(1)
    if word.isdigit() or word.lower() in NUMBER_WORDS:
        return match.group(0)
    return word


def _single_pass(text: str) -> str:
    text = ELLIPSIS_PATTERN.sub(".", text)
    text = FILLER_PATTERN.sub(" ", text)
    text = WHITESPACE_PATTERN.sub(" ", text)
    text = STUTTER_PATTERN.sub(_keep_numbers, text)
    text = REPEAT_PATTERN.sub(_keep_numbers, text)
    text = REPEATED_COMMA_PATTERN.sub(",", text)
    text = SPACE_BEFORE_PUNCT_PATTERN.sub(r"\1", text)
    text = LEADING_PUNCT_PATTERN.sub("", text)
    return text.strip()


def normalize_text(text: str | None) -> str | None:
    """
    Return ``text`` with speech disfluencies removed.

    Empty or ``None`` input is returned unchanged. Never raises.
    """
    if not text:
        return text

    current = text
    # Each pass only removes or substitutes characters, so this converges.
    for _ in range(len(text) + 2):
        cleaned = _single_pass(current)
        if cleaned == current:
            return cleaned
        current = cleaned
    return current
