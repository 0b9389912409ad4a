"""
Spoken-number address normalization.

Converts a leading run of number words in an address into digits:

    "eleven twenty two Main Street"  -> "1122 Main Street"
    "five four eight four Oak Drive" -> "5484 Oak Drive"
    "forty Main Street"              -> "40 Main Street"

Text without leading number words is returned unchanged.
"""

from __future__ import annotations

from intake_engine.services.entity_patterns import (
    DIGIT_WORDS,
    MULTIPLIER_WORDS,
    TEEN_WORDS,
    TENS_WORDS,
)

# "oh" reads as zero inside a number ("twelve oh five") but never opens or ends one
ZERO_ALIASES = frozenset({"oh"})


def _kind_of(word: str, first: bool) -> tuple[str, int] | None:
    if word in DIGIT_WORDS:
        return "digit", DIGIT_WORDS[word]
    if word in ZERO_ALIASES and not first:
        return "digit", 0
    if word in TEEN_WORDS:
        return "teen", TEEN_WORDS[word]
    if word in TENS_WORDS:
        return "tens", TENS_WORDS[word]
    if word in MULTIPLIER_WORDS:
        return "multiplier", MULTIPLIER_WORDS[word]
    return None


def _leading_number_words(tokens: list[str]) -> tuple[list[tuple[str, int]], int]:
    """Return the classified number words and how many tokens they span."""
    per_token: list[list[tuple[str, int]]] = []
    for token in tokens:
        pieces = [p for p in token.strip(",").lower().split("-") if p]
        if not pieces:
            break
        kinds = [_kind_of(p, first=not per_token and i == 0) for i, p in enumerate(pieces)]
        if any(k is None for k in kinds):
            break
        per_token.append(kinds)  # type: ignore[arg-type]

    # "nine Oh Street": a trailing "oh" is the street name
    while per_token and tokens[len(per_token) - 1].strip(",").lower() in ZERO_ALIASES:
        per_token.pop()
    return [kind for kinds in per_token for kind in kinds], len(per_token)


def _to_digits(parts: list[tuple[str, int]]) -> str:
    if all(kind == "digit" for kind, _ in parts):
        return "".join(str(value) for _, value in parts)

    groups: list[str] = []
    chunk: int | None = None
    last_kind = ""

    def flush() -> None:
        if chunk is not None:
            groups.append(str(chunk))

    for kind, value in parts:
        if kind == "multiplier":
            base = chunk if chunk is not None else 1
            if value == 1000:
                chunk = base * 1000
            else:
                lower = base % 1000
                chunk = base - lower + (lower or 1) * 100
        elif kind == "digit":
            if chunk is not None and last_kind in ("tens", "multiplier") and chunk % 10 == 0:
                chunk += value
            else:
                flush()
                chunk = value
        else:  # teen or tens
            if chunk is not None and last_kind == "multiplier" and chunk % 100 == 0:
                chunk += value
            else:
                flush()
                chunk = value
        last_kind = kind

    flush()
    return "".join(groups)


def normalize_spoken_address(address: str | None) -> str | None:
    """Replace a leading spoken number in ``address`` with its digit form."""
    if not address:
        return address

    tokens = address.split()
    parts, consumed = _leading_number_words(tokens)
    if not parts:
        return address

    rest = " ".join(tokens[consumed:]).lstrip(", ")
    number = _to_digits(parts)
    return f"{number} {rest}".strip()
