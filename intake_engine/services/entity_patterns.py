"""
Pattern registries and vocabularies for name/address extraction.

Each registry entry is an ``EntityPattern``: a compiled regular expression,
a stable pattern id (recorded in provenance) and a base confidence score.
Registries are ordered; the order is the registration index used to break
score ties during selection.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Optional

from intake_engine.schemas.extraction import APPROXIMATE_TAG

# ── Number words ─────────────────────────────────────────────────

DIGIT_WORDS: dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
}
TEEN_WORDS: dict[str, int] = {
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
}
TENS_WORDS: dict[str, int] = {
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}
MULTIPLIER_WORDS: dict[str, int] = {"hundred": 100, "thousand": 1000}

NUMBER_WORDS: frozenset[str] = frozenset(
    [*DIGIT_WORDS, *TEEN_WORDS, *TENS_WORDS, *MULTIPLIER_WORDS]
)

# Longest first so "fourteen" wins over "four" inside an alternation
_NUMBER_WORD_RE = "|".join(sorted(NUMBER_WORDS, key=len, reverse=True))

# ── Streets ──────────────────────────────────────────────────────

FULL_STREET_TYPES: tuple[str, ...] = (
    "Street", "Avenue", "Drive", "Road", "Boulevard", "Lane", "Way", "Court",
    "Place", "Circle", "Terrace", "Trail", "Parkway", "Highway", "Plaza",
)
ABBREVIATED_STREET_TYPES: tuple[str, ...] = (
    "St", "Ave", "Dr", "Rd", "Blvd", "Ln", "Ct", "Pl", "Cir", "Ter", "Trl",
    "Pkwy", "Hwy",
)
STREET_TYPES: tuple[str, ...] = FULL_STREET_TYPES + ABBREVIATED_STREET_TYPES
STREET_TYPE_WORDS: frozenset[str] = frozenset(t.lower() for t in STREET_TYPES)
_STREET_TYPE_RE = "|".join(STREET_TYPES)
_FULL_STREET_TYPE_RE = "|".join(FULL_STREET_TYPES)
_ABBREVIATED_STREET_TYPE_RE = "|".join(ABBREVIATED_STREET_TYPES)

# Words an address may start with when it has no house number
STREET_PREFIX_WORDS: frozenset[str] = frozenset({
    "north", "south", "east", "west", "n", "s", "e", "w", "ne", "nw", "se", "sw",
    "old", "saint", "st", "mount", "mt", "fort", "ft", "highway", "hwy", "route",
    "rte", "county", "state", "calle", "avenida", "camino", "carretera",
})

CROSS_STREET_MARKER = " & "

# ── Vocabularies ─────────────────────────────────────────────────

# A candidate containing any of these is an organization, not a person or place
ORGANIZATION_TOKENS: frozenset[str] = frozenset({
    "department", "dept", "government", "council", "municipal", "municipality",
    "police", "sheriff", "inc", "llc", "corp", "corporation", "ltd", "company",
    "ai", "bot", "assistant", "vapi", "twilio", "openai", "chatgpt", "alexa",
    "siri", "hotline", "helpline", "dispatcher", "operator", "bureau", "agency",
    "departamento", "ayuntamiento", "municipio", "gobierno",
})

ORGANIZATION_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b\w+\s+department\b", re.IGNORECASE),
    re.compile(r"\bdepartment\s+of\b", re.IGNORECASE),
    re.compile(r"\b(?:city|county|town|village|ciudad)\s+(?:of|de)\b", re.IGNORECASE),
    re.compile(r"\b\w+\s+(?:ai|bot|system)\b", re.IGNORECASE),
    re.compile(r"\bpublic\s+works\b", re.IGNORECASE),
    re.compile(r"\bcity\s+hall\b", re.IGNORECASE),
)

# Action verbs and issue nouns: a name candidate containing one of these is a
# fragment of something the caller was saying, not a name
NAME_INTENT_TOKENS: frozenset[str] = frozenset({
    "calling", "call", "called", "report", "reporting", "reported", "complaint",
    "pothole", "potholes", "trash", "garbage", "streetlight", "streetlights",
    "light", "lights", "leak", "leaking", "water", "sewer", "hydrant", "broken",
    "issue", "problem", "help", "need", "want", "about", "regarding",
    "yeah", "yes", "okay", "ok", "um", "uh", "hello", "hi", "hey", "thanks",
    "thank", "please", "just", "actually", "basically", "sorry", "because",
    "bache", "basura", "llamando", "problema", "reportar", "gracias",
})

ADDRESS_INTENT_TOKENS: frozenset[str] = frozenset({
    "pothole", "potholes", "trash", "garbage", "calling", "report", "reporting",
    "broken", "leak", "leaking", "problem", "issue", "complaint", "bache", "basura",
})

# Single words that look like a name slot answer but are not names
COMMON_NON_NAMES: frozenset[str] = frozenset({
    "hello", "hi", "hey", "yeah", "yes", "no", "okay", "ok", "um", "uh", "well",
    "so", "like", "just", "actually", "basically", "please", "thanks", "thank",
    "you", "the", "a", "an", "is", "are", "was", "were", "be", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "must", "can", "need", "want", "got", "get", "there", "here",
    "this", "that", "it", "i", "my", "me", "we", "our", "i'm", "im", "it's",
    "that's", "there's", "here's", "we're", "nothing", "something",
    "anything", "everything", "none", "all", "sorry", "fine", "good", "great",
    "sure", "street", "road", "avenue", "home", "house", "someone", "somebody",
    "anyone", "nobody", "everyone", "resident", "neighbor", "citizen", "caller",
    "customer", "unknown", "anonymous", "help", "pothole", "trash", "water",
    "light", "today", "tomorrow", "yesterday", "morning", "afternoon",
    "evening", "night", "also", "still", "really", "very", "not", "ready",
    "done", "glad", "happy", "concerned", "worried", "new", "old", "outside",
    "inside", "hope", "grace", "mark", "bill", "rose", "joy", "faith", "frank",
    "bueno", "gracias", "hola", "si", "sí", "nada", "vecino",
})

# Proper-cased short names that collide with common words
ALLOWED_SHORT_NAMES: frozenset[str] = frozenset({
    "Will", "Bill", "Grace", "Hope", "Joy", "Faith", "Mark", "Rose", "June",
    "May", "April", "Summer", "Dawn", "Sky", "Jack", "Frank", "Art", "Guy",
    "Sandy", "Rich", "Ray", "Pat", "Sue", "Don", "Earl", "Miles", "Chase",
    "Hunter", "Bob", "Al", "Ed", "Jo", "Li", "Bo",
})

# Words that end a captured name: "John and I live ..." -> "John"
NAME_STOP_WORDS: frozenset[str] = frozenset({
    "and", "but", "so", "because", "or", "i", "at", "from", "on", "in", "with",
    "my", "the", "a", "an", "to", "for", "of", "is", "was", "here", "speaking",
    "y", "and", "que", "vivo",
})

# Lowercase verb/auxiliary openers; proper-cased "Will" or "Irving" are left alone
VERB_PHRASE_PATTERN = re.compile(
    r"^(?:[a-z]\w*ing|is|am|are|was|were|have|has|had|do|does|did|will|would|"
    r"could|should|can|need|needs|want|wants|got|gonna|wanna|just|not|also)\b"
)

NON_ENTITY_NAME_SHAPES: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\b(?:{_STREET_TYPE_RE})\.?$", re.IGNORECASE),
    re.compile(r"^(?:the|a|an|my|your|our|this|that)\b", re.IGNORECASE),
    re.compile(r"^(?:i['’]?m|it['’]?s|that['’]s|there['’]s|hi|hello|hey)\b", re.IGNORECASE),
    re.compile(
        r"\b(?:thank you|good morning|good afternoon|good evening|no problem|"
        r"of course|buenos d[ií]as|buenas tardes)\b",
        re.IGNORECASE,
    ),
    re.compile(r"[&@#/\\]"),
)

# ── Pattern registry ─────────────────────────────────────────────

NAME_WORD = r"[^\W\d_](?:[^\W\d_]|['’-])*"
NAME_CAPTURE = rf"({NAME_WORD}(?:[ \t]+{NAME_WORD}){{0,2}})"
# Lead-ins like "I'm" or "Hi" are capitalized but never part of a name
NAME_LEAD_IN = r"(?:I['’]m|It['’]s|That['’]s|There['’]s|This|Hi|Hello|Hey)"
PROPER_WORD = rf"(?!{NAME_LEAD_IN}\b)[A-ZÀ-Ý][a-zß-ÿ'’-]+"

ADDRESS_WORD = r"(?:\d{1,3}(?:st|nd|rd|th)|[A-Za-z][A-Za-z'’.\-]*)"
CAPITAL_WORD = r"(?:\d{1,3}(?:st|nd|rd|th)|[A-Z][A-Za-z'’.\-]*)"
# Only abbreviations take a dot, so a sentence-ending period stays out
STREET_TYPE = rf"(?i:(?:{_FULL_STREET_TYPE_RE})\b|(?:{_ABBREVIATED_STREET_TYPE_RE})\b\.?)"
NUMBER_WORD = rf"(?i:{_NUMBER_WORD_RE})\b"


@dataclass(frozen=True)
class EntityPattern:
    """One labeled pattern of a registry."""

    pattern_id: str
    regex: re.Pattern[str]
    base_score: float
    builder: Optional[Callable[[re.Match[str]], str]] = None

    def value_of(self, match: re.Match[str]) -> str:
        if self.builder is not None:
            return self.builder(match)
        return match.group(1)


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.MULTILINE)


NAME_PATTERNS: tuple[EntityPattern, ...] = (
    EntityPattern(
        "my_name_is",
        _compile(rf"(?i:\bmy\s+name(?:'s|\s+is)|\bname\s+is|\bme\s+llamo|\bmi\s+nombre\s+es)\s+{NAME_CAPTURE}"),
        100,
    ),
    EntityPattern("this_is", _compile(rf"(?i:\bthis\s+is|\bhabla)\s+{NAME_CAPTURE}"), 85),
    EntityPattern(
        "casual_intro",
        _compile(
            rf"(?i:\b(?:hi|hello|hey|hola)[,!.]?\s+(?:this\s+is\s+|it's\s+)?){NAME_CAPTURE}"
            rf"\s+(?i:calling|here|speaking)\b"
        ),
        80,
    ),
    EntityPattern("i_am", _compile(rf"(?i:\bi'm|\bi\s+am|\bsoy)\s+{NAME_CAPTURE}"), 70),
    EntityPattern("name_calling", _compile(rf"^[ \t]*{NAME_CAPTURE}\s+(?i:calling|here|speaking)\b"), 65),
    EntityPattern("its", _compile(rf"(?i:\bit's|\bit\s+is)\s+{NAME_CAPTURE}"), 60),
    EntityPattern("bare_full", _compile(rf"^[ \t]*({PROPER_WORD}(?:[ \t]+{PROPER_WORD}){{0,2}})[ \t]*[.!]?[ \t]*$"), 55),
    EntityPattern("bare_leading", _compile(rf"^[ \t]*({PROPER_WORD}(?:[ \t]+{PROPER_WORD}){{0,2}})[.,]"), 40),
    EntityPattern("bare_capitalized", _compile(rf"\b({PROPER_WORD}[ \t]+{PROPER_WORD})\b"), 20),
)


def _cross_street(match: re.Match[str]) -> str:
    return f"{match.group(1).strip()}{CROSS_STREET_MARKER}{match.group(2).strip()} {APPROXIMATE_TAG}"


def _relative_place(match: re.Match[str]) -> str:
    phrase = " ".join(match.group(1).split())
    return f"{phrase[0].upper()}{phrase[1:].lower()} {match.group(2).strip()} {APPROXIMATE_TAG}"


ADDRESS_PATTERNS: tuple[EntityPattern, ...] = (
    EntityPattern("numeric", _compile(rf"\b(\d{{1,6}}(?:\s+{ADDRESS_WORD}){{0,4}}?\s+{STREET_TYPE})"), 100),
    EntityPattern(
        "spoken",
        _compile(
            rf"\b({NUMBER_WORD}(?:[\s-]+{NUMBER_WORD})*[\s,]+(?:{ADDRESS_WORD}\s+){{0,3}}?{STREET_TYPE})"
        ),
        90,
    ),
    EntityPattern(
        "prefix",
        _compile(
            r"(?i:\b(?:my\s+address\s+is|address\s+is|i\s+live\s+at|i'm\s+at|i\s+am\s+at|"
            r"located\s+at|i\s+live\s+on|vivo\s+en|mi\s+direcci[oó]n\s+es))\s+"
            rf"((?:\d{{1,6}}\s+)?(?:{ADDRESS_WORD}\s+){{0,5}}?{STREET_TYPE})"
        ),
        80,
    ),
    EntityPattern("numeric_bare", _compile(rf"\b(\d{{1,6}}[ \t]+{PROPER_WORD}(?:[ \t]+{PROPER_WORD})?)\b"), 50),
    EntityPattern("any_street", _compile(rf"\b((?:{CAPITAL_WORD}[ \t]+){{1,3}}?{STREET_TYPE})"), 45),
    EntityPattern(
        "cross_street",
        _compile(
            r"(?i:\b(?:at\s+the\s+corner\s+of|corner\s+of|intersection\s+of|between|at))\s+"
            rf"({CAPITAL_WORD}(?:[ \t]+{CAPITAL_WORD}){{0,3}})\s+(?:and|&|y)\s+"
            rf"({CAPITAL_WORD}(?:[ \t]+{CAPITAL_WORD}){{0,3}})"
        ),
        40,
        builder=_cross_street,
    ),
    EntityPattern(
        "relative",
        _compile(
            r"(?i:\b(near|across\s+from|next\s+to|in\s+front\s+of|behind|down\s+the\s+street\s+from|"
            r"on\s+my\s+block\s+(?:on|of)|cerca\s+de|enfrente\s+de))\s+(?:the\s+)?"
            rf"({CAPITAL_WORD}(?:[ \t]+{CAPITAL_WORD}){{0,3}})"
        ),
        30,
        builder=_relative_place,
    ),
)
