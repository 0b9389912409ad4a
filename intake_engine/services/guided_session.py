"""
Guided SMS Session State Machine.

Collects name, address and issue from a caller over several text messages.
Each inbound message is processed under the store's per-identity lock:

1. A cancel keyword ends the session.
2. A session idle for longer than the TTL is expired; the caller of the
   machine decides whether to salvage it.
3. Extraction and issue detection run on the message; any value found
   overwrites what the session held (last message wins).
4. If the field we last asked for is still missing, the trimmed reply is
   accepted as-is when it has the right shape.
5. With all three fields present the session completes. Otherwise one
   missing field is asked for, in the order issue, address, name, preferring
   fields never asked. Once every missing field has been asked, the first
   one is asked again.

The machine never completes a session with missing fields.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Optional

from intake_engine.config import get_settings
from intake_engine.logging_config import get_logger, session_context
from intake_engine.schemas.classification import UNCLASSIFIED_INTENT
from intake_engine.schemas.extraction import NOT_PROVIDED, UNKNOWN_SMS_CALLER
from intake_engine.schemas.session import (
    GuidedSession,
    SessionAction,
    SessionField,
    SessionState,
    SessionTransitionResult,
)
from intake_engine.services.entity_extraction import extract_sms_fields
from intake_engine.services.intake_classifier import EMPTY_SUMMARY, classify_with_patterns
from intake_engine.services.session_store import SessionStore
from intake_engine.services.text_normalizer import normalize_text

logger = get_logger(__name__)

CANCEL_PATTERN = re.compile(
    r"^\s*(stop|cancel|quit|end|unsubscribe|never\s?mind|cancelar|alto|parar)\s*[.!]*\s*$",
    re.IGNORECASE,
)

# Words that make a message read as a problem report rather than a bare answer
ISSUE_KEYWORDS = re.compile(
    r"\b(pot\s?holes?|holes?|cracks?|damaged?|broken|lights?|lamps?|out|dark|flicker\w*|"
    r"leak\w*|water|sewer|flood\w*|drain|hydrant|pipe|trash|garbage|recycl\w*|bins?|"
    r"dump\w*|litter|pickup|missed|bill|charged?|payment|fee|suspicious|break\s?in|"
    r"stolen|vandal\w*|graffiti|noise|loud|tree|branch|sidewalk|sign|signal|smell\w*|"
    r"dog|blocked|abandoned|not\s+working|problem|issue|report\w*|complain\w*|help|"
    r"bache|basura|fuga|agua|luz|problema|roto|rota)\b",
    re.IGNORECASE,
)

STREET_TYPE_WORDS = re.compile(
    r"\b(street|st|avenue|ave|drive|dr|road|rd|boulevard|blvd|lane|ln|way|court|ct|"
    r"place|pl|circle|cir)\b",
    re.IGNORECASE,
)
LEADING_NUMBER = re.compile(r"^\d+\s+")

NAME_REPLY_MIN, NAME_REPLY_MAX = 2, 50
ADDRESS_REPLY_MIN = 5
ISSUE_REPLY_MIN = 8

PROMPTS: dict[SessionField, str] = {
    SessionField.ISSUE: "Thanks for reaching out! Can you briefly describe the issue you're reporting?",
    SessionField.ADDRESS: "Got it! What's the street address for this issue?",
    SessionField.NAME: "Thanks! To help us serve you, could you share your name?",
}
RE_ASK_PROMPTS: dict[SessionField, str] = {
    SessionField.ISSUE: "Sorry, we still need a short description of the issue.",
    SessionField.ADDRESS: "Sorry, we still need the street address or nearest intersection.",
    SessionField.NAME: "Sorry, we still need your name to file this report.",
}
CANCELLED_MESSAGE = "Your report has been cancelled. Text us anytime to start a new one."
THANK_YOU_TEMPLATE = "Thank you for your report. Reference #{}. A representative will follow up."


def normalize_phone_number(phone: str) -> str:
    """
    Normalize to E.164 where the shape allows it.

    10 digits get a ``+1`` prefix, 11 digits starting with 1 get ``+``;
    anything else keeps its digits (and a leading ``+``) unchanged.
    """
    cleaned = re.sub(r"[^\d+]", "", phone or "")
    digits = cleaned.lstrip("+")
    if cleaned.startswith("+"):
        return cleaned
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    return cleaned


def looks_like_address(text: str) -> bool:
    return bool(STREET_TYPE_WORDS.search(text) or LEADING_NUMBER.match(text))


def thank_you_message(record_id: str) -> str:
    return THANK_YOU_TEMPLATE.format(record_id[:8])


def finalized_fields(session: GuidedSession) -> tuple[str, str, str]:
    """(name, address, issue) with defaults filled in for missing values."""
    issue = session.issue or " | ".join(session.message_history) or EMPTY_SUMMARY
    return session.name or UNKNOWN_SMS_CALLER, session.address or NOT_PROVIDED, issue


def _strip_span(text: str, span: Optional[str]) -> str:
    if not span:
        return text
    return re.sub(re.escape(span), " ", text, flags=re.IGNORECASE)


def detect_issue(text: str, name: Optional[str] = None, address: Optional[str] = None) -> Optional[str]:
    """
    Return ``text`` as an issue description if it reads like one.

    The extracted name and address are cut out first so that a reply made of
    only a name or an address is never taken for an issue.
    """
    cleaned = normalize_text(text) or ""
    residual = _strip_span(_strip_span(cleaned, address), name)
    if sum(ch.isalpha() for ch in residual) < 3:
        return None
    if ISSUE_KEYWORDS.search(residual) or classify_with_patterns(residual).intent != UNCLASSIFIED_INTENT:
        return text.strip()
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GuidedSessionMachine:
    """Drives one guided session per caller identity over a ``SessionStore``."""

    def __init__(
        self,
        store: SessionStore,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds or get_settings().session_ttl_seconds
        self.clock = clock

    async def process_message(self, identity: str, text: str) -> SessionTransitionResult:
        identity = normalize_phone_number(identity)
        with session_context(identity):
            async with self.store.lock(identity):
                return await self._process_locked(identity, text or "")

    async def close_session(self, identity: str, message_count: int) -> Optional[GuidedSession]:
        """
        Remove a collecting session under its lock and return it.

        Returns ``None`` when the session is gone or a later message already
        moved it past ``message_count``; that message decides what happens next.
        """
        identity = normalize_phone_number(identity)
        with session_context(identity):
            async with self.store.lock(identity):
                session = await self.store.get(identity)
                if session is None or session.message_count != message_count:
                    logger.info("session_close_skipped", message_count=message_count)
                    return None
                await self.store.delete(identity)
                return session

    async def _process_locked(self, identity: str, text: str) -> SessionTransitionResult:
        now = self.clock()
        session = await self.store.get(identity)
        if session is None:
            session = GuidedSession(identity=identity, created_at=now, last_activity_at=now)
            logger.info("session_created")

        if CANCEL_PATTERN.match(text):
            await self.store.delete(identity)
            session.state = SessionState.CANCELLED
            logger.info("session_cancelled", message_count=session.message_count)
            return SessionTransitionResult(
                state=SessionState.CANCELLED,
                action=SessionAction.CANCELLED,
                session=session,
                prompt=CANCELLED_MESSAGE,
            )

        idle = (now - session.last_activity_at).total_seconds()
        if idle > self.ttl_seconds:
            await self.store.delete(identity)
            session.state = SessionState.EXPIRED
            logger.info("session_expired", idle_seconds=int(idle), had_data=session.has_data)
            return SessionTransitionResult(
                state=SessionState.EXPIRED, action=SessionAction.EXPIRED, session=session
            )

        session.last_activity_at = now
        session.message_count += 1
        session.message_history.append(text)

        issue_found = self._merge_extraction(session, text)
        self._accept_follow_up(session, text, issue_found)

        missing = session.missing_fields()
        if not missing:
            session.completed = True
            session.state = SessionState.COMPLETE
            await self.store.delete(identity)
            logger.info("session_complete", message_count=session.message_count)
            return SessionTransitionResult(
                state=SessionState.COMPLETE, action=SessionAction.COMPLETE, session=session
            )

        never_asked = [f for f in missing if f not in session.asked_fields]
        field = never_asked[0] if never_asked else missing[0]
        re_ask = not never_asked
        session.asked_fields.add(field)
        session.last_asked = field
        await self.store.put(session)

        logger.info(
            "session_ask",
            field=field.value,
            re_ask=re_ask,
            missing=[f.value for f in missing],
            message_count=session.message_count,
        )
        return SessionTransitionResult(
            state=SessionState.COLLECTING,
            action=SessionAction.ASK,
            session=session,
            field=field,
            prompt=RE_ASK_PROMPTS[field] if re_ask else PROMPTS[field],
            re_ask=re_ask,
        )

    def _merge_extraction(self, session: GuidedSession, text: str) -> bool:
        extraction = extract_sms_fields(text)
        name = None if extraction.name.is_default else extraction.name.value
        address = None if extraction.address.is_default else extraction.address.value

        if name:
            session.name = name
        if address:
            session.address = address
            session.address_raw = extraction.address.raw_value

        issue = detect_issue(text, name=name, address=extraction.address.raw_value if address else None)
        if issue:
            session.issue = issue

        logger.debug(
            "session_extraction",
            name_found=bool(name),
            address_found=bool(address),
            issue_found=bool(issue),
        )
        return bool(issue)

    def _accept_follow_up(self, session: GuidedSession, text: str, issue_found: bool) -> None:
        field = session.last_asked
        if field is None or session.value_of(field):
            return

        reply = text.strip()
        if field == SessionField.NAME:
            ok = NAME_REPLY_MIN <= len(reply) <= NAME_REPLY_MAX and not looks_like_address(reply) and not issue_found
        elif field == SessionField.ADDRESS:
            ok = len(reply) >= ADDRESS_REPLY_MIN
        else:
            ok = len(reply) >= ISSUE_REPLY_MIN

        if ok:
            setattr(session, field.value, reply)
            if field == SessionField.ADDRESS:
                session.address_raw = reply
            logger.info("session_reply_accepted", field=field.value)

