"""
Address quality and review flags for intake records.
"""

from __future__ import annotations

from typing import Optional

from intake_engine.schemas.extraction import (
    APPROXIMATE_TAG,
    NOT_PROVIDED,
    UNKNOWN_CALLER,
    UNKNOWN_SMS_CALLER,
)
from intake_engine.schemas.record import AddressQuality
from intake_engine.schemas.transcript import Channel

# Voice calls that ended any other way are flagged for review
NORMAL_CALL_ENDINGS = frozenset({
    "customer-ended-call",
    "assistant-ended-call",
    "silence-timed-out",
    "customer-did-not-give-microphone-permission",
    "assistant-said-end-call-phrase",
})

DEFAULT_NAMES = frozenset({NOT_PROVIDED, UNKNOWN_CALLER, UNKNOWN_SMS_CALLER})


def derive_address_quality(address: Optional[str]) -> AddressQuality:
    if not address or not address.strip() or address.strip() == NOT_PROVIDED:
        return AddressQuality.MISSING

    address = address.strip()
    if " & " in address:
        return AddressQuality.INTERSECTION
    if APPROXIMATE_TAG in address:
        return AddressQuality.APPROXIMATE

    tokens = address.split()
    if tokens[0].isdigit() and len(tokens) >= 2:
        return AddressQuality.COMPLETE
    return AddressQuality.PARTIAL


def derive_needs_review(
    address_quality: AddressQuality,
    name: Optional[str],
    channel: Channel = Channel.VOICE,
    ended_reason: Optional[str] = None,
    analysis_success: Optional[bool] = None,
) -> bool:
    """
    Decide whether a record should be flagged for staff review.

    ``ended_reason`` and ``analysis_success`` come from the voice provider's
    end-of-call report and are ignored for SMS.
    """
    if address_quality in (AddressQuality.MISSING, AddressQuality.APPROXIMATE):
        return True
    if not name or name.strip() in DEFAULT_NAMES:
        return True
    if channel == Channel.VOICE:
        if ended_reason and ended_reason not in NORMAL_CALL_ENDINGS:
            return True
        if analysis_success is False:
            return True
    return False
