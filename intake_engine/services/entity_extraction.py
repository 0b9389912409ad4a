"""
Name and address extraction.

Ties the pipeline together for one entity type:

    normalize -> generate candidates -> score -> rank -> validate -> select

Extraction never fails. When no candidate survives, the entity's default
value is returned with provenance ``"default"``.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from intake_engine.logging_config import get_logger
from intake_engine.schemas.extraction import (
    DEFAULT_PROVENANCE,
    NOT_PROVIDED,
    UNKNOWN_CALLER,
    ExtractionResult,
    SmsExtractionResult,
)
from intake_engine.schemas.record import AddressQuality
from intake_engine.schemas.transcript import Role, Utterance
from intake_engine.services.address_quality import derive_address_quality
from intake_engine.services.candidate_scoring import (
    Candidate,
    generate_candidates,
    rank,
    score_candidates,
)
from intake_engine.services.entity_validation import validate_address, validate_name
from intake_engine.services.spoken_numbers import normalize_spoken_address

logger = get_logger(__name__)


def _select(
    entity: str,
    ranked: list[Candidate],
    accept: Callable[[Candidate], Optional[ExtractionResult]],
    default: str,
) -> ExtractionResult:
    for candidate in ranked:
        result = accept(candidate)
        if result is not None:
            logger.debug(
                "entity_selected",
                entity=entity,
                provenance=result.provenance,
                score=candidate.adjusted_score,
                considered=len(ranked),
            )
            return result

    logger.info("extraction_miss", entity=entity, considered=len(ranked))
    return ExtractionResult(value=default, provenance=DEFAULT_PROVENANCE)


def extract_address(
    utterances: Sequence[Utterance],
    transcript_fallback: Optional[str] = None,
    relaxed: bool = False,
) -> ExtractionResult:
    """
    Select the caller's address.

    Each candidate is passed through the spoken-number normalizer before
    validation; ``raw_value`` keeps what the caller actually said.
    """
    candidates = score_candidates("address", generate_candidates("address", utterances, transcript_fallback))

    def accept(candidate: Candidate) -> Optional[ExtractionResult]:
        value = normalize_spoken_address(candidate.value) or candidate.value
        ok, reason = validate_address(value, relaxed=relaxed)
        if not ok:
            logger.debug("address_rejected", pattern_id=candidate.pattern_id, reason=reason)
            return None
        return ExtractionResult(
            value=value,
            provenance=candidate.provenance,
            raw_value=candidate.value,
            score=candidate.adjusted_score,
        )

    return _select("address", rank(candidates), accept, NOT_PROVIDED)


def extract_name(
    utterances: Sequence[Utterance],
    transcript_fallback: Optional[str] = None,
    known_address: Optional[str] = None,
) -> ExtractionResult:
    """
    Select the caller's name.

    ``known_address`` is the already-selected address, if any; name
    candidates that are really fragments of it are disqualified.
    """
    if known_address == NOT_PROVIDED:
        known_address = None
    candidates = score_candidates(
        "name",
        generate_candidates("name", utterances, transcript_fallback),
        known_address=known_address,
    )

    def accept(candidate: Candidate) -> Optional[ExtractionResult]:
        ok, reason = validate_name(candidate.value)
        if not ok:
            logger.debug("name_rejected", pattern_id=candidate.pattern_id, reason=reason)
            return None
        return ExtractionResult(
            value=candidate.value,
            provenance=candidate.provenance,
            score=candidate.adjusted_score,
        )

    return _select("name", rank(candidates), accept, UNKNOWN_CALLER)


def extract_sms_fields(text: str) -> SmsExtractionResult:
    """Extract name and address from a single SMS body."""
    utterances = [Utterance(role=Role.CALLER, text=text or "")]
    address = extract_address(utterances)
    name = extract_name(utterances, known_address=None if address.is_default else address.value)

    found = sum(1 for r in (name, address) if not r.is_default)
    return SmsExtractionResult(
        name=name,
        address=address,
        completeness=found / 2,
        address_is_complete=derive_address_quality(address.value) == AddressQuality.COMPLETE,
    )
