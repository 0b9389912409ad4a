"""
Re-evaluation Orchestrator.

Re-runs extraction and classification against a stored transcript and diffs
the result against the record's current values. Nothing here writes to a
record: a proposal is stored as a ``candidate`` evaluation, and applying it
is a separate, explicit store operation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from intake_engine.db import RecordStore
from intake_engine.logging_config import get_logger
from intake_engine.schemas.evaluation import (
    CandidateResult,
    CurrentValues,
    DiffField,
    DiffResult,
    ReEvaluationProposal,
)
from intake_engine.schemas.extraction import ExtractionResult
from intake_engine.schemas.record import AddressQuality, EvaluationType, IntakeRecord
from intake_engine.schemas.transcript import Channel, Utterance
from intake_engine.services.address_quality import derive_address_quality
from intake_engine.services.entity_extraction import (
    extract_address,
    extract_name,
    extract_sms_fields,
)
from intake_engine.services.intake_classifier import IntakeClassifier, get_classifier

logger = get_logger(__name__)

# Stored address qualities worth a relaxed second look
RELAXED_QUALITIES = frozenset({AddressQuality.MISSING, AddressQuality.PARTIAL, AddressQuality.APPROXIMATE})

DIFF_FIELDS = ("name", "address", "intent", "department", "summary")


def compute_diff(current: CurrentValues, candidate: CandidateResult) -> DiffResult:
    """
    Field-by-field comparison. A field has changed only when the candidate
    holds a value and that value differs from the current one.
    """
    fields: dict[str, DiffField] = {}
    for key in DIFF_FIELDS:
        current_value = getattr(current, key)
        candidate_value = getattr(candidate, key)
        fields[key] = DiffField(
            current=current_value,
            candidate=candidate_value,
            changed=candidate_value is not None and candidate_value != current_value,
        )
    return DiffResult(**fields)


def current_values_of(record: IntakeRecord) -> CurrentValues:
    return CurrentValues(
        name=record.name,
        address=record.address,
        intent=record.intent,
        department=record.department,
        summary=record.transcript_summary,
    )


def _value_or_none(result: ExtractionResult) -> Optional[str]:
    # A default never overwrites a stored value
    return None if result.is_default else result.value


async def re_evaluate(
    stored_transcript: str,
    channel: Channel,
    current_address: Optional[str] = None,
    current_record: Optional[CurrentValues] = None,
    messages: Sequence[Utterance] = (),
    classifier: Optional[IntakeClassifier] = None,
) -> tuple[CandidateResult, DiffResult]:
    """
    Re-run the pipeline on ``stored_transcript``.

    For voice, address validation is relaxed when the current address is
    missing, partial or approximate. The diff is taken against
    ``current_record`` when given, else against ``current_address`` alone.
    """
    classifier = classifier or get_classifier()
    meta: dict[str, Any] = {}

    if channel == Channel.SMS:
        extraction = extract_sms_fields(stored_transcript)
        name, address = extraction.name, extraction.address
        meta["completeness"] = extraction.completeness
        meta["address_is_complete"] = extraction.address_is_complete
        relaxed = False
    else:
        stored_address = current_record.address if current_record else current_address
        relaxed = derive_address_quality(stored_address) in RELAXED_QUALITIES
        address = extract_address(messages, stored_transcript, relaxed=relaxed)
        name = extract_name(
            messages,
            stored_transcript,
            known_address=None if address.is_default else address.value,
        )

    classification = await classifier.classify(stored_transcript, channel)

    meta.update(
        {
            "name_source": name.provenance,
            "address_source": address.provenance,
            "address_raw": address.raw_value,
            "relaxed_address": relaxed,
            "classifier_method": classification.method.value,
            "re_evaluated_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    candidate = CandidateResult(
        name=_value_or_none(name),
        address=_value_or_none(address),
        intent=classification.intent.value,
        department=classification.department.value,
        summary=classification.summary,
        extraction_meta=meta,
    )

    diff = compute_diff(current_record or CurrentValues(address=current_address), candidate)
    logger.info(
        "re_evaluation_complete",
        channel=channel.value,
        relaxed_address=relaxed,
        changed_fields=diff.changed_fields,
    )
    return candidate, diff


async def propose_re_evaluation(
    record_id: str,
    store: RecordStore,
    classifier: Optional[IntakeClassifier] = None,
) -> Optional[ReEvaluationProposal]:
    """Re-evaluate a stored record and persist the result as a candidate."""
    record = await store.get_record(record_id)
    if record is None:
        logger.warning("re_evaluation_record_not_found", record_id=record_id)
        return None
    if not record.raw_transcript:
        logger.warning("re_evaluation_no_transcript", record_id=record_id)
        return None

    candidate, diff = await re_evaluate(
        record.raw_transcript,
        record.channel,
        current_record=current_values_of(record),
        classifier=classifier,
    )
    evaluation = await store.record_evaluation(record_id, EvaluationType.RE_EVALUATION, candidate)
    return ReEvaluationProposal(record_id=record_id, candidate=candidate, diff=diff, evaluation=evaluation)


async def apply_re_evaluation(
    evaluation_id: str, store: RecordStore, applied_by: str
) -> Optional[dict[str, Any]]:
    result = await store.apply_evaluation(evaluation_id, applied_by)
    if result is None:
        logger.warning("re_evaluation_apply_failed", evaluation_id=evaluation_id)
    else:
        logger.info("re_evaluation_applied", evaluation_id=evaluation_id, applied_by=applied_by)
    return result
