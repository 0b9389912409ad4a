"""
Intake Classification Service.

Classifies free text into one intent and one department from closed
vocabularies, plus a one-sentence summary.

Two tiers:
1. Primary: an OpenAI-compatible chat completion, bounded by
   ``classifier_timeout_seconds``. One attempt, no retry.
2. Fallback: the priority keyword tables, run in the same call whenever the
   primary tier is unconfigured, slow, unreachable or returns garbage.

Whichever tier answered, a result that came back as General Inquiry is
re-checked against the strong-keyword table.
"""

from __future__ import annotations

import asyncio
import json
from functools import lru_cache
from typing import Any, Optional, Protocol

import httpx

from intake_engine.config import get_settings
from intake_engine.errors import ClassificationUnavailable, MalformedClassificationResponse
from intake_engine.logging_config import get_logger
from intake_engine.schemas.classification import (
    UNCLASSIFIED_DEPARTMENT,
    UNCLASSIFIED_INTENT,
    ClassificationResult,
    ClassifierMethod,
    Department,
    Intent,
)
from intake_engine.schemas.transcript import Channel
from intake_engine.services.classification_patterns import (
    DEPARTMENT_PATTERNS,
    INTENT_PATTERNS,
    STRONG_KEYWORD_RULES,
    PriorityPattern,
    StrongKeywordRule,
)

logger = get_logger(__name__)

SUMMARY_MAX_CHARS = 100
EMPTY_SUMMARY = "No description provided"

CLASSIFICATION_PROMPT = """You are a municipal intake classifier. Given citizen input, classify into exactly one intent and one department.

INTENT (choose exactly one):
- Pothole / Road Damage
- Streetlight Issue
- Water / Utilities
- Trash / Sanitation
- Billing / Payment
- Safety Concern / Suspicious Activity
- General Inquiry

DEPARTMENT (choose exactly one):
- Public Works
- Public Safety
- Finance
- Parks & Recreation
- Sanitation
- General

Respond with JSON only, no markdown: {"intent": "...", "department": "...", "summary": "..."}
The summary should be 1 sentence describing the citizen's issue.

Use "Safety Concern / Suspicious Activity" for crime reports, suspicious persons, break-ins, vandalism, trespassing, or safety hazards. Route these to "Public Safety".

If the input is unclear or doesn't fit any category, use "General Inquiry" for intent and "General" for department."""


class ClassificationBackend(Protocol):
    """Anything that can answer ``{intent, department, summary}`` for a text."""

    async def complete(self, text: str, channel: Channel) -> dict[str, Any]: ...


class OpenAIClassificationBackend:
    """Chat-completions backend using a JSON response format."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = "https://api.openai.com/v1",
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client

    async def complete(self, text: str, channel: Channel) -> dict[str, Any]:
        if not self.api_key:
            raise ClassificationUnavailable("no API key configured")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": CLASSIFICATION_PROMPT},
                {"role": "user", "content": f"Channel: {channel.value}\n\nCitizen input:\n{text}"},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0,
            "max_tokens": 200,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    f"{self.base_url}/chat/completions", headers=headers, json=payload
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        f"{self.base_url}/chat/completions", headers=headers, json=payload
                    )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ClassificationUnavailable(str(e)) from e

        try:
            content = data["choices"][0]["message"]["content"]
            parsed = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise MalformedClassificationResponse(f"unreadable completion: {e}") from e

        if not isinstance(parsed, dict):
            raise MalformedClassificationResponse("completion is not a JSON object")
        return parsed


# ── Fallback ─────────────────────────────────────────────────────


def _best_match(table: tuple[PriorityPattern, ...], text: str) -> Optional[PriorityPattern]:
    """Highest priority wins; the earliest registered entry wins a tie."""
    best: Optional[PriorityPattern] = None
    for entry in table:
        if (best is None or entry.priority > best.priority) and entry.pattern.search(text):
            best = entry
    return best


def fallback_summary(text: str) -> str:
    if not text:
        return EMPTY_SUMMARY
    if len(text) > SUMMARY_MAX_CHARS:
        return text[:SUMMARY_MAX_CHARS] + "..."
    return text


def classify_with_patterns(text: str) -> ClassificationResult:
    """Deterministic classification from the priority tables."""
    intent_match = _best_match(INTENT_PATTERNS, text or "")
    department_match = _best_match(DEPARTMENT_PATTERNS, text or "")

    intent = Intent(intent_match.label) if intent_match else UNCLASSIFIED_INTENT
    department = Department(department_match.label) if department_match else UNCLASSIFIED_DEPARTMENT

    logger.debug(
        "pattern_classification",
        intent=intent.value,
        department=department.value,
        intent_priority=intent_match.priority if intent_match else 0,
        department_priority=department_match.priority if department_match else 0,
    )
    return ClassificationResult(
        intent=intent,
        department=department,
        summary=fallback_summary(text),
        method=ClassifierMethod.FALLBACK,
    )


def detect_strong_keyword(text: str) -> Optional[StrongKeywordRule]:
    for rule in STRONG_KEYWORD_RULES:
        if any(keyword.search(text or "") for keyword in rule.keywords):
            return rule
    return None


def coerce_classification(payload: dict[str, Any]) -> ClassificationResult:
    """
    Turn a primary-tier payload into a result.

    Missing or empty fields make the payload malformed. Values outside the
    closed vocabularies are replaced field by field with the sentinel.
    """
    intent_raw = payload.get("intent")
    department_raw = payload.get("department")
    summary = payload.get("summary")
    if not intent_raw or not department_raw or not summary or not isinstance(summary, str):
        raise MalformedClassificationResponse(f"missing fields in {sorted(payload)}")

    intents = {i.value for i in Intent}
    departments = {d.value for d in Department}
    return ClassificationResult(
        intent=Intent(intent_raw) if intent_raw in intents else UNCLASSIFIED_INTENT,
        department=Department(department_raw) if department_raw in departments else UNCLASSIFIED_DEPARTMENT,
        summary=summary,
        method=ClassifierMethod.PRIMARY,
    )


# ── Classifier ───────────────────────────────────────────────────


class IntakeClassifier:
    """Primary/fallback classifier with the strong-keyword override."""

    def __init__(
        self,
        backend: Optional[ClassificationBackend] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.backend = backend
        self.timeout_seconds = timeout_seconds or get_settings().classifier_timeout_seconds

    async def _classify_primary(self, text: str, channel: Channel) -> Optional[ClassificationResult]:
        if self.backend is None:
            logger.info("classification_primary_disabled")
            return None

        try:
            payload = await asyncio.wait_for(
                self.backend.complete(text, channel), timeout=self.timeout_seconds
            )
            return coerce_classification(payload)
        except asyncio.TimeoutError:
            logger.warning("classification_timeout", timeout_seconds=self.timeout_seconds)
        except (ClassificationUnavailable, MalformedClassificationResponse) as e:
            logger.warning("classification_fallback", reason=type(e).__name__, error=str(e))
        except Exception as e:
            logger.error("classification_primary_error", error=str(e))
        return None

    async def classify(self, text: str, channel: Channel = Channel.VOICE) -> ClassificationResult:
        logger.info("classification_started", channel=channel.value, text_length=len(text or ""))

        result = await self._classify_primary(text or "", channel)
        if result is None:
            result = classify_with_patterns(text or "")

        if result.is_unclassified:
            rule = detect_strong_keyword(text)
            if rule is not None:
                logger.info(
                    "classification_override",
                    method=result.method.value,
                    intent=rule.intent.value,
                    department=rule.department.value,
                )
                result = result.model_copy(update={"intent": rule.intent, "department": rule.department})

        logger.info(
            "classification_complete",
            method=result.method.value,
            intent=result.intent.value,
            department=result.department.value,
        )
        return result


@lru_cache(maxsize=1)
def get_classifier() -> IntakeClassifier:
    """Process-wide classifier built from settings."""
    settings = get_settings()
    backend: Optional[ClassificationBackend] = None
    if settings.primary_classifier_enabled:
        backend = OpenAIClassificationBackend(
            api_key=settings.openai_api_key,
            model=settings.classifier_model,
            base_url=settings.openai_base_url,
        )
    return IntakeClassifier(backend=backend, timeout_seconds=settings.classifier_timeout_seconds)


async def classify(text: str, channel: Channel = Channel.VOICE) -> ClassificationResult:
    return await get_classifier().classify(text, channel)
