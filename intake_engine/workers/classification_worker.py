"""
Background Classification Worker.

Records are written with a "Pending" classification on the response path.
``ClassificationDispatcher.dispatch`` then classifies them in detached
tasks: it writes the result back, logs the initial evaluation and notifies
the department. The response path never awaits these tasks, and their
failures are logged, never raised.

``drain()`` waits for outstanding tasks and is called on shutdown.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from intake_engine.db import RecordStore
from intake_engine.logging_config import get_logger
from intake_engine.schemas.evaluation import CandidateResult
from intake_engine.schemas.record import EvaluationType, IntakeRecord
from intake_engine.services.intake_classifier import IntakeClassifier, get_classifier
from intake_engine.services.notifications import (
    DepartmentNotifier,
    LoggingNotifier,
    build_notification,
)

logger = get_logger(__name__)


class ClassificationDispatcher:
    """Supervised set of detached classification tasks."""

    def __init__(
        self,
        store: RecordStore,
        classifier: Optional[IntakeClassifier] = None,
        notifier: Optional[DepartmentNotifier] = None,
    ) -> None:
        self.store = store
        self.classifier = classifier or get_classifier()
        self.notifier = notifier or LoggingNotifier()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        record: IntakeRecord,
        text: str,
        extraction_meta: Optional[dict[str, Any]] = None,
    ) -> asyncio.Task[None]:
        task = asyncio.create_task(
            self._classify_and_update(record, text, extraction_meta or {}),
            name=f"classify:{record.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("classification_dispatched", record_id=record.id, pending=len(self._tasks))
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every outstanding task."""
        if not self._tasks:
            return
        logger.info("classification_drain_started", pending=len(self._tasks))
        _done, still_pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if still_pending:
            logger.warning("classification_drain_incomplete", pending=len(still_pending))

    async def _classify_and_update(
        self, record: IntakeRecord, text: str, extraction_meta: dict[str, Any]
    ) -> None:
        try:
            result = await self.classifier.classify(text, record.channel)

            updated = await self.store.update_record(
                record.id,
                {
                    "intent": result.intent.value,
                    "department": result.department.value,
                    "transcript_summary": result.summary,
                },
            )
            if updated is None:
                logger.warning("classification_writeback_failed", record_id=record.id)
                return

            await self.store.record_evaluation(
                record.id,
                EvaluationType.INITIAL,
                CandidateResult(
                    name=record.name,
                    address=record.address,
                    intent=result.intent.value,
                    department=result.department.value,
                    summary=result.summary,
                    extraction_meta={**extraction_meta, "classifier_method": result.method.value},
                ),
            )

            delivered = await self.notifier.notify(build_notification(updated), updated)
            logger.info(
                "background_classification_complete",
                record_id=record.id,
                intent=result.intent.value,
                department=result.department.value,
                notified=delivered,
            )
        except Exception as e:
            logger.error("background_classification_error", record_id=record.id, error=str(e))
