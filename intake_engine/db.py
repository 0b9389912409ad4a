"""
Supabase Record Store.

Provides a singleton instance of the Supabase client and typed helper
methods for intake records and their evaluation history. Every operation
logs its failure and returns ``None`` instead of raising, so a datastore
outage never aborts a caller-facing flow.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from supabase import Client, create_client

from intake_engine.config import get_settings
from intake_engine.logging_config import get_logger
from intake_engine.schemas.evaluation import CandidateResult, EvaluationEntry
from intake_engine.schemas.record import (
    EvaluationStatus,
    EvaluationType,
    IntakeRecord,
    IntakeRecordCreate,
)

logger = get_logger(__name__)

RECORDS_TABLE = "interactions"
EVALUATIONS_TABLE = "evaluation_history"
APPLY_EVALUATION_RPC = "apply_evaluation"


class RecordStore(Protocol):
    """Create/read/update for intake records plus append-only evaluation history."""

    async def create_record(self, record: IntakeRecordCreate) -> Optional[IntakeRecord]: ...

    async def get_record(self, record_id: str) -> Optional[IntakeRecord]: ...

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> Optional[IntakeRecord]: ...

    async def record_evaluation(
        self,
        record_id: str,
        evaluation_type: EvaluationType,
        candidate: CandidateResult,
    ) -> Optional[EvaluationEntry]: ...

    async def apply_evaluation(self, evaluation_id: str, applied_by: str) -> Optional[dict[str, Any]]:
        """
        Copy a candidate's non-null values onto its record, mark it applied
        and supersede every other open candidate for the record. Idempotent:
        applying an entry that is no longer a candidate changes nothing.
        """
        ...


def evaluation_to_row(
    record_id: str, evaluation_type: EvaluationType, candidate: CandidateResult
) -> dict[str, Any]:
    return {
        "interaction_id": record_id,
        "evaluation_type": evaluation_type.value,
        "candidate_name": candidate.name,
        "candidate_address": candidate.address,
        "candidate_intent": candidate.intent,
        "candidate_department": candidate.department,
        "candidate_summary": candidate.summary,
        "extraction_meta": candidate.extraction_meta,
        "status": EvaluationStatus.CANDIDATE.value,
    }


def evaluation_from_row(row: dict[str, Any]) -> EvaluationEntry:
    return EvaluationEntry(
        id=str(row["id"]),
        record_id=str(row["interaction_id"]),
        evaluation_type=EvaluationType(row["evaluation_type"]),
        candidate=CandidateResult(
            name=row.get("candidate_name"),
            address=row.get("candidate_address"),
            intent=row.get("candidate_intent"),
            department=row.get("candidate_department"),
            summary=row.get("candidate_summary"),
            extraction_meta=row.get("extraction_meta") or {},
        ),
        status=EvaluationStatus(row.get("status", EvaluationStatus.CANDIDATE.value)),
        applied_at=row.get("applied_at"),
        applied_by=row.get("applied_by"),
        created_at=row["created_at"],
    )


class SupabaseRecordStore:
    """Wrapper around the official Supabase Python client."""

    _instance: Optional[SupabaseRecordStore] = None
    _client: Client

    def __new__(cls) -> SupabaseRecordStore:
        """Singleton pattern to ensure only one client instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            settings = get_settings()

            if not settings.supabase_url or not settings.supabase_service_key:
                logger.warning(
                    "supabase_credentials_missing",
                    url=bool(settings.supabase_url),
                    key=bool(settings.supabase_service_key),
                )

            try:
                cls._instance._client = create_client(
                    settings.supabase_url,
                    settings.supabase_service_key,
                )
                logger.info("supabase_client_initialized", url=settings.supabase_url)
            except Exception as e:
                cls._instance = None
                logger.error("supabase_client_init_error", error=str(e))
                raise

        return cls._instance

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    async def create_record(self, record: IntakeRecordCreate) -> Optional[IntakeRecord]:
        try:
            response = self.client.table(RECORDS_TABLE).insert(record.model_dump(mode="json")).execute()
            if response.data:
                return IntakeRecord.model_validate(response.data[0])
            return None
        except Exception as e:
            logger.error("record_create_error", channel=record.channel.value, error=str(e))
            return None

    async def get_record(self, record_id: str) -> Optional[IntakeRecord]:
        try:
            response = (
                self.client.table(RECORDS_TABLE)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )
            if response.data:
                return IntakeRecord.model_validate(response.data[0])
            return None
        except Exception as e:
            logger.error("record_fetch_error", record_id=record_id, error=str(e))
            return None

    async def update_record(self, record_id: str, updates: dict[str, Any]) -> Optional[IntakeRecord]:
        try:
            response = (
                self.client.table(RECORDS_TABLE)
                .update(updates)
                .eq("id", record_id)
                .execute()
            )
            # Supabase update returns a list, usually with 1 item
            if response.data:
                return IntakeRecord.model_validate(response.data[0])
            return None
        except Exception as e:
            logger.error("record_update_error", record_id=record_id, error=str(e))
            return None

    async def record_evaluation(
        self,
        record_id: str,
        evaluation_type: EvaluationType,
        candidate: CandidateResult,
    ) -> Optional[EvaluationEntry]:
        try:
            row = evaluation_to_row(record_id, evaluation_type, candidate)
            response = self.client.table(EVALUATIONS_TABLE).insert(row).execute()
            if response.data:
                return evaluation_from_row(response.data[0])
            return None
        except Exception as e:
            logger.error("evaluation_record_error", record_id=record_id, error=str(e))
            return None

    async def apply_evaluation(self, evaluation_id: str, applied_by: str) -> Optional[dict[str, Any]]:
        try:
            response = self.client.rpc(
                APPLY_EVALUATION_RPC,
                {"eval_id": evaluation_id, "applied_by_user": applied_by},
            ).execute()
            return response.data
        except Exception as e:
            logger.error("evaluation_apply_error", evaluation_id=evaluation_id, error=str(e))
            return None


# Global accessor
def get_db() -> SupabaseRecordStore:
    return SupabaseRecordStore()
