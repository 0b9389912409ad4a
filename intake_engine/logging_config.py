"""
Structured logging for the intake engine.

Production emits one JSON object per line; development gets the coloured
console renderer. Entries carry the ``trace_id`` of the voice report or SMS
being processed and, inside a guided exchange, the masked ``session_id``.
Fields named like phone numbers are masked before rendering.

Usage:
    from intake_engine.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("address_extracted", value="742 Evergreen Terrace", provenance="messages/numeric")
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

import structlog

from intake_engine.config import Settings, get_settings

# ── Correlation ──────────────────────────────────────────────────
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

PHONE_FIELDS = frozenset({"phone", "identity", "from_number", "to_number"})
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "urllib3", "asyncio", "postgrest")


def generate_trace_id() -> str:
    return uuid.uuid4().hex[:12]


def mask_phone(phone: str | None) -> str:
    """Keep only the last four digits: ``+15551234567`` -> ``*4567``."""
    if not phone:
        return "*"
    if phone.startswith("*"):
        return phone
    return f"*{phone[-4:]}"


@contextmanager
def session_context(identity: str) -> Iterator[None]:
    """Tag every log entry inside the block with the masked session identity."""
    token = session_id_var.set(mask_phone(identity))
    try:
        yield
    finally:
        session_id_var.reset(token)


def _add_correlation(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, var in (("trace_id", trace_id_var), ("session_id", session_id_var)):
        value = var.get()
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def _redact_phones(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in PHONE_FIELDS.intersection(event_dict):
        value = event_dict[key]
        if isinstance(value, str):
            event_dict[key] = mask_phone(value)
    return event_dict


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """Configure structlog and route stdlib loggers through the same renderer."""
    settings = get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_correlation,
            _redact_phones,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, _renderer(settings)],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(settings.log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
