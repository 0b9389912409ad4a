"""
Domain exceptions.

These are raised inside the primary classification path and caught by the
classifier itself. Nothing in the engine lets them reach the caller-facing
flow.
"""

from __future__ import annotations


class IntakeEngineError(Exception):
    """Base class for engine errors."""


class ClassificationUnavailable(IntakeEngineError):
    """The primary classification service is not configured or unreachable."""


class MalformedClassificationResponse(IntakeEngineError):
    """The classification service answered with something we cannot parse."""
