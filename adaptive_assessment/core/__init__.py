"""Shared primitives: errors, clock, thresholds, rounding and logging setup."""
from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import (
    AlreadySubmittedError,
    AssessmentEngineError,
    DuplicateAttemptError,
    ForbiddenError,
    InvalidStateError,
    NotActiveError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from adaptive_assessment.core.rounding import clamp, round_half_up

__all__ = [
    "Clock",
    "SystemClock",
    "AssessmentEngineError",
    "NotFoundError",
    "ForbiddenError",
    "InvalidStateError",
    "NotActiveError",
    "DuplicateAttemptError",
    "AlreadySubmittedError",
    "ValidationError",
    "UpstreamUnavailableError",
    "clamp",
    "round_half_up",
]
