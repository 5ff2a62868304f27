"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Header

from adaptive_assessment.engine import AssessmentEngine


@lru_cache(maxsize=1)
def _default_engine() -> AssessmentEngine:
    return AssessmentEngine.from_settings()


def get_assessment_engine() -> AssessmentEngine:
    """Engine used by every router; tests override this dependency."""
    return _default_engine()


def get_learner_id(x_learner_id: str = Header(..., min_length=1, description="Acting learner")) -> str:
    return x_learner_id


def get_optional_learner_id(x_learner_id: str | None = Header(None, description="Acting learner")) -> str | None:
    return x_learner_id
