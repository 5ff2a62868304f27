"""
Learner API Router.

Read-only insights and the proficiency context that drives generation.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from adaptive_assessment.api.dependencies import get_assessment_engine
from adaptive_assessment.db.models import DifficultyPreference
from adaptive_assessment.engine import AssessmentEngine

router = APIRouter()


class PreferenceUpdateRequest(BaseModel):
    difficulty_preference: DifficultyPreference


@router.get("/{learner_id}/insights", summary="Learning insights")
def learning_insights(
    learner_id: str,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """Strengths, weaknesses, learning style, progress trend and mastery level."""
    return engine.learning_insights(learner_id)


@router.get("/{learner_id}/context", summary="Proficiency context")
def get_context(
    learner_id: str,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.get_context(learner_id)


@router.put("/{learner_id}/context/preference", summary="Set difficulty preference")
def set_preference(
    learner_id: str,
    request: PreferenceUpdateRequest,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.set_difficulty_preference(learner_id, request.difficulty_preference.value)
