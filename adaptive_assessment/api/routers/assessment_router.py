"""
Assessment API Router.

Endpoints for:
- Adaptive assessment generation
- Publishing draft assessments
- Starting attempts
- Cohort analytics
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from adaptive_assessment.api.dependencies import get_assessment_engine, get_learner_id
from adaptive_assessment.db.models import AssessmentType
from adaptive_assessment.engine import AssessmentEngine

router = APIRouter()


# ========================================
# Request Models
# ========================================


class GenerateAssessmentRequest(BaseModel):
    """Request model for generating an adaptive assessment."""

    model_config = ConfigDict(populate_by_name=True)

    learner_id: str = Field(..., min_length=1, description="Learner the assessment is built for")
    course_id: UUID = Field(..., description="Course whose topics and questions are used")
    total_questions: int = Field(10, ge=1, le=200, description="Requested question count")
    duration_minutes: int | None = Field(None, ge=1, description="Time limit; default from settings")
    assessment_type: AssessmentType = Field(
        AssessmentType.PRACTICE, alias="type", description="practice, quiz, midterm, ..."
    )
    focus_topics: list[str] | None = Field(None, description="Restrict generation to these topics")
    title: str | None = Field(None, description="Override the generated title")


# ========================================
# Endpoints
# ========================================


@router.post(
    "/generate",
    status_code=status.HTTP_201_CREATED,
    summary="Generate adaptive assessment",
)
def generate_assessment(
    request: GenerateAssessmentRequest,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """
    Build a personalized assessment from the learner's proficiency context.

    Weak topics are oversampled and the difficulty mix follows the learner's
    preference. When the catalog runs short the assessment is smaller than
    requested; ``generation.shortfall`` reports by how much.
    """
    logger.info(f"Generating {request.total_questions}-question assessment for {request.learner_id}")
    result = engine.generate_assessment(
        learner_id=request.learner_id,
        course_id=request.course_id,
        total_questions=request.total_questions,
        assessment_type=request.assessment_type.value,
        focus_topics=request.focus_topics,
        duration_minutes=request.duration_minutes,
        title=request.title,
    )
    payload = dict(result.assessment)
    payload["generation"] = {
        "plan": result.plan.to_dict(),
        "selected_by_difficulty": result.selected_by_difficulty,
        "generated_question_ids": [str(qid) for qid in result.generated_question_ids],
        "shortfall": result.shortfall,
    }
    return payload


@router.post("/{assessment_id}/publish", summary="Publish draft assessment")
def publish_assessment(
    assessment_id: UUID,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.publish_assessment(assessment_id)


@router.post("/{assessment_id}/start", summary="Start attempt")
def start_attempt(
    assessment_id: UUID,
    learner_id: str = Depends(get_learner_id),
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """
    Open an attempt for the learner in ``X-Learner-Id``.

    The returned assessment has no answer keys. A learner with an attempt
    already in progress gets 400 with that attempt in ``data``.
    """
    return engine.start_attempt(learner_id, assessment_id).to_dict()


@router.get("/{assessment_id}/analytics", summary="Assessment analytics")
def assessment_analytics(
    assessment_id: UUID,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.assessment_analytics(assessment_id)
