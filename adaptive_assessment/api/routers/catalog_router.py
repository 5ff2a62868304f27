"""
Catalog API Router.

Thin add operations for courses and questions, plus the course-level trend.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from adaptive_assessment.api.dependencies import get_assessment_engine
from adaptive_assessment.db.models import Difficulty, QuestionType
from adaptive_assessment.engine import AssessmentEngine

router = APIRouter()


# ========================================
# Request Models
# ========================================


class CourseCreateRequest(BaseModel):
    code: str = Field(..., min_length=1, description="Unique course code, e.g. CS301")
    title: str = Field(..., min_length=1)
    topics: list[str] = Field(default_factory=list, description="Ordered topic catalog")


class OptionModel(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False
    id: str | None = None


class QuestionCreateRequest(BaseModel):
    """Request model for adding a catalog question."""

    course_id: UUID
    topic: str = Field(..., min_length=1)
    difficulty: Difficulty
    question_type: QuestionType
    text: str = Field(..., min_length=1)
    options: list[OptionModel] | None = Field(None, description="Multiple-choice options")
    correct_answer: str | None = Field(None, description="Canonical answer for non-choice types")
    explanation: str | None = None


# ========================================
# Endpoints
# ========================================


@router.post("/courses", status_code=status.HTTP_201_CREATED, summary="Add course")
def add_course(
    request: CourseCreateRequest,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.add_course(request.code, request.title, request.topics)


@router.post("/questions", status_code=status.HTTP_201_CREATED, summary="Add question")
def add_question(
    request: QuestionCreateRequest,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """Multiple-choice questions need two options with at least one correct."""
    return engine.add_question(
        course_id=request.course_id,
        topic=request.topic,
        difficulty=request.difficulty.value,
        question_type=request.question_type.value,
        text=request.text,
        options=[o.model_dump() for o in request.options] if request.options else None,
        correct_answer=request.correct_answer,
        explanation=request.explanation,
    )


@router.get("/courses/{course_id}/trend", summary="Course monthly trend")
def course_trend(
    course_id: UUID,
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.course_trend(course_id)
