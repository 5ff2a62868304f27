"""
Attempt API Router.

Endpoints for submitting, abandoning and reporting on attempts.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from adaptive_assessment.api.dependencies import (
    get_assessment_engine,
    get_learner_id,
    get_optional_learner_id,
)
from adaptive_assessment.assessment.scorer import AnswerSubmission
from adaptive_assessment.engine import AssessmentEngine

router = APIRouter()


class SubmittedAnswerModel(BaseModel):
    """One answer; entries that do not match a question are skipped, not rejected."""

    question_id: str = Field(..., description="Question UUID")
    value: Any = Field(None, description="Option id, true/false, or free text")
    time_spent_seconds: int | None = Field(None, description="Seconds spent on the question")
    flagged: bool = False


class SubmitAttemptRequest(BaseModel):
    answers: list[SubmittedAnswerModel] = Field(default_factory=list)


@router.post("/{attempt_id}/submit", summary="Submit attempt")
def submit_attempt(
    attempt_id: UUID,
    request: SubmitAttemptRequest,
    learner_id: str = Depends(get_learner_id),
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """Grade the attempt, finalize it and update the learner's proficiency context."""
    submissions = [
        AnswerSubmission(
            question_id=a.question_id,
            value=a.value,
            time_spent_seconds=a.time_spent_seconds,
            flagged=a.flagged,
        )
        for a in request.answers
    ]
    return engine.submit_attempt(attempt_id, learner_id, submissions).to_dict()


@router.post("/{attempt_id}/abandon", summary="Abandon attempt")
def abandon_attempt(
    attempt_id: UUID,
    learner_id: str = Depends(get_learner_id),
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    return engine.abandon_attempt(attempt_id, learner_id)


@router.get("/{attempt_id}/report", summary="Performance report")
def performance_report(
    attempt_id: UUID,
    learner_id: str | None = Depends(get_optional_learner_id),
    engine: AssessmentEngine = Depends(get_assessment_engine),
) -> dict[str, Any]:
    """Report for a completed attempt; with ``X-Learner-Id`` only the owner may read it."""
    return engine.performance_report(attempt_id, requester_id=learner_id)
