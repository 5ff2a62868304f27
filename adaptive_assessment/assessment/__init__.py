"""Attempt lifecycle, answer grading and submission scoring."""

from adaptive_assessment.assessment.grading import (
    AnswerGrader,
    BooleanAnswer,
    ChoiceAnswer,
    GradedAnswer,
    GraderRegistry,
    SubmittedAnswer,
    TextAnswer,
    grade_answer,
    resolve_answer,
)
from adaptive_assessment.assessment.lifecycle import (
    AttemptLifecycleManager,
    StartedAttempt,
    effective_status,
    is_active,
)
from adaptive_assessment.assessment.scorer import AnswerSubmission, ScoringResult, SubmissionScorer

__all__ = [
    "AnswerGrader",
    "AnswerSubmission",
    "AttemptLifecycleManager",
    "BooleanAnswer",
    "ChoiceAnswer",
    "GradedAnswer",
    "GraderRegistry",
    "ScoringResult",
    "StartedAttempt",
    "SubmissionScorer",
    "SubmittedAnswer",
    "TextAnswer",
    "effective_status",
    "grade_answer",
    "is_active",
    "resolve_answer",
]
