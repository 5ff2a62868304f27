"""
Submission Scorer.

Grades a learner's answers against an in-progress attempt and finalizes it.
Runs inside the caller's session so grading, the attempt's derived fields
and the assessment aggregates commit (or roll back) together. Question
usage statistics are returned to the caller to be recorded after commit.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session

from adaptive_assessment.analytics.performance import PerformanceAggregator
from adaptive_assessment.assessment.grading import GradedAnswer, grade_answer, resolve_answer
from adaptive_assessment.catalog.question_catalog import QuestionUsage
from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import AlreadySubmittedError, ForbiddenError, NotFoundError
from adaptive_assessment.core.rounding import round_half_up
from adaptive_assessment.db.models import AssessmentQuestion, Attempt, AttemptAnswer, AttemptStatus


@dataclass
class AnswerSubmission:
    """One submitted answer as received from the learner."""

    question_id: Any
    value: Any = None
    time_spent_seconds: Any = None
    flagged: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AnswerSubmission:
        return cls(
            question_id=data.get("question_id"),
            value=data.get("value"),
            time_spent_seconds=data.get("time_spent_seconds"),
            flagged=bool(data.get("flagged", False)),
        )


@dataclass
class ScoringResult:
    attempt: Attempt
    graded: list[GradedAnswer] = field(default_factory=list)
    usages: list[QuestionUsage] = field(default_factory=list)
    skipped: int = 0


def _as_uuid(value: Any) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _as_seconds(value: Any) -> int | None:
    """Whole non-negative seconds; None when the value is not a number."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return None
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return None


class SubmissionScorer:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        aggregator: PerformanceAggregator | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.aggregator = aggregator or PerformanceAggregator()

    def score(
        self,
        attempt_id: UUID,
        learner_id: str,
        submissions: Iterable[AnswerSubmission],
    ) -> ScoringResult:
        """
        Grade and finalize an in-progress attempt.

        Malformed entries (unknown question, question outside the assessment,
        a repeated question, or an empty value) are skipped and count as
        unanswered.

        Raises:
            NotFoundError: Unknown attempt
            ForbiddenError: Attempt belongs to another learner
            AlreadySubmittedError: Attempt is not in progress
        """
        attempt = self.session.get(Attempt, attempt_id, with_for_update=True)
        if attempt is None:
            raise NotFoundError("Attempt", attempt_id)
        if attempt.learner_id != learner_id:
            raise ForbiddenError("Not authorized for this attempt")
        if not attempt.is_in_progress:
            raise AlreadySubmittedError(
                f"Attempt {attempt_id} was already {attempt.status}",
                data={"attempt_id": str(attempt.id), "status": attempt.status},
            )

        assessment = attempt.assessment
        slots: dict[UUID, AssessmentQuestion] = {slot.question_id: slot for slot in assessment.questions}
        result = ScoringResult(attempt=attempt)
        seen: set[UUID] = set()

        for submission in submissions:
            question_id = _as_uuid(submission.question_id)
            slot = slots.get(question_id) if question_id else None
            if slot is None or question_id in seen:
                result.skipped += 1
                continue
            answer = resolve_answer(slot.question.question_type, submission.value)
            time_spent = _as_seconds(submission.time_spent_seconds)
            if answer is None or time_spent is None:
                result.skipped += 1
                continue
            seen.add(question_id)

            graded = grade_answer(
                slot.question,
                answer,
                max_marks=slot.marks,
                time_spent_seconds=time_spent,
                flagged=submission.flagged,
            )
            result.graded.append(graded)
            result.usages.append(
                QuestionUsage(
                    question_id=question_id,
                    was_correct=graded.is_correct,
                    time_spent_seconds=time_spent or None,
                )
            )
            attempt.answers.append(
                AttemptAnswer(
                    question_id=question_id,
                    submitted_value=graded.submitted_value,
                    is_correct=graded.is_correct,
                    marks_obtained=graded.marks_obtained,
                    max_marks=graded.max_marks,
                    time_spent_seconds=graded.time_spent_seconds,
                    flagged=graded.flagged,
                    topic=graded.topic,
                    difficulty=graded.difficulty,
                )
            )

        if result.skipped:
            logger.debug(f"Attempt {attempt_id}: skipped {result.skipped} malformed answer(s)")

        self._finalize(attempt, result.graded)
        assessment.update_stats(attempt.score_percentage, attempt.time_taken_seconds / 60)
        self.session.flush()

        logger.info(
            f"Scored attempt {attempt.id} for learner {learner_id}: "
            f"{attempt.score_obtained}/{attempt.score_total} ({attempt.score_percentage}%), "
            f"passed={attempt.is_passed}"
        )
        return result

    def _finalize(self, attempt: Attempt, graded: list[GradedAnswer]) -> None:
        assessment = attempt.assessment
        now = self.clock.now()

        obtained = sum(g.marks_obtained for g in graded)
        total = assessment.total_marks
        correct = sum(1 for g in graded if g.is_correct)

        attempt.end_time = now
        attempt.time_taken_seconds = max(0, math.floor((now - attempt.start_time).total_seconds()))
        attempt.score_obtained = obtained
        attempt.score_total = total
        attempt.score_percentage = round_half_up(100 * obtained / total) if total else 0
        attempt.is_passed = obtained >= assessment.passing_marks
        attempt.correct_answers = correct
        attempt.incorrect_answers = len(graded) - correct
        attempt.unanswered = max(0, assessment.question_count - len(graded))

        topic_performance = self.aggregator.topic_performance(graded)
        strengths, weaknesses = self.aggregator.strengths_and_weaknesses(topic_performance)
        attempt.topic_performance = topic_performance
        attempt.difficulty_performance = self.aggregator.difficulty_performance(graded)
        attempt.strengths = strengths
        attempt.weaknesses = weaknesses
        attempt.status = AttemptStatus.COMPLETED.value
