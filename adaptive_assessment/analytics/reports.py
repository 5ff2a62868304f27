"""
Performance reports for completed attempts and cohort analytics for assessments.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from adaptive_assessment.analytics.performance import PerformanceAggregator, ScoredAttempt
from adaptive_assessment.core.errors import ForbiddenError, InvalidStateError, NotFoundError
from adaptive_assessment.core.rounding import round_half_up
from adaptive_assessment.db.models import Assessment, Attempt, AttemptStatus

GRADE_BANDS: tuple[tuple[int, str], ...] = (
    (90, "A+"),
    (80, "A"),
    (70, "B+"),
    (60, "B"),
    (50, "C"),
    (40, "D"),
)

STANDING_BANDS: tuple[tuple[int, str], ...] = (
    (75, "Top 25%"),
    (50, "Above Average"),
    (25, "Below Average"),
)


def letter_grade(percentage: float) -> str:
    for floor, grade in GRADE_BANDS:
        if percentage >= floor:
            return grade
    return "F"


def standing(percentile: int) -> str:
    for floor, label in STANDING_BANDS:
        if percentile >= floor:
            return label
    return "Bottom 25%"


def format_time(seconds: int) -> str:
    """Human readable duration, e.g. ``1h 2m 5s``, ``4m 0s`` or ``42s``."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def report_recommendations(attempt: Attempt) -> list[dict[str, str]]:
    """Advice derived from one completed attempt."""
    recommendations = []
    percentage = attempt.score_percentage

    if percentage < 50:
        recommendations.append(
            {
                "category": "Overall Performance",
                "message": "Your score is below 50%. Consider revising fundamental concepts "
                "and practicing more.",
                "priority": "high",
            }
        )
    elif percentage < 70:
        recommendations.append(
            {
                "category": "Overall Performance",
                "message": "Good effort! Focus on weak areas to improve your score further.",
                "priority": "medium",
            }
        )
    else:
        recommendations.append(
            {
                "category": "Overall Performance",
                "message": "Great performance! Continue practicing to maintain your level.",
                "priority": "low",
            }
        )

    for weakness in attempt.weaknesses or []:
        recommendations.append(
            {
                "category": "Weak Areas",
                "message": f'Focus on improving "{weakness}" - your accuracy is below 50% in this area.',
                "priority": "high",
            }
        )

    assessment = attempt.assessment
    answered = len(attempt.answers)
    if answered and assessment.question_count:
        per_question = attempt.time_taken_seconds / answered
        ideal = assessment.duration_minutes * 60 / assessment.question_count
        if per_question > ideal * 1.5:
            recommendations.append(
                {
                    "category": "Time Management",
                    "message": "You spent more time than average per question. "
                    "Practice time-bound tests to improve speed.",
                    "priority": "medium",
                }
            )

    if attempt.unanswered > assessment.question_count * 0.1:
        recommendations.append(
            {
                "category": "Completion",
                "message": "You left several questions unanswered. "
                "Work on completing all questions within time.",
                "priority": "high",
            }
        )

    hard = (attempt.difficulty_performance or {}).get("hard")
    if hard and hard.get("attempted") and hard.get("accuracy", 0) < 40:
        recommendations.append(
            {
                "category": "Challenge Level",
                "message": "Your performance on hard questions needs improvement. "
                "Practice advanced problems.",
                "priority": "medium",
            }
        )

    return recommendations


class ReportService:
    """Read-only reports over stored attempts."""

    def __init__(self, session: Session, aggregator: PerformanceAggregator | None = None):
        self.session = session
        self.aggregator = aggregator or PerformanceAggregator()

    def _completed_attempts(self, assessment_id: UUID) -> list[Attempt]:
        return list(
            self.session.execute(
                select(Attempt).where(
                    Attempt.assessment_id == assessment_id,
                    Attempt.status == AttemptStatus.COMPLETED.value,
                )
            ).scalars()
        )

    def performance_report(self, attempt_id: UUID, requester_id: str | None = None) -> dict[str, Any]:
        """
        Full report for a completed attempt.

        Args:
            attempt_id: Attempt to report on
            requester_id: When given, must be the attempt's learner

        Raises:
            NotFoundError: Unknown attempt
            ForbiddenError: Requester is not the owner
            InvalidStateError: Attempt is not completed
        """
        attempt = self.session.get(Attempt, attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt", attempt_id)
        if requester_id is not None and attempt.learner_id != requester_id:
            raise ForbiddenError("Not authorized to view this report")
        if not attempt.is_completed:
            raise InvalidStateError(f"Attempt {attempt_id} is {attempt.status}; no report yet")

        assessment = attempt.assessment
        answered = len(attempt.answers)
        return {
            "basic_info": {
                "attempt_id": str(attempt.id),
                "learner_id": attempt.learner_id,
                "assessment_id": str(assessment.id),
                "assessment_title": assessment.title,
                "assessment_type": assessment.assessment_type,
                "attempt_number": attempt.attempt_number,
                "submitted_at": attempt.end_time.isoformat() if attempt.end_time else None,
            },
            "score_info": {
                "obtained": attempt.score_obtained,
                "total": attempt.score_total,
                "percentage": attempt.score_percentage,
                "grade": letter_grade(attempt.score_percentage),
                "is_passed": attempt.is_passed,
                "passing_marks": assessment.passing_marks,
            },
            "time_info": {
                "time_taken_seconds": attempt.time_taken_seconds,
                "time_taken": format_time(attempt.time_taken_seconds),
                "allowed_minutes": assessment.duration_minutes,
                "average_time_per_question": (
                    round_half_up(attempt.time_taken_seconds / answered) if answered else 0
                ),
            },
            "answer_stats": {
                "total_questions": assessment.question_count,
                "answered": answered,
                "correct": attempt.correct_answers,
                "incorrect": attempt.incorrect_answers,
                "unanswered": attempt.unanswered,
                "accuracy": round_half_up(100 * attempt.correct_answers / answered) if answered else 0,
            },
            "topic_performance": list(attempt.topic_performance or []),
            "difficulty_performance": dict(attempt.difficulty_performance or {}),
            "strengths": list(attempt.strengths or []),
            "weaknesses": list(attempt.weaknesses or []),
            "recommendations": report_recommendations(attempt),
            "peer_comparison": self.peer_comparison(attempt),
        }

    def peer_comparison(self, attempt: Attempt) -> dict[str, Any]:
        scores = [a.score_percentage for a in self._completed_attempts(attempt.assessment_id)]
        percentile = self.aggregator.percentile(attempt.score_percentage, scores)
        if percentile is None:
            return {"available": False, "message": "Not enough data for comparison"}

        ordered = sorted(scores)
        return {
            "available": True,
            "percentile": percentile,
            "standing": standing(percentile),
            "average": round_half_up(sum(scores) / len(scores)),
            "median": ordered[len(ordered) // 2],
            "highest": ordered[-1],
            "lowest": ordered[0],
            "total_attempts": len(scores),
        }

    def assessment_analytics(self, assessment_id: UUID) -> dict[str, Any]:
        assessment = self.session.get(Assessment, assessment_id)
        if assessment is None:
            raise NotFoundError("Assessment", assessment_id)

        attempts = [ScoredAttempt.from_attempt(a) for a in self._completed_attempts(assessment_id)]
        questions = [
            {
                "question_id": slot.question_id,
                "text": slot.question.text,
                "topic": slot.question.topic,
                "difficulty": slot.question.difficulty,
            }
            for slot in assessment.questions
        ]
        analytics = self.aggregator.assessment_analytics(questions, attempts)
        analytics["assessment_info"] = {
            "id": str(assessment.id),
            "title": assessment.title,
            "type": assessment.assessment_type,
            "total_questions": assessment.question_count,
            "total_marks": assessment.total_marks,
            "duration_minutes": assessment.duration_minutes,
        }
        analytics["batch_trend"] = self.aggregator.batch_trend(attempts)
        return analytics

    def course_trend(self, course_id: UUID) -> dict[str, Any]:
        """Monthly average score across every assessment of a course."""
        attempts = self.session.execute(
            select(Attempt)
            .join(Assessment, Attempt.assessment_id == Assessment.id)
            .where(
                Assessment.course_id == course_id,
                Attempt.status == AttemptStatus.COMPLETED.value,
            )
        ).scalars()
        return self.aggregator.batch_trend([ScoredAttempt.from_attempt(a) for a in attempts])
