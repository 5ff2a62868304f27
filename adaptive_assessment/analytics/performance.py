"""
Performance Aggregator.

Turns graded answers into per-topic and per-difficulty breakdowns, and
completed attempts into cohort statistics (percentile, discrimination index,
score distribution, trends).

Design:
- TopicStatus / TrendDirection: str enums with ``from_*`` classifiers
- AnswerView / ScoredAttempt: read-only shapes the aggregator works on, so
  the same code runs on freshly graded answers and on stored attempts
- PerformanceAggregator: stateless calculator
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from adaptive_assessment.core.rounding import mean, round_half_up
from adaptive_assessment.core.thresholds import (
    ATTEMPT_THRESHOLDS,
    BATCH_TREND_THRESHOLD,
    DISCRIMINATION_GROUP_RATIO,
    DISCRIMINATION_MIN_ATTEMPTS,
    PERCENTILE_MIN_ATTEMPTS,
    TOPIC_TREND_THRESHOLD,
)
from adaptive_assessment.db.models import DIFFICULTIES, Attempt

SCORE_BANDS: tuple[tuple[str, int], ...] = (
    ("90-100", 90),
    ("80-89", 80),
    ("70-79", 70),
    ("60-69", 60),
    ("50-59", 50),
    ("0-49", 0),
)


class TopicStatus(str, Enum):
    """Attempt-level topic classification (70/50)."""

    STRONG = "strong"
    AVERAGE = "average"
    WEAK = "weak"

    @classmethod
    def from_accuracy(cls, accuracy: float) -> TopicStatus:
        if accuracy >= ATTEMPT_THRESHOLDS.strong_at:
            return cls.STRONG
        elif accuracy >= ATTEMPT_THRESHOLDS.average_at:
            return cls.AVERAGE
        return cls.WEAK


class TrendDirection(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class AnswerView(Protocol):
    """Anything shaped like a graded answer (GradedAnswer or AttemptAnswer)."""

    question_id: UUID
    topic: str
    difficulty: str
    is_correct: bool
    time_spent_seconds: int


@dataclass
class ScoredAttempt:
    """A completed attempt reduced to what cohort statistics need."""

    attempt_id: UUID
    learner_id: str
    percentage: int
    is_passed: bool = False
    time_taken_seconds: int = 0
    end_time: datetime | None = None
    correct_by_question: dict[UUID, bool] = field(default_factory=dict)

    @classmethod
    def from_attempt(cls, attempt: Attempt) -> ScoredAttempt:
        return cls(
            attempt_id=attempt.id,
            learner_id=attempt.learner_id,
            percentage=attempt.score_percentage or 0,
            is_passed=bool(attempt.is_passed),
            time_taken_seconds=attempt.time_taken_seconds or 0,
            end_time=attempt.end_time,
            correct_by_question={a.question_id: bool(a.is_correct) for a in attempt.answers},
        )


def _accuracy(correct: int, attempted: int) -> int:
    return round_half_up(100 * correct / attempted) if attempted else 0


class PerformanceAggregator:
    """Stateless breakdowns and cohort statistics."""

    # ========================================
    # Per-attempt breakdowns
    # ========================================

    @staticmethod
    def topic_performance(answers: Iterable[AnswerView]) -> list[dict[str, Any]]:
        """Per-topic attempted/correct/accuracy/average_time/status, in first-seen order."""
        totals: dict[str, dict[str, int]] = {}
        for answer in answers:
            entry = totals.setdefault(answer.topic, {"attempted": 0, "correct": 0, "time": 0})
            entry["attempted"] += 1
            entry["correct"] += 1 if answer.is_correct else 0
            entry["time"] += answer.time_spent_seconds or 0

        performance = []
        for topic, entry in totals.items():
            accuracy = _accuracy(entry["correct"], entry["attempted"])
            performance.append(
                {
                    "topic": topic,
                    "attempted": entry["attempted"],
                    "correct": entry["correct"],
                    "accuracy": accuracy,
                    "average_time": round_half_up(entry["time"] / entry["attempted"]),
                    "status": TopicStatus.from_accuracy(accuracy).value,
                }
            )
        return performance

    @staticmethod
    def difficulty_performance(answers: Iterable[AnswerView]) -> dict[str, dict[str, int]]:
        performance = {d: {"attempted": 0, "correct": 0, "accuracy": 0} for d in DIFFICULTIES}
        for answer in answers:
            entry = performance.setdefault(
                answer.difficulty, {"attempted": 0, "correct": 0, "accuracy": 0}
            )
            entry["attempted"] += 1
            entry["correct"] += 1 if answer.is_correct else 0
        for entry in performance.values():
            entry["accuracy"] = _accuracy(entry["correct"], entry["attempted"])
        return performance

    @staticmethod
    def strengths_and_weaknesses(
        topic_performance: Sequence[dict[str, Any]],
    ) -> tuple[list[str], list[str]]:
        strengths = [
            t["topic"] for t in topic_performance if t["accuracy"] >= ATTEMPT_THRESHOLDS.strength_at
        ]
        weaknesses = [
            t["topic"]
            for t in topic_performance
            if t["accuracy"] < ATTEMPT_THRESHOLDS.weakness_below
        ]
        return strengths, weaknesses

    # ========================================
    # Cohort statistics
    # ========================================

    @staticmethod
    def discrimination_index(question_id: UUID, attempts: Sequence[ScoredAttempt]) -> float:
        """
        Upper/lower group discrimination for one question.

        Only attempts that answered the question count. With fewer than four
        such attempts the index is 0. Groups are the top and bottom
        floor(n * 0.27) attempts by score percentage.
        """
        answered = [a for a in attempts if question_id in a.correct_by_question]
        if len(answered) < DISCRIMINATION_MIN_ATTEMPTS:
            return 0.0

        answered.sort(key=lambda a: a.percentage, reverse=True)
        group_size = math.floor(len(answered) * DISCRIMINATION_GROUP_RATIO)
        top = answered[:group_size]
        bottom = answered[-group_size:]

        top_correct = sum(1 for a in top if a.correct_by_question[question_id]) / len(top)
        bottom_correct = sum(1 for a in bottom if a.correct_by_question[question_id]) / len(bottom)
        return round_half_up(top_correct - bottom_correct, 2)

    @staticmethod
    def percentile(own_percentage: int, completed_percentages: Sequence[int]) -> int | None:
        """Share of completed scores strictly below ours; None below two attempts."""
        if len(completed_percentages) < PERCENTILE_MIN_ATTEMPTS:
            return None
        below = sum(1 for s in completed_percentages if s < own_percentage)
        return round_half_up(100 * below / len(completed_percentages))

    @staticmethod
    def trend(values: Sequence[float], threshold: float = TOPIC_TREND_THRESHOLD) -> TrendDirection:
        """
        Compare the mean of the last three values with the up to three before them.

        Values are oldest first. With no earlier values the trend is stable.
        """
        if len(values) < 2:
            return TrendDirection.STABLE
        recent = list(values[-3:])
        older = list(values[max(0, len(values) - 6) : -3])
        recent_avg = mean(recent)
        older_avg = mean(older) if older else recent_avg

        diff = recent_avg - older_avg
        if diff > threshold:
            return TrendDirection.IMPROVING
        if diff < -threshold:
            return TrendDirection.DECLINING
        return TrendDirection.STABLE

    @staticmethod
    def score_distribution(percentages: Sequence[int]) -> list[dict[str, Any]]:
        counts = {label: 0 for label, _ in SCORE_BANDS}
        for score in percentages:
            for label, floor in SCORE_BANDS:
                if score >= floor:
                    counts[label] += 1
                    break
        total = len(percentages)
        return [
            {
                "range": label,
                "count": count,
                "percentage": round_half_up(100 * count / total) if total else 0,
            }
            for label, count in counts.items()
        ]

    @classmethod
    def batch_trend(cls, attempts: Sequence[ScoredAttempt]) -> dict[str, Any]:
        """Monthly average scores for a cohort, oldest month first."""
        monthly: dict[str, list[int]] = {}
        for attempt in attempts:
            if attempt.end_time is None:
                continue
            monthly.setdefault(attempt.end_time.strftime("%Y-%m"), []).append(attempt.percentage)

        months = [
            {
                "month": month,
                "average_score": round_half_up(mean(scores)),
                "attempts": len(scores),
            }
            for month, scores in sorted(monthly.items())
        ]
        direction = cls.trend([m["average_score"] for m in months], threshold=BATCH_TREND_THRESHOLD)
        return {"months": months, "trend": direction.value}

    @classmethod
    def assessment_analytics(
        cls,
        questions: Sequence[dict[str, Any]],
        attempts: Sequence[ScoredAttempt],
    ) -> dict[str, Any]:
        """
        Cohort view of one assessment.

        Args:
            questions: ``{"question_id", "text", "topic", "difficulty"}`` per slot
            attempts: Completed attempts of the assessment
        """
        total = len(attempts)
        average_score = round_half_up(mean([a.percentage for a in attempts])) if total else 0
        pass_rate = round_half_up(100 * sum(1 for a in attempts if a.is_passed) / total) if total else 0
        average_time = round_half_up(mean([a.time_taken_seconds for a in attempts])) if total else 0

        question_stats = []
        for question in questions:
            qid = question["question_id"]
            answered = [a for a in attempts if qid in a.correct_by_question]
            correct = sum(1 for a in answered if a.correct_by_question[qid])
            question_stats.append(
                {
                    "question_id": str(qid),
                    "text": (question.get("text") or "")[:100],
                    "topic": question.get("topic"),
                    "difficulty": question.get("difficulty"),
                    "attempted": len(answered),
                    "correct": correct,
                    "accuracy": _accuracy(correct, len(answered)),
                    "discrimination_index": cls.discrimination_index(qid, attempts),
                }
            )
        question_stats.sort(key=lambda q: q["accuracy"])

        recommendations = []
        if total and pass_rate < 60:
            recommendations.append(
                {
                    "type": "difficulty",
                    "message": "Low pass rate indicates the assessment may be too difficult. "
                    "Consider reviewing question difficulty.",
                }
            )
        very_difficult = [q for q in question_stats if q["attempted"] and q["accuracy"] < 30]
        if very_difficult:
            recommendations.append(
                {
                    "type": "questions",
                    "message": f"{len(very_difficult)} questions have very low accuracy. "
                    "Review these questions for clarity.",
                }
            )

        return {
            "overall": {
                "total_attempts": total,
                "unique_learners": len({a.learner_id for a in attempts}),
                "average_score": average_score,
                "pass_rate": pass_rate,
                "average_time_seconds": average_time,
            },
            "score_distribution": cls.score_distribution([a.percentage for a in attempts]),
            "question_analysis": question_stats,
            "difficult_questions": [q for q in question_stats if q["attempted"] and q["accuracy"] < 50][:5],
            "easy_questions": [q for q in question_stats if q["accuracy"] > 80][:5],
            "recommendations": recommendations,
        }
