"""
Learning insights.

Read-only view of a learner derived from the proficiency context and the
most recent completed attempts. Nothing here writes; a learner without a
context gets the neutral defaults.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from adaptive_assessment.adaptive.context_store import ProficiencyContextStore
from adaptive_assessment.analytics.performance import PerformanceAggregator
from adaptive_assessment.core.rounding import mean, round_half_up
from adaptive_assessment.core.thresholds import INSIGHT_THRESHOLDS, TOPIC_TREND_THRESHOLD
from adaptive_assessment.db.models import Attempt, AttemptStatus

RECENT_ATTEMPT_LIMIT = 10
PROGRESS_WINDOW = 5
DEFAULT_RESPONSE_TIME_SECONDS = 60.0


class MasteryLevel(str, Enum):
    """Overall mastery from the average topic score."""

    BEGINNER = "beginner"  # < 40
    DEVELOPING = "developing"  # 40-59
    INTERMEDIATE = "intermediate"  # 60-74
    ADVANCED = "advanced"  # 75-89
    EXPERT = "expert"  # 90+

    @classmethod
    def from_score(cls, score: float) -> MasteryLevel:
        if score >= 90:
            return cls.EXPERT
        elif score >= 75:
            return cls.ADVANCED
        elif score >= 60:
            return cls.INTERMEDIATE
        elif score >= 40:
            return cls.DEVELOPING
        return cls.BEGINNER

    @property
    def message(self) -> str:
        return {
            MasteryLevel.BEGINNER: "Focus on core concepts",
            MasteryLevel.DEVELOPING: "Building foundational knowledge",
            MasteryLevel.INTERMEDIATE: "Good progress, keep practicing",
            MasteryLevel.ADVANCED: "Strong understanding of most topics",
            MasteryLevel.EXPERT: "Excellent mastery of concepts",
        }[self]


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation."""
    if not values:
        return 0.0
    avg = mean(list(values))
    return math.sqrt(mean([(v - avg) ** 2 for v in values]))


def consistency_label(scores: Sequence[float]) -> str:
    if len(scores) < PROGRESS_WINDOW:
        return "stable"
    deviation = standard_deviation(scores)
    if deviation < 10:
        return "very consistent"
    elif deviation < 20:
        return "consistent"
    elif deviation < 30:
        return "variable"
    return "inconsistent"


def pace_label(average_response_time_seconds: float) -> str:
    if average_response_time_seconds < INSIGHT_THRESHOLDS.fast_pace_below_seconds:
        return "fast"
    if average_response_time_seconds > INSIGHT_THRESHOLDS.slow_pace_above_seconds:
        return "slow"
    return "moderate"


def progress_trend(scores_newest_first: Sequence[int]) -> dict[str, Any]:
    """Mean of the five newest scores against the five before them."""
    if len(scores_newest_first) < 3:
        return {"trend": "insufficient data", "message": "Take more assessments to see trends"}

    recent = list(scores_newest_first[:PROGRESS_WINDOW])
    older = list(scores_newest_first[PROGRESS_WINDOW : PROGRESS_WINDOW * 2])
    if not older:
        return {"trend": "new", "message": "Building your performance history"}

    diff = mean(recent) - mean(older)
    change = round_half_up(diff)
    if diff > 15:
        return {
            "trend": "strong improvement",
            "message": f"You've improved by {change}% recently!",
            "percentage": change,
        }
    if diff > 5:
        return {"trend": "improving", "message": f"Steady improvement of {change}%", "percentage": change}
    if diff < -15:
        return {
            "trend": "declining",
            "message": f"Performance dropped by {abs(change)}%. Let's work on this.",
            "percentage": change,
        }
    if diff < -5:
        return {"trend": "slight decline", "message": "Minor drop in performance", "percentage": change}
    return {"trend": "stable", "message": "Maintaining consistent performance", "percentage": change}


def mastery_level(topic_scores: dict[str, int]) -> dict[str, Any]:
    if not topic_scores:
        return {"level": MasteryLevel.BEGINNER.value, "percentage": 0, "message": "Just getting started"}
    average = mean(list(topic_scores.values()))
    level = MasteryLevel.from_score(average)
    return {"level": level.value, "percentage": round_half_up(average), "message": level.message}


class LearningInsightsService:
    def __init__(self, session: Session, aggregator: PerformanceAggregator | None = None):
        self.session = session
        self.aggregator = aggregator or PerformanceAggregator()

    def _recent_attempts(self, learner_id: str) -> list[Attempt]:
        """Newest first."""
        return list(
            self.session.execute(
                select(Attempt)
                .where(
                    Attempt.learner_id == learner_id,
                    Attempt.status == AttemptStatus.COMPLETED.value,
                )
                .order_by(Attempt.end_time.desc())
                .limit(RECENT_ATTEMPT_LIMIT)
            ).scalars()
        )

    def insights(self, learner_id: str) -> dict[str, Any]:
        context = ProficiencyContextStore(self.session).find(learner_id)
        topic_scores = dict(context.topic_scores or {}) if context else {}
        response_time = (
            context.average_response_time_seconds if context else DEFAULT_RESPONSE_TIME_SECONDS
        )
        recent = self._recent_attempts(learner_id)
        scores = [a.score_percentage or 0 for a in recent]

        strengths = []
        weaknesses = []
        for topic, score in topic_scores.items():
            if score >= INSIGHT_THRESHOLDS.strength_at:
                level = "expert" if score >= INSIGHT_THRESHOLDS.expert_at else "proficient"
                strengths.append({"topic": topic, "score": score, "level": level})
            elif score < INSIGHT_THRESHOLDS.weakness_below:
                weaknesses.append({"topic": topic, "score": score, "needs_work": True})
        weaknesses.sort(key=lambda w: w["score"])

        insights = {
            "learner_id": learner_id,
            "strengths": strengths,
            "weaknesses": weaknesses,
            "learning_style": {
                "pace": pace_label(response_time),
                "consistency": consistency_label(scores),
            },
            "progress_trend": progress_trend(scores),
            "mastery_level": mastery_level(topic_scores),
            "topic_trends": self.topic_trends(recent),
        }
        insights["recommendations"] = self.recommendations(insights, response_time)
        return insights

    def topic_trends(self, attempts_newest_first: Sequence[Attempt]) -> dict[str, str]:
        """Per-topic accuracy trend over recent attempts."""
        history: dict[str, list[int]] = {}
        for attempt in reversed(attempts_newest_first):
            for entry in attempt.topic_performance or []:
                history.setdefault(entry["topic"], []).append(entry.get("accuracy", 0))
        return {
            topic: self.aggregator.trend(values, threshold=TOPIC_TREND_THRESHOLD).value
            for topic, values in history.items()
        }

    @staticmethod
    def recommendations(insights: dict[str, Any], response_time: float) -> list[dict[str, Any]]:
        recommendations = []

        if insights["weaknesses"]:
            focus = [w["topic"] for w in insights["weaknesses"][:3]]
            recommendations.append(
                {
                    "type": "focus",
                    "priority": "high",
                    "message": f"Focus on improving: {', '.join(focus)}",
                    "topics": focus,
                }
            )

        if response_time > INSIGHT_THRESHOLDS.slow_response_recommendation_seconds:
            recommendations.append(
                {
                    "type": "speed",
                    "priority": "medium",
                    "message": "Work on improving your response time through regular practice",
                }
            )

        if insights["progress_trend"]["trend"] == "declining":
            recommendations.append(
                {
                    "type": "motivation",
                    "priority": "high",
                    "message": "Schedule regular study sessions and take breaks to avoid burnout",
                }
            )

        if insights["learning_style"]["consistency"] == "inconsistent":
            recommendations.append(
                {
                    "type": "consistency",
                    "priority": "medium",
                    "message": "Maintain a regular study schedule for more consistent results",
                }
            )

        if insights["strengths"]:
            topics = ", ".join(s["topic"] for s in insights["strengths"][:3])
            recommendations.append(
                {"type": "strength", "priority": "low", "message": f"Great work on: {topics}!"}
            )

        return recommendations
