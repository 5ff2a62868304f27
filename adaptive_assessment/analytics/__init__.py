"""Performance aggregation, reports and learner insights."""

from adaptive_assessment.analytics.insights import LearningInsightsService, MasteryLevel
from adaptive_assessment.analytics.performance import (
    PerformanceAggregator,
    ScoredAttempt,
    TopicStatus,
    TrendDirection,
)
from adaptive_assessment.analytics.reports import ReportService, format_time, letter_grade, standing

__all__ = [
    "LearningInsightsService",
    "MasteryLevel",
    "PerformanceAggregator",
    "ReportService",
    "ScoredAttempt",
    "TopicStatus",
    "TrendDirection",
    "format_time",
    "letter_grade",
    "standing",
]
