"""
Threshold families used across the engine.

Each family belongs to a different call site and is tuned independently:

- ContextThresholds: weak/medium/strong classification of proficiency scores
  when building the biased topic pool (60/80).
- AttemptThresholds: per-attempt topic status in reports (70/50) and
  strengths/weaknesses lists (80/50).
- Trend thresholds: topic-level trends use +/-5, batch and course-level
  trends use +/-10.
- InsightThresholds: learner insight bands derived from the proficiency context.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextThresholds:
    weak_below: int = 60
    strong_at: int = 80
    default_score: int = 50


@dataclass(frozen=True)
class AttemptThresholds:
    strong_at: int = 70
    average_at: int = 50
    strength_at: int = 80
    weakness_below: int = 50


@dataclass(frozen=True)
class InsightThresholds:
    strength_at: int = 75
    expert_at: int = 90
    weakness_below: int = 50
    fast_pace_below_seconds: int = 45
    slow_pace_above_seconds: int = 90
    slow_response_recommendation_seconds: int = 120


CONTEXT_THRESHOLDS = ContextThresholds()
ATTEMPT_THRESHOLDS = AttemptThresholds()
INSIGHT_THRESHOLDS = InsightThresholds()

TOPIC_TREND_THRESHOLD = 5
BATCH_TREND_THRESHOLD = 10

# Context update weighting: 70% previous value, 30% new observation
CONTEXT_EWMA_OLD_WEIGHT = 0.7
CONTEXT_EWMA_NEW_WEIGHT = 0.3

PASSING_RATIO = 0.4
DISCRIMINATION_GROUP_RATIO = 0.27
DISCRIMINATION_MIN_ATTEMPTS = 4
PERCENTILE_MIN_ATTEMPTS = 2
