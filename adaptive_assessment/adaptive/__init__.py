"""
Adaptive loop components.

- ProficiencyContextStore: lazily created per-learner topic scores
- AdaptiveGenerator: biased topic pool + difficulty mix question selection
- ContextUpdater: 70/30 feedback of attempt performance into the context
"""
from adaptive_assessment.adaptive.context_store import ProficiencyContextStore
from adaptive_assessment.adaptive.context_updater import (
    ContextChanges,
    ContextUpdate,
    ContextUpdateOutcome,
    ContextUpdater,
    calculate_context_update,
    summarize_changes,
)
from adaptive_assessment.adaptive.generator import (
    AdaptiveGenerator,
    GenerationPlan,
    GenerationResult,
    build_topic_pool,
    classify_topic,
    difficulty_counts,
    difficulty_distribution,
    passing_marks_for,
)

__all__ = [
    "AdaptiveGenerator",
    "ContextUpdater",
    "ProficiencyContextStore",
    "GenerationPlan",
    "GenerationResult",
    "ContextChanges",
    "ContextUpdate",
    "ContextUpdateOutcome",
    "build_topic_pool",
    "classify_topic",
    "difficulty_counts",
    "difficulty_distribution",
    "passing_marks_for",
    "calculate_context_update",
    "summarize_changes",
]
