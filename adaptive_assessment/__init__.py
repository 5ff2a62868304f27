"""
Adaptive Assessment Engine.

Closed adaptive loop for learner assessments:

- ProficiencyContextStore: per-learner topic scores and preferences
- AdaptiveGenerator: biases question selection toward weak topics
- AttemptLifecycleManager: assessment activity and attempt state transitions
- SubmissionScorer: grades submissions and updates question usage stats
- PerformanceAggregator: topic/difficulty accuracy, discrimination, percentile, trend
- ContextUpdater: feeds attempt performance back into the proficiency context
"""

__version__ = "1.0.0"
