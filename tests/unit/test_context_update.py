"""
Unit tests for the proficiency context update math.

The blend is 70% previous value and 30% new observation, rounded half up
and clamped to [0, 100].
"""

import pytest

from adaptive_assessment.adaptive.context_updater import (
    ContextUpdate,
    blend,
    calculate_context_update,
    summarize_changes,
)
from adaptive_assessment.db.models import ProficiencyContext


def make_context(scores=None, response_time=60.0):
    return ProficiencyContext(
        learner_id="learner-1",
        topic_scores=dict(scores or {}),
        average_response_time_seconds=response_time,
    )


class TestBlend:
    @pytest.mark.parametrize(
        "old,new,expected",
        [(50, 60, 53), (50, 100, 65), (100, 100, 100), (0, 0, 0), (45, 50, 47), (60, 30, 51)],
    )
    def test_weighted_average(self, old, new, expected):
        assert blend(old, new) == expected

    def test_half_rounds_up(self):
        """0.7 * 55 + 0.3 * 50 = 53.5 rounds to 54."""
        assert blend(55, 50) == 54


class TestCalculateContextUpdate:
    """Tests for the new values derived from one attempt."""

    def test_known_topic_blends_with_previous(self):
        context = make_context({"Arrays": 45})

        update = calculate_context_update(
            context, [{"topic": "Arrays", "accuracy": 100}], time_taken_seconds=300, answered_count=10
        )

        assert update.topic_scores == {"Arrays": 62}

    def test_unseen_topic_starts_from_neutral(self):
        update = calculate_context_update(
            make_context(), [{"topic": "Trees", "accuracy": 60}], time_taken_seconds=0, answered_count=1
        )

        assert update.topic_scores == {"Trees": 53}

    def test_scores_stay_in_range(self):
        """Out-of-range accuracies are clamped before blending."""
        context = make_context({"A": 100, "B": 0})

        update = calculate_context_update(
            context,
            [{"topic": "A", "accuracy": 250}, {"topic": "B", "accuracy": -40}],
            time_taken_seconds=60,
            answered_count=2,
        )

        assert update.topic_scores == {"A": 100, "B": 0}

    def test_response_time_blends_per_question_time(self):
        """300s over 10 answers is 30s each; 0.7 * 60 + 0.3 * 30 = 51."""
        update = calculate_context_update(make_context(), [], time_taken_seconds=300, answered_count=10)

        assert update.average_response_time_seconds == 51.0

    def test_nothing_answered_leaves_response_time(self):
        update = calculate_context_update(make_context(), [], time_taken_seconds=300, answered_count=0)

        assert update.average_response_time_seconds is None


class TestSummarizeChanges:
    """Tests for the improved/declined change summary."""

    def test_improvement_and_decline_beyond_ten_points(self):
        context = make_context({"A": 40, "B": 90, "C": 50})
        update = ContextUpdate(topic_scores={"A": 55, "B": 75, "C": 58})

        changes = summarize_changes(context, update)

        assert changes.topics_improved == [{"topic": "A", "improvement": 15}]
        assert changes.topics_declined == [{"topic": "B", "decline": 15}]
        assert changes.speed_change == "stable"

    def test_speed_change(self):
        context = make_context(response_time=60.0)

        assert summarize_changes(context, ContextUpdate(average_response_time_seconds=45.0)).speed_change == "faster"
        assert summarize_changes(context, ContextUpdate(average_response_time_seconds=75.0)).speed_change == "slower"
        assert summarize_changes(context, ContextUpdate(average_response_time_seconds=52.0)).speed_change == "stable"

    def test_to_dict(self):
        changes = summarize_changes(make_context(), ContextUpdate())

        assert changes.to_dict() == {"topics_improved": [], "topics_declined": [], "speed_change": "stable"}
