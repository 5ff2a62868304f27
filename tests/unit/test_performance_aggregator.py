"""
Unit tests for the Performance Aggregator.

Covers per-attempt breakdowns and the cohort statistics (discrimination
index, percentile, trends, score distribution).
"""

from datetime import datetime
from uuid import uuid4

import pytest

from adaptive_assessment.analytics.performance import (
    PerformanceAggregator,
    ScoredAttempt,
    TopicStatus,
    TrendDirection,
)
from adaptive_assessment.assessment.grading import GradedAnswer


def graded(topic, difficulty, correct, time_spent=30):
    return GradedAnswer(
        question_id=uuid4(),
        topic=topic,
        difficulty=difficulty,
        submitted_value="a",
        is_correct=correct,
        marks_obtained=1 if correct else 0,
        max_marks=1,
        time_spent_seconds=time_spent,
    )


def scored(percentage, answers=None, end_time=None, is_passed=False):
    return ScoredAttempt(
        attempt_id=uuid4(),
        learner_id=f"learner-{uuid4().hex[:6]}",
        percentage=percentage,
        is_passed=is_passed,
        end_time=end_time,
        correct_by_question=answers or {},
    )


@pytest.fixture
def aggregator():
    return PerformanceAggregator()


class TestTopicPerformance:
    """Tests for per-topic breakdowns."""

    def test_accuracy_time_and_status(self, aggregator):
        answers = [
            graded("Arrays", "easy", True, 20),
            graded("Arrays", "medium", True, 40),
            graded("Arrays", "hard", False, 30),
            graded("Trees", "easy", False, 10),
        ]

        performance = aggregator.topic_performance(answers)

        assert [p["topic"] for p in performance] == ["Arrays", "Trees"]
        arrays = performance[0]
        assert arrays["attempted"] == 3
        assert arrays["correct"] == 2
        assert arrays["accuracy"] == 67
        assert arrays["average_time"] == 30
        assert arrays["status"] == "average"
        assert performance[1]["status"] == "weak"

    @pytest.mark.parametrize("accuracy,status", [(70, "strong"), (69, "average"), (50, "average"), (49, "weak")])
    def test_status_bands(self, accuracy, status):
        assert TopicStatus.from_accuracy(accuracy).value == status

    def test_no_answers(self, aggregator):
        assert aggregator.topic_performance([]) == []


class TestDifficultyPerformance:
    def test_all_difficulties_present(self, aggregator):
        """Difficulties with no answers report zeros."""
        performance = aggregator.difficulty_performance([graded("Arrays", "easy", True)])

        assert performance["easy"] == {"attempted": 1, "correct": 1, "accuracy": 100}
        assert performance["medium"] == {"attempted": 0, "correct": 0, "accuracy": 0}
        assert performance["hard"] == {"attempted": 0, "correct": 0, "accuracy": 0}


class TestStrengthsAndWeaknesses:
    def test_eighty_and_fifty_thresholds(self, aggregator):
        topics = [
            {"topic": "A", "accuracy": 80},
            {"topic": "B", "accuracy": 79},
            {"topic": "C", "accuracy": 50},
            {"topic": "D", "accuracy": 49},
        ]

        strengths, weaknesses = aggregator.strengths_and_weaknesses(topics)

        assert strengths == ["A"]
        assert weaknesses == ["D"]


class TestDiscriminationIndex:
    """Tests for the upper/lower 27% discrimination index."""

    def test_perfect_separation(self, aggregator):
        """Ten attempts: the top group all correct, the bottom group all wrong."""
        question_id = uuid4()
        attempts = [
            scored(score, {question_id: score >= 50})
            for score in (95, 90, 85, 80, 70, 60, 40, 30, 20, 10)
        ]

        assert aggregator.discrimination_index(question_id, attempts) == 1.0

    def test_no_separation(self, aggregator):
        question_id = uuid4()
        attempts = [scored(score, {question_id: True}) for score in (90, 70, 50, 30, 10)]

        assert aggregator.discrimination_index(question_id, attempts) == 0.0

    def test_reverse_separation_is_negative(self, aggregator):
        question_id = uuid4()
        attempts = [scored(score, {question_id: score < 50}) for score in (90, 80, 30, 20)]

        assert aggregator.discrimination_index(question_id, attempts) == -1.0

    def test_fewer_than_four_attempts(self, aggregator):
        question_id = uuid4()
        attempts = [scored(score, {question_id: True}) for score in (90, 50, 10)]

        assert aggregator.discrimination_index(question_id, attempts) == 0.0

    def test_unanswered_attempts_are_ignored(self, aggregator):
        """Only attempts that answered the question count toward the minimum."""
        question_id = uuid4()
        attempts = [scored(score, {question_id: True}) for score in (90, 80, 70)]
        attempts += [scored(score) for score in (60, 50, 40)]

        assert aggregator.discrimination_index(question_id, attempts) == 0.0


class TestPercentile:
    def test_needs_two_attempts(self, aggregator):
        assert aggregator.percentile(80, [80]) is None

    def test_share_strictly_below(self, aggregator):
        """Ties do not count as below."""
        assert aggregator.percentile(70, [70, 70, 50, 90]) == 25

    def test_top_score(self, aggregator):
        assert aggregator.percentile(90, [90, 10, 20]) == 67


class TestTrend:
    """Tests for recent-versus-older trends."""

    def test_improving(self, aggregator):
        assert aggregator.trend([40, 45, 50, 70, 75, 80]) == TrendDirection.IMPROVING

    def test_declining(self, aggregator):
        assert aggregator.trend([80, 80, 80, 60, 60, 60]) == TrendDirection.DECLINING

    def test_within_threshold_is_stable(self, aggregator):
        assert aggregator.trend([60, 60, 60, 64, 64, 64]) == TrendDirection.STABLE

    def test_threshold_is_configurable(self, aggregator):
        values = [60, 60, 60, 68, 68, 68]

        assert aggregator.trend(values, threshold=5) == TrendDirection.IMPROVING
        assert aggregator.trend(values, threshold=10) == TrendDirection.STABLE

    def test_only_six_most_recent_values_count(self, aggregator):
        """Values older than the previous three are ignored."""
        assert aggregator.trend([0, 0, 0, 70, 70, 70, 70, 70, 70]) == TrendDirection.STABLE

    def test_too_few_values(self, aggregator):
        assert aggregator.trend([50]) == TrendDirection.STABLE
        assert aggregator.trend([10, 90]) == TrendDirection.STABLE


class TestScoreDistribution:
    def test_bands(self, aggregator):
        distribution = aggregator.score_distribution([95, 90, 85, 42, 0])
        by_range = {d["range"]: d for d in distribution}

        assert by_range["90-100"]["count"] == 2
        assert by_range["90-100"]["percentage"] == 40
        assert by_range["80-89"]["count"] == 1
        assert by_range["0-49"]["count"] == 2
        assert by_range["60-69"]["count"] == 0

    def test_empty(self, aggregator):
        assert all(d["count"] == 0 and d["percentage"] == 0 for d in aggregator.score_distribution([]))


class TestBatchTrend:
    def test_monthly_averages(self, aggregator):
        attempts = [
            scored(40, end_time=datetime(2024, 1, 10)),
            scored(60, end_time=datetime(2024, 1, 20)),
            scored(80, end_time=datetime(2024, 2, 5)),
            scored(90, end_time=None),
        ]

        result = aggregator.batch_trend(attempts)

        assert result["months"] == [
            {"month": "2024-01", "average_score": 50, "attempts": 2},
            {"month": "2024-02", "average_score": 80, "attempts": 1},
        ]
        assert result["trend"] == "stable"

    def test_trend_across_months(self, aggregator):
        """Months are compared with the batch threshold of 10."""
        attempts = [
            scored(score, end_time=datetime(2024, month, 1))
            for month, score in ((1, 40), (2, 40), (3, 80), (4, 80))
        ]

        assert aggregator.batch_trend(attempts)["trend"] == "improving"


class TestAssessmentAnalytics:
    """Tests for the cohort view of one assessment."""

    def test_overall_and_question_analysis(self, aggregator):
        easy_q, hard_q = uuid4(), uuid4()
        questions = [
            {"question_id": easy_q, "text": "Easy one", "topic": "Arrays", "difficulty": "easy"},
            {"question_id": hard_q, "text": "Hard one", "topic": "Trees", "difficulty": "hard"},
        ]
        attempts = [
            scored(100, {easy_q: True, hard_q: True}, is_passed=True),
            scored(50, {easy_q: True, hard_q: False}, is_passed=True),
            scored(50, {easy_q: True, hard_q: False}, is_passed=True),
            scored(0, {easy_q: False, hard_q: False}),
        ]

        analytics = aggregator.assessment_analytics(questions, attempts)

        assert analytics["overall"]["total_attempts"] == 4
        assert analytics["overall"]["pass_rate"] == 75
        assert analytics["overall"]["average_score"] == 50
        analysis = analytics["question_analysis"]
        assert [q["question_id"] for q in analysis] == [str(hard_q), str(easy_q)]
        assert analysis[0]["accuracy"] == 25
        assert analysis[1]["accuracy"] == 75
        assert [q["question_id"] for q in analytics["difficult_questions"]] == [str(hard_q)]
        assert [r["type"] for r in analytics["recommendations"]] == ["questions"]

    def test_no_attempts(self, aggregator):
        analytics = aggregator.assessment_analytics([], [])

        assert analytics["overall"]["total_attempts"] == 0
        assert analytics["recommendations"] == []
