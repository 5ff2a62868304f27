"""
Unit tests for answer resolution and grading.

Questions are built in memory; nothing is persisted.
"""

from uuid import uuid4

import pytest

from adaptive_assessment.assessment.grading import (
    BooleanAnswer,
    ChoiceAnswer,
    ChoiceGrader,
    ExactTextGrader,
    GraderRegistry,
    TextAnswer,
    TrueFalseGrader,
    grade_answer,
    resolve_answer,
)
from adaptive_assessment.assessment.scorer import AnswerSubmission
from adaptive_assessment.db.models import Question


def make_question(question_type="multiple-choice", correct_answer=None, options=None, **fields):
    if options is None and question_type == "multiple-choice":
        options = [
            {"id": "a", "text": "Stack", "is_correct": True},
            {"id": "b", "text": "Queue", "is_correct": False},
        ]
    return Question(
        id=uuid4(),
        course_id=uuid4(),
        topic=fields.get("topic", "Arrays"),
        difficulty=fields.get("difficulty", "easy"),
        question_type=question_type,
        text="Which structure is LIFO?",
        options=options or [],
        correct_answer=correct_answer,
    )


class TestResolveAnswer:
    """Tests for turning raw values into answer variants."""

    def test_choice_from_string(self):
        assert resolve_answer("multiple-choice", " a ") == ChoiceAnswer("a")

    def test_choice_from_object(self):
        assert resolve_answer("multiple-choice", {"option_id": "b"}) == ChoiceAnswer("b")

    def test_choice_rejects_bool(self):
        """A boolean is never an option id."""
        assert resolve_answer("multiple-choice", True) is None

    def test_true_false_from_bool(self):
        assert resolve_answer("true-false", False) == BooleanAnswer("false")

    def test_true_false_from_string(self):
        assert resolve_answer("true-false", "True") == BooleanAnswer("True")

    def test_text_from_number(self):
        assert resolve_answer("short-answer", 42) == TextAnswer("42")

    @pytest.mark.parametrize("raw", [None, "", "   ", [], ["a"], {"other": 1}])
    def test_unusable_values_are_unanswered(self, raw):
        """Missing, blank or wrongly shaped values resolve to None."""
        assert resolve_answer("multiple-choice", raw) is None
        assert resolve_answer("short-answer", raw) is None


class TestGraderRegistry:
    """Tests for grader lookup by question type."""

    @pytest.mark.parametrize(
        "question_type,grader",
        [
            ("multiple-choice", ChoiceGrader),
            ("true-false", TrueFalseGrader),
            ("short-answer", ExactTextGrader),
            ("coding", ExactTextGrader),
            ("essay", ExactTextGrader),
        ],
    )
    def test_every_type_has_a_grader(self, question_type, grader):
        assert GraderRegistry.get(question_type) is grader

    def test_unknown_type_raises(self):
        with pytest.raises(KeyError):
            GraderRegistry.get("matching")


class TestGradeAnswer:
    """Tests for all-or-nothing grading."""

    def test_correct_option_earns_full_marks(self):
        question = make_question()

        graded = grade_answer(question, ChoiceAnswer("a"), max_marks=2, time_spent_seconds=12)

        assert graded.is_correct is True
        assert graded.marks_obtained == 2
        assert graded.max_marks == 2
        assert graded.time_spent_seconds == 12
        assert graded.topic == "Arrays"
        assert graded.difficulty == "easy"

    def test_wrong_option_earns_nothing(self):
        graded = grade_answer(make_question(), ChoiceAnswer("b"), max_marks=1)

        assert graded.is_correct is False
        assert graded.marks_obtained == 0

    def test_any_correct_option_counts(self):
        question = make_question(
            options=[
                {"id": "a", "text": "O(1)", "is_correct": True},
                {"id": "b", "text": "constant", "is_correct": True},
                {"id": "c", "text": "O(n)", "is_correct": False},
            ]
        )

        assert grade_answer(question, ChoiceAnswer("b"), max_marks=1).is_correct

    def test_true_false_is_case_insensitive(self):
        question = make_question("true-false", correct_answer="True")

        assert grade_answer(question, BooleanAnswer("true"), max_marks=1).is_correct
        assert not grade_answer(question, BooleanAnswer("false"), max_marks=1).is_correct

    def test_short_answer_trims_and_ignores_case(self):
        question = make_question("short-answer", correct_answer="Binary Search")

        assert grade_answer(question, TextAnswer("  binary search "), max_marks=1).is_correct

    def test_essay_needs_exact_match(self):
        """Free text is not evaluated semantically."""
        question = make_question("essay", correct_answer="recursion")

        assert not grade_answer(question, TextAnswer("it uses recursion"), max_marks=1).is_correct

    def test_mismatched_variant_is_incorrect(self):
        question = make_question()

        assert not grade_answer(question, TextAnswer("a"), max_marks=1).is_correct


class TestAnswerSubmission:
    def test_from_dict_defaults(self):
        submission = AnswerSubmission.from_dict({"question_id": "q1"})

        assert submission.question_id == "q1"
        assert submission.value is None
        assert submission.time_spent_seconds is None
        assert submission.flagged is False
