"""
Answer grading.

Submitted values arrive loosely typed (string, number, bool or a small
object). They are resolved into a tagged answer variant keyed by the owning
question's type, then graded by the strategy registered for that type:

- multiple-choice: the chosen option id must be one flagged correct
- true-false: case-insensitive equality with the canonical answer
- short-answer, coding, essay: case-insensitive, trimmed exact match

Free text is not evaluated semantically; exact match is the whole rule.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Union
from uuid import UUID

from loguru import logger

from adaptive_assessment.db.models import Question, QuestionType

# =============================================================================
# Submitted answer variants
# =============================================================================


@dataclass(frozen=True)
class ChoiceAnswer:
    option_id: str

    def display(self) -> str:
        return self.option_id


@dataclass(frozen=True)
class BooleanAnswer:
    value: str

    def display(self) -> str:
        return self.value


@dataclass(frozen=True)
class TextAnswer:
    text: str

    def display(self) -> str:
        return self.text


SubmittedAnswer = Union[ChoiceAnswer, BooleanAnswer, TextAnswer]


def resolve_answer(question_type: str, raw: Any) -> SubmittedAnswer | None:
    """
    Interpret a raw submitted value for a question type.

    Returns None for values that cannot be an answer (missing, empty,
    or the wrong shape); the caller counts those as unanswered.
    """
    if isinstance(raw, dict):
        raw = raw.get("option_id", raw.get("value", raw.get("text")))
    if raw is None or isinstance(raw, (list, tuple, set, dict)):
        return None

    if question_type == QuestionType.MULTIPLE_CHOICE.value:
        if isinstance(raw, bool):
            return None
        option_id = str(raw).strip()
        return ChoiceAnswer(option_id) if option_id else None

    if question_type == QuestionType.TRUE_FALSE.value:
        if isinstance(raw, bool):
            return BooleanAnswer("true" if raw else "false")
        value = str(raw)
        return BooleanAnswer(value) if value.strip() else None

    text = str(raw)
    return TextAnswer(text) if text.strip() else None


# =============================================================================
# Grader registry
# =============================================================================


class GraderRegistry:
    """
    Maps question types to grader classes.

    Example:
        @GraderRegistry.register(QuestionType.ESSAY)
        class EssayGrader(AnswerGrader):
            ...

        grader = GraderRegistry.for_question(question)
    """

    _graders: ClassVar[dict[str, type[AnswerGrader]]] = {}

    @classmethod
    def register(cls, *question_types: QuestionType):
        def decorator(grader_class: type[AnswerGrader]):
            for question_type in question_types:
                cls._graders[question_type.value] = grader_class
                logger.debug(f"Registered grader: {question_type.value} -> {grader_class.__name__}")
            return grader_class

        return decorator

    @classmethod
    def get(cls, question_type: str) -> type[AnswerGrader]:
        if question_type not in cls._graders:
            raise KeyError(f"No grader registered for question type: {question_type}")
        return cls._graders[question_type]

    @classmethod
    def for_question(cls, question: Question) -> AnswerGrader:
        return cls.get(question.question_type)()


class AnswerGrader(ABC):
    """Decides whether one resolved answer is correct."""

    @abstractmethod
    def is_correct(self, question: Question, answer: SubmittedAnswer) -> bool: ...


@GraderRegistry.register(QuestionType.MULTIPLE_CHOICE)
class ChoiceGrader(AnswerGrader):
    """Correct when the chosen option is any option flagged correct."""

    def is_correct(self, question: Question, answer: SubmittedAnswer) -> bool:
        if not isinstance(answer, ChoiceAnswer):
            return False
        return answer.option_id in question.correct_option_ids()


@GraderRegistry.register(QuestionType.TRUE_FALSE)
class TrueFalseGrader(AnswerGrader):
    def is_correct(self, question: Question, answer: SubmittedAnswer) -> bool:
        if not isinstance(answer, BooleanAnswer) or question.correct_answer is None:
            return False
        return answer.value.lower() == question.correct_answer.lower()


@GraderRegistry.register(QuestionType.SHORT_ANSWER, QuestionType.CODING, QuestionType.ESSAY)
class ExactTextGrader(AnswerGrader):
    def is_correct(self, question: Question, answer: SubmittedAnswer) -> bool:
        if not isinstance(answer, TextAnswer) or question.correct_answer is None:
            return False
        return answer.text.strip().lower() == question.correct_answer.strip().lower()


# =============================================================================
# Graded answer
# =============================================================================


@dataclass
class GradedAnswer:
    """One scored answer, carrying the question's grouping keys."""

    question_id: UUID
    topic: str
    difficulty: str
    submitted_value: str
    is_correct: bool
    marks_obtained: int
    max_marks: int
    time_spent_seconds: int = 0
    flagged: bool = False


def grade_answer(
    question: Question,
    answer: SubmittedAnswer,
    max_marks: int,
    time_spent_seconds: int = 0,
    flagged: bool = False,
) -> GradedAnswer:
    """All-or-nothing marks; negative marking is never applied."""
    correct = GraderRegistry.for_question(question).is_correct(question, answer)
    return GradedAnswer(
        question_id=question.id,
        topic=question.topic,
        difficulty=question.difficulty,
        submitted_value=answer.display(),
        is_correct=correct,
        marks_obtained=max_marks if correct else 0,
        max_marks=max_marks,
        time_spent_seconds=time_spent_seconds,
        flagged=flagged,
    )
