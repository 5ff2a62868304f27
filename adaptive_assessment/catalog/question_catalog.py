"""
Question Catalog.

Query service over the persistent question collection plus the thin
course/question add operations needed to seed it. Selection logic lives in
the adaptive generator; the catalog only filters.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from loguru import logger
from sqlalchemy import Integer, cast, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from adaptive_assessment.core.errors import NotFoundError, UpstreamUnavailableError, ValidationError
from adaptive_assessment.db.models import (
    DIFFICULTIES,
    Course,
    Question,
    QuestionSource,
    QuestionType,
)

QUESTION_TYPES = tuple(t.value for t in QuestionType)
DEFAULT_TIME_TO_ANSWER = 60


@dataclass
class QuestionUsage:
    """One graded use of a question, reported after an attempt is committed."""
    question_id: UUID
    was_correct: bool
    time_spent_seconds: int | None = None


class CourseCatalog:
    """Lookup and minimal creation of courses."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, course_id: UUID) -> Course:
        course = self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    def get_by_code(self, code: str) -> Course:
        course = self.session.execute(
            select(Course).where(Course.code == code)
        ).scalar_one_or_none()
        if course is None:
            raise NotFoundError("Course", code)
        return course

    def add(self, code: str, title: str, topics: Sequence[str]) -> Course:
        cleaned = _unique([t.strip() for t in topics if t and t.strip()])
        if not code.strip():
            raise ValidationError("Course code is required")
        existing = self.session.execute(
            select(Course).where(Course.code == code.strip())
        ).scalar_one_or_none()
        if existing is not None:
            raise ValidationError(f"Course code already exists: {code.strip()}")
        course = Course(code=code.strip(), title=title.strip() or code, topics=cleaned)
        self.session.add(course)
        self.session.flush()
        logger.info(f"Added course {course.code} with {len(cleaned)} topics")
        return course


class QuestionCatalog:
    """
    Filtered access to catalog questions.

    Handles:
    - Course/topic/difficulty/active filtering with bounded limits
    - Validated question creation (catalog or generated source)
    """

    def __init__(self, session: Session):
        self.session = session

    # ========================================
    # Queries
    # ========================================

    def find(
        self,
        course_id: UUID,
        topics: Iterable[str] | None = None,
        difficulty: str | None = None,
        active_only: bool = True,
        limit: int | None = None,
        exclude_ids: Iterable[UUID] | None = None,
    ) -> list[Question]:
        """
        Questions of a course matching the filters.

        Args:
            course_id: Owning course
            topics: Restrict to these topics (duplicates are ignored)
            difficulty: easy, medium or hard
            active_only: Skip deactivated questions
            limit: Maximum rows returned (None = all)
            exclude_ids: Question IDs to leave out

        Returns:
            Matching questions in stable catalog order
        """
        query = select(Question).where(Question.course_id == course_id)

        if topics is not None:
            topic_set = set(topics)
            if not topic_set:
                return []
            query = query.where(Question.topic.in_(topic_set))
        if difficulty is not None:
            query = query.where(Question.difficulty == difficulty)
        if active_only:
            query = query.where(Question.is_active.is_(True))
        excluded = list(exclude_ids or [])
        if excluded:
            query = query.where(Question.id.not_in(excluded))

        query = query.order_by(Question.created_at, Question.id)
        if limit is not None:
            if limit <= 0:
                return []
            query = query.limit(limit)

        try:
            return list(self.session.execute(query).scalars().all())
        except SQLAlchemyError as exc:
            raise UpstreamUnavailableError(f"Question catalog query failed: {exc}") from exc

    def get(self, question_id: UUID) -> Question:
        question = self.session.get(Question, question_id)
        if question is None:
            raise NotFoundError("Question", question_id)
        return question

    def get_many(self, question_ids: Iterable[UUID]) -> dict[UUID, Question]:
        ids = list(question_ids)
        if not ids:
            return {}
        rows = self.session.execute(select(Question).where(Question.id.in_(ids))).scalars().all()
        return {q.id: q for q in rows}

    def count_by_difficulty(self, course_id: UUID) -> dict[str, int]:
        rows = self.session.execute(
            select(Question.difficulty, func.count(Question.id))
            .where(Question.course_id == course_id, Question.is_active.is_(True))
            .group_by(Question.difficulty)
        ).all()
        counts = {d: 0 for d in DIFFICULTIES}
        counts.update({difficulty: count for difficulty, count in rows})
        return counts

    # ========================================
    # Creation
    # ========================================

    def add_question(
        self,
        course_id: UUID,
        topic: str,
        difficulty: str,
        question_type: str,
        text: str,
        options: Sequence[dict[str, Any]] | None = None,
        correct_answer: str | None = None,
        explanation: str | None = None,
        source: str = QuestionSource.CATALOG.value,
        is_active: bool = True,
    ) -> Question:
        """
        Validate and insert a question.

        Raises:
            ValidationError: Unknown type/difficulty, missing text, a
                multiple-choice question with fewer than two options or no
                correct option, or a non-choice question with no answer key.
        """
        if difficulty not in DIFFICULTIES:
            raise ValidationError(f"Unknown difficulty: {difficulty}")
        if question_type not in QUESTION_TYPES:
            raise ValidationError(f"Unknown question type: {question_type}")
        if not text or not text.strip():
            raise ValidationError("Question text is required")
        if not topic or not topic.strip():
            raise ValidationError("Question topic is required")

        normalized_options = _normalize_options(options or [])
        if question_type == QuestionType.MULTIPLE_CHOICE.value:
            if len(normalized_options) < 2:
                raise ValidationError("Multiple-choice questions need at least two options")
            if not any(opt["is_correct"] for opt in normalized_options):
                raise ValidationError("Multiple-choice questions need a correct option")
        elif not (correct_answer and correct_answer.strip()):
            raise ValidationError(f"{question_type} questions need a correct answer")

        question = Question(
            course_id=course_id,
            topic=topic.strip(),
            difficulty=difficulty,
            question_type=question_type,
            text=text.strip(),
            options=normalized_options,
            correct_answer=correct_answer.strip() if correct_answer else None,
            explanation=explanation,
            source=source,
            is_active=is_active,
        )
        self.session.add(question)
        self.session.flush()
        return question

    def deactivate(self, question_id: UUID) -> Question:
        question = self.get(question_id)
        question.is_active = False
        self.session.flush()
        return question


def record_question_usage(session: Session, usage: QuestionUsage, now: datetime) -> None:
    """
    Fold one graded use into the question's running averages.

    Executed as a single UPDATE so the increment and both weighted averages
    are applied atomically, even with concurrent submissions on the same
    question:

        n = times_used + 1
        average = round(((average * (n - 1)) + new_value) / n)
    """
    score = 100 if usage.was_correct else 0
    time_spent = usage.time_spent_seconds or DEFAULT_TIME_TO_ANSWER
    previous = Question.times_used

    session.execute(
        update(Question)
        .where(Question.id == usage.question_id)
        .values(
            times_used=previous + 1,
            average_score=cast(
                func.round((Question.average_score * previous + score) * 1.0 / (previous + 1)),
                Integer,
            ),
            average_time_seconds=cast(
                func.round((Question.average_time_seconds * previous + time_spent) * 1.0 / (previous + 1)),
                Integer,
            ),
            last_used_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def _normalize_options(options: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    normalized = []
    for opt in options:
        text = str(opt.get("text", "")).strip()
        if not text:
            continue
        normalized.append(
            {
                "id": str(opt.get("id") or uuid4().hex[:12]),
                "text": text,
                "is_correct": bool(opt.get("is_correct", False)),
            }
        )
    return normalized


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
