"""
Attempt models.

An Attempt is one learner's sitting of an Assessment. At most one attempt
per (learner, assessment) may be in progress; the partial unique index
``uq_attempt_in_progress`` enforces that in the store itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .enums import AttemptStatus

if TYPE_CHECKING:
    from .assessment import Assessment

_IN_PROGRESS = text(f"status = '{AttemptStatus.IN_PROGRESS.value}'")


class Attempt(Base):
    __tablename__ = "attempts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    learner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=AttemptStatus.IN_PROGRESS.value, nullable=False
    )

    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime | None] = mapped_column()
    time_taken_seconds: Mapped[int] = mapped_column(Integer, default=0)

    # Score
    score_obtained: Mapped[int] = mapped_column(Integer, default=0)
    score_total: Mapped[int] = mapped_column(Integer, default=0)
    score_percentage: Mapped[int] = mapped_column(Integer, default=0)
    is_passed: Mapped[bool] = mapped_column(Boolean, default=False)

    correct_answers: Mapped[int] = mapped_column(Integer, default=0)
    incorrect_answers: Mapped[int] = mapped_column(Integer, default=0)
    unanswered: Mapped[int] = mapped_column(Integer, default=0)

    # Derived performance (filled on submit)
    topic_performance: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    difficulty_performance: Mapped[dict[str, dict[str, int]]] = mapped_column(JSON, default=dict)
    strengths: Mapped[list[str]] = mapped_column(JSON, default=list)
    weaknesses: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Set once the proficiency context has absorbed this attempt
    context_applied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    assessment: Mapped[Assessment] = relationship()
    answers: Mapped[list[AttemptAnswer]] = relationship(
        back_populates="attempt",
        order_by="AttemptAnswer.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_attempt_in_progress",
            "learner_id",
            "assessment_id",
            unique=True,
            sqlite_where=_IN_PROGRESS,
            postgresql_where=_IN_PROGRESS,
        ),
        Index("idx_attempts_assessment_status", "assessment_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Attempt {self.id} learner={self.learner_id} #{self.attempt_number} "
            f"status={self.status} score={self.score_obtained}/{self.score_total}>"
        )

    @property
    def is_in_progress(self) -> bool:
        return self.status == AttemptStatus.IN_PROGRESS.value

    @property
    def is_completed(self) -> bool:
        return self.status == AttemptStatus.COMPLETED.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "learner_id": self.learner_id,
            "assessment_id": str(self.assessment_id),
            "attempt_number": self.attempt_number,
            "status": self.status,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "time_taken_seconds": self.time_taken_seconds,
            "score": {
                "obtained": self.score_obtained,
                "total": self.score_total,
                "percentage": self.score_percentage,
            },
            "is_passed": self.is_passed,
            "correct_answers": self.correct_answers,
            "incorrect_answers": self.incorrect_answers,
            "unanswered": self.unanswered,
            "answers": [answer.to_dict() for answer in self.answers],
            "topic_performance": list(self.topic_performance or []),
            "difficulty_performance": dict(self.difficulty_performance or {}),
            "strengths": list(self.strengths or []),
            "weaknesses": list(self.weaknesses or []),
        }


class AttemptAnswer(Base):
    """A graded answer to one assessment question."""

    __tablename__ = "attempt_answers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    attempt_id: Mapped[UUID] = mapped_column(
        ForeignKey("attempts.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[UUID] = mapped_column(ForeignKey("questions.id"), nullable=False)
    submitted_value: Mapped[str | None] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    marks_obtained: Mapped[int] = mapped_column(Integer, default=0)
    max_marks: Mapped[int] = mapped_column(Integer, default=1)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)
    flagged: Mapped[bool] = mapped_column(Boolean, default=False)

    # Snapshot of the question's grouping keys at grading time
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)

    attempt: Mapped[Attempt] = relationship(back_populates="answers")

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": str(self.question_id),
            "submitted_value": self.submitted_value,
            "is_correct": self.is_correct,
            "marks_obtained": self.marks_obtained,
            "max_marks": self.max_marks,
            "time_spent_seconds": self.time_spent_seconds,
            "flagged": self.flagged,
            "topic": self.topic,
            "difficulty": self.difficulty,
        }
