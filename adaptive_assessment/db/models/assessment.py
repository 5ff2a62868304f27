"""
Assessment models.

An Assessment is an ordered snapshot of catalog questions plus scoring
configuration. Adaptive assessments also record who they were generated for
and which topic/difficulty mix produced them.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adaptive_assessment.core.rounding import round_half_up

from .base import Base
from .enums import AssessmentStatus, AssessmentType

if TYPE_CHECKING:
    from .question import Question


class Assessment(Base):
    __tablename__ = "assessments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    course_id: Mapped[UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    assessment_type: Mapped[str] = mapped_column(
        String(32), default=AssessmentType.PRACTICE.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(16), default=AssessmentStatus.DRAFT.value, nullable=False
    )

    # Scoring configuration
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    total_marks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    passing_marks: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    show_results_immediately: Mapped[bool] = mapped_column(Boolean, default=True)
    show_correct_answers: Mapped[bool] = mapped_column(Boolean, default=True)
    randomize_questions: Mapped[bool] = mapped_column(Boolean, default=False)
    randomize_options: Mapped[bool] = mapped_column(Boolean, default=False)
    # Modelled but never applied by the scorer (no negative marking)
    negative_marking: Mapped[bool] = mapped_column(Boolean, default=False)
    negative_marks_per_question: Mapped[int] = mapped_column(Integer, default=0)

    # Schedule
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)

    # Adaptive metadata
    is_adaptive: Mapped[bool] = mapped_column(Boolean, default=False)
    target_learner_id: Mapped[str | None] = mapped_column(Text, index=True)
    focus_topics: Mapped[list[str]] = mapped_column(JSON, default=list)
    difficulty_distribution: Mapped[dict[str, int]] = mapped_column(JSON, default=dict)

    # Aggregate statistics
    total_attempts: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[int] = mapped_column(Integer, default=0)
    average_time_minutes: Mapped[int] = mapped_column(Integer, default=0)
    highest_score: Mapped[int] = mapped_column(Integer, default=0)
    lowest_score: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(default=func.now())

    questions: Mapped[list[AssessmentQuestion]] = relationship(
        back_populates="assessment",
        order_by="AssessmentQuestion.order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_assessment_schedule"),
        Index("idx_assessments_course", "course_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Assessment {self.id} status={self.status} questions={len(self.questions)}>"

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def update_stats(self, score_percentage: int, time_taken_minutes: float) -> None:
        """Fold one completed attempt into the running aggregates."""
        self.total_attempts = (self.total_attempts or 0) + 1
        n = self.total_attempts
        self.average_score = round_half_up(((self.average_score or 0) * (n - 1) + score_percentage) / n)
        self.average_time_minutes = round_half_up(
            ((self.average_time_minutes or 0) * (n - 1) + time_taken_minutes) / n
        )
        if score_percentage > (self.highest_score or 0):
            self.highest_score = score_percentage
        if n == 1 or score_percentage < (self.lowest_score or 0):
            self.lowest_score = score_percentage

    def to_dict(self, redact: bool = False) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "course_id": str(self.course_id),
            "title": self.title,
            "type": self.assessment_type,
            "status": self.status,
            "config": {
                "duration_minutes": self.duration_minutes,
                "total_marks": self.total_marks,
                "passing_marks": self.passing_marks,
                "show_results_immediately": self.show_results_immediately,
                "show_correct_answers": self.show_correct_answers,
                "randomize_questions": self.randomize_questions,
                "randomize_options": self.randomize_options,
                "negative_marking": self.negative_marking,
                "negative_marks_per_question": self.negative_marks_per_question,
            },
            "schedule": {
                "start_at": self.start_at.isoformat(),
                "end_at": self.end_at.isoformat(),
            },
            "adaptive": {
                "is_adaptive": self.is_adaptive,
                "target_learner_id": self.target_learner_id,
                "focus_topics": list(self.focus_topics or []),
                "difficulty_distribution": dict(self.difficulty_distribution or {}),
            },
            "stats": {
                "total_attempts": self.total_attempts,
                "average_score": self.average_score,
                "average_time_minutes": self.average_time_minutes,
                "highest_score": self.highest_score,
                "lowest_score": self.lowest_score,
            },
            "questions": [item.to_dict(redact=redact) for item in self.questions],
        }


class AssessmentQuestion(Base):
    """One ordered, weighted slot of an assessment."""

    __tablename__ = "assessment_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    assessment_id: Mapped[UUID] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[UUID] = mapped_column(
        ForeignKey("questions.id", ondelete="RESTRICT"), nullable=False
    )
    marks: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    order: Mapped[int] = mapped_column("position", Integer, nullable=False)

    assessment: Mapped[Assessment] = relationship(back_populates="questions")
    question: Mapped[Question] = relationship(lazy="joined")

    __table_args__ = (
        CheckConstraint("marks >= 1", name="ck_assessment_question_marks"),
    )

    def to_dict(self, redact: bool = False) -> dict[str, Any]:
        return {
            "question_id": str(self.question_id),
            "marks": self.marks,
            "order": self.order,
            "question": self.question.to_dict(redact=redact) if self.question else None,
        }
