"""
Question catalog model.

The options JSON structure is only used by multiple-choice questions:

    [
        {"id": "a1", "text": "O(1)", "is_correct": false},
        {"id": "b2", "text": "O(n)", "is_correct": true}
    ]

Every other type is graded against ``correct_answer``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from .enums import QuestionSource


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    course_id: Mapped[UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"), nullable=False
    )
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)  # easy, medium, hard
    question_type: Mapped[str] = mapped_column(String(32), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    correct_answer: Mapped[str | None] = mapped_column(Text)
    explanation: Mapped[str | None] = mapped_column(Text)

    # Usage statistics (running averages, rounded to whole numbers)
    times_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    average_time_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_used_at: Mapped[datetime | None] = mapped_column()

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    source: Mapped[str] = mapped_column(
        String(16), default=QuestionSource.CATALOG.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    __table_args__ = (
        Index("idx_questions_selection", "course_id", "difficulty", "is_active"),
        Index("idx_questions_topic", "course_id", "topic"),
    )

    def __repr__(self) -> str:
        return f"<Question {self.id} {self.topic}/{self.difficulty} {self.question_type}>"

    def correct_option_ids(self) -> list[str]:
        """Ids of every option flagged correct."""
        return [str(opt.get("id")) for opt in self.options or [] if opt.get("is_correct")]

    def to_dict(self, redact: bool = False) -> dict[str, Any]:
        """Serialize, optionally stripping answer keys for learners."""
        data: dict[str, Any] = {
            "id": str(self.id),
            "course_id": str(self.course_id),
            "topic": self.topic,
            "difficulty": self.difficulty,
            "question_type": self.question_type,
            "text": self.text,
        }
        if redact:
            data["options"] = [
                {"id": opt.get("id"), "text": opt.get("text")} for opt in self.options or []
            ]
        else:
            data["options"] = [dict(opt) for opt in self.options or []]
            data["correct_answer"] = self.correct_answer
            data["explanation"] = self.explanation
            data["stats"] = {
                "times_used": self.times_used,
                "average_score": self.average_score,
                "average_time_seconds": self.average_time_seconds,
            }
            data["is_active"] = self.is_active
        return data
