"""
Proficiency context model.

One row per learner. Topic scores live in a JSON map and are always
reassigned as a new dict so SQLAlchemy notices the change. The ``version``
column turns every flush into a compare-and-swap, so two concurrent context
updates for the same learner cannot silently overwrite each other.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from .enums import DifficultyPreference


class ProficiencyContext(Base):
    __tablename__ = "proficiency_contexts"

    learner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    topic_scores: Mapped[dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    difficulty_preference: Mapped[str] = mapped_column(
        String(16), default=DifficultyPreference.ADAPTIVE.value, nullable=False
    )
    average_response_time_seconds: Mapped[float] = mapped_column(Float, default=60.0, nullable=False)
    total_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_assessment_at: Mapped[datetime | None] = mapped_column()
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<ProficiencyContext learner={self.learner_id} topics={len(self.topic_scores or {})} v{self.version}>"

    def get_topic_score(self, topic: str, default: int = 50) -> int:
        """Score for ``topic``; unseen topics read as ``default``."""
        scores = self.topic_scores or {}
        if topic in scores:
            return int(scores[topic])
        return default

    def to_dict(self) -> dict[str, Any]:
        return {
            "learner_id": self.learner_id,
            "topic_scores": dict(self.topic_scores or {}),
            "difficulty_preference": self.difficulty_preference,
            "average_response_time_seconds": self.average_response_time_seconds,
            "total_attempts": self.total_attempts,
            "last_assessment_at": self.last_assessment_at.isoformat()
            if self.last_assessment_at
            else None,
        }
