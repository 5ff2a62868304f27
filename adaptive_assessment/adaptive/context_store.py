"""
Proficiency Context Store.

Per-learner topic scores and preferences. Contexts are created lazily the
first time they are read and never deleted.
"""
from __future__ import annotations

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from adaptive_assessment.core.errors import ValidationError
from adaptive_assessment.db.models import DifficultyPreference, ProficiencyContext

PREFERENCES = tuple(p.value for p in DifficultyPreference)


class ProficiencyContextStore:
    def __init__(self, session: Session):
        self.session = session

    def get_or_create(self, learner_id: str) -> ProficiencyContext:
        """Load the learner's context, inserting a neutral one on first read."""
        context = self.session.get(ProficiencyContext, learner_id)
        if context is not None:
            return context

        context = ProficiencyContext(learner_id=learner_id, topic_scores={})
        try:
            with self.session.begin_nested():
                self.session.add(context)
        except IntegrityError:
            # Another request created it first
            context = self.session.get(ProficiencyContext, learner_id, populate_existing=True)
        else:
            logger.debug(f"Created proficiency context for learner {learner_id}")
        return context

    def find(self, learner_id: str) -> ProficiencyContext | None:
        return self.session.get(ProficiencyContext, learner_id)

    def set_difficulty_preference(self, learner_id: str, preference: str) -> ProficiencyContext:
        if preference not in PREFERENCES:
            raise ValidationError(f"Unknown difficulty preference: {preference}")
        context = self.get_or_create(learner_id)
        context.difficulty_preference = preference
        self.session.flush()
        return context
