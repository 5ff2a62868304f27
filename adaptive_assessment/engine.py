"""
Assessment Engine.

High-level operations for the API and CLI:
- Generate an adaptive assessment for a learner
- Start, submit and abandon attempts
- Performance reports, learning insights and assessment analytics
- Seed the question catalog

Coordinates the generator, lifecycle manager, scorer and context updater.
A submission is scored and committed first; the proficiency context is
then updated in its own transaction, and question usage statistics are
recorded last on a best-effort basis.
"""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from adaptive_assessment.adaptive.context_store import ProficiencyContextStore
from adaptive_assessment.adaptive.context_updater import ContextChanges, ContextUpdater
from adaptive_assessment.adaptive.generator import AdaptiveGenerator, GenerationResult
from adaptive_assessment.analytics.insights import DEFAULT_RESPONSE_TIME_SECONDS, LearningInsightsService
from adaptive_assessment.analytics.reports import ReportService
from adaptive_assessment.assessment.lifecycle import AttemptLifecycleManager, StartedAttempt
from adaptive_assessment.assessment.scorer import AnswerSubmission, SubmissionScorer
from adaptive_assessment.catalog.generation_client import QuestionGenerationClient
from adaptive_assessment.catalog.question_catalog import (
    CourseCatalog,
    QuestionCatalog,
    QuestionUsage,
    record_question_usage,
)
from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import InvalidStateError
from adaptive_assessment.db.database import SessionFactory, SessionLocal, session_scope
from adaptive_assessment.db.models import AssessmentType, Attempt, DifficultyPreference
from config import Settings, get_settings


@dataclass
class SubmissionOutcome:
    """A finalized attempt plus what it changed in the learner's context."""

    attempt: dict[str, Any]
    context_applied: bool
    context_changes: ContextChanges | None = None

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.attempt)
        data["context_applied"] = self.context_applied
        data["context_changes"] = self.context_changes.to_dict() if self.context_changes else None
        return data


class AssessmentEngine:
    """
    Facade over the adaptive assessment loop.

    Every collaborator takes the same session factory, clock and random
    source so a test can pin all three.
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        generation_client: QuestionGenerationClient | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory or SessionLocal
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.generation_client = generation_client

        self.generator = AdaptiveGenerator(
            self.session_factory,
            clock=self.clock,
            rng=self.rng,
            generation_client=generation_client,
            schedule_days=self.settings.default_schedule_days,
            default_duration_minutes=self.settings.default_duration_minutes,
        )
        self.lifecycle = AttemptLifecycleManager(self.session_factory, clock=self.clock, rng=self.rng)
        self.context_updater = ContextUpdater(
            self.session_factory,
            clock=self.clock,
            max_retries=self.settings.context_update_max_retries,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AssessmentEngine:
        """Build an engine against the configured database and generation service."""
        settings = settings or get_settings()
        client = None
        if settings.has_generation_configured():
            client = QuestionGenerationClient(
                base_url=settings.generation_base_url,
                model=settings.generation_model,
                timeout_seconds=settings.generation_timeout_seconds,
                retry_attempts=settings.generation_retry_attempts,
            )
            logger.info(f"Question generation enabled via {settings.generation_base_url}")
        return cls(generation_client=client, settings=settings)

    def close(self) -> None:
        if self.generation_client is not None:
            self.generation_client.close()

    # ========================================
    # Generation
    # ========================================

    def generate_assessment(
        self,
        learner_id: str,
        course_id: UUID,
        total_questions: int,
        assessment_type: str = AssessmentType.PRACTICE.value,
        focus_topics: Sequence[str] | None = None,
        duration_minutes: int | None = None,
        title: str | None = None,
    ) -> GenerationResult:
        # Any completed attempt not yet absorbed must shape this plan
        self.context_updater.apply_pending(learner_id)
        return self.generator.generate(
            learner_id,
            course_id,
            total_questions,
            assessment_type=assessment_type,
            focus_topics=focus_topics,
            duration_minutes=duration_minutes,
            title=title,
        )

    def publish_assessment(self, assessment_id: UUID) -> dict[str, Any]:
        return self.lifecycle.publish(assessment_id)

    # ========================================
    # Attempts
    # ========================================

    def start_attempt(self, learner_id: str, assessment_id: UUID) -> StartedAttempt:
        return self.lifecycle.start(learner_id, assessment_id)

    def submit_attempt(
        self,
        attempt_id: UUID,
        learner_id: str,
        answers: Iterable[AnswerSubmission | Mapping[str, Any]],
    ) -> SubmissionOutcome:
        """
        Score an attempt, then feed it back into the learner's context.

        Raises:
            NotFoundError: Unknown attempt
            ForbiddenError: Attempt belongs to another learner
            AlreadySubmittedError: Attempt is no longer in progress
        """
        submissions = [
            a if isinstance(a, AnswerSubmission) else AnswerSubmission.from_dict(a) for a in answers
        ]

        with session_scope(self.session_factory) as session:
            scoring = SubmissionScorer(session, clock=self.clock).score(
                attempt_id, learner_id, submissions
            )
            usages = scoring.usages

        changes = None
        applied = False
        # On failure the attempt stays pending; the next generation for this learner applies it
        try:
            outcome = self.context_updater.apply(attempt_id)
            applied = outcome.applied
            changes = outcome.changes
        except InvalidStateError as e:
            logger.error(f"Context update deferred for attempt {attempt_id}: {e}")
        except SQLAlchemyError:
            logger.exception(f"Context update deferred for attempt {attempt_id}")

        self._record_usage(usages)

        with session_scope(self.session_factory) as session:
            attempt = session.get(Attempt, attempt_id)
            return SubmissionOutcome(
                attempt=attempt.to_dict(), context_applied=applied, context_changes=changes
            )

    def abandon_attempt(self, attempt_id: UUID, learner_id: str) -> dict[str, Any]:
        return self.lifecycle.abandon(attempt_id, learner_id)

    def expire_attempt(self, attempt_id: UUID) -> bool:
        return self.lifecycle.expire_if_overdue(attempt_id)

    def _record_usage(self, usages: Sequence[QuestionUsage]) -> None:
        """Post-commit usage statistics; failures never affect the attempt."""
        if not usages:
            return
        try:
            with session_scope(self.session_factory) as session:
                now = self.clock.now()
                for usage in usages:
                    record_question_usage(session, usage, now)
        except SQLAlchemyError:
            logger.exception(f"Failed to record usage for {len(usages)} question(s)")

    # ========================================
    # Reports & insights
    # ========================================

    def performance_report(self, attempt_id: UUID, requester_id: str | None = None) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return ReportService(session).performance_report(attempt_id, requester_id)

    def assessment_analytics(self, assessment_id: UUID) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return ReportService(session).assessment_analytics(assessment_id)

    def course_trend(self, course_id: UUID) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            CourseCatalog(session).get(course_id)
            return ReportService(session).course_trend(course_id)

    def learning_insights(self, learner_id: str) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return LearningInsightsService(session).insights(learner_id)

    def get_context(self, learner_id: str) -> dict[str, Any]:
        """Current proficiency context, or the neutral defaults when none exists yet."""
        with session_scope(self.session_factory) as session:
            context = ProficiencyContextStore(session).find(learner_id)
            if context is not None:
                return context.to_dict()
        return {
            "learner_id": learner_id,
            "topic_scores": {},
            "difficulty_preference": DifficultyPreference.ADAPTIVE.value,
            "average_response_time_seconds": DEFAULT_RESPONSE_TIME_SECONDS,
            "total_attempts": 0,
            "last_assessment_at": None,
        }

    def set_difficulty_preference(self, learner_id: str, preference: str) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return ProficiencyContextStore(session).set_difficulty_preference(learner_id, preference).to_dict()

    # ========================================
    # Catalog
    # ========================================

    def add_course(self, code: str, title: str, topics: Sequence[str]) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return CourseCatalog(session).add(code, title, topics).to_dict()

    def add_question(self, **fields: Any) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            return QuestionCatalog(session).add_question(**fields).to_dict()
