"""
Context Updater.

Closes the adaptive loop: folds a completed attempt's topic accuracy and
response time into the learner's proficiency context with a 70/30
old/new weighting.

Each attempt is absorbed exactly once (``Attempt.context_applied`` is set in
the same transaction as the context write). Concurrent updates for one
learner are serialized by the context's version column: a lost race raises
StaleDataError and the whole read-modify-write is retried.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from adaptive_assessment.adaptive.context_store import ProficiencyContextStore
from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import InvalidStateError, NotFoundError
from adaptive_assessment.core.rounding import clamp, round_half_up
from adaptive_assessment.core.thresholds import (
    CONTEXT_EWMA_NEW_WEIGHT,
    CONTEXT_EWMA_OLD_WEIGHT,
    CONTEXT_THRESHOLDS,
)
from adaptive_assessment.db.database import SessionFactory, session_scope
from adaptive_assessment.db.models import Attempt, AttemptStatus, ProficiencyContext

# Change summary bands
TOPIC_CHANGE_THRESHOLD = 10
SPEED_CHANGE_THRESHOLD_SECONDS = 10


@dataclass
class ContextUpdate:
    """New values computed from one attempt, before they are written."""

    topic_scores: dict[str, int] = field(default_factory=dict)
    average_response_time_seconds: float | None = None


@dataclass
class ContextChanges:
    topics_improved: list[dict[str, Any]] = field(default_factory=list)
    topics_declined: list[dict[str, Any]] = field(default_factory=list)
    speed_change: str = "stable"

    def to_dict(self) -> dict[str, Any]:
        return {
            "topics_improved": self.topics_improved,
            "topics_declined": self.topics_declined,
            "speed_change": self.speed_change,
        }


@dataclass
class ContextUpdateOutcome:
    learner_id: str
    attempt_id: UUID
    applied: bool
    context: dict[str, Any]
    changes: ContextChanges


def blend(old: float, new: float) -> int:
    """70% previous value, 30% new observation, rounded half up."""
    return round_half_up(CONTEXT_EWMA_OLD_WEIGHT * old + CONTEXT_EWMA_NEW_WEIGHT * new)


def calculate_context_update(
    context: ProficiencyContext,
    topic_performance: Sequence[dict[str, Any]],
    time_taken_seconds: int,
    answered_count: int,
) -> ContextUpdate:
    """
    Compute the new topic scores and response time for one attempt.

    Topics the learner has never seen start from the neutral score. Scores
    are clamped to [0, 100]. Response time is left alone when nothing was
    answered.
    """
    update = ContextUpdate()
    for entry in topic_performance:
        topic = entry["topic"]
        old = context.get_topic_score(topic, default=CONTEXT_THRESHOLDS.default_score)
        accuracy = clamp(float(entry.get("accuracy", 0)), 0, 100)
        update.topic_scores[topic] = int(clamp(blend(old, accuracy), 0, 100))

    if answered_count > 0:
        per_question = time_taken_seconds / answered_count
        update.average_response_time_seconds = float(
            blend(context.average_response_time_seconds, per_question)
        )
    return update


def summarize_changes(context: ProficiencyContext, update: ContextUpdate) -> ContextChanges:
    """Compare a pending update against the current context."""
    changes = ContextChanges()
    for topic, new_score in update.topic_scores.items():
        old_score = context.get_topic_score(topic, default=CONTEXT_THRESHOLDS.default_score)
        diff = new_score - old_score
        if diff > TOPIC_CHANGE_THRESHOLD:
            changes.topics_improved.append({"topic": topic, "improvement": diff})
        elif diff < -TOPIC_CHANGE_THRESHOLD:
            changes.topics_declined.append({"topic": topic, "decline": abs(diff)})

    if update.average_response_time_seconds is not None:
        diff = update.average_response_time_seconds - context.average_response_time_seconds
        if diff < -SPEED_CHANGE_THRESHOLD_SECONDS:
            changes.speed_change = "faster"
        elif diff > SPEED_CHANGE_THRESHOLD_SECONDS:
            changes.speed_change = "slower"
    return changes


class ContextUpdater:
    """Applies completed attempts to proficiency contexts."""

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock | None = None,
        max_retries: int = 5,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.max_retries = max(1, max_retries)

    def apply(self, attempt_id: UUID) -> ContextUpdateOutcome:
        """
        Fold a completed attempt into its learner's context.

        Idempotent: an attempt that was already applied returns
        ``applied=False`` and leaves the context untouched.

        Raises:
            NotFoundError: Unknown attempt
            InvalidStateError: Attempt is not completed
        """
        last_error: Exception | None = None
        for attempt_no in range(1, self.max_retries + 1):
            try:
                return self._apply_once(attempt_id)
            except (StaleDataError, IntegrityError) as exc:
                last_error = exc
                logger.warning(
                    f"Context update for attempt {attempt_id} lost a race "
                    f"(try {attempt_no}/{self.max_retries}); retrying"
                )
        raise InvalidStateError(
            f"Context update for attempt {attempt_id} failed after {self.max_retries} tries: {last_error}"
        )

    def _apply_once(self, attempt_id: UUID) -> ContextUpdateOutcome:
        with session_scope(self.session_factory) as session:
            attempt = session.get(Attempt, attempt_id)
            if attempt is None:
                raise NotFoundError("Attempt", attempt_id)
            if attempt.status != AttemptStatus.COMPLETED.value:
                raise InvalidStateError(f"Attempt {attempt_id} is {attempt.status}, not completed")

            context = ProficiencyContextStore(session).get_or_create(attempt.learner_id)
            if attempt.context_applied:
                return ContextUpdateOutcome(
                    learner_id=attempt.learner_id,
                    attempt_id=attempt.id,
                    applied=False,
                    context=context.to_dict(),
                    changes=ContextChanges(),
                )

            answered = len(attempt.answers)
            update = calculate_context_update(
                context,
                attempt.topic_performance or [],
                attempt.time_taken_seconds or 0,
                answered,
            )
            changes = summarize_changes(context, update)

            merged = dict(context.topic_scores or {})
            merged.update(update.topic_scores)
            context.topic_scores = merged
            if update.average_response_time_seconds is not None:
                context.average_response_time_seconds = update.average_response_time_seconds
            context.total_attempts = (context.total_attempts or 0) + 1
            context.last_assessment_at = self.clock.now()
            attempt.context_applied = True

            # Version check happens here; a concurrent writer raises StaleDataError
            session.flush()

            logger.info(
                f"Updated context for learner {attempt.learner_id} from attempt {attempt.id}: "
                f"{update.topic_scores}"
            )
            return ContextUpdateOutcome(
                learner_id=attempt.learner_id,
                attempt_id=attempt.id,
                applied=True,
                context=context.to_dict(),
                changes=changes,
            )

    def apply_pending(self, learner_id: str) -> list[ContextUpdateOutcome]:
        """Apply every completed attempt of a learner that was not yet absorbed."""
        with session_scope(self.session_factory) as session:
            pending = session.execute(
                select(Attempt.id)
                .where(
                    Attempt.learner_id == learner_id,
                    Attempt.status == AttemptStatus.COMPLETED.value,
                    Attempt.context_applied.is_(False),
                )
                .order_by(Attempt.end_time)
            ).scalars().all()
        return [self.apply(attempt_id) for attempt_id in pending]

    def apply_many(self, attempt_ids: Iterable[UUID]) -> dict[str, list[Any]]:
        """Batch variant that records failures instead of stopping at the first one."""
        results: dict[str, list[Any]] = {"success": [], "failed": []}
        for attempt_id in attempt_ids:
            try:
                outcome = self.apply(attempt_id)
                results["success"].append(str(outcome.attempt_id))
            except (NotFoundError, InvalidStateError) as exc:
                logger.warning(f"Context update skipped for attempt {attempt_id}: {exc}")
                results["failed"].append({"attempt_id": str(attempt_id), "error": str(exc)})
        return results
