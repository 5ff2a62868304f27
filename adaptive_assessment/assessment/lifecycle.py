"""
Attempt Lifecycle Manager.

Assessment: draft -> published -> (ongoing -> completed, informational) -> archived.
"Active" is computed on demand: published and now within [start, end].

Attempt: (none) -> in-progress -> completed | abandoned | time-expired.
Completion only happens through the submission scorer.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import (
    DuplicateAttemptError,
    ForbiddenError,
    InvalidStateError,
    NotActiveError,
    NotFoundError,
)
from adaptive_assessment.db.database import SessionFactory, session_scope
from adaptive_assessment.db.models import Assessment, AssessmentStatus, Attempt, AttemptStatus


@dataclass
class StartedAttempt:
    attempt_id: UUID
    attempt_number: int
    learner_id: str
    assessment: dict[str, Any]
    duration_minutes: int
    start_time: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempt_id": str(self.attempt_id),
            "attempt_number": self.attempt_number,
            "learner_id": self.learner_id,
            "assessment": self.assessment,
            "duration_minutes": self.duration_minutes,
            "start_time": self.start_time.isoformat(),
        }


def is_active(assessment: Assessment, now: datetime) -> bool:
    """Published and inside its schedule window."""
    return (
        assessment.status == AssessmentStatus.PUBLISHED.value
        and assessment.start_at <= now <= assessment.end_at
    )


def effective_status(assessment: Assessment, now: datetime) -> str:
    """Informational status derived from the schedule of a published assessment."""
    if assessment.status != AssessmentStatus.PUBLISHED.value:
        return assessment.status
    if now < assessment.start_at:
        return AssessmentStatus.PUBLISHED.value
    if now <= assessment.end_at:
        return AssessmentStatus.ONGOING.value
    return AssessmentStatus.COMPLETED.value


class AttemptLifecycleManager:
    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()

    # ========================================
    # Assessment transitions
    # ========================================

    def publish(self, assessment_id: UUID) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            assessment = _get_assessment(session, assessment_id)
            if assessment.status != AssessmentStatus.DRAFT.value:
                raise InvalidStateError(
                    f"Only draft assessments can be published (status={assessment.status})"
                )
            assessment.status = AssessmentStatus.PUBLISHED.value
            logger.info(f"Published assessment {assessment_id}")
            return assessment.to_dict()

    # ========================================
    # Attempt transitions
    # ========================================

    def start(self, learner_id: str, assessment_id: UUID) -> StartedAttempt:
        """
        Open an attempt for a learner.

        Raises:
            NotFoundError: Unknown assessment
            NotActiveError: Assessment not published or outside its window
            DuplicateAttemptError: An in-progress attempt already exists; the
                error carries that attempt
        """
        try:
            return self._create_attempt(learner_id, assessment_id)
        except IntegrityError:
            # Lost the race against a concurrent start for the same pair
            with session_scope(self.session_factory) as session:
                existing = _find_in_progress(session, learner_id, assessment_id)
                if existing is None:
                    raise
                logger.info(
                    f"Concurrent start for learner {learner_id} on {assessment_id}; "
                    f"returning attempt {existing.id}"
                )
                raise DuplicateAttemptError(
                    "You already have an in-progress attempt",
                    existing_attempt_id=existing.id,
                    data=existing.to_dict(),
                ) from None

    def _create_attempt(self, learner_id: str, assessment_id: UUID) -> StartedAttempt:
        with session_scope(self.session_factory) as session:
            assessment = _get_assessment(session, assessment_id)
            now = self.clock.now()
            if not is_active(assessment, now):
                raise NotActiveError(
                    f"Assessment {assessment_id} is not active "
                    f"(status={assessment.status}, window={assessment.start_at}..{assessment.end_at})"
                )

            existing = _find_in_progress(session, learner_id, assessment_id)
            if existing is not None:
                raise DuplicateAttemptError(
                    "You already have an in-progress attempt",
                    existing_attempt_id=existing.id,
                    data=existing.to_dict(),
                )

            prior = session.execute(
                select(func.count(Attempt.id)).where(
                    Attempt.learner_id == learner_id,
                    Attempt.assessment_id == assessment_id,
                )
            ).scalar_one()

            attempt = Attempt(
                learner_id=learner_id,
                assessment_id=assessment_id,
                attempt_number=prior + 1,
                status=AttemptStatus.IN_PROGRESS.value,
                start_time=now,
                score_obtained=0,
                score_total=assessment.total_marks,
                score_percentage=0,
                is_passed=False,
                correct_answers=0,
                incorrect_answers=0,
                unanswered=assessment.question_count,
            )
            session.add(attempt)
            session.flush()

            logger.info(
                f"Learner {learner_id} started attempt #{attempt.attempt_number} "
                f"on assessment {assessment_id}"
            )
            return StartedAttempt(
                attempt_id=attempt.id,
                attempt_number=attempt.attempt_number,
                learner_id=learner_id,
                assessment=self._redacted(assessment),
                duration_minutes=assessment.duration_minutes,
                start_time=attempt.start_time,
            )

    def abandon(self, attempt_id: UUID, learner_id: str) -> dict[str, Any]:
        with session_scope(self.session_factory) as session:
            attempt = _get_owned_attempt(session, attempt_id, learner_id)
            self._close(attempt, AttemptStatus.ABANDONED)
            return attempt.to_dict()

    def expire_if_overdue(self, attempt_id: UUID) -> bool:
        """Mark an in-progress attempt time-expired once its duration has elapsed."""
        with session_scope(self.session_factory) as session:
            attempt = session.get(Attempt, attempt_id)
            if attempt is None:
                raise NotFoundError("Attempt", attempt_id)
            if not attempt.is_in_progress:
                return False
            deadline = attempt.start_time + timedelta(minutes=attempt.assessment.duration_minutes)
            if self.clock.now() <= deadline:
                return False
            self._close(attempt, AttemptStatus.TIME_EXPIRED)
            return True

    def _close(self, attempt: Attempt, status: AttemptStatus) -> None:
        if not attempt.is_in_progress:
            raise InvalidStateError(f"Attempt {attempt.id} is {attempt.status}, not in-progress")
        now = self.clock.now()
        attempt.status = status.value
        attempt.end_time = now
        attempt.time_taken_seconds = int((now - attempt.start_time).total_seconds())
        logger.info(f"Attempt {attempt.id} closed as {status.value}")

    def _redacted(self, assessment: Assessment) -> dict[str, Any]:
        """Assessment payload without answer keys, shuffled where configured."""
        data = assessment.to_dict(redact=True)
        data.pop("stats", None)
        if assessment.randomize_questions:
            self.rng.shuffle(data["questions"])
        if assessment.randomize_options:
            for item in data["questions"]:
                if item["question"]:
                    self.rng.shuffle(item["question"]["options"])
        return data


def _get_assessment(session: Session, assessment_id: UUID) -> Assessment:
    assessment = session.get(Assessment, assessment_id)
    if assessment is None:
        raise NotFoundError("Assessment", assessment_id)
    return assessment


def _get_owned_attempt(session: Session, attempt_id: UUID, learner_id: str) -> Attempt:
    attempt = session.get(Attempt, attempt_id)
    if attempt is None:
        raise NotFoundError("Attempt", attempt_id)
    if attempt.learner_id != learner_id:
        raise ForbiddenError("Not authorized for this attempt")
    return attempt


def _find_in_progress(session: Session, learner_id: str, assessment_id: UUID) -> Attempt | None:
    return session.execute(
        select(Attempt).where(
            Attempt.learner_id == learner_id,
            Attempt.assessment_id == assessment_id,
            Attempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    ).scalar_one_or_none()
