"""
Integration Tests for the Attempt Lifecycle.

Covers StartAttempt guards (activity window, one in-progress attempt per
learner and assessment), abandonment, time expiry and assessment publishing.
"""

from uuid import uuid4

import pytest

from adaptive_assessment.assessment import lifecycle
from adaptive_assessment.assessment.lifecycle import effective_status, is_active
from adaptive_assessment.core.errors import (
    AlreadySubmittedError,
    DuplicateAttemptError,
    ForbiddenError,
    InvalidStateError,
    NotActiveError,
    NotFoundError,
)
from adaptive_assessment.db.database import session_scope
from adaptive_assessment.db.models import Assessment

pytestmark = pytest.mark.integration

LEARNER = "learner-1"


@pytest.fixture
def assessment_id(assessment_engine, cs301):
    return assessment_engine.generate_assessment(LEARNER, cs301, 5).assessment_id


class TestStartAttempt:
    """Tests for opening attempts."""

    def test_start_returns_redacted_assessment(self, assessment_engine, assessment_id, clock):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)

        assert started.attempt_number == 1
        assert started.duration_minutes == 60
        assert started.start_time == clock.now()
        payload = started.to_dict()
        assert payload["attempt_id"] == str(started.attempt_id)
        assert "stats" not in payload["assessment"]
        for item in payload["assessment"]["questions"]:
            question = item["question"]
            assert "correct_answer" not in question
            assert all(set(opt) == {"id", "text"} for opt in question["options"])

    def test_second_start_returns_existing_attempt(self, assessment_engine, assessment_id):
        first = assessment_engine.start_attempt(LEARNER, assessment_id)

        with pytest.raises(DuplicateAttemptError) as exc_info:
            assessment_engine.start_attempt(LEARNER, assessment_id)

        assert exc_info.value.existing_attempt_id == first.attempt_id
        assert exc_info.value.data["id"] == str(first.attempt_id)
        assert exc_info.value.to_dict()["error"] == "duplicate_attempt"

    def test_concurrent_start_loses_to_unique_index(self, assessment_engine, assessment_id, monkeypatch):
        """A start that misses the existing attempt is stopped by the partial unique index."""
        first = assessment_engine.start_attempt(LEARNER, assessment_id)
        real_find = lifecycle._find_in_progress
        calls = []

        def stale_find(session, learner_id, assessment_id):
            calls.append(learner_id)
            if len(calls) == 1:
                return None
            return real_find(session, learner_id, assessment_id)

        monkeypatch.setattr(lifecycle, "_find_in_progress", stale_find)

        with pytest.raises(DuplicateAttemptError) as exc_info:
            assessment_engine.start_attempt(LEARNER, assessment_id)

        assert exc_info.value.existing_attempt_id == first.attempt_id
        assert len(calls) == 2

    def test_other_learners_start_independently(self, assessment_engine, assessment_id):
        mine = assessment_engine.start_attempt(LEARNER, assessment_id)
        theirs = assessment_engine.start_attempt("learner-2", assessment_id)

        assert mine.attempt_id != theirs.attempt_id
        assert theirs.attempt_number == 1

    def test_attempt_numbers_increase(self, assessment_engine, assessment_id):
        first = assessment_engine.start_attempt(LEARNER, assessment_id)
        assessment_engine.submit_attempt(first.attempt_id, LEARNER, [])

        second = assessment_engine.start_attempt(LEARNER, assessment_id)

        assert second.attempt_number == 2

    def test_outside_window_is_not_active(self, assessment_engine, assessment_id, clock):
        clock.advance(days=8)

        with pytest.raises(NotActiveError):
            assessment_engine.start_attempt(LEARNER, assessment_id)

    def test_draft_is_not_active(self, assessment_engine, assessment_id, session_factory):
        with session_scope(session_factory) as session:
            session.get(Assessment, assessment_id).status = "draft"

        with pytest.raises(NotActiveError):
            assessment_engine.start_attempt(LEARNER, assessment_id)

        assessment_engine.publish_assessment(assessment_id)
        assert assessment_engine.start_attempt(LEARNER, assessment_id).attempt_number == 1

    def test_unknown_assessment(self, assessment_engine):
        with pytest.raises(NotFoundError):
            assessment_engine.start_attempt(LEARNER, uuid4())


class TestAssessmentStatus:
    def test_publish_requires_draft(self, assessment_engine, assessment_id):
        with pytest.raises(InvalidStateError):
            assessment_engine.publish_assessment(assessment_id)

    def test_effective_status_follows_schedule(self, session_factory, assessment_id, clock):
        with session_scope(session_factory) as session:
            assessment = session.get(Assessment, assessment_id)
            now = clock.now()

            assert is_active(assessment, now)
            assert effective_status(assessment, now) == "ongoing"
            assert effective_status(assessment, assessment.end_at.replace(year=2030)) == "completed"
            assert effective_status(assessment, assessment.start_at.replace(year=2020)) == "published"


class TestClosingAttempts:
    """Tests for abandonment and time expiry."""

    def test_abandon(self, assessment_engine, assessment_id, clock):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)
        clock.advance(seconds=90)

        attempt = assessment_engine.abandon_attempt(started.attempt_id, LEARNER)

        assert attempt["status"] == "abandoned"
        assert attempt["time_taken_seconds"] == 90
        with pytest.raises(AlreadySubmittedError):
            assessment_engine.submit_attempt(started.attempt_id, LEARNER, [])
        with pytest.raises(InvalidStateError):
            assessment_engine.abandon_attempt(started.attempt_id, LEARNER)

    def test_abandon_requires_owner(self, assessment_engine, assessment_id):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)

        with pytest.raises(ForbiddenError):
            assessment_engine.abandon_attempt(started.attempt_id, "someone-else")

    def test_abandoned_attempt_frees_the_slot(self, assessment_engine, assessment_id):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)
        assessment_engine.abandon_attempt(started.attempt_id, LEARNER)

        assert assessment_engine.start_attempt(LEARNER, assessment_id).attempt_number == 2

    def test_expire_after_duration(self, assessment_engine, assessment_id, clock):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)
        clock.advance(minutes=60)
        assert assessment_engine.expire_attempt(started.attempt_id) is False

        clock.advance(seconds=1)
        assert assessment_engine.expire_attempt(started.attempt_id) is True
        assert assessment_engine.expire_attempt(started.attempt_id) is False

        with pytest.raises(AlreadySubmittedError):
            assessment_engine.submit_attempt(started.attempt_id, LEARNER, [])

    def test_expired_attempt_is_not_applied_to_context(self, assessment_engine, assessment_id, clock):
        started = assessment_engine.start_attempt(LEARNER, assessment_id)
        clock.advance(hours=2)
        assessment_engine.expire_attempt(started.attempt_id)

        with pytest.raises(InvalidStateError):
            assessment_engine.context_updater.apply(started.attempt_id)
        assert assessment_engine.get_context(LEARNER)["total_attempts"] == 0
