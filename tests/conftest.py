"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every database fixture runs against a fresh in-memory SQLite engine.
"""
import os
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path
from uuid import UUID

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Keep the module-level engine off the developer's database
os.environ.setdefault("DATABASE_URL", "sqlite://")

from adaptive_assessment.adaptive.context_store import ProficiencyContextStore  # noqa: E402
from adaptive_assessment.db.database import (  # noqa: E402
    build_engine,
    build_session_factory,
    session_scope,
)
from adaptive_assessment.db.models import Base  # noqa: E402
from adaptive_assessment.engine import AssessmentEngine  # noqa: E402
from config import Settings  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite engine)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FixedClock:
    """Clock that only moves when a test says so."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def db_engine():
    """Fresh in-memory database with all tables."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 9, 0, 0))


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def assessment_engine(session_factory, clock, rng):
    """Engine wired to the test database, clock and random source."""
    return AssessmentEngine(
        session_factory=session_factory,
        clock=clock,
        rng=rng,
        settings=Settings(generation_enabled=False),
    )


@pytest.fixture
def add_choice_question(assessment_engine):
    """
    Add a multiple-choice question whose correct option id is ``"a"``.

    Returns a callable ``(course_id, topic, difficulty, text=None) -> question dict``.
    """
    counter = {"n": 0}

    def _add(course_id, topic, difficulty, text=None):
        counter["n"] += 1
        return assessment_engine.add_question(
            course_id=UUID(str(course_id)),
            topic=topic,
            difficulty=difficulty,
            question_type="multiple-choice",
            text=text or f"{topic} {difficulty} question {counter['n']}",
            options=[
                {"id": "a", "text": "Right", "is_correct": True},
                {"id": "b", "text": "Wrong", "is_correct": False},
                {"id": "c", "text": "Also wrong", "is_correct": False},
            ],
        )

    return _add


@pytest.fixture
def set_topic_scores(session_factory):
    """Seed a learner's proficiency context with explicit topic scores."""

    def _set(learner_id, scores, **fields):
        with session_scope(session_factory) as session:
            context = ProficiencyContextStore(session).get_or_create(learner_id)
            context.topic_scores = dict(scores)
            for key, value in fields.items():
                setattr(context, key, value)

    return _set


@pytest.fixture
def cs301(assessment_engine, add_choice_question):
    """
    Course CS301 with 2 easy, 2 medium and 1 hard question on Arrays and none on Trees.

    Returns the course id.
    """
    course = assessment_engine.add_course("CS301", "Data Structures", ["Arrays", "Trees"])
    for difficulty, count in (("easy", 2), ("medium", 2), ("hard", 1)):
        for _ in range(count):
            add_choice_question(course["id"], "Arrays", difficulty)
    return UUID(course["id"])


@pytest.fixture
def ten_question_course(assessment_engine, add_choice_question):
    """
    Course with exactly the 3 easy / 5 medium / 2 hard questions a ten
    question adaptive assessment asks for.
    """
    course = assessment_engine.add_course("CS101", "Intro to Programming", ["Loops"])
    for difficulty, count in (("easy", 3), ("medium", 5), ("hard", 2)):
        for _ in range(count):
            add_choice_question(course["id"], "Loops", difficulty)
    return UUID(course["id"])
