"""
Adaptive Generator.

Builds a personalised assessment from the learner's proficiency context and
the course question catalog:

1. Resolve topics (explicit focus topics, else every course topic)
2. Classify each topic weak / medium / strong from the proficiency context
3. Build a biased topic pool: weak topics twice, medium once, the first half
   (rounded up) of strong topics once
4. Pick a difficulty mix from the learner's preference
5. Per difficulty: over-fetch up to 2x, shuffle, take what is needed
6. Ask the generation service for any shortfall, outside a transaction
7. Shuffle the whole selection and persist a published assessment

A difficulty bucket with no matching questions contributes nothing; the
assessment simply comes out shorter than requested.
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy.orm import Session

from adaptive_assessment.adaptive.context_store import ProficiencyContextStore
from adaptive_assessment.catalog.generation_client import QuestionCandidate, QuestionGenerationClient
from adaptive_assessment.catalog.question_catalog import CourseCatalog, QuestionCatalog
from adaptive_assessment.core.clock import Clock, SystemClock
from adaptive_assessment.core.errors import UpstreamUnavailableError, ValidationError
from adaptive_assessment.core.thresholds import CONTEXT_THRESHOLDS, PASSING_RATIO, ContextThresholds
from adaptive_assessment.db.database import SessionFactory, session_scope
from adaptive_assessment.db.models import (
    DIFFICULTIES,
    Assessment,
    AssessmentQuestion,
    AssessmentStatus,
    AssessmentType,
    DifficultyPreference,
    Question,
    QuestionSource,
)

ADAPTIVE_DISTRIBUTION = {"easy": 30, "medium": 50, "hard": 20}
FIXED_DISTRIBUTION = {"easy": 30, "medium": 40, "hard": 30}
OVERFETCH_FACTOR = 2
ASSESSMENT_TYPES = tuple(t.value for t in AssessmentType)


# =============================================================================
# Planning (pure)
# =============================================================================


def classify_topic(score: int, thresholds: ContextThresholds = CONTEXT_THRESHOLDS) -> str:
    """weak below 60, strong from 80, medium in between."""
    if score < thresholds.weak_below:
        return "weak"
    if score >= thresholds.strong_at:
        return "strong"
    return "medium"


def build_topic_pool(classified: Sequence[tuple[str, str]]) -> list[str]:
    """
    Oversampled topic list used as the selection universe.

    Args:
        classified: (topic, band) pairs in resolved-topic order

    Returns:
        weak + weak + medium + first ceil(n/2) strong topics
    """
    weak = [topic for topic, band in classified if band == "weak"]
    medium = [topic for topic, band in classified if band == "medium"]
    strong = [topic for topic, band in classified if band == "strong"]
    return weak + weak + medium + strong[: math.ceil(len(strong) / 2)]


def difficulty_distribution(preference: str) -> dict[str, int]:
    """Percentages per difficulty for a learner preference."""
    if preference == DifficultyPreference.ADAPTIVE.value:
        return dict(ADAPTIVE_DISTRIBUTION)
    return dict(FIXED_DISTRIBUTION)


def difficulty_counts(total_questions: int, distribution: dict[str, int]) -> dict[str, int]:
    """
    Question count per difficulty: ceiling for easy and medium, floor for hard.

    The counts may add up to one more than requested; that excess is kept.
    """
    return {
        "easy": -(-total_questions * distribution["easy"] // 100),
        "medium": -(-total_questions * distribution["medium"] // 100),
        "hard": total_questions * distribution["hard"] // 100,
    }


def passing_marks_for(total_marks: int) -> int:
    return math.ceil(total_marks * PASSING_RATIO)


@dataclass(frozen=True)
class GenerationPlan:
    """Everything the generator decides before touching the catalog."""

    learner_id: str
    course_id: UUID
    topics: tuple[str, ...]
    topic_scores: dict[str, int]
    bands: dict[str, str]
    pool: tuple[str, ...]
    preference: str
    distribution: dict[str, int]
    counts: dict[str, int]

    @property
    def weak_topics(self) -> list[str]:
        return [t for t in self.topics if self.bands[t] == "weak"]

    @property
    def medium_topics(self) -> list[str]:
        return [t for t in self.topics if self.bands[t] == "medium"]

    @property
    def strong_topics(self) -> list[str]:
        return [t for t in self.topics if self.bands[t] == "strong"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "topics": list(self.topics),
            "topic_scores": dict(self.topic_scores),
            "weak_topics": self.weak_topics,
            "medium_topics": self.medium_topics,
            "strong_topics": self.strong_topics,
            "topic_pool": list(self.pool),
            "difficulty_preference": self.preference,
            "difficulty_distribution": dict(self.distribution),
            "difficulty_counts": dict(self.counts),
        }


@dataclass
class GenerationResult:
    assessment_id: UUID
    plan: GenerationPlan
    assessment: dict[str, Any]
    selected_by_difficulty: dict[str, int] = field(default_factory=dict)
    generated_question_ids: list[UUID] = field(default_factory=list)

    @property
    def question_count(self) -> int:
        return sum(self.selected_by_difficulty.values())

    @property
    def shortfall(self) -> int:
        return max(0, sum(self.plan.counts.values()) - self.question_count)


# =============================================================================
# Generator
# =============================================================================


class AdaptiveGenerator:
    """
    Generates adaptive assessments.

    Randomness and time are injected so selection is reproducible in tests.
    The generation client is optional; without it the catalog is the only
    question source.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        generation_client: QuestionGenerationClient | None = None,
        schedule_days: int = 7,
        default_duration_minutes: int = 60,
    ):
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.rng = rng or random.Random()
        self.generation_client = generation_client
        self.schedule_days = schedule_days
        self.default_duration_minutes = default_duration_minutes

    def plan(
        self,
        session: Session,
        learner_id: str,
        course_id: UUID,
        total_questions: int,
        focus_topics: Sequence[str] | None = None,
    ) -> GenerationPlan:
        """Resolve topics, bias pool and difficulty counts for one request."""
        course = CourseCatalog(session).get(course_id)
        context = ProficiencyContextStore(session).get_or_create(learner_id)

        requested = [t.strip() for t in (focus_topics or []) if t and t.strip()]
        topics = tuple(dict.fromkeys(requested or list(course.topics or [])))

        scores = {
            topic: context.get_topic_score(topic, default=CONTEXT_THRESHOLDS.default_score)
            for topic in topics
        }
        bands = {topic: classify_topic(score) for topic, score in scores.items()}
        pool = build_topic_pool([(topic, bands[topic]) for topic in topics])
        distribution = difficulty_distribution(context.difficulty_preference)

        return GenerationPlan(
            learner_id=learner_id,
            course_id=course.id,
            topics=topics,
            topic_scores=scores,
            bands=bands,
            pool=tuple(pool),
            preference=context.difficulty_preference,
            distribution=distribution,
            counts=difficulty_counts(total_questions, distribution),
        )

    def generate(
        self,
        learner_id: str,
        course_id: UUID,
        total_questions: int,
        assessment_type: str = AssessmentType.PRACTICE.value,
        focus_topics: Sequence[str] | None = None,
        duration_minutes: int | None = None,
        title: str | None = None,
    ) -> GenerationResult:
        """
        Generate and persist an adaptive assessment.

        Raises:
            NotFoundError: Unknown course
            ValidationError: Non-positive question count or unknown type
        """
        if total_questions <= 0:
            raise ValidationError("total_questions must be positive")
        if assessment_type not in ASSESSMENT_TYPES:
            raise ValidationError(f"Unknown assessment type: {assessment_type}")
        duration = duration_minutes or self.default_duration_minutes
        if duration <= 0:
            raise ValidationError("duration_minutes must be positive")

        with session_scope(self.session_factory) as session:
            plan = self.plan(session, learner_id, course_id, total_questions, focus_topics)
            catalog = QuestionCatalog(session)
            chosen_ids: set[UUID] = set()
            picked_ids: dict[str, list[UUID]] = {}
            for difficulty in DIFFICULTIES:
                picked = self._select_bucket(catalog, plan, difficulty, plan.counts[difficulty], chosen_ids)
                chosen_ids.update(q.id for q in picked)
                picked_ids[difficulty] = [q.id for q in picked]

        # No transaction is open while the generation service is called
        requested = {
            difficulty: self._request_candidates(
                plan, difficulty, plan.counts[difficulty] - len(picked_ids[difficulty])
            )
            for difficulty in DIFFICULTIES
        }

        with session_scope(self.session_factory) as session:
            course = CourseCatalog(session).get(plan.course_id)
            catalog = QuestionCatalog(session)
            loaded = catalog.get_many(chosen_ids)

            selected: list[Question] = []
            by_difficulty: dict[str, int] = {}
            generated_ids: list[UUID] = []

            for difficulty in DIFFICULTIES:
                count = plan.counts[difficulty]
                picked = [loaded[qid] for qid in picked_ids[difficulty] if qid in loaded]
                topic, candidates = requested[difficulty]
                extra = self._store_candidates(catalog, plan, topic, difficulty, candidates)
                generated_ids.extend(q.id for q in extra)
                picked.extend(extra)
                if count and not picked:
                    logger.warning(
                        f"No {difficulty} questions available for course {course.code} "
                        f"(pool={list(plan.pool)}); bucket contributes 0 of {count}"
                    )
                elif len(picked) < count:
                    logger.warning(
                        f"Only {len(picked)}/{count} {difficulty} questions available for course {course.code}"
                    )
                by_difficulty[difficulty] = len(picked)
                selected.extend(picked)

            # Remove difficulty-block ordering
            self.rng.shuffle(selected)

            assessment = self._build_assessment(
                plan, course.title, selected, assessment_type, duration, title
            )
            session.add(assessment)
            session.flush()

            logger.info(
                f"Generated adaptive assessment {assessment.id} for learner {learner_id}: "
                f"{len(selected)} questions {by_difficulty}, weak={plan.weak_topics}"
            )
            return GenerationResult(
                assessment_id=assessment.id,
                plan=plan,
                assessment=assessment.to_dict(),
                selected_by_difficulty=by_difficulty,
                generated_question_ids=generated_ids,
            )

    # ========================================
    # Selection helpers
    # ========================================

    def _select_bucket(
        self,
        catalog: QuestionCatalog,
        plan: GenerationPlan,
        difficulty: str,
        count: int,
        chosen_ids: set[UUID],
    ) -> list[Question]:
        if count <= 0 or not plan.pool:
            return []
        candidates = catalog.find(
            plan.course_id,
            topics=plan.pool,
            difficulty=difficulty,
            limit=count * OVERFETCH_FACTOR,
            exclude_ids=chosen_ids,
        )
        self.rng.shuffle(candidates)

        picked: list[Question] = []
        seen: set[UUID] = set()
        for question in candidates:
            if question.id in seen:
                continue
            seen.add(question.id)
            picked.append(question)
            if len(picked) == count:
                break
        return picked

    def _request_candidates(
        self,
        plan: GenerationPlan,
        difficulty: str,
        missing: int,
    ) -> tuple[str | None, list[QuestionCandidate]]:
        """Ask the external generator for the shortfall; any failure yields nothing."""
        if self.generation_client is None or missing <= 0 or not plan.pool:
            return None, []

        # Weakest pooled topic first
        topic = min(plan.pool, key=lambda t: (plan.topic_scores.get(t, 50), plan.pool.index(t)))
        try:
            candidates = self.generation_client.generate_candidates(topic, difficulty, missing)
        except UpstreamUnavailableError as exc:
            logger.warning(f"Question generation failed for {topic}/{difficulty}, using catalog only: {exc}")
            return topic, []
        if not candidates:
            logger.warning(f"Question generator returned nothing usable for {topic}/{difficulty}")
        return topic, candidates[:missing]

    def _store_candidates(
        self,
        catalog: QuestionCatalog,
        plan: GenerationPlan,
        topic: str | None,
        difficulty: str,
        candidates: Sequence[QuestionCandidate],
    ) -> list[Question]:
        added: list[Question] = []
        for candidate in candidates:
            try:
                added.append(
                    catalog.add_question(
                        course_id=plan.course_id,
                        topic=topic,
                        difficulty=difficulty,
                        question_type=candidate.question_type,
                        text=candidate.text,
                        options=[opt.model_dump() for opt in candidate.options],
                        correct_answer=candidate.correct_answer,
                        explanation=candidate.explanation,
                        source=QuestionSource.GENERATED.value,
                    )
                )
            except ValidationError as exc:
                logger.debug(f"Skipping generated candidate: {exc}")
        return added

    def _build_assessment(
        self,
        plan: GenerationPlan,
        course_title: str,
        selected: Sequence[Question],
        assessment_type: str,
        duration_minutes: int,
        title: str | None,
    ) -> Assessment:
        now = self.clock.now()
        total_marks = len(selected)
        is_practice = assessment_type == AssessmentType.PRACTICE.value

        assessment = Assessment(
            course_id=plan.course_id,
            title=title or f"{assessment_type.capitalize()} Test - {course_title}",
            assessment_type=assessment_type,
            status=AssessmentStatus.PUBLISHED.value,
            duration_minutes=duration_minutes,
            total_marks=total_marks,
            passing_marks=passing_marks_for(total_marks),
            show_results_immediately=is_practice,
            show_correct_answers=is_practice,
            randomize_questions=False,
            randomize_options=True,
            start_at=now,
            end_at=now + timedelta(days=self.schedule_days),
            is_adaptive=True,
            target_learner_id=plan.learner_id,
            focus_topics=list(plan.topics),
            difficulty_distribution=dict(plan.distribution),
        )
        assessment.questions = [
            AssessmentQuestion(question_id=question.id, question=question, marks=1, order=index)
            for index, question in enumerate(selected, start=1)
        ]
        return assessment
