"""String enums persisted as plain text columns."""

from __future__ import annotations

from enum import Enum


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DIFFICULTIES: tuple[str, ...] = tuple(d.value for d in Difficulty)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    CODING = "coding"
    ESSAY = "essay"


class DifficultyPreference(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    ADAPTIVE = "adaptive"


class AssessmentType(str, Enum):
    PRACTICE = "practice"
    QUIZ = "quiz"
    MIDTERM = "midterm"
    FINAL = "final"
    PLACEMENT = "placement"
    CUSTOM = "custom"


class AssessmentStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
    TIME_EXPIRED = "time-expired"


class QuestionSource(str, Enum):
    CATALOG = "catalog"
    GENERATED = "generated"
