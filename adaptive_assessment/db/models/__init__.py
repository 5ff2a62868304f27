# SQLAlchemy models
from .assessment import Assessment, AssessmentQuestion
from .attempt import Attempt, AttemptAnswer
from .base import Base
from .context import ProficiencyContext
from .course import Course
from .enums import (
    DIFFICULTIES,
    AssessmentStatus,
    AssessmentType,
    AttemptStatus,
    Difficulty,
    DifficultyPreference,
    QuestionSource,
    QuestionType,
)
from .question import Question

__all__ = [
    # Base
    "Base",
    # Catalog
    "Course",
    "Question",
    # Assessments
    "Assessment",
    "AssessmentQuestion",
    "Attempt",
    "AttemptAnswer",
    # Learner profile
    "ProficiencyContext",
    # Enums
    "DIFFICULTIES",
    "AssessmentStatus",
    "AssessmentType",
    "AttemptStatus",
    "Difficulty",
    "DifficultyPreference",
    "QuestionSource",
    "QuestionType",
]
