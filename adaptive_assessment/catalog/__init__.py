"""
Question catalog and the external question-generation collaborator.
"""
from adaptive_assessment.catalog.generation_client import QuestionCandidate, QuestionGenerationClient
from adaptive_assessment.catalog.question_catalog import (
    CourseCatalog,
    QuestionCatalog,
    QuestionUsage,
    record_question_usage,
)

__all__ = [
    "CourseCatalog",
    "QuestionCatalog",
    "QuestionUsage",
    "record_question_usage",
    "QuestionCandidate",
    "QuestionGenerationClient",
]
