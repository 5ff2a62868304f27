"""API routers for adaptive-assessment."""

from adaptive_assessment.api.routers import (
    assessment_router,
    attempt_router,
    catalog_router,
    learner_router,
)

__all__ = [
    "assessment_router",
    "attempt_router",
    "catalog_router",
    "learner_router",
]
