"""
FastAPI application for the adaptive assessment service.

Provides REST API for:
- Adaptive assessment generation
- Attempt start, submission and abandonment
- Performance reports and assessment analytics
- Learner insights and proficiency contexts
- Catalog seeding
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from adaptive_assessment import __version__
from adaptive_assessment.core.errors import AssessmentEngineError
from adaptive_assessment.core.log_config import configure_logging
from adaptive_assessment.db.database import check_database_health, init_db
from config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging()
    logger.info("Starting adaptive-assessment service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down adaptive-assessment service...")


app = FastAPI(
    title="Adaptive Assessment",
    description="""
    Closed-loop adaptive assessment engine.

    ## Data Flow

    ```
    Proficiency Context + Question Catalog
        ↓ generate
    Assessment
        ↓ start / submit
    Attempt (graded)
        ↓ aggregate
    Performance
        ↓ context update
    Proficiency Context (next generation)
    ```
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AssessmentEngineError)
async def engine_error_handler(request: Request, exc: AssessmentEngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "adaptive-assessment",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = check_database_health()

    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "components": {
            "database": db_status,
            "generation": "configured" if settings.has_generation_configured() else "not_configured",
        },
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from adaptive_assessment.api.routers import (  # noqa: E402
    assessment_router,
    attempt_router,
    catalog_router,
    learner_router,
)

app.include_router(assessment_router.router, prefix="/api/assessments", tags=["Assessments"])
app.include_router(attempt_router.router, prefix="/api/attempts", tags=["Attempts"])
app.include_router(learner_router.router, prefix="/api/learners", tags=["Learners"])
app.include_router(catalog_router.router, prefix="/api/catalog", tags=["Catalog"])
