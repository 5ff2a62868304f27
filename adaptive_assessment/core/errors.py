"""
Domain exceptions for the assessment engine.

Every error carries the HTTP status the API layer reports and a short
``kind`` string used in error payloads.
"""

from __future__ import annotations

from typing import Any


class AssessmentEngineError(Exception):
    """Base class for all engine errors."""

    status_code: int = 500
    kind: str = "internal"

    def __init__(self, message: str, *, data: Any = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "error": self.kind}
        if self.data is not None:
            payload["data"] = self.data
        return payload


class NotFoundError(AssessmentEngineError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ForbiddenError(AssessmentEngineError):
    """Raised on ownership violations."""

    status_code = 403
    kind = "forbidden"


class InvalidStateError(AssessmentEngineError):
    """Raised when an operation is not allowed in the entity's current state."""

    status_code = 400
    kind = "invalid_state"


class NotActiveError(InvalidStateError):
    """The assessment is not published or outside its schedule window."""

    kind = "not_active"


class DuplicateAttemptError(InvalidStateError):
    """An in-progress attempt already exists for the learner and assessment."""

    kind = "duplicate_attempt"

    def __init__(self, message: str, *, existing_attempt_id: Any, data: Any = None):
        super().__init__(message, data=data)
        self.existing_attempt_id = existing_attempt_id


class AlreadySubmittedError(InvalidStateError):
    """The attempt is no longer in progress."""

    kind = "already_submitted"


class ValidationError(AssessmentEngineError):
    """Malformed input, e.g. a multiple-choice question without a correct option."""

    status_code = 422
    kind = "validation"


class UpstreamUnavailableError(AssessmentEngineError):
    """A collaborator (catalog or generation service) could not be reached."""

    status_code = 503
    kind = "upstream_unavailable"
