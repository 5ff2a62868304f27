"""
Question generation client.

Talks to an Ollama-compatible text generation service and turns its output
into structured question candidates. The service is treated as fallible:
every transport, status or parsing problem surfaces as
UpstreamUnavailableError so callers can fall back to the catalog.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from adaptive_assessment.core.errors import UpstreamUnavailableError
from adaptive_assessment.db.models import QuestionType

DIFFICULTY_GUIDE = {
    "easy": "basic concepts and definitions",
    "medium": "practical applications and problem-solving",
    "hard": "complex scenarios, edge cases, and advanced concepts",
}


class CandidateOption(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool = False


class QuestionCandidate(BaseModel):
    """A generated question, validated before it may enter the catalog."""

    text: str = Field(..., min_length=1)
    question_type: str = QuestionType.MULTIPLE_CHOICE.value
    options: list[CandidateOption] = Field(default_factory=list)
    correct_answer: str | None = None
    explanation: str | None = None

    @model_validator(mode="after")
    def _check_answer_key(self) -> QuestionCandidate:
        if self.question_type == QuestionType.MULTIPLE_CHOICE.value:
            if len(self.options) < 2:
                raise ValueError("multiple-choice candidate needs at least two options")
            if not any(opt.is_correct for opt in self.options):
                raise ValueError("multiple-choice candidate needs a correct option")
        elif not (self.correct_answer and self.correct_answer.strip()):
            raise ValueError(f"{self.question_type} candidate needs a correct answer")
        return self


class QuestionGenerationClient:
    """HTTP client for the external question generator."""

    def __init__(
        self,
        base_url: str,
        model: str = "llama2",
        timeout_seconds: float = 60.0,
        retry_attempts: int = 2,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the generation client.

        Args:
            base_url: Base URL of the generation service
            model: Model name sent with every request
            timeout_seconds: Request timeout
            retry_attempts: Attempts per request before giving up
            client: Preconfigured httpx client (tests pass a MockTransport)
            sleep: Backoff sleep function
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.retry_attempts = max(1, retry_attempts)
        self._sleep = sleep
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def close(self) -> None:
        self.client.close()

    def is_available(self) -> bool:
        try:
            response = self.client.get(f"{self.base_url}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def generate_candidates(
        self,
        topic: str,
        difficulty: str,
        count: int,
        question_type: str = QuestionType.MULTIPLE_CHOICE.value,
        context: str = "",
    ) -> list[QuestionCandidate]:
        """
        Ask the service for ``count`` questions on a topic.

        Invalid individual candidates are dropped; the result may be shorter
        than requested or empty.

        Raises:
            UpstreamUnavailableError: Service unreachable, erroring, or
                returning output that is not the expected JSON document.
        """
        if count <= 0:
            return []

        payload = {
            "model": self.model,
            "prompt": build_prompt(topic, difficulty, count, question_type, context),
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.7, "num_predict": 2000},
        }
        data = self._post("/api/generate", payload)
        raw = data.get("response")
        if not isinstance(raw, str):
            raise UpstreamUnavailableError("Generation service returned no response text")

        candidates = parse_candidates(raw, question_type)
        logger.info(
            f"Generated {len(candidates)}/{count} {difficulty} candidates for topic '{topic}'"
        )
        return candidates[:count]

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = self.client.post(f"{self.base_url}{path}", json=payload)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise UpstreamUnavailableError(
                        f"Generation service returned {type(data).__name__}, expected a JSON object"
                    )
                return data

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    # Don't retry on 4xx client errors
                    break
                logger.warning(
                    f"Generation server error {e.response.status_code} on attempt "
                    f"{attempt + 1}/{self.retry_attempts}"
                )
            except (httpx.RequestError, ValueError) as e:
                last_error = e
                logger.warning(
                    f"Generation request failed on attempt {attempt + 1}/{self.retry_attempts}: {e}"
                )

            if attempt < self.retry_attempts - 1:
                self._sleep(2**attempt)

        raise UpstreamUnavailableError(f"Question generation unavailable: {last_error}")


def build_prompt(
    topic: str,
    difficulty: str,
    count: int,
    question_type: str,
    context: str = "",
) -> str:
    """Prompt asking for a JSON document of questions."""
    guide = DIFFICULTY_GUIDE.get(difficulty, DIFFICULTY_GUIDE["medium"])
    lines = [
        "You are an expert educator creating assessment questions.",
        "",
        f"Topic: {topic}",
        f"Difficulty Level: {difficulty} ({guide})",
        f"Question Type: {question_type}",
        f"Number of Questions: {count}",
    ]
    if context:
        lines.append(f"Additional Context: {context}")
    lines += [
        "",
        'Respond with a JSON object of the form {"questions": [...]} where each question has:',
        '  "text": the question,',
    ]
    if question_type == QuestionType.MULTIPLE_CHOICE.value:
        lines.append('  "options": four objects {"text": ..., "is_correct": true|false}, exactly one correct,')
    else:
        lines.append('  "correct_answer": the expected answer as a short string,')
    lines.append('  "explanation": why the answer is correct.')
    return "\n".join(lines)


def parse_candidates(raw: str, question_type: str) -> list[QuestionCandidate]:
    """Parse the service's JSON text into validated candidates."""
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise UpstreamUnavailableError(f"Generation output is not JSON: {exc}") from exc

    items = document.get("questions") if isinstance(document, dict) else document
    if not isinstance(items, list):
        raise UpstreamUnavailableError("Generation output has no question list")

    candidates = []
    for item in items:
        if not isinstance(item, dict):
            continue
        item.setdefault("question_type", question_type)
        try:
            candidates.append(QuestionCandidate.model_validate(item))
        except PydanticValidationError as exc:
            logger.debug(f"Dropping invalid generated question: {exc.errors()[0]['msg']}")
    return candidates
