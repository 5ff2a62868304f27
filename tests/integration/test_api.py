"""
API Tests for the adaptive assessment service.

Runs the FastAPI app in-process with TestClient; the engine dependency is
overridden with one bound to the test database.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from adaptive_assessment.api.dependencies import get_assessment_engine
from adaptive_assessment.api.main import app

pytestmark = pytest.mark.integration

LEARNER_HEADERS = {"X-Learner-Id": "learner-1"}


@pytest.fixture
def client(assessment_engine):
    app.dependency_overrides[get_assessment_engine] = lambda: assessment_engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def generated(client, cs301):
    response = client.post(
        "/api/assessments/generate",
        json={"learner_id": "learner-1", "course_id": str(cs301), "total_questions": 5, "type": "quiz"},
    )
    assert response.status_code == 201
    return response.json()


def submit_all_correct(client, started):
    answers = [{"question_id": item["question_id"], "value": "a"} for item in started["assessment"]["questions"]]
    return client.post(
        f"/api/attempts/{started['attempt_id']}/submit", json={"answers": answers}, headers=LEARNER_HEADERS
    )


class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "adaptive-assessment"

    def test_health_reports_database(self, client):
        data = client.get("/health").json()

        assert data["components"]["database"] == "ok"
        assert data["status"] == "healthy"


class TestCatalogEndpoints:
    def test_add_course_and_question(self, client):
        course = client.post(
            "/api/catalog/courses", json={"code": "CS202", "title": "Algorithms", "topics": ["Sorting"]}
        )
        assert course.status_code == 201
        assert course.json()["topics"] == ["Sorting"]

        question = client.post(
            "/api/catalog/questions",
            json={
                "course_id": course.json()["id"],
                "topic": "Sorting",
                "difficulty": "medium",
                "question_type": "true-false",
                "text": "Merge sort is stable.",
                "correct_answer": "true",
            },
        )
        assert question.status_code == 201
        assert question.json()["correct_answer"] == "true"

    def test_duplicate_course_is_rejected(self, client, cs301):
        response = client.post("/api/catalog/courses", json={"code": "CS301", "title": "Again"})

        assert response.status_code == 422
        assert response.json()["error"] == "validation"

    def test_choice_question_without_correct_option(self, client, cs301):
        response = client.post(
            "/api/catalog/questions",
            json={
                "course_id": str(cs301),
                "topic": "Arrays",
                "difficulty": "easy",
                "question_type": "multiple-choice",
                "text": "Pick one",
                "options": [{"text": "x"}, {"text": "y"}],
            },
        )

        assert response.status_code == 422
        assert "correct option" in response.json()["detail"]

    def test_unknown_difficulty_fails_request_validation(self, client, cs301):
        response = client.post(
            "/api/catalog/questions",
            json={
                "course_id": str(cs301),
                "topic": "Arrays",
                "difficulty": "brutal",
                "question_type": "essay",
                "text": "Explain",
                "correct_answer": "x",
            },
        )

        assert response.status_code == 422


class TestAssessmentEndpoints:
    """Generate, start and analytics."""

    def test_generate(self, generated):
        assert generated["title"] == "Quiz Test - Data Structures"
        assert generated["type"] == "quiz"
        assert generated["config"]["total_marks"] == 5
        assert generated["generation"]["plan"]["difficulty_counts"] == {"easy": 2, "medium": 3, "hard": 1}
        assert generated["generation"]["shortfall"] == 1

    def test_generate_rejects_bad_input(self, client, cs301):
        response = client.post(
            "/api/assessments/generate",
            json={"learner_id": "learner-1", "course_id": str(cs301), "total_questions": 0},
        )

        assert response.status_code == 422

    def test_generate_for_unknown_course(self, client):
        response = client.post(
            "/api/assessments/generate",
            json={"learner_id": "learner-1", "course_id": str(uuid4()), "total_questions": 5},
        )

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_start_requires_learner_header(self, client, generated):
        response = client.post(f"/api/assessments/{generated['id']}/start")

        assert response.status_code == 422

    def test_start_twice_returns_existing_attempt(self, client, generated):
        first = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS)
        second = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS)

        assert first.status_code == 200
        assert second.status_code == 400
        body = second.json()
        assert body["error"] == "duplicate_attempt"
        assert body["data"]["id"] == first.json()["attempt_id"]

    def test_publish_published_assessment(self, client, generated):
        response = client.post(f"/api/assessments/{generated['id']}/publish")

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"

    def test_analytics(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()
        submit_all_correct(client, started)

        analytics = client.get(f"/api/assessments/{generated['id']}/analytics").json()

        assert analytics["overall"]["total_attempts"] == 1
        assert analytics["overall"]["average_score"] == 100


class TestAttemptEndpoints:
    """Submit, abandon and report."""

    def test_submit_then_replay(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()

        response = submit_all_correct(client, started)
        replay = submit_all_correct(client, started)

        assert response.status_code == 200
        body = response.json()
        assert body["score"]["percentage"] == 100
        assert body["context_applied"] is True
        assert body["context_changes"]["topics_improved"] == [{"topic": "Arrays", "improvement": 15}]
        assert replay.status_code == 400
        assert replay.json()["error"] == "already_submitted"

    def test_submit_as_other_learner(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()

        response = client.post(
            f"/api/attempts/{started['attempt_id']}/submit",
            json={"answers": []},
            headers={"X-Learner-Id": "intruder"},
        )

        assert response.status_code == 403

    def test_abandon(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()

        response = client.post(f"/api/attempts/{started['attempt_id']}/abandon", headers=LEARNER_HEADERS)

        assert response.status_code == 200
        assert response.json()["status"] == "abandoned"

    def test_report(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()
        in_progress = client.get(f"/api/attempts/{started['attempt_id']}/report")
        submit_all_correct(client, started)

        report = client.get(f"/api/attempts/{started['attempt_id']}/report", headers=LEARNER_HEADERS)
        forbidden = client.get(f"/api/attempts/{started['attempt_id']}/report", headers={"X-Learner-Id": "x"})

        assert in_progress.status_code == 400
        assert report.status_code == 200
        assert report.json()["score_info"]["grade"] == "A+"
        assert forbidden.status_code == 403


class TestLearnerEndpoints:
    def test_context_and_preference(self, client):
        assert client.get("/api/learners/learner-9/context").json()["total_attempts"] == 0

        response = client.put("/api/learners/learner-9/context/preference", json={"difficulty_preference": "easy"})

        assert response.status_code == 200
        assert response.json()["difficulty_preference"] == "easy"

    def test_invalid_preference(self, client):
        response = client.put("/api/learners/learner-9/context/preference", json={"difficulty_preference": "max"})

        assert response.status_code == 422

    def test_insights(self, client, generated):
        started = client.post(f"/api/assessments/{generated['id']}/start", headers=LEARNER_HEADERS).json()
        submit_all_correct(client, started)

        insights = client.get("/api/learners/learner-1/insights").json()

        assert insights["learner_id"] == "learner-1"
        assert insights["mastery_level"]["level"] == "intermediate"
        assert "learning_style" in insights

    def test_course_trend(self, client, cs301):
        response = client.get(f"/api/catalog/courses/{cs301}/trend")

        assert response.status_code == 200
        assert response.json() == {"months": [], "trend": "stable"}
