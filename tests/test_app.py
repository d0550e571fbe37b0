"""Tests for the FastAPI application routes."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import ARTICLE, make_descriptor
from quizforge import app as app_module
from quizforge.app import app
from quizforge.config import LOCAL_PROVIDER_NAME, Settings
from quizforge.orchestrator import ProviderRegistry, RegistryEntry
from quizforge.providers.base import LLMProvider
from quizforge.providers.llm_local import LocalTemplateProvider
from quizforge.question_generator import QuestionGenerator


class OfflineLLM(LLMProvider):
    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        raise AssertionError("unavailable providers are never called")

    async def is_available(self) -> bool:
        return False

    def name(self) -> str:
        return "fake/offline"


@pytest.fixture
def client():
    settings = Settings(retry_backoff_seconds=0.0)
    registry = ProviderRegistry([
        RegistryEntry(make_descriptor("offline", 1), OfflineLLM()),
        RegistryEntry(make_descriptor(LOCAL_PROVIDER_NAME, 1000, kind="local"), LocalTemplateProvider()),
    ])

    # Set globals BEFORE creating TestClient so startup() is a no-op
    app_module._settings = settings
    app_module._generator = QuestionGenerator(settings, registry=registry)

    client = TestClient(app, raise_server_exceptions=False)
    yield client
    client.close()

    app_module._settings = None
    app_module._generator = None


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "providers": ["offline", LOCAL_PROVIDER_NAME]}

    def test_models_status(self, client):
        resp = client.get("/api/models/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert data["available"] == 1
        assert [p["name"] for p in data["providers"]] == ["offline", LOCAL_PROVIDER_NAME]
        assert data["providers"][0]["available"] is False


class TestGenerate:
    def test_generate(self, client):
        resp = client.post("/api/generate-questions", json={
            "content": ARTICLE,
            "difficulty": ["easy", "hard"],
            "maxQuestions": 5,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["error"] is None
        assert len(data["questions"]) == 5
        for q in data["questions"]:
            assert len(q["options"]) == 4
            assert sum(o["is_correct"] for o in q["options"]) == 1
            assert q["difficulty"] in ("easy", "hard")
        assert data["metadata"]["total_questions"] == 5
        assert data["metadata"]["providers_used"] == [LOCAL_PROVIDER_NAME]

    def test_defaults(self, client):
        resp = client.post("/api/generate-questions", json={"content": ARTICLE})
        assert resp.status_code == 200
        questions = resp.json()["questions"]
        assert len(questions) == 10
        assert {q["difficulty"] for q in questions} == {"medium"}

    def test_single_difficulty_string(self, client):
        resp = client.post("/api/generate-questions", json={
            "content": ARTICLE, "difficulty": "hard", "maxQuestions": 2,
        })
        assert resp.status_code == 200
        assert {q["difficulty"] for q in resp.json()["questions"]} == {"hard"}

    def test_content_empty_after_cleanup(self, client):
        resp = client.post("/api/generate-questions", json={"content": "1\n" * 60})
        assert resp.status_code == 422
        data = resp.json()
        assert data["success"] is False
        assert "too short" in data["error"]
        assert data["questions"] == []


class TestValidation:
    @pytest.mark.parametrize("body, message", [
        ({}, "Content is required"),
        ({"content": "   "}, "Content is required"),
        ({"content": 42}, "Content is required"),
        ({"content": "too short"}, "at least 100"),
        ({"content": "x" * 50001}, "at most 50000"),
        ({"content": ARTICLE, "difficulty": []}, "non-empty list"),
        ({"content": ARTICLE, "difficulty": ["extreme"]}, "Invalid difficulty: extreme"),
        ({"content": ARTICLE, "maxQuestions": 0}, "positive integer"),
        ({"content": ARTICLE, "maxQuestions": "5"}, "positive integer"),
        ({"content": ARTICLE, "maxQuestions": True}, "positive integer"),
        ({"content": ARTICLE, "maxQuestions": 51}, "at most 50"),
        ({"content": ARTICLE, "topics": "Calvin cycle"}, "topics must be a list"),
        ({"content": ARTICLE, "topics": [1, 2]}, "topics must be a list"),
    ])
    def test_bad_requests(self, client, body, message):
        resp = client.post("/api/generate-questions", json=body)
        assert resp.status_code == 400
        assert message in resp.json()["detail"]

    def test_non_json_body(self, client):
        resp = client.post(
            "/api/generate-questions",
            content=b"not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_non_object_body(self, client):
        resp = client.post("/api/generate-questions", json=[ARTICLE])
        assert resp.status_code == 400
