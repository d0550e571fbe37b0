"""FastAPI application exposing question generation over HTTP."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from quizforge.config import Settings, load_settings
from quizforge.models import DIFFICULTIES, GenerationRequest
from quizforge.question_generator import QuestionGenerator

app = FastAPI(title="Quizforge")

MIN_CONTENT_CHARS = 100
MAX_CONTENT_CHARS = 50000
MAX_QUESTIONS = 50

# Global state (initialized at startup)
_settings: Settings | None = None
_generator: QuestionGenerator | None = None

_log = logging.getLogger("quizforge.api")


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_generator() -> QuestionGenerator:
    assert _generator is not None
    return _generator


@app.on_event("startup")
async def startup():
    global _settings, _generator
    if _generator is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _generator = QuestionGenerator(_settings)


def _parse_request(body: dict) -> GenerationRequest:
    content = body.get("content")
    if not isinstance(content, str) or not content.strip():
        raise HTTPException(400, "Content is required")
    if len(content) < MIN_CONTENT_CHARS:
        raise HTTPException(400, f"Content must be at least {MIN_CONTENT_CHARS} characters")
    if len(content) > MAX_CONTENT_CHARS:
        raise HTTPException(400, f"Content must be at most {MAX_CONTENT_CHARS} characters")

    difficulty = body.get("difficulty", ["medium"])
    if isinstance(difficulty, str):
        difficulty = [difficulty]
    if not isinstance(difficulty, list) or not difficulty:
        raise HTTPException(400, "difficulty must be a non-empty list")
    invalid = [d for d in difficulty if d not in DIFFICULTIES]
    if invalid:
        raise HTTPException(400, f"Invalid difficulty: {', '.join(map(str, invalid))}")

    count = body.get("maxQuestions", 10)
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise HTTPException(400, "maxQuestions must be a positive integer")
    if count > MAX_QUESTIONS:
        raise HTTPException(400, f"maxQuestions must be at most {MAX_QUESTIONS}")

    topics = body.get("topics")
    if topics is not None and (
        not isinstance(topics, list) or not all(isinstance(t, str) for t in topics)
    ):
        raise HTTPException(400, "topics must be a list of strings")

    return GenerationRequest(
        content=content,
        difficulty_mix=difficulty,
        target_count=count,
        topics=topics or None,
    )


# ── API: Generation ───────────────────────────────────────────────────────

@app.post("/api/generate-questions")
async def api_generate_questions(request: Request):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")

    gen_request = _parse_request(body)
    _log.info("Generate request: %d chars, %d questions", len(gen_request.content), gen_request.target_count)
    result = await get_generator().generate(gen_request)
    if not result.success:
        return JSONResponse(status_code=422, content=result.to_dict())
    return result.to_dict()


# ── API: Status ───────────────────────────────────────────────────────────

@app.get("/api/models/status")
async def api_models_status():
    generator = get_generator()
    providers = await generator.orchestrator.status()
    return {
        "providers": providers,
        "available": sum(1 for p in providers if p["available"]),
        "total": len(providers),
    }


@app.get("/api/health")
async def api_health():
    return {
        "status": "ok",
        "providers": get_generator().registry.names(),
    }
