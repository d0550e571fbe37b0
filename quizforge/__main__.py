"""CLI entry point for quizforge.

Usage:
  python -m quizforge generate FILE [--count N] [--difficulty easy,medium,hard]
  python -m quizforge serve [--host HOST] [--port PORT]
  python -m quizforge models
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "generate":
        _generate(args[1:])
    elif command == "serve":
        _serve(args[1:])
    elif command == "models":
        _models()
    else:
        print(f"Unknown command: {command}")
        print("Commands: generate, serve, models")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _generate(args: list[str]):
    if not args or args[0].startswith("--"):
        print("Usage: python -m quizforge generate FILE [--count N] [--difficulty a,b]")
        sys.exit(1)
    path = Path(args[0])
    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    count = int(_parse_flag(args, "--count", "10"))
    difficulty = [d.strip() for d in _parse_flag(args, "--difficulty", "medium").split(",") if d.strip()]

    from quizforge.config import load_settings
    from quizforge.models import GenerationRequest
    from quizforge.question_generator import QuestionGenerator

    generator = QuestionGenerator(load_settings())
    result = asyncio.run(generator.generate(GenerationRequest(
        content=path.read_text(encoding="utf-8"),
        difficulty_mix=difficulty,
        target_count=count,
    )))
    if not result.success:
        print(f"Generation failed: {result.error}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Quizforge on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "quizforge.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _models():
    from quizforge.config import load_settings
    from quizforge.orchestrator import build_registry

    settings = load_settings()
    registry = build_registry(settings)
    print("Provider chain (priority order)")
    print("=" * 40)
    for entry in registry:
        d = entry.descriptor
        print(f"{d.priority:>5}  {d.kind:14s} {d.name}  ({d.timeout_seconds:.0f}s, "
              f"{d.rate_limit.per_minute}/min)")


if __name__ == "__main__":
    main()
