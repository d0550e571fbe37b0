from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from quizforge.models import ProviderDescriptor, RateLimit

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

LOCAL_PROVIDER_NAME = "local-template-generator"

# Provider kind -> environment variable holding its API key
API_KEY_ENV = {
    "groq": "GROQ_API_KEY",
    "xroute-grok": "XROUTE_API_KEY",
    "xroute-google": "XROUTE_API_KEY",
    "fireworks": "FIREWORKS_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

DEFAULTS = {
    "provider_api_keys": {},
    "local_generator_endpoint": "",
    "max_content_length": 15000,
    "chunk_size": 2500,
    "chunk_overlap": 300,
    "max_questions_per_chunk": 8,
    "min_question_quality": 0.7,
    "retry_attempts": 3,
    "timeout_ms": 30000,
    "retry_backoff_seconds": 1.0,
    "chunk_workers": 1,
    "duplicate_threshold": 0.65,
    "local_duplicate_threshold": 0.98,
    "min_batch_diversity": 0.7,
    "providers": [],
}

DEFAULT_PROVIDERS = [
    {
        "name": "llama-3.3-70b-versatile",
        "kind": "groq",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 30, "per_day": 14400},
        "priority": 1,
        "timeout_seconds": 30.0,
    },
    {
        "name": "llama-3.1-8b-instant",
        "kind": "groq",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 30, "per_day": 14400},
        "priority": 2,
        "timeout_seconds": 30.0,
    },
    {
        "name": "grok-3-mini",
        "kind": "xroute-grok",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 60, "per_day": 10000},
        "priority": 3,
        "timeout_seconds": 120.0,
    },
    {
        "name": "google/gemini-3-flash-preview",
        "kind": "xroute-google",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 60, "per_day": 10000},
        "priority": 4,
        "timeout_seconds": 120.0,
    },
    {
        "name": "accounts/fireworks/models/llama-v3p1-70b-instruct",
        "kind": "fireworks",
        "max_tokens": 4096,
        "rate_limit": {"per_minute": 60, "per_day": 10000},
        "priority": 5,
        "timeout_seconds": 20.0,
    },
    {
        "name": "gpt-4o-mini",
        "kind": "openai",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 60, "per_day": 10000},
        "priority": 6,
        "timeout_seconds": 30.0,
    },
    {
        "name": "claude-sonnet-4-20250514",
        "kind": "anthropic",
        "max_tokens": 8192,
        "rate_limit": {"per_minute": 50, "per_day": 10000},
        "priority": 7,
        "timeout_seconds": 60.0,
    },
    {
        "name": "llama3.2",
        "kind": "ollama",
        "max_tokens": 4096,
        "rate_limit": {"per_minute": 1000, "per_day": 100000},
        "priority": 8,
        "timeout_seconds": 120.0,
    },
    {
        "name": LOCAL_PROVIDER_NAME,
        "kind": "local",
        "max_tokens": 4096,
        "rate_limit": {"per_minute": 1000, "per_day": 100000},
        "priority": 1000,
        "timeout_seconds": 5.0,
    },
]


@dataclass
class Settings:
    provider_api_keys: dict[str, str] = field(default_factory=dict)
    local_generator_endpoint: str = DEFAULTS["local_generator_endpoint"]
    max_content_length: int = DEFAULTS["max_content_length"]
    chunk_size: int = DEFAULTS["chunk_size"]
    chunk_overlap: int = DEFAULTS["chunk_overlap"]
    max_questions_per_chunk: int = DEFAULTS["max_questions_per_chunk"]
    min_question_quality: float = DEFAULTS["min_question_quality"]
    retry_attempts: int = DEFAULTS["retry_attempts"]
    timeout_ms: int = DEFAULTS["timeout_ms"]
    retry_backoff_seconds: float = DEFAULTS["retry_backoff_seconds"]
    chunk_workers: int = DEFAULTS["chunk_workers"]
    duplicate_threshold: float = DEFAULTS["duplicate_threshold"]
    local_duplicate_threshold: float = DEFAULTS["local_duplicate_threshold"]
    min_batch_diversity: float = DEFAULTS["min_batch_diversity"]
    providers: list[dict] = field(default_factory=list)

    def api_key_for(self, kind: str) -> str:
        """API key for a provider kind, or "" when not configured."""
        key = self.provider_api_keys.get(kind)
        if key is None and kind in API_KEY_ENV:
            key = self.provider_api_keys.get(API_KEY_ENV[kind])
        return key or ""

    def provider_descriptors(self) -> list[ProviderDescriptor]:
        """All configured descriptors, sorted by priority (lowest first)."""
        raw = self.providers or DEFAULT_PROVIDERS
        default_timeout = self.timeout_ms / 1000
        descriptors = [descriptor_from_dict(d, default_timeout) for d in raw]
        if not any(d.kind == "local" for d in descriptors):
            local = next(d for d in DEFAULT_PROVIDERS if d["kind"] == "local")
            descriptors.append(descriptor_from_dict(local, default_timeout))
        return sorted(descriptors, key=lambda d: d.priority)

    def to_dict(self) -> dict:
        return {
            "local_generator_endpoint": self.local_generator_endpoint,
            "max_content_length": self.max_content_length,
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "max_questions_per_chunk": self.max_questions_per_chunk,
            "min_question_quality": self.min_question_quality,
            "retry_attempts": self.retry_attempts,
            "timeout_ms": self.timeout_ms,
            "retry_backoff_seconds": self.retry_backoff_seconds,
            "chunk_workers": self.chunk_workers,
            "duplicate_threshold": self.duplicate_threshold,
            "local_duplicate_threshold": self.local_duplicate_threshold,
            "min_batch_diversity": self.min_batch_diversity,
            "providers": self.providers,
        }


def descriptor_from_dict(d: dict, default_timeout: float = DEFAULTS["timeout_ms"] / 1000) -> ProviderDescriptor:
    limits = d.get("rate_limit", {})
    return ProviderDescriptor(
        name=d["name"],
        kind=d["kind"],
        max_tokens=int(d.get("max_tokens", 4096)),
        rate_limit=RateLimit(
            per_minute=int(limits.get("per_minute", 60)),
            per_day=int(limits.get("per_day", 10000)),
        ),
        priority=int(d.get("priority", 100)),
        timeout_seconds=float(d.get("timeout_seconds", default_timeout)),
        model=d.get("model"),
        endpoint=d.get("endpoint"),
    )


def _keys_from_env() -> dict[str, str]:
    keys = {}
    for kind, env in API_KEY_ENV.items():
        value = os.environ.get(env, "")
        if value:
            keys[kind] = value
    return keys


def load_settings() -> Settings:
    raw: dict = {}
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    filtered = {k: v for k, v in raw.items() if k in known}
    # API keys only come from the environment, never from the config file
    filtered["provider_api_keys"] = _keys_from_env()
    if not filtered.get("local_generator_endpoint"):
        filtered["local_generator_endpoint"] = os.environ.get("OLLAMA_HOST", "")
    return Settings(**filtered)


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
