"""Priority-ordered provider fallback with rate limiting, timeouts and retries."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from quizforge.config import Settings
from quizforge.deduplicator import QuestionDeduplicator
from quizforge.models import ProviderDescriptor, Question
from quizforge.providers.base import LLMProvider, ProviderFailure, ProviderTimeout
from quizforge.question_validator import filter_high_quality
from quizforge.rate_limiter import RateLimiter
from quizforge.response_parser import parse_response

log = logging.getLogger("quizforge.orchestrator")

LOCAL_MIN_QUALITY = 0.5


@dataclass
class RegistryEntry:
    descriptor: ProviderDescriptor
    provider: LLMProvider

    @property
    def is_local(self) -> bool:
        return self.descriptor.kind == "local"


class ProviderRegistry:
    """Providers whose capability is satisfied, in ascending priority."""

    def __init__(self, entries: list[RegistryEntry]):
        self.entries = sorted(entries, key=lambda e: e.descriptor.priority)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def local_entry(self) -> RegistryEntry | None:
        return next((e for e in self.entries if e.is_local), None)

    def names(self) -> list[str]:
        return [e.descriptor.name for e in self.entries]


def create_provider(descriptor: ProviderDescriptor, settings: Settings) -> LLMProvider | None:
    """Instantiate the adapter for *descriptor*, or None if it cannot be used."""
    kind = descriptor.kind
    model = descriptor.model_name
    if kind == "local":
        from quizforge.providers.llm_local import LocalTemplateProvider
        return LocalTemplateProvider()
    if kind == "ollama":
        endpoint = descriptor.endpoint or settings.local_generator_endpoint
        if not endpoint:
            return None
        from quizforge.providers.llm_ollama import OllamaProvider
        return OllamaProvider(base_url=endpoint, model=model, timeout=descriptor.timeout_seconds)

    key = settings.api_key_for(kind)
    if not key:
        return None
    if kind == "groq":
        from quizforge.providers.llm_openai import groq_provider
        return groq_provider(model, key)
    elif kind == "fireworks":
        from quizforge.providers.llm_openai import fireworks_provider
        return fireworks_provider(model, key)
    elif kind == "openai":
        from quizforge.providers.llm_openai import OpenAICompatibleProvider
        return OpenAICompatibleProvider(model=model, api_key=key, base_url=descriptor.endpoint)
    elif kind == "anthropic":
        from quizforge.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(model=model, api_key=key)
    elif kind in ("xroute-grok", "xroute-google"):
        from quizforge.providers.llm_xroute import (
            XROUTE_BASE_URL,
            XrouteGoogleProvider,
            XrouteGrokProvider,
        )
        cls = XrouteGrokProvider if kind == "xroute-grok" else XrouteGoogleProvider
        return cls(
            model=model,
            api_key=key,
            base_url=descriptor.endpoint or XROUTE_BASE_URL,
            timeout=descriptor.timeout_seconds,
        )
    log.warning("Unknown provider kind %r for %s, skipping", kind, descriptor.name)
    return None


def build_registry(settings: Settings) -> ProviderRegistry:
    entries = []
    for descriptor in settings.provider_descriptors():
        provider = create_provider(descriptor, settings)
        if provider is None:
            log.info("Provider %s (%s) not configured, skipping", descriptor.name, descriptor.kind)
            continue
        entries.append(RegistryEntry(descriptor, provider))
    log.info("Provider chain: %s", " -> ".join(e.descriptor.name for e in entries))
    return ProviderRegistry(entries)


@dataclass
class BatchResult:
    questions: list[Question] = field(default_factory=list)
    provider: str | None = None
    generated: int = 0  # parsed candidates before validation


class ModelOrchestrator:
    """Tries registry entries in priority order until one yields a usable batch.

    A provider is skipped when it reports itself unavailable or its quota
    is used up. Timeouts, unavailability and retryable errors are retried
    up to ``retry_attempts`` times with linear backoff. An empty batch, or
    an external batch whose diversity is below ``min_batch_diversity``, is
    a soft failure that moves on to the next provider straight away.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        rate_limiter: RateLimiter | None = None,
        deduplicator: QuestionDeduplicator | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or Settings()
        self.registry = registry
        self.rate_limiter = rate_limiter or RateLimiter()
        self.deduplicator = deduplicator or QuestionDeduplicator(
            settings.duplicate_threshold, settings.local_duplicate_threshold,
        )
        self.retry_attempts = max(1, settings.retry_attempts)
        self.backoff = settings.retry_backoff_seconds
        self.min_quality = settings.min_question_quality
        self.min_diversity = settings.min_batch_diversity

    async def generate_batch(
        self,
        prompt: str,
        batch_size: int,
        *,
        chunk_id: str = "",
        source_text: str = "",
        difficulties: list[str] | None = None,
    ) -> list[Question]:
        result = await self.run_batch(
            prompt, batch_size,
            chunk_id=chunk_id, source_text=source_text, difficulties=difficulties,
        )
        return result.questions

    async def run_batch(
        self,
        prompt: str,
        batch_size: int,
        *,
        chunk_id: str = "",
        source_text: str = "",
        difficulties: list[str] | None = None,
    ) -> BatchResult:
        generated = 0
        for entry in self.registry:
            name = entry.descriptor.name
            if not await entry.provider.is_available():
                log.info("%s: unavailable, skipping", name)
                continue

            for attempt in range(1, self.retry_attempts + 1):
                if not self.rate_limiter.try_acquire(name, entry.descriptor.rate_limit):
                    log.info("%s: rate limited, skipping", name)
                    break

                t0 = time.monotonic()
                try:
                    raw = await asyncio.wait_for(
                        entry.provider.generate(prompt, entry.descriptor.max_tokens),
                        timeout=entry.descriptor.timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    error: ProviderFailure = ProviderTimeout(
                        f"{name}: no response within {entry.descriptor.timeout_seconds:.0f}s"
                    )
                except ProviderFailure as e:
                    error = e
                except Exception as e:
                    log.warning("%s: unexpected error: %s", name, e)
                    break
                else:
                    elapsed_ms = int((time.monotonic() - t0) * 1000)
                    try:
                        candidates = parse_response(
                            raw,
                            entry.provider.name(),
                            chunk_id=chunk_id,
                            source_excerpt=source_text,
                            difficulties=difficulties,
                            processing_time_ms=elapsed_ms,
                        )[:batch_size]
                        generated += len(candidates)
                        accepted = self._accept(entry, candidates, source_text)
                    except Exception as e:
                        log.warning("%s: could not use response: %s", name, e)
                        break
                    if accepted is not None:
                        log.info("%s: accepted %d/%d questions", name, len(accepted), len(candidates))
                        return BatchResult(accepted, entry.provider.name(), generated)
                    break

                log.warning("%s: attempt %d/%d failed: %s", name, attempt, self.retry_attempts, error)
                if not error.retryable or attempt == self.retry_attempts:
                    break
                if self.backoff:
                    await asyncio.sleep(self.backoff * attempt)

        log.warning("No provider produced a usable batch for %s", chunk_id or "batch")
        return BatchResult(generated=generated)

    def _accept(
        self,
        entry: RegistryEntry,
        candidates: list[Question],
        source_text: str,
    ) -> list[Question] | None:
        """Validated candidates, or None when the batch is a soft failure."""
        name = entry.descriptor.name
        min_score = LOCAL_MIN_QUALITY if entry.is_local else self.min_quality
        accepted = filter_high_quality(candidates, min_score, source_text or None)
        if not accepted:
            log.warning("%s: no usable questions in response (%d parsed)", name, len(candidates))
            return None
        if not entry.is_local:
            diversity = self.deduplicator.batch_diversity(accepted)
            if diversity < self.min_diversity:
                log.warning("%s: batch diversity %.2f below %.2f", name, diversity, self.min_diversity)
                return None
        return accepted

    async def status(self) -> list[dict]:
        providers = []
        for entry in self.registry:
            d = entry.descriptor
            providers.append({
                "name": d.name,
                "kind": d.kind,
                "model": entry.provider.name(),
                "priority": d.priority,
                "max_tokens": d.max_tokens,
                "timeout_seconds": d.timeout_seconds,
                "available": await entry.provider.is_available(),
                "rate_limit": {"per_minute": d.rate_limit.per_minute, "per_day": d.rate_limit.per_day},
                "usage": self.rate_limiter.usage(d.name),
                "wait_seconds": self.rate_limiter.wait_time(d.name, d.rate_limit),
            })
        return providers
