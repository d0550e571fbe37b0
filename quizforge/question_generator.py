"""End-to-end question generation: preprocess, chunk, generate, dedupe, trim."""
from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import Counter
from dataclasses import dataclass, field

from quizforge.config import Settings
from quizforge.content_processor import (
    ContentTooShort,
    chunk_content,
    prepare_content,
    split_into_sections,
)
from quizforge.deduplicator import QuestionDeduplicator
from quizforge.models import (
    DIFFICULTIES,
    ContentChunk,
    DeduplicationStats,
    GenerationMetadata,
    GenerationRequest,
    GenerationResult,
    QualityStats,
    Question,
)
from quizforge.orchestrator import LOCAL_MIN_QUALITY, ModelOrchestrator, ProviderRegistry, build_registry
from quizforge.prompts import build_batch_prompt
from quizforge.providers.llm_local import LocalTemplateProvider
from quizforge.question_validator import average_quality_score, filter_high_quality
from quizforge.rate_limiter import RateLimiter
from quizforge.response_parser import questions_from_items
from quizforge.topic_extractor import extract_topics

_log = logging.getLogger("quizforge.qgen")

BATCH_BUFFER = 1.5  # request extra to absorb validation and dedup losses
MAX_BATCHES_PER_CHUNK = 3
MAX_TOPUP_ROUNDS = 3


@dataclass
class _RunState:
    target: int
    accumulated: list[Question] = field(default_factory=list)
    generated: int = 0
    chunks_processed: int = 0

    @property
    def remaining(self) -> int:
        return self.target - len(self.accumulated)


def normalize_difficulties(mix: list[str] | None) -> list[str]:
    chosen = [d.lower() for d in (mix or []) if d and d.lower() in DIFFICULTIES]
    return chosen or ["medium"]


class QuestionGenerator:
    """Turns a :class:`GenerationRequest` into a :class:`GenerationResult`.

    Chunks are processed by up to ``settings.chunk_workers`` concurrent
    workers; each requests batches until the accumulated count reaches the
    target. Any shortfall is filled from the local template generator, the
    whole set is deduplicated once, and the result is trimmed to the target.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: ProviderRegistry | None = None,
        rate_limiter: RateLimiter | None = None,
        deduplicator: QuestionDeduplicator | None = None,
    ):
        self.settings = settings or Settings()
        self.registry = registry if registry is not None else build_registry(self.settings)
        self.deduplicator = deduplicator or QuestionDeduplicator(
            self.settings.duplicate_threshold, self.settings.local_duplicate_threshold,
        )
        self.orchestrator = ModelOrchestrator(
            self.registry,
            rate_limiter=rate_limiter,
            deduplicator=self.deduplicator,
            settings=self.settings,
        )
        local = self.registry.local_entry()
        if local is not None and isinstance(local.provider, LocalTemplateProvider):
            self.local = local.provider
        else:
            self.local = LocalTemplateProvider()

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        t0 = time.monotonic()
        try:
            content = prepare_content(request.content, self.settings.max_content_length)
        except ContentTooShort as e:
            _log.warning("Rejected request: %s", e)
            return GenerationResult(
                success=False,
                questions=[],
                metadata=GenerationMetadata(content_length=len(request.content or "")),
                error=str(e),
            )

        target = max(0, request.target_count)
        difficulties = normalize_difficulties(request.difficulty_mix)
        topics = request.topics or extract_topics(content).topics
        chunks = chunk_content(content, self.settings.chunk_size, self.settings.chunk_overlap)
        _log.info("Generating %d questions from %d chars in %d chunks (difficulty: %s)",
                  target, len(content), len(chunks), ", ".join(difficulties))

        state = _RunState(target=target)
        if target:
            await self._run_chunks(chunks, state, difficulties, topics)

        if state.remaining > 0:
            _log.info("Short by %d after %d chunks, topping up locally",
                      state.remaining, state.chunks_processed)
            state.accumulated.extend(self._local_questions(content, difficulties, state.remaining, state))

        original_count = len(state.accumulated)
        unique = self.deduplicator.deduplicate(state.accumulated).unique_questions

        for round_no in range(1, MAX_TOPUP_ROUNDS + 1):
            missing = target - len(unique)
            if missing <= 0:
                break
            _log.info("Top-up round %d: %d questions missing after dedup", round_no, missing)
            extra = self._local_questions(content, difficulties, missing, state)
            original_count += len(extra)
            unique = self.deduplicator.deduplicate(unique + extra).unique_questions

        final_count = len(unique)
        questions = unique[:target]
        if len(questions) < target:
            _log.warning("Returning %d of %d requested questions", len(questions), target)

        providers = Counter(q.metadata.provider_name for q in questions)
        metadata = GenerationMetadata(
            total_questions=len(questions),
            processing_time_ms=int((time.monotonic() - t0) * 1000),
            provider=providers.most_common(1)[0][0] if providers else "none",
            providers_used=list(providers),
            content_length=len(content),
            chunks_processed=state.chunks_processed,
            quality_stats=QualityStats(
                average_score=round(average_quality_score(questions), 4),
                passed_validation=original_count,
                total_generated=state.generated,
            ),
            deduplication_stats=DeduplicationStats(
                original_count=original_count,
                duplicates_removed=original_count - final_count,
                final_count=final_count,
            ),
            shortfall=target - len(questions),
        )
        _log.info("Done: %d questions in %dms (%s)", len(questions),
                  metadata.processing_time_ms, ", ".join(metadata.providers_used) or "none")
        return GenerationResult(success=True, questions=questions, metadata=metadata)

    async def _run_chunks(
        self,
        chunks: list[ContentChunk],
        state: _RunState,
        difficulties: list[str],
        topics: list[str],
    ) -> None:
        semaphore = asyncio.Semaphore(max(1, self.settings.chunk_workers))

        async def worker(chunk: ContentChunk) -> None:
            async with semaphore:
                if state.remaining <= 0:
                    return
                state.chunks_processed += 1
                await self._process_chunk(chunk, state, difficulties, topics)

        await asyncio.gather(*(worker(c) for c in chunks))

    async def _process_chunk(
        self,
        chunk: ContentChunk,
        state: _RunState,
        difficulties: list[str],
        topics: list[str],
    ) -> None:
        sections = split_into_sections(chunk.text)
        for batch_no in range(MAX_BATCHES_PER_CHUNK):
            if state.remaining <= 0:
                return
            batch_size = self._batch_size(state.remaining)
            # Rotate sections so successive batches see different text
            section = sections[batch_no % len(sections)]
            _log.info("[%s] batch %d: requesting %d questions (%d still needed)",
                      chunk.id, batch_no + 1, batch_size, state.remaining)
            result = await self.orchestrator.run_batch(
                build_batch_prompt(section, batch_size, difficulties, topics),
                batch_size,
                chunk_id=chunk.id,
                source_text=section,
                difficulties=difficulties,
            )
            state.generated += result.generated
            if not result.questions:
                _log.warning("[%s] batch %d produced nothing, moving on", chunk.id, batch_no + 1)
                return
            state.accumulated.extend(result.questions)

    def _batch_size(self, remaining: int) -> int:
        return max(1, min(self.settings.max_questions_per_chunk, math.ceil(remaining * BATCH_BUFFER)))

    def _local_questions(
        self,
        content: str,
        difficulties: list[str],
        count: int,
        state: _RunState,
    ) -> list[Question]:
        """Build *count* (plus buffer) template questions, bypassing the provider chain."""
        wanted = math.ceil(count * BATCH_BUFFER)
        items = self.local.build_questions(content, difficulties, wanted)
        questions = questions_from_items(
            items, self.local.name(), chunk_id="local-topup", difficulties=difficulties,
        )
        state.generated += len(questions)
        return filter_high_quality(questions, LOCAL_MIN_QUALITY)


async def generate_questions(
    content: str,
    target_count: int = 10,
    difficulty_mix: list[str] | None = None,
    topics: list[str] | None = None,
    settings: Settings | None = None,
) -> GenerationResult:
    """Convenience wrapper building a generator from *settings* for one request."""
    generator = QuestionGenerator(settings)
    return await generator.generate(GenerationRequest(
        content=content,
        difficulty_mix=difficulty_mix or ["medium"],
        target_count=target_count,
        topics=topics,
    ))
