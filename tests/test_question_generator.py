"""Tests for the end-to-end generation coordinator."""
from __future__ import annotations

import asyncio
import json
from collections import Counter
from itertools import combinations

import pytest

from conftest import ARTICLE, bank_items, make_descriptor
from quizforge.config import LOCAL_PROVIDER_NAME, Settings
from quizforge.content_processor import prepare_content
from quizforge.models import GenerationRequest
from quizforge.orchestrator import ProviderRegistry, RegistryEntry
from quizforge.prompts import parse_batch_prompt
from quizforge.providers.base import LLMProvider, ProviderError
from quizforge.providers.llm_local import LocalTemplateProvider
from quizforge.question_generator import QuestionGenerator, generate_questions, normalize_difficulties


class FakeLLM:
    """Hands out successive slices of the question bank, sized by the prompt.

    Returns an empty array once the bank runs dry.
    """

    def __init__(self, delay: float = 0.0):
        self.cursor = 0
        self.delay = delay
        self.prompts: list[str] = []
        self.active = 0
        self.peak = 0

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        self.prompts.append(prompt)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            _, size, _ = parse_batch_prompt(prompt)
            items = bank_items(self.cursor, size)
            self.cursor += len(items)
            return json.dumps(items)
        finally:
            self.active -= 1

    async def is_available(self) -> bool:
        return True

    def name(self) -> str:
        return "fake/llm"


class LimitedLLM(FakeLLM):
    """Serves one bank slice of *limit* questions, then empty arrays."""

    def __init__(self, limit: int):
        super().__init__()
        self.limit = limit

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        self.prompts.append(prompt)
        if self.cursor:
            return "[]"
        self.cursor = self.limit
        return json.dumps(bank_items(0, self.limit))


class FailingLLM(LLMProvider):
    def __init__(self):
        self.calls = 0

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        self.calls += 1
        raise ProviderError(500, "upstream exploded")

    def name(self) -> str:
        return "fake/failing"


def _local_entry() -> RegistryEntry:
    return RegistryEntry(make_descriptor(LOCAL_PROVIDER_NAME, 1000, kind="local"), LocalTemplateProvider())


def _generator(settings, *providers, with_local: bool = True) -> QuestionGenerator:
    entries = [RegistryEntry(make_descriptor(f"p{i}", i + 1), p) for i, p in enumerate(providers)]
    if with_local:
        entries.append(_local_entry())
    return QuestionGenerator(settings, registry=ProviderRegistry(entries))


def _request(target: int = 10, **kw) -> GenerationRequest:
    return GenerationRequest(content=ARTICLE, target_count=target, **kw)


def assert_well_formed(questions):
    for q in questions:
        assert len(q.options) == 4
        assert sum(1 for o in q.options if o.is_correct) == 1
        assert len({o.id for o in q.options}) == 4
        assert q.difficulty in ("easy", "medium", "hard")
    assert len({q.id for q in questions}) == len(questions)


def assert_no_duplicates(generator, questions):
    dedup = generator.deduplicator
    for a, b in combinations(questions, 2):
        assert dedup.similarity(a, b) <= dedup.threshold_for(a, b)


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_healthy_provider_fills_target(self, settings):
        llm = FakeLLM()
        generator = _generator(settings, llm)
        result = await generator.generate(_request(10))

        assert result.success
        assert len(result.questions) == 10
        assert result.metadata.providers_used == ["fake/llm"]
        assert result.metadata.provider == "fake/llm"
        assert result.metadata.shortfall == 0
        assert_well_formed(result.questions)
        assert_no_duplicates(generator, result.questions)

    @pytest.mark.asyncio
    async def test_batches_shrink_as_target_approaches(self, settings):
        llm = FakeLLM()
        result = await _generator(settings, llm).generate(_request(10))
        sizes = [parse_batch_prompt(p)[1] for p in llm.prompts]
        assert sizes == [8, 3]
        assert result.metadata.chunks_processed == 1
        assert result.metadata.quality_stats.total_generated == 11
        assert result.metadata.deduplication_stats.original_count == 11
        assert result.metadata.deduplication_stats.final_count == 11

    @pytest.mark.asyncio
    async def test_metadata(self, settings):
        result = await _generator(settings, FakeLLM()).generate(_request(5))
        meta = result.metadata
        assert meta.total_questions == 5
        assert meta.content_length == len(prepare_content(ARTICLE))
        assert meta.processing_time_ms >= 0
        assert meta.quality_stats.average_score == pytest.approx(1.0)
        assert meta.deduplication_stats.duplicates_removed == 0
        payload = result.to_dict()
        assert payload["success"] is True
        assert len(payload["questions"]) == 5
        assert isinstance(payload["questions"][0]["metadata"]["generated_at"], str)

    @pytest.mark.asyncio
    async def test_never_more_than_target(self, settings):
        for target in (1, 3, 7):
            result = await _generator(settings, FakeLLM()).generate(_request(target))
            assert len(result.questions) == target

    @pytest.mark.asyncio
    async def test_zero_target(self, settings):
        llm = FakeLLM()
        result = await _generator(settings, llm).generate(_request(0))
        assert result.success
        assert result.questions == []
        assert llm.prompts == []


class TestFallbackToLocal:
    @pytest.mark.asyncio
    async def test_all_providers_down(self, settings):
        failing = FailingLLM()
        generator = _generator(settings, failing)
        result = await generator.generate(_request(10))

        assert result.success
        assert len(result.questions) == 10
        assert result.metadata.providers_used == [LOCAL_PROVIDER_NAME]
        # two batches on the first chunk, each tried retry_attempts times
        assert failing.calls == 2 * settings.retry_attempts
        assert_well_formed(result.questions)
        assert_no_duplicates(generator, result.questions)

    @pytest.mark.asyncio
    async def test_top_up_without_local_registry_entry(self, settings):
        failing = FailingLLM()
        generator = _generator(settings, failing, with_local=False)
        result = await generator.generate(_request(10))

        assert len(result.questions) == 10
        assert {q.metadata.provider_name for q in result.questions} == {LOCAL_PROVIDER_NAME}
        assert result.metadata.chunks_processed == 1
        assert failing.calls == settings.retry_attempts

    @pytest.mark.asyncio
    async def test_partial_provider_then_local(self, settings):
        generator = _generator(settings, LimitedLLM(5))
        result = await generator.generate(_request(10))

        providers = Counter(q.metadata.provider_name for q in result.questions)
        assert providers == {"fake/llm": 5, LOCAL_PROVIDER_NAME: 5}
        assert result.metadata.provider == "fake/llm"
        assert set(result.metadata.providers_used) == {"fake/llm", LOCAL_PROVIDER_NAME}
        assert_no_duplicates(generator, result.questions)

    @pytest.mark.asyncio
    async def test_difficulty_mix_respected_by_local(self, settings):
        result = await _generator(settings).generate(_request(6, difficulty_mix=["hard", "easy"]))
        assert len(result.questions) == 6
        assert {q.difficulty for q in result.questions} <= {"hard", "easy"}


class TestRequests:
    @pytest.mark.asyncio
    async def test_content_too_short(self, settings):
        result = await _generator(settings).generate(GenerationRequest(content="1\n" * 60))
        assert not result.success
        assert result.questions == []
        assert "too short" in result.error
        assert result.to_dict()["error"] == result.error

    @pytest.mark.asyncio
    async def test_short_text_rejected(self, settings):
        llm = FakeLLM()
        result = await _generator(settings, llm).generate(GenerationRequest(content="Plants grow. " * 6 + "Leaves."))
        assert not result.success
        assert result.metadata.content_length == 85
        assert llm.prompts == []

    @pytest.mark.asyncio
    async def test_requested_topics_in_prompt(self, settings):
        llm = FakeLLM()
        await _generator(settings, llm).generate(_request(3, topics=["Calvin cycle"]))
        assert "Focus on these topics where the content supports them: Calvin cycle" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_extracted_topics_used_when_none_given(self, settings):
        llm = FakeLLM()
        await _generator(settings, llm).generate(_request(3))
        assert "Focus on these topics" in llm.prompts[0]
        assert "Photosynthesis" in llm.prompts[0].split("Focus on these topics", 1)[1].splitlines()[0]

    @pytest.mark.asyncio
    async def test_concurrent_chunk_workers(self):
        settings = Settings(
            retry_backoff_seconds=0.0, min_batch_diversity=0.5,
            chunk_size=1000, chunk_overlap=100, chunk_workers=2,
        )
        llm = FakeLLM(delay=0.01)
        result = await _generator(settings, llm).generate(_request(20))
        assert len(result.questions) == 20
        assert llm.peak == 2
        assert_well_formed(result.questions)

    def test_normalize_difficulties(self):
        assert normalize_difficulties(None) == ["medium"]
        assert normalize_difficulties(["HARD", "bogus", "easy"]) == ["hard", "easy"]
        assert normalize_difficulties(["bogus"]) == ["medium"]


class TestGenerateQuestions:
    @pytest.mark.asyncio
    async def test_without_api_keys_uses_local_generator(self, settings):
        result = await generate_questions(ARTICLE, target_count=4, settings=settings)
        assert result.success
        assert len(result.questions) == 4
        assert result.metadata.providers_used == [LOCAL_PROVIDER_NAME]
