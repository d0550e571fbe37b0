from __future__ import annotations

import logging
import time

from quizforge.providers.base import (
    LLMProvider,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)

log = logging.getLogger("quizforge.llm")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
FIREWORKS_BASE_URL = "https://api.fireworks.ai/inference/v1"
# Fireworks rejects larger non-streaming completions
FIREWORKS_MAX_TOKENS = 4096


class OpenAICompatibleProvider(LLMProvider):
    """Chat-completions backend (OpenAI, Groq, Fireworks) via the openai SDK."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str = "",
        base_url: str | None = None,
        label: str = "openai",
        token_cap: int | None = None,
        temperature: float = 0.7,
        client=None,
    ):
        self.model = model
        self.label = label
        self.token_cap = token_cap
        self.temperature = temperature
        self._has_key = bool(api_key)
        if client is None:
            import openai
            client = openai.AsyncOpenAI(api_key=api_key or "missing", base_url=base_url, max_retries=0)
        self.client = client

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        import openai

        if not self._has_key:
            raise ProviderUnavailable(f"{self.name()}: no API key configured")
        if self.token_cap:
            max_tokens = min(max_tokens, self.token_cap)
        t0 = time.monotonic()
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
                stream=False,
            )
        except openai.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name()}: {e}") from e
        except openai.APIConnectionError as e:
            raise ProviderUnavailable(f"{self.name()}: {e}") from e
        except openai.APIStatusError as e:
            raise ProviderError(e.status_code, str(e.body or e.message)) from e

        if not resp.choices or not resp.choices[0].message.content:
            raise ProviderError(None, "empty choices in chat completion")
        text = resp.choices[0].message.content
        log.info("%s: %d chars in %.1fs", self.name(), len(text), time.monotonic() - t0)
        return text

    def name(self) -> str:
        return f"{self.label}/{self.model}"


def groq_provider(model: str, api_key: str) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(model=model, api_key=api_key, base_url=GROQ_BASE_URL, label="groq")


def fireworks_provider(model: str, api_key: str) -> OpenAICompatibleProvider:
    return OpenAICompatibleProvider(
        model=model,
        api_key=api_key,
        base_url=FIREWORKS_BASE_URL,
        label="fireworks",
        token_cap=FIREWORKS_MAX_TOKENS,
    )
