from __future__ import annotations

import logging

from quizforge.providers.base import (
    LLMProvider,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)

log = logging.getLogger("quizforge.llm")


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", api_key: str = "", client=None):
        self.model = model
        self._has_key = bool(api_key)
        if client is None:
            import anthropic
            client = anthropic.AsyncAnthropic(api_key=api_key or "missing", max_retries=0)
        self.client = client

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        import anthropic

        if not self._has_key:
            raise ProviderUnavailable(f"{self.name()}: no API key configured")
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=0.7,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APITimeoutError as e:
            raise ProviderTimeout(f"{self.name()}: {e}") from e
        except anthropic.APIConnectionError as e:
            raise ProviderUnavailable(f"{self.name()}: {e}") from e
        except anthropic.APIStatusError as e:
            raise ProviderError(e.status_code, str(e.body or e.message)) from e

        texts = [block.text for block in message.content if getattr(block, "type", "") == "text"]
        if not texts:
            raise ProviderError(None, "no text blocks in message")
        return "".join(texts)

    def name(self) -> str:
        return f"anthropic/{self.model}"
