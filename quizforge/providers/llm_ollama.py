from __future__ import annotations

import logging
import re
import time

import httpx

from quizforge.providers.base import (
    LLMProvider,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)

log = logging.getLogger("quizforge.llm")

AVAILABILITY_TTL = 60.0


class OllamaProvider(LLMProvider):
    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.2",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._available: tuple[float, bool] | None = None

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        log.info("── PROMPT (%s, %d chars) ──", self.model, len(prompt))
        t0 = time.monotonic()
        try:
            async with self._client(self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/api/generate",
                    json={
                        "model": self.model,
                        "prompt": prompt,
                        "stream": False,
                        "options": {"temperature": 0.7, "top_p": 0.9, "num_predict": max_tokens},
                    },
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{self.name()}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(e.response.status_code, e.response.text) from e
        except httpx.TransportError as e:
            raise ProviderUnavailable(f"{self.name()}: {e}") from e
        except ValueError as e:
            raise ProviderError(None, f"invalid JSON body: {e}") from e

        response = data.get("response")
        if not response:
            raise ProviderError(None, "empty response field")
        # Reasoning models wrap drafts in <think> blocks
        response = re.sub(r"<think>.*?</think>", "", response, flags=re.DOTALL).strip()
        elapsed = time.monotonic() - t0
        log.info("── RESPONSE (%.1fs, %s tokens) ──", elapsed, data.get("eval_count", "?"))
        return response

    async def is_available(self) -> bool:
        now = time.monotonic()
        if self._available is not None and now - self._available[0] < AVAILABILITY_TTL:
            return self._available[1]
        try:
            async with self._client(5.0) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                ok = resp.status_code == 200
        except httpx.HTTPError:
            ok = False
        self._available = (now, ok)
        return ok

    def name(self) -> str:
        return f"ollama/{self.model}"
