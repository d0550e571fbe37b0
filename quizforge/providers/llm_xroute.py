"""Xroute gateway adapters (Grok chat-completions and Google Gemini shapes)."""
from __future__ import annotations

import logging
import time

import httpx

from quizforge.providers.base import (
    LLMProvider,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
)

log = logging.getLogger("quizforge.llm")

XROUTE_BASE_URL = "https://api.xroute.ai"


class _XrouteProvider(LLMProvider):
    path = ""

    def __init__(
        self,
        model: str,
        api_key: str = "",
        base_url: str = XROUTE_BASE_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _body(self, prompt: str, max_tokens: int) -> dict:
        raise NotImplementedError

    def _extract(self, data: dict) -> str:
        raise NotImplementedError

    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        if not self.api_key:
            raise ProviderUnavailable(f"{self.name()}: XROUTE_API_KEY not configured")
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}{self.path}",
                    json=self._body(prompt, max_tokens),
                    headers={"Authorization": f"Bearer {self.api_key}"},
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

        try:
            text = self._extract(data)
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(None, f"unexpected response shape: {str(data)[:200]}") from e
        if not text:
            raise ProviderError(None, "empty text in response")
        log.info("%s: %d chars in %.1fs", self.name(), len(text), time.monotonic() - t0)
        return text

    async def is_available(self) -> bool:
        return bool(self.api_key)


class XrouteGrokProvider(_XrouteProvider):
    path = "/grok/v1/chat/completions"

    def _body(self, prompt: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "temperature": 0.7,
            "stream": False,
        }

    def _extract(self, data: dict) -> str:
        return data["choices"][0]["message"]["content"]

    def name(self) -> str:
        return f"xroute-grok/{self.model}"


class XrouteGoogleProvider(_XrouteProvider):
    path = "/google/v1/chat/completions"

    def _body(self, prompt: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": max_tokens,
                "temperature": 0.7,
                "topP": 0.9,
                "topK": 40,
            },
            "stream": False,
        }

    def _extract(self, data: dict) -> str:
        return data["candidates"][0]["content"]["parts"][0]["text"]

    def name(self) -> str:
        return f"xroute-google/{self.model}"
