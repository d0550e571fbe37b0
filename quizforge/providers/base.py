from __future__ import annotations

from abc import ABC, abstractmethod


class ProviderFailure(RuntimeError):
    """Base class for every failure a provider adapter may raise."""

    retryable = True


class ProviderUnavailable(ProviderFailure):
    """Backend not configured or not reachable."""


class ProviderTimeout(ProviderFailure):
    """Backend did not answer within its time budget."""


class ProviderError(ProviderFailure):
    """Backend answered with an error status or an unusable body."""

    def __init__(self, status: int | None, body: str = ""):
        super().__init__(f"provider error {status}: {body[:200]}")
        self.status = status
        self.body = body

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status in (408, 429) or self.status >= 500


class LLMProvider(ABC):
    @abstractmethod
    async def generate(self, prompt: str, max_tokens: int = 4096) -> str:
        """Return generated text for *prompt*.

        Raises :class:`ProviderUnavailable`, :class:`ProviderTimeout` or
        :class:`ProviderError`; backend-specific exceptions never escape.
        """

    async def is_available(self) -> bool:
        return True

    @abstractmethod
    def name(self) -> str:
        ...
