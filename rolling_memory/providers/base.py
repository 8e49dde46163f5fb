"""Generation provider base class with the shared request loop."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

import httpx

from ..types import LLMProviderError, PromptRequest

RETRY_BACKOFF = [1.0, 2.0, 4.0]


def _retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class BaseProvider(ABC):
    """Abstract base for generation providers. Subclasses fill in the hooks
    (endpoint, headers, payload shape, text extraction); ``generate()`` owns
    the HTTP round trip.

    ``max_attempts`` defaults to 1: a failed summarization is retried by the
    next qualifying chat event, not by the transport.
    """

    def __init__(self, timeout: float = 60.0, max_attempts: int = 1) -> None:
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.last_usage: dict = {}

    # -- hooks --

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, request: PromptRequest) -> dict: ...

    @abstractmethod
    def _extract_text(self, data: dict) -> str: ...

    # -- request loop --

    def generate(self, request: PromptRequest) -> str:
        """Send one generation request. Raises LLMProviderError on failure."""
        payload = self._build_payload(request)
        error: LLMProviderError | None = None

        for attempt in range(self.max_attempts):
            if attempt:
                time.sleep(RETRY_BACKOFF[min(attempt - 1, len(RETRY_BACKOFF) - 1)])
            try:
                response = self._post(payload)
            except httpx.TimeoutException as e:
                error = self._error(f"Timed out after {self.timeout}s: {e}")
                continue
            except httpx.HTTPError as e:
                error = self._error(f"Transport error: {e}")
                continue

            if response.status_code == 200:
                data = response.json()
                self.last_usage = data.get("usage") or {}
                return self._extract_text(data)

            error = self._error(
                f"HTTP {response.status_code}: {response.text}", response.status_code,
            )
            if not _retryable(response.status_code):
                raise error

        raise error

    def _post(self, payload: dict) -> httpx.Response:
        with httpx.Client(timeout=self.timeout) as client:
            return client.post(self._get_url(), headers=self._get_headers(), json=payload)

    def _error(self, message: str, status_code: int | None = None) -> LLMProviderError:
        return LLMProviderError(message, provider=self._provider_name(), status_code=status_code)
