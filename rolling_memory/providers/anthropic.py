"""AnthropicProvider: calls Messages API via httpx (no SDK dependency)."""

from __future__ import annotations

import os

from ..types import LLMProviderError, PromptRequest
from .base import BaseProvider

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"


class AnthropicProvider(BaseProvider):
    """Generation provider using the Anthropic Messages API directly via httpx."""

    def __init__(
        self,
        api_key: str | None = None,
        api_key_env: str = "ANTHROPIC_API_KEY",
        model: str = "claude-haiku-4-5",
        timeout: float = 60.0,
        max_attempts: int = 1,
    ) -> None:
        super().__init__(timeout=timeout, max_attempts=max_attempts)
        self.api_key = api_key or os.environ.get(api_key_env, "")
        self.model = model
        if not self.api_key:
            raise LLMProviderError(
                f"No API key found. Set {api_key_env} env var or pass api_key.",
                provider="anthropic",
            )

    def _provider_name(self) -> str:
        return "anthropic"

    def _get_url(self) -> str:
        return API_URL

    def _get_headers(self) -> dict:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }

    def _build_payload(self, request: PromptRequest) -> dict:
        payload = {
            "model": self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system:
            payload["system"] = request.system
        # The API rejects whitespace-only stop sequences
        stops = [s for s in request.stop_sequences if s.strip()]
        if stops:
            payload["stop_sequences"] = stops
        return payload

    def _extract_text(self, data: dict) -> str:
        content = data.get("content", [])
        return "\n".join(
            block["text"] for block in content if block.get("type") == "text"
        )
