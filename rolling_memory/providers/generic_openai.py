"""GenericOpenAIProvider: OpenAI-compatible endpoint via httpx.

Works with Ollama, vLLM, LM Studio, KoboldCpp, or any server exposing
/v1/chat/completions.
"""

from __future__ import annotations

from ..types import PromptRequest
from .base import BaseProvider

MAX_STOP_SEQUENCES = 4  # OpenAI's limit; most compatible servers accept it too


class GenericOpenAIProvider(BaseProvider):
    """Generation provider using any OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:11434/v1",
        model: str = "qwen3:4b-instruct-2507-fp16",
        api_key: str = "not-needed",
        timeout: float = 120.0,
        max_attempts: int = 1,
    ) -> None:
        super().__init__(timeout=timeout, max_attempts=max_attempts)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key

    def _provider_name(self) -> str:
        return "generic_openai"

    def _get_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _build_payload(self, request: PromptRequest) -> dict:
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.append({"role": "user", "content": request.prompt})
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        if request.stop_sequences:
            payload["stop"] = request.stop_sequences[:MAX_STOP_SEQUENCES]
        return payload

    def _extract_text(self, data: dict) -> str:
        choices = data.get("choices", [])
        if not choices:
            return ""
        return choices[0].get("message", {}).get("content", "") or ""
