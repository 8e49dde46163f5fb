from .anthropic import AnthropicProvider
from .base import BaseProvider
from .generic_openai import GenericOpenAIProvider
from ..types import LLMProviderError

__all__ = ["AnthropicProvider", "BaseProvider", "GenericOpenAIProvider", "LLMProviderError"]
