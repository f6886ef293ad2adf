"""Provider implementations for various LLM backends."""

from .anthropic_provider import AnthropicProvider
from .base import Provider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .registry import ProviderRegistry
from .streaming import StreamAccumulator, collect_stream
from .stubs import LocalProvider

__all__ = [
    "Provider",
    "ProviderRegistry",
    "OpenAIProvider",
    "AnthropicProvider",
    "OllamaProvider",
    "LocalProvider",
    "StreamAccumulator",
    "collect_stream",
]
