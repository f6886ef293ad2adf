"""
Streaming: the same request against Anthropic, OpenAI and Ollama.

Every adapter turns its vendor's wire format into the same event stream, so
the printing loop below does not care which provider it talks to. Providers
without credentials (or an unreachable Ollama) are skipped.

Prerequisites: ANTHROPIC_API_KEY and/or OPENAI_API_KEY, or `ollama serve`
Run: python examples/02_streaming_providers.py
"""

import asyncio
from typing import List

from agentloop import (
    Message,
    MessageDelta,
    ProviderConfigurationError,
    Request,
    Role,
    TextDelta,
    ToolUseStart,
)
from agentloop.providers import AnthropicProvider, OllamaProvider, OpenAIProvider, Provider


def available_providers() -> List[Provider]:
    providers: List[Provider] = []
    for factory in (AnthropicProvider, OpenAIProvider):
        try:
            providers.append(factory())
        except ProviderConfigurationError as e:
            print(f"Skipping {factory.name}: missing {e.missing_config} ({e.env_var})")
    providers.append(OllamaProvider())
    return providers


async def stream_one(provider: Provider) -> None:
    request = Request(
        messages=[Message(role=Role.USER, content="Write a haiku about rivers.")],
        max_tokens=100,
    )
    print(f"\n--- {provider.name} ---")
    async for event in provider.stream_complete(request):
        if isinstance(event, TextDelta):
            print(event.text, end="", flush=True)
        elif isinstance(event, ToolUseStart):
            print(f"\n[tool call: {event.name}]")
        elif isinstance(event, MessageDelta) and event.usage:
            print(f"\n[{event.usage.input_tokens} in / {event.usage.output_tokens} out]")


async def main() -> None:
    providers = available_providers()
    healthy = await asyncio.gather(*(p.health_check() for p in providers))
    for provider, ok in zip(providers, healthy):
        if ok:
            await stream_one(provider)
        else:
            print(f"\n{provider.name} is unreachable, skipping")


if __name__ == "__main__":
    asyncio.run(main())
