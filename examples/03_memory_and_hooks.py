"""
Conversation Memory and Observability Hooks.

Turns are persisted per session and recalled into the system prompt when a
later question shares keywords with them. Hooks report each step of the loop.

Prerequisites: None (uses LocalProvider), or ANTHROPIC_API_KEY for real replies
Run: python examples/03_memory_and_hooks.py
"""

import asyncio
import time
from typing import Any, Dict

from agentloop import Agent, AgentConfig, ConversationMemory, ProviderConfigurationError, tool
from agentloop.providers import AnthropicProvider, LocalProvider, Provider

try:
    provider: Provider = AnthropicProvider()
    print("Using Anthropic provider")
except ProviderConfigurationError:
    provider = LocalProvider()
    print("Using LocalProvider (no API calls)")


@tool(description="Get the current time as HH:MM:SS")
def current_time() -> str:
    return time.strftime("%H:%M:%S")


def build_hooks() -> Dict[str, Any]:
    return {
        "on_agent_start": lambda session, text: print(f"[start] {session}: {text!r}"),
        "on_llm_start": lambda request: print(f"[llm] {len(request.messages)} message(s)"),
        "on_llm_end": lambda response, usage: print(f"[llm] stop={response.stop_reason}"),
        "on_tool_start": lambda name, params: print(f"[tool] {name}({params})"),
        "on_tool_end": lambda name, output, duration: print(
            f"[tool] {name} -> {output.content!r} in {duration:.3f}s"
        ),
        "on_agent_end": lambda result: print(f"[end] {result.iterations} iteration(s)"),
    }


async def main() -> None:
    memory = ConversationMemory(max_messages=10)
    agent = Agent(
        providers=[provider],
        tools=[current_time],
        memory=memory,
        config=AgentConfig(system_prompt="You are a concise assistant.", hooks=build_hooks()),
    )

    print(await agent.process("alice", "My project is called Heron."))
    print(await agent.process("alice", "What is my project called?"))
    print(await agent.process("bob", "What is my project called?"))

    print("\nStored turns for alice:")
    for message in memory.history("alice"):
        print(f"  {message.role.value}: {message.text()}")


if __name__ == "__main__":
    asyncio.run(main())
