"""
End-to-end tests for the Ollama provider using a local Ollama instance.

These tests require Ollama to be installed and running locally.
Download from: https://ollama.ai
Start with: `ollama serve`

Run with: pytest tests/providers/test_e2e_ollama.py --run-e2e -v

Note: Tests will be skipped if Ollama is not running or the model is not pulled.
"""

from __future__ import annotations

import os

import pytest
import pytest_asyncio

from agentloop import Agent, AgentConfig, Message, Request, Role, ToolParameter
from agentloop.providers import OllamaProvider
from agentloop.providers.streaming import collect_stream
from agentloop.tools import FunctionTool

pytestmark = [pytest.mark.e2e, pytest.mark.ollama]

MODEL = os.getenv("OLLAMA_MODEL", "llama3.1")


def _add(a: int, b: int) -> str:
    return str(a + b)


add_tool = FunctionTool(
    name="add",
    description="Add two integers and return the sum",
    parameters=[
        ToolParameter(name="a", param_type=int, description="First number"),
        ToolParameter(name="b", param_type=int, description="Second number"),
    ],
    function=_add,
)


@pytest_asyncio.fixture
async def ollama() -> OllamaProvider:
    provider = OllamaProvider(default_model=MODEL)
    if not await provider.health_check():
        pytest.skip("Ollama is not running")
    pulled = {name.split(":")[0] for name in await provider.available_models()}
    if MODEL.split(":")[0] not in pulled:
        pytest.skip(f"Model {MODEL} is not pulled")
    return provider


class TestOllamaLive:
    @pytest.mark.asyncio
    async def test_completion(self, ollama) -> None:
        response = await ollama.complete(
            Request(
                messages=[Message(role=Role.USER, content="Say hello in one word.")],
                max_tokens=20,
            )
        )
        assert response.text()
        assert response.usage is not None

    @pytest.mark.asyncio
    async def test_stream_matches_shape(self, ollama) -> None:
        response = await collect_stream(
            ollama.stream_complete(
                Request(
                    messages=[Message(role=Role.USER, content="Count from 1 to 3.")],
                    max_tokens=30,
                )
            )
        )
        assert response.text()
        assert response.stop_reason in ("end_turn", "length")

    @pytest.mark.asyncio
    async def test_agent_tool_call(self, ollama) -> None:
        agent = Agent(
            providers=[ollama],
            tools=[add_tool],
            config=AgentConfig(temperature=0.0, max_iterations=4),
        )
        result = await agent.run("e2e", "Use the add tool to add 19 and 23.")
        assert any(call.name == "add" for call in result.tool_calls)
        assert "42" in result.text
