"""
Shared fakes for agent tests.
"""

from __future__ import annotations

import json
from typing import AsyncIterator, List, Optional

import pytest

from agentloop.providers.base import Provider
from agentloop.types import (
    ContentBlockStop,
    InputJsonDelta,
    MessageDelta,
    MessageStop,
    Request,
    Response,
    StreamEvent,
    TextBlock,
    TextDelta,
    ToolUseBlock,
    ToolUseStart,
)
from agentloop.usage import Usage


class ScriptedProvider(Provider):
    """Replays canned responses and records every request it receives."""

    name = "scripted"

    def __init__(
        self,
        responses: List[Response],
        name: str = "scripted",
        streaming: bool = False,
        repeat_last: bool = False,
    ):
        self.name = name
        self.supports_streaming = streaming
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.requests: List[Request] = []
        self.stream_calls = 0

    @staticmethod
    def text(text: str, usage: Optional[Usage] = None) -> Response:
        return Response(content=[TextBlock(text)], usage=usage, stop_reason="end_turn")

    @staticmethod
    def tools(*uses: ToolUseBlock, usage: Optional[Usage] = None) -> Response:
        return Response(content=list(uses), usage=usage, stop_reason="tool_use")

    def _next(self, request: Request) -> Response:
        self.requests.append(request)
        if self.repeat_last and len(self.responses) == 1:
            return self.responses[0]
        return self.responses.pop(0)

    async def complete(self, request: Request) -> Response:
        return self._next(request)

    async def stream_complete(self, request: Request) -> AsyncIterator[StreamEvent]:
        self.stream_calls += 1
        response = self._next(request)
        for index, block in enumerate(response.content):
            if isinstance(block, TextBlock):
                middle = len(block.text) // 2
                yield TextDelta(block.text[:middle])
                yield TextDelta(block.text[middle:])
            elif isinstance(block, ToolUseBlock):
                yield ToolUseStart(index=index, id=block.id, name=block.name)
                yield InputJsonDelta(index=index, partial_json=json.dumps(block.input))
                yield ContentBlockStop(index=index)
        yield MessageDelta(stop_reason=response.stop_reason, usage=response.usage)
        yield MessageStop()


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider
