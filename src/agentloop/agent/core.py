"""
Provider-agnostic agent loop driving multi-turn tool use.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..exceptions import LoopExhaustedError, NoProviderError
from ..memory import MemoryBackend
from ..providers.base import Provider
from ..providers.registry import ProviderRegistry
from ..providers.streaming import StreamAccumulator
from ..tools import Tool, ToolRegistry
from ..types import (
    Message,
    Request,
    Response,
    Role,
    TextDelta,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from ..usage import AgentUsage
from .config import AgentConfig

logger = logging.getLogger(__name__)


@dataclass
class AgentResult:
    """
    Outcome of one agent run.

    Attributes:
        text: Concatenated text of the final response.
        iterations: Number of provider round-trips made.
        tool_calls: Every tool-use block the model issued, in order.
        usage: Token and tool usage aggregated over the run.
        stop_reason: Stop reason of the final response.
    """

    text: str
    iterations: int
    tool_calls: List[ToolUseBlock] = field(default_factory=list)
    usage: AgentUsage = field(default_factory=AgentUsage)
    stop_reason: Optional[str] = None


class Agent:
    """
    Drives the completion / tool-execution loop against a provider.

    Each run:
    1. Recalls memory context for the user text (best-effort)
    2. Sends the conversation and tool definitions to the default provider
    3. Executes any requested tools and appends their results
    4. Repeats until a response without tool use, or `max_iterations`

    The conversation built during a run belongs to that run only, so several
    sessions can be processed concurrently by one agent.

    Example:
        >>> agent = Agent(
        ...     providers=[AnthropicProvider()],
        ...     tools=[bash],
        ...     memory=ConversationMemory(),
        ...     config=AgentConfig(system_prompt="Be terse"),
        ... )
        >>> reply = await agent.process("session-1", "List the files here")
    """

    def __init__(
        self,
        providers: Optional[Iterable[Provider]] = None,
        tools: Optional[Iterable[Tool]] = None,
        memory: Optional[MemoryBackend] = None,
        config: Optional[AgentConfig] = None,
    ):
        """
        Args:
            providers: Providers to register. The first one is the default
                unless `config.default_provider` names another.
            tools: Tools the model may call.
            memory: Optional memory backend for recall and turn persistence.
            config: Agent configuration options. Defaults to AgentConfig().

        Raises:
            NoProviderError: If `config.default_provider` is not among `providers`.
        """
        self.config = config or AgentConfig()
        self.providers = ProviderRegistry()
        self.tools = ToolRegistry()
        self.memory = memory

        for provider in providers or []:
            self.register_provider(provider)
        for tool_instance in tools or []:
            self.register_tool(tool_instance)
        if self.config.default_provider:
            self.providers.set_default(self.config.default_provider)

    def register_provider(self, provider: Provider) -> None:
        self.providers.register(provider)

    def register_tool(self, tool_instance: Tool) -> None:
        self.tools.register(tool_instance)

    def tool_definitions(self) -> List[ToolDefinition]:
        return self.tools.definitions()

    def provider(self) -> Provider:
        """
        The provider completions are sent to.

        Raises:
            NoProviderError: If no provider is registered.
        """
        provider = self.providers.default()
        if provider is None:
            raise NoProviderError("No provider registered; call register_provider() first.")
        return provider

    async def health_check_all(self) -> List[Tuple[str, bool]]:
        """Check every registered provider concurrently."""
        return await self.providers.health_check_all()

    def _call_hook(self, hook_name: str, *args: Any) -> None:
        """Call a hook if configured; a failing hook is logged and ignored."""
        if not self.config.hooks or hook_name not in self.config.hooks:
            return
        try:
            self.config.hooks[hook_name](*args)
        except Exception:  # noqa: BLE001
            logger.warning("Hook %r raised; ignoring", hook_name, exc_info=True)

    async def process(
        self, session_id: str, text: str, history: Optional[List[Message]] = None
    ) -> str:
        """Run one turn and return only the final text."""
        result = await self.run(session_id, text, history=history)
        return result.text

    async def run(
        self,
        session_id: str,
        text: str,
        history: Optional[List[Message]] = None,
        stream_handler: Optional[Callable[[str], None]] = None,
    ) -> AgentResult:
        """
        Run one user turn to completion.

        Args:
            session_id: Session whose memory is recalled and persisted.
            text: The new user message.
            history: Prior conversation to seed the request with.
            stream_handler: Receives text deltas when `config.stream` is on
                and the provider can stream.

        Returns:
            AgentResult with the final text, iteration count, tool calls and usage.

        Raises:
            NoProviderError: If no provider is registered.
            LoopExhaustedError: If `config.max_iterations` round-trips all
                ended in tool use.
            ProviderError: If a provider call fails.
        """
        provider = self.provider()
        self._call_hook("on_agent_start", session_id, text)

        usage = AgentUsage()
        tool_calls: List[ToolUseBlock] = []
        iteration = 0
        try:
            system = self._compose_system(await self._recall(session_id, text))
            conversation = list(history or [])
            conversation.append(Message(role=Role.USER, content=text))
            definitions = self.tool_definitions()

            while iteration < self.config.max_iterations:
                iteration += 1
                self._call_hook("on_iteration_start", iteration, conversation)

                request = Request(
                    model=self.config.model,
                    messages=list(conversation),
                    system=system,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                    tools=definitions,
                )
                self._call_hook("on_llm_start", request)
                response = await self._complete(provider, request, stream_handler)
                usage.add_usage(response.usage)
                self._call_hook("on_llm_end", response, response.usage)

                uses = response.tool_uses()
                if not uses:
                    result = AgentResult(
                        text=response.text(),
                        iterations=iteration,
                        tool_calls=tool_calls,
                        usage=usage,
                        stop_reason=response.stop_reason,
                    )
                    await self._persist(session_id, text, result.text)
                    self._call_hook("on_agent_end", result)
                    return result

                logger.debug(
                    "Iteration %d: %s requested %d tool call(s)",
                    iteration,
                    provider.name,
                    len(uses),
                )
                conversation.append(response.to_message())
                tool_calls.extend(uses)
                for use in uses:
                    usage.add_tool_call(use.name)
                results = await self._execute_tools(uses)
                conversation.append(Message(role=Role.USER, content=list(results)))

            raise LoopExhaustedError(self.config.max_iterations)
        except Exception as exc:
            self._call_hook("on_error", exc, {"session_id": session_id, "iteration": iteration})
            raise

    def _compose_system(self, context: Optional[str]) -> Optional[str]:
        parts = [part for part in (self.config.system_prompt, context) if part]
        return "\n\n".join(parts) if parts else None

    async def _recall(self, session_id: str, text: str) -> Optional[str]:
        if self.memory is None:
            return None
        try:
            return await self.memory.recall(session_id, text)
        except Exception:  # noqa: BLE001
            logger.warning("Memory recall failed for session %r", session_id, exc_info=True)
            return None

    async def _persist(self, session_id: str, user_text: str, reply: str) -> None:
        if self.memory is None:
            return
        try:
            await self.memory.persist_turn(session_id, Role.USER.value, user_text)
            await self.memory.persist_turn(session_id, Role.ASSISTANT.value, reply)
        except Exception:  # noqa: BLE001
            logger.warning("Persisting turn failed for session %r", session_id, exc_info=True)

    async def _complete(
        self,
        provider: Provider,
        request: Request,
        stream_handler: Optional[Callable[[str], None]],
    ) -> Response:
        if not (self.config.stream and provider.supports_streaming):
            return await provider.complete(request)

        accumulator = StreamAccumulator(model=request.model)
        async with aclosing(provider.stream_complete(request)) as events:
            async for event in events:
                accumulator.add(event)
                if stream_handler and isinstance(event, TextDelta):
                    stream_handler(event.text)
        return accumulator.response()

    async def _execute_tools(self, uses: List[ToolUseBlock]) -> List[ToolResultBlock]:
        """Run the tool calls of one response; results keep request order."""
        if self.config.parallel_tool_execution and len(uses) > 1:
            return list(await asyncio.gather(*(self._execute_tool(use) for use in uses)))
        return [await self._execute_tool(use) for use in uses]

    async def _execute_tool(self, use: ToolUseBlock) -> ToolResultBlock:
        tool_instance = self.tools.get(use.name)
        if tool_instance is None:
            available = ", ".join(t.name for t in self.tools.list_tools()) or "none"
            logger.warning("Model requested unknown tool %r", use.name)
            return ToolResultBlock(
                tool_use_id=use.id,
                content=f"Unknown tool '{use.name}'. Available tools: {available}",
                is_error=True,
            )

        start = time.time()
        self._call_hook("on_tool_start", use.name, use.input)
        try:
            output = await tool_instance.execute(use.input)
        except Exception as exc:
            self._call_hook("on_tool_error", use.name, exc, use.input)
            logger.warning("Tool %r failed: %s", use.name, exc)
            return ToolResultBlock(
                tool_use_id=use.id,
                content=f"Error executing tool '{use.name}': {exc}",
                is_error=True,
            )

        duration = time.time() - start
        self._call_hook("on_tool_end", use.name, output, duration)
        logger.debug("Tool %r finished in %.3fs (error=%s)", use.name, duration, output.is_error)
        return ToolResultBlock(tool_use_id=use.id, content=output.content, is_error=output.is_error)


__all__ = ["Agent", "AgentResult"]
