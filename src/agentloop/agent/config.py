"""
Configuration options for the agent.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional

# Hook type definitions
HookCallable = Callable[..., None]
Hooks = Dict[str, HookCallable]

DEFAULT_MAX_ITERATIONS = 10


@dataclass
class AgentConfig:
    """
    Configuration options for customizing agent behavior.

    Attributes:
        model: Model identifier sent with every request. Empty means the
               provider's own default model. Default: "".
        system_prompt: System instructions for every request. Recalled memory
               context is appended after a blank line. Default: None.
        max_tokens: Maximum tokens in each LLM response. None leaves it to the
               provider. Default: None.
        temperature: Sampling temperature. None leaves it to the provider. Default: None.
        max_iterations: Maximum provider round-trips per run before giving up
               with LoopExhaustedError. Default: 10.
        stream: Consume completions as streams when the provider supports it,
               passing text deltas to the run's stream handler. Default: False.
        parallel_tool_execution: Execute the tool calls of one response
               concurrently with asyncio.gather. Default: True.
        default_provider: Id of the registered provider to use. None means the
               first registered provider. Default: None.
        hooks: Optional dict of lifecycle hooks for observability. Default: None.
               Available hooks:
               - 'on_agent_start': Called at start of run with (session_id, text)
               - 'on_agent_end': Called at end with (result,)
               - 'on_iteration_start': Called at start of each iteration with (iteration, messages)
               - 'on_llm_start': Called before each provider call with (request,)
               - 'on_llm_end': Called after each provider call with (response, usage)
               - 'on_tool_start': Called before tool execution with (tool_name, tool_input)
               - 'on_tool_end': Called after tool execution with (tool_name, output, duration)
               - 'on_tool_error': Called when a tool raises with (tool_name, error, tool_input)
               - 'on_error': Called on a fatal error with (error, context)
    """

    model: str = ""
    system_prompt: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    stream: bool = False
    parallel_tool_execution: bool = True
    default_provider: Optional[str] = None
    hooks: Optional[Hooks] = None
