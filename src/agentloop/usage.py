"""
Token usage tracking for LLM API calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Usage:
    """
    Token counts reported by a provider for a single completion.

    Attributes:
        input_tokens: Number of tokens in the prompt/input.
        output_tokens: Number of tokens generated by the model.
    """

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass
class AgentUsage:
    """
    Aggregates usage across the provider round-trips of one agent run.

    Attributes:
        total_input_tokens: Cumulative input tokens across all calls.
        total_output_tokens: Cumulative output tokens across all calls.
        tool_usage: Dictionary mapping tool names to call counts.
        iterations: Usage reported for each provider round-trip (None when
            the provider did not report any).
    """

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    tool_usage: Dict[str, int] = field(default_factory=dict)
    iterations: List[Optional[Usage]] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    def add_usage(self, usage: Optional[Usage]) -> None:
        """Record the usage of one provider round-trip."""
        self.iterations.append(usage)
        if usage is None:
            return
        self.total_input_tokens += usage.input_tokens
        self.total_output_tokens += usage.output_tokens

    def add_tool_call(self, tool_name: str) -> None:
        self.tool_usage[tool_name] = self.tool_usage.get(tool_name, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tokens": self.total_tokens,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "tool_usage": dict(self.tool_usage),
            "iterations": len(self.iterations),
        }

    def __str__(self) -> str:
        lines = [
            "\n" + "=" * 60,
            "Usage Summary",
            "=" * 60,
            f"Total Tokens: {self.total_tokens:,}",
            f"  - Input: {self.total_input_tokens:,}",
            f"  - Output: {self.total_output_tokens:,}",
            f"Iterations: {len(self.iterations)}",
        ]
        if self.tool_usage:
            lines.append("\nTool Usage:")
            for tool_name, count in sorted(self.tool_usage.items(), key=lambda x: -x[1]):
                lines.append(f"  - {tool_name}: {count} calls")
        lines.append("=" * 60 + "\n")
        return "\n".join(lines)


__all__ = ["Usage", "AgentUsage"]
