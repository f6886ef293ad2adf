"""
Core request, response and streaming types shared by every provider.

These primitives are provider-agnostic: adapters translate them to and from
vendor wire formats, and the agent loop only ever sees these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .usage import Usage

STOP_END_TURN = "end_turn"
STOP_TOOL_USE = "tool_use"


class Role(str, Enum):
    """Conversation role."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class TextBlock:
    text: str
    type: str = field(default="text", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass
class ImageBlock:
    """Image reference; `url` may be a remote URL or a `data:` URI."""

    url: str
    type: str = field(default="image", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "url": self.url}


@dataclass
class ToolUseBlock:
    """A model-issued request to invoke a named tool."""

    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)
    type: str = field(default="tool_use", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass
class ToolResultBlock:
    """Output of a tool invocation, answering the tool-use block `tool_use_id`."""

    tool_use_id: str
    content: str
    is_error: bool = False
    type: str = field(default="tool_result", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": self.content,
            "is_error": self.is_error,
        }


ContentBlock = Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock]
MessageContent = Union[str, List[ContentBlock]]


def _join_text(blocks: List[ContentBlock]) -> str:
    return "".join(block.text for block in blocks if isinstance(block, TextBlock))


@dataclass
class Message:
    """
    One conversation turn.

    `content` is either plain text or an ordered list of content blocks.
    Tool results are only valid inside user or tool messages.
    """

    role: Role
    content: MessageContent = ""

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            self.role = Role(self.role)
        if self.role not in (Role.USER, Role.TOOL) and isinstance(self.content, list):
            if any(isinstance(block, ToolResultBlock) for block in self.content):
                raise ValueError(
                    f"tool_result blocks cannot appear in a {self.role.value} message"
                )

    def blocks(self) -> List[ContentBlock]:
        """Return the content as a list of blocks."""
        if isinstance(self.content, str):
            return [TextBlock(self.content)] if self.content else []
        return list(self.content)

    def text(self) -> str:
        """Concatenated text of all text content."""
        if isinstance(self.content, str):
            return self.content
        return _join_text(self.content)

    def tool_uses(self) -> List[ToolUseBlock]:
        return [block for block in self.blocks() if isinstance(block, ToolUseBlock)]

    def tool_results(self) -> List[ToolResultBlock]:
        return [block for block in self.blocks() if isinstance(block, ToolResultBlock)]

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain-JSON-safe representation for logging or debugging."""
        content: Any = self.content
        if isinstance(content, list):
            content = [block.to_dict() for block in content]
        return {"role": self.role.value, "content": content}


@dataclass
class ToolDefinition:
    """Tool advertised to the model: name, description and JSON input schema."""

    name: str
    description: str
    input_schema: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass
class Request:
    """
    Provider-agnostic completion request.

    An empty `model` means "use the adapter's default model". The system
    instruction travels separately from `messages` for every adapter.
    """

    model: str = ""
    messages: List[Message] = field(default_factory=list)
    system: Optional[str] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    tools: List[ToolDefinition] = field(default_factory=list)


@dataclass
class Response:
    """Provider-agnostic completion response."""

    content: List[ContentBlock] = field(default_factory=list)
    model: str = ""
    usage: Optional[Usage] = None
    stop_reason: Optional[str] = None

    def text(self) -> str:
        return _join_text(self.content)

    def tool_uses(self) -> List[ToolUseBlock]:
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def to_message(self) -> Message:
        """The response as an assistant message, tool-use blocks included."""
        return Message(role=Role.ASSISTANT, content=list(self.content))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": [block.to_dict() for block in self.content],
            "model": self.model,
            "usage": self.usage.to_dict() if self.usage else None,
            "stop_reason": self.stop_reason,
        }


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


@dataclass
class TextDelta:
    text: str


@dataclass
class ToolUseStart:
    index: int
    id: str
    name: str


@dataclass
class InputJsonDelta:
    """Raw fragment of a tool call's argument JSON; concatenate by index."""

    index: int
    partial_json: str


@dataclass
class ContentBlockStop:
    index: int


@dataclass
class MessageDelta:
    stop_reason: Optional[str] = None
    usage: Optional[Usage] = None


@dataclass
class MessageStop:
    """Terminal event of every successful stream."""


StreamEvent = Union[
    TextDelta, ToolUseStart, InputJsonDelta, ContentBlockStop, MessageDelta, MessageStop
]


def normalize_stop_reason(reason: Optional[str]) -> Optional[str]:
    """Map chat-completion style finish reasons onto the shared vocabulary."""
    if reason is None:
        return None
    if reason == "stop":
        return STOP_END_TURN
    if reason == "tool_calls":
        return STOP_TOOL_USE
    return reason


__all__ = [
    "STOP_END_TURN",
    "STOP_TOOL_USE",
    "Role",
    "TextBlock",
    "ImageBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "ContentBlock",
    "MessageContent",
    "Message",
    "ToolDefinition",
    "Request",
    "Response",
    "Usage",
    "TextDelta",
    "ToolUseStart",
    "InputJsonDelta",
    "ContentBlockStop",
    "MessageDelta",
    "MessageStop",
    "StreamEvent",
    "normalize_stop_reason",
]
