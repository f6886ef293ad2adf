"""Public exports for the agentloop package."""

from .agent import Agent, AgentConfig, AgentResult
from .exceptions import (
    AgentLoopError,
    DecodeError,
    LoopExhaustedError,
    NoProviderError,
    ProviderConfigurationError,
    ProviderError,
    StreamingUnsupportedError,
    ToolExecutionError,
    ToolValidationError,
    TranslationError,
    TransportError,
    VendorRejectionError,
)
from .memory import ConversationMemory, MemoryBackend
from .providers import (
    AnthropicProvider,
    LocalProvider,
    OllamaProvider,
    OpenAIProvider,
    Provider,
    ProviderRegistry,
)
from .tools import FunctionTool, Tool, ToolOutput, ToolParameter, ToolRegistry, tool
from .types import (
    ContentBlockStop,
    ImageBlock,
    InputJsonDelta,
    Message,
    MessageDelta,
    MessageStop,
    Request,
    Response,
    Role,
    StreamEvent,
    TextBlock,
    TextDelta,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseStart,
)
from .usage import AgentUsage, Usage

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentResult",
    "ConversationMemory",
    "MemoryBackend",
    # Providers
    "Provider",
    "ProviderRegistry",
    "AnthropicProvider",
    "OpenAIProvider",
    "OllamaProvider",
    "LocalProvider",
    # Tools
    "Tool",
    "ToolOutput",
    "ToolParameter",
    "FunctionTool",
    "ToolRegistry",
    "tool",
    # Unified model
    "Role",
    "Message",
    "TextBlock",
    "ImageBlock",
    "ToolUseBlock",
    "ToolResultBlock",
    "ToolDefinition",
    "Request",
    "Response",
    "StreamEvent",
    "TextDelta",
    "ToolUseStart",
    "InputJsonDelta",
    "ContentBlockStop",
    "MessageDelta",
    "MessageStop",
    # Usage tracking
    "Usage",
    "AgentUsage",
    # Exceptions
    "AgentLoopError",
    "ProviderError",
    "TransportError",
    "VendorRejectionError",
    "DecodeError",
    "TranslationError",
    "StreamingUnsupportedError",
    "LoopExhaustedError",
    "NoProviderError",
    "ProviderConfigurationError",
    "ToolValidationError",
    "ToolExecutionError",
]
