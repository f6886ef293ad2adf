"""
Exception hierarchy for agentloop.

Provider failures are split by cause so callers can tell a network problem
from a vendor rejection, a malformed payload, or content a vendor cannot
express. Tool and configuration errors carry boxed messages with concrete
suggestions for fixes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AgentLoopError(Exception):
    """Base exception for all agentloop errors."""

    pass


# ---------------------------------------------------------------------------
# Provider errors
# ---------------------------------------------------------------------------


class ProviderError(AgentLoopError):
    """Raised when an adapter cannot complete a request."""


class TransportError(ProviderError):
    """Network failure or timeout talking to a vendor."""


class VendorRejectionError(ProviderError):
    """The vendor answered with a non-2xx status or an in-stream error event."""

    def __init__(self, provider: str, status_code: Optional[int], body: str):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        status = status_code if status_code is not None else "stream"
        super().__init__(f"{provider} API error: status={status}, body={body}")


class DecodeError(ProviderError):
    """A vendor payload or stream frame could not be parsed."""


class TranslationError(ProviderError):
    """Internal content cannot be expressed in a vendor's wire format."""


class StreamingUnsupportedError(ProviderError):
    """The provider does not implement streaming completion."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Provider '{provider}' does not support streaming.")


# ---------------------------------------------------------------------------
# Orchestration errors
# ---------------------------------------------------------------------------


class LoopExhaustedError(AgentLoopError):
    """Raised when the agent hits its iteration bound without a final answer."""

    def __init__(self, max_iterations: int):
        self.max_iterations = max_iterations
        super().__init__(
            f"Maximum iterations ({max_iterations}) reached without a final response."
        )


class NoProviderError(AgentLoopError, LookupError):
    """Raised when no provider is registered (or the requested id is unknown)."""


class ProviderConfigurationError(AgentLoopError):
    """Raised when provider configuration is incorrect."""

    def __init__(self, provider_name: str, missing_config: str, env_var: str = ""):
        self.provider_name = provider_name
        self.missing_config = missing_config
        self.env_var = env_var

        message = f"\n{'='*60}\n"
        message += f"Provider Configuration Error: '{provider_name}'\n"
        message += f"{'='*60}\n\n"
        message += f"Missing: {missing_config}\n"
        if env_var:
            message += "\nHow to fix:\n"
            message += "  1. Set the environment variable:\n"
            message += f"     export {env_var}='your-api-key'\n"
            message += "  2. Or pass it directly:\n"
            message += f"     provider = {provider_name}Provider(api_key='your-api-key')\n"
        message += f"\n{'='*60}\n"

        super().__init__(message)


# ---------------------------------------------------------------------------
# Tool errors
# ---------------------------------------------------------------------------


class ToolValidationError(AgentLoopError):
    """Raised when a tool definition or tool input is invalid."""

    def __init__(self, tool_name: str, param_name: str, issue: str, suggestion: str = ""):
        self.tool_name = tool_name
        self.param_name = param_name
        self.issue = issue
        self.suggestion = suggestion

        message = f"\n{'='*60}\n"
        message += f"Tool Validation Error: '{tool_name}'\n"
        message += f"{'='*60}\n\n"
        message += f"Parameter: {param_name}\n"
        message += f"Issue: {issue}\n"
        if suggestion:
            message += f"\nSuggestion: {suggestion}\n"
        message += f"\n{'='*60}\n"

        super().__init__(message)


class ToolExecutionError(AgentLoopError):
    """Raised when a tool's callable fails unexpectedly."""

    def __init__(self, tool_name: str, error: Exception, params: Dict[str, Any]):
        self.tool_name = tool_name
        self.error = error
        self.params = params

        message = f"\n{'='*60}\n"
        message += f"Tool Execution Failed: '{tool_name}'\n"
        message += f"{'='*60}\n\n"
        message += f"Error: {type(error).__name__}: {error}\n"
        message += f"Parameters: {params}\n"
        message += "\nCheck that:\n"
        message += "  - All required parameters are provided\n"
        message += "  - Parameter types match the tool's schema\n"
        message += "  - The tool function is correctly implemented\n"
        message += f"\n{'='*60}\n"

        super().__init__(message)


__all__ = [
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
