"""
Ollama provider adapter for local LLM inference (native /api/chat).
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from typing import Any, AsyncIterator, Deque, Dict, List, Optional

import httpx

from ..exceptions import DecodeError, TransportError, TranslationError, VendorRejectionError
from ..types import (
    STOP_END_TURN,
    STOP_TOOL_USE,
    ContentBlock,
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
    ToolResultBlock,
    ToolUseBlock,
    ToolUseStart,
)
from ..usage import Usage
from ._utils import split_data_uri
from .base import Provider
from .streaming import LineBuffer, iter_events, load_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.1"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaProvider(Provider):
    """
    Adapter for a local Ollama server.

    No API key is required. The server streams newline-delimited JSON
    objects; the last one carries `done: true` and the token counts.

    Note:
        Requires Ollama to be installed and running (`ollama serve`), with
        the model already pulled via `ollama pull <model>`.
    """

    name = "ollama"
    supports_streaming = True

    def __init__(
        self,
        default_model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Ollama provider.

        Args:
            default_model: Model used when a request leaves `model` empty.
            base_url: Server root. Falls back to OLLAMA_HOST, then
                http://localhost:11434.
            timeout: Request timeout in seconds (local models can be slow).
            http_client: Optional pre-built httpx client (proxies, testing).
        """
        self.default_model = default_model
        self.base_url = (base_url or os.getenv("OLLAMA_HOST") or DEFAULT_BASE_URL).rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    def configured_model(self) -> Optional[str]:
        return self.default_model

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "OllamaProvider":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Outbound translation
    # ------------------------------------------------------------------

    def build_request(self, request: Request, stream: bool = False) -> Dict[str, Any]:
        """
        Translate a unified request into an /api/chat body.

        Raises:
            TranslationError: If an image is not a base64 `data:` URI.
        """
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for message in request.messages:
            messages.extend(_to_wire_messages(message))

        body: Dict[str, Any] = {
            "model": request.model or self.default_model,
            "messages": messages,
            "stream": stream,
        }
        options: Dict[str, Any] = {}
        if request.temperature is not None:
            options["temperature"] = request.temperature
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens
        if options:
            body["options"] = options
        if request.tools:
            body["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in request.tools
            ]
        return body

    # ------------------------------------------------------------------
    # Inbound translation
    # ------------------------------------------------------------------

    def parse_response(self, payload: Dict[str, Any]) -> Response:
        """Translate a non-streamed /api/chat body into a unified response."""
        if "error" in payload:
            raise VendorRejectionError(self.name, None, str(payload["error"]))

        message = payload.get("message") or {}
        content: List[ContentBlock] = []
        if message.get("content"):
            content.append(TextBlock(message["content"]))
        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function") or {}
            content.append(
                ToolUseBlock(
                    id=f"call_{index}",
                    name=function.get("name", ""),
                    input=_arguments(function.get("arguments")),
                )
            )

        has_tools = any(isinstance(block, ToolUseBlock) for block in content)
        return Response(
            content=content,
            model=payload.get("model") or "",
            usage=_usage(payload),
            stop_reason=_stop_reason(payload.get("done_reason"), has_tools),
        )

    # ------------------------------------------------------------------
    # Provider contract
    # ------------------------------------------------------------------

    async def complete(self, request: Request) -> Response:
        body = self.build_request(request)
        logger.debug("ollama request: model=%s", body["model"])
        try:
            response = await self._client.post(f"{self.base_url}/api/chat", json=body)
        except httpx.TransportError as exc:
            raise TransportError(f"ollama request failed: {exc}") from exc
        if response.status_code >= 400:
            raise VendorRejectionError(self.name, response.status_code, response.text)
        return self.parse_response(load_json(response.text, "ollama response"))

    async def stream_complete(self, request: Request) -> AsyncIterator[StreamEvent]:
        body = self.build_request(request, stream=True)
        logger.debug("ollama stream request: model=%s", body["model"])
        try:
            async with self._client.stream(
                "POST", f"{self.base_url}/api/chat", json=body
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise VendorRejectionError(self.name, response.status_code, response.text)
                parser = OllamaStreamParser()
                async for event in iter_events(parser, response.aiter_bytes(), self.name):
                    yield event
        except httpx.TransportError as exc:
            raise TransportError(f"ollama stream failed: {exc}") from exc

    async def available_models(self) -> List[str]:
        """Names of the models pulled on the server (`/api/tags`)."""
        try:
            response = await self._client.get(f"{self.base_url}/api/tags")
        except httpx.TransportError as exc:
            raise TransportError(f"ollama model listing failed: {exc}") from exc
        if response.status_code >= 400:
            raise VendorRejectionError(self.name, response.status_code, response.text)
        payload = load_json(response.text, "ollama model list")
        return [model.get("name", "") for model in payload.get("models") or []]


# ---------------------------------------------------------------------------
# Wire conversion
# ---------------------------------------------------------------------------


def _to_wire_messages(message: Message) -> List[Dict[str, Any]]:
    if isinstance(message.content, str):
        return [{"role": message.role.value, "content": message.content}]

    blocks = message.content
    if message.role == Role.ASSISTANT:
        return [_assistant_message(blocks)]

    results = [block for block in blocks if isinstance(block, ToolResultBlock)]
    rest = [block for block in blocks if not isinstance(block, ToolResultBlock)]
    wire = [{"role": "tool", "content": result.content} for result in results]
    if rest or not results:
        role = Role.USER if results else message.role
        wire.append(_plain_message(role, rest))
    return wire


def _assistant_message(blocks: List[ContentBlock]) -> Dict[str, Any]:
    wire = _plain_message(Role.ASSISTANT, [b for b in blocks if not isinstance(b, ToolUseBlock)])
    tool_calls = [
        {"function": {"name": block.name, "arguments": block.input}}
        for block in blocks
        if isinstance(block, ToolUseBlock)
    ]
    if tool_calls:
        wire["tool_calls"] = tool_calls
    return wire


def _plain_message(role: Role, blocks: List[ContentBlock]) -> Dict[str, Any]:
    text_parts: List[str] = []
    images: List[str] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ImageBlock):
            parts = split_data_uri(block.url)
            if parts is None:
                raise TranslationError(
                    f"ollama only accepts base64 data: URIs for images, got {block.url[:60]!r}"
                )
            images.append(parts[1])
        else:
            raise TranslationError(f"ollama {role.value} messages cannot carry {block.type} blocks")

    wire: Dict[str, Any] = {"role": role.value, "content": "\n".join(text_parts)}
    if images:
        wire["images"] = images
    return wire


def _arguments(arguments: Any) -> Dict[str, Any]:
    # Ollama sends arguments as an object; some models emit a JSON string.
    if not arguments:
        return {}
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str):
        return load_json(arguments, "tool-call arguments")
    raise DecodeError(f"tool-call arguments must be a JSON object, got {arguments!r}")


def _usage(payload: Dict[str, Any]) -> Optional[Usage]:
    if "prompt_eval_count" not in payload and "eval_count" not in payload:
        return None
    return Usage(
        input_tokens=payload.get("prompt_eval_count", 0),
        output_tokens=payload.get("eval_count", 0),
    )


def _stop_reason(done_reason: Optional[str], saw_tool_call: bool) -> str:
    if saw_tool_call:
        return STOP_TOOL_USE
    if done_reason in (None, "", "stop"):
        return STOP_END_TURN
    return done_reason


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class OllamaStreamParser:
    """
    Incremental parser for the NDJSON chat stream.

    Tool calls arrive whole, so each one expands into `ToolUseStart`, a single
    `InputJsonDelta` and `ContentBlockStop`. The `done` line yields the final
    `MessageDelta` followed by `MessageStop`. A final line without a trailing
    newline is still parsed when the transport ends.
    """

    def __init__(self) -> None:
        self._lines = LineBuffer()
        self._pending: Deque[StreamEvent] = deque()
        self._tool_calls = 0
        self.model = ""

    def feed(self, chunk: bytes) -> None:
        self._lines.feed(chunk)

    def next_event(self) -> Optional[StreamEvent]:
        while not self._pending:
            line = self._lines.next_line()
            if line is None:
                return None
            self._pending.extend(self._translate(line))
        return self._pending.popleft()

    def finish(self) -> None:
        line = self._lines.flush()
        if line is not None:
            self._pending.extend(self._translate(line))

    def _translate(self, line: str) -> List[StreamEvent]:
        payload = load_json(line, "ollama stream line")
        if "error" in payload:
            raise VendorRejectionError("ollama", None, str(payload["error"]))
        self.model = payload.get("model") or self.model

        events: List[StreamEvent] = []
        message = payload.get("message") or {}
        if message.get("content"):
            events.append(TextDelta(message["content"]))

        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            index = self._tool_calls
            self._tool_calls += 1
            arguments = _arguments(function.get("arguments"))
            events.append(
                ToolUseStart(index=index, id=f"call_{index}", name=function.get("name", ""))
            )
            events.append(InputJsonDelta(index=index, partial_json=json.dumps(arguments)))
            events.append(ContentBlockStop(index=index))

        if payload.get("done"):
            events.append(
                MessageDelta(
                    stop_reason=_stop_reason(payload.get("done_reason"), self._tool_calls > 0),
                    usage=_usage(payload),
                )
            )
            events.append(MessageStop())
        return events


__all__ = ["OllamaProvider", "OllamaStreamParser"]
