"""
OpenAI provider adapter (Chat Completions API).
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from typing import Any, AsyncIterator, Deque, Dict, List, Optional

import httpx
import openai

from ..env import load_default_env
from ..exceptions import (
    DecodeError,
    ProviderConfigurationError,
    TransportError,
    TranslationError,
    VendorRejectionError,
)
from ..types import (
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
    normalize_stop_reason,
)
from ..usage import Usage
from ._utils import response_text
from .base import Provider
from .streaming import SSEBuffer, SSEFrame, iter_events, load_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_BASE_URL = "https://api.openai.com"
DONE_SENTINEL = "[DONE]"


class OpenAIProvider(Provider):
    """
    Adapter that speaks to OpenAI's Chat Completions API.

    Also works with OpenAI-compatible servers via `base_url`; pass `name` to
    register several of them side by side.
    """

    name = "openai"
    supports_streaming = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
        name: Optional[str] = None,
    ):
        load_default_env()
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise ProviderConfigurationError("OpenAI", "API key", "OPENAI_API_KEY")

        if name:
            self.name = name
        self.default_model = default_model
        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self._client = openai.AsyncOpenAI(
            api_key=self.api_key,
            base_url=f"{self.base_url}/v1",
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

    def configured_model(self) -> Optional[str]:
        return self.default_model

    # ------------------------------------------------------------------
    # Outbound translation
    # ------------------------------------------------------------------

    def build_request(self, request: Request, stream: bool = False) -> Dict[str, Any]:
        """
        Translate a unified request into a Chat Completions body.

        The system instruction becomes the first `system` message. Tool
        results expand into one `tool` message each; assistant tool-use
        blocks become `tool_calls` with stringified JSON arguments.
        """
        messages: List[Dict[str, Any]] = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        for message in request.messages:
            messages.extend(_to_wire_messages(message))

        body: Dict[str, Any] = {
            "model": request.model or self.default_model,
            "messages": messages,
        }
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            body["temperature"] = request.temperature
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
        if stream:
            body["stream"] = True
        return body

    # ------------------------------------------------------------------
    # Inbound translation
    # ------------------------------------------------------------------

    def parse_response(self, payload: Dict[str, Any]) -> Response:
        """
        Translate a Chat Completions body into a unified response.

        Only the first choice is used. Tool-call arguments are parsed back
        from their JSON strings.

        Raises:
            DecodeError: If tool-call arguments are not valid JSON.
        """
        response = Response(model=payload.get("model") or "", usage=_usage(payload))
        choices = payload.get("choices") or []
        if not choices:
            return response

        choice = choices[0]
        message = choice.get("message") or {}
        text = message.get("content")
        if text:
            response.content.append(TextBlock(text))
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            response.content.append(
                ToolUseBlock(
                    id=call.get("id", ""),
                    name=function.get("name", ""),
                    input=_parse_arguments(function.get("arguments")),
                )
            )
        response.stop_reason = normalize_stop_reason(choice.get("finish_reason"))
        return response

    # ------------------------------------------------------------------
    # Provider contract
    # ------------------------------------------------------------------

    async def complete(self, request: Request) -> Response:
        body = self.build_request(request)
        logger.debug("openai request: model=%s", body["model"])
        try:
            raw = await self._client.chat.completions.with_raw_response.create(**body)
        except openai.APIStatusError as exc:
            raise VendorRejectionError(
                self.name, exc.status_code, response_text(exc.response)
            ) from exc
        except (openai.APIConnectionError, httpx.TransportError) as exc:
            raise TransportError(f"{self.name} request failed: {exc}") from exc

        return self.parse_response(load_json(raw.text, f"{self.name} response"))

    async def stream_complete(self, request: Request) -> AsyncIterator[StreamEvent]:
        body = self.build_request(request, stream=True)
        logger.debug("openai stream request: model=%s", body["model"])
        try:
            async with self._client.chat.completions.with_streaming_response.create(
                **body
            ) as response:
                parser = OpenAIStreamParser()
                async for event in iter_events(parser, response.iter_bytes(), self.name):
                    yield event
        except openai.APIStatusError as exc:
            raise VendorRejectionError(
                self.name, exc.status_code, response_text(exc.response)
            ) from exc
        except (openai.APIConnectionError, httpx.TransportError) as exc:
            raise TransportError(f"{self.name} stream failed: {exc}") from exc

    async def available_models(self) -> List[str]:
        try:
            return [model.id async for model in self._client.models.list()]
        except openai.APIStatusError as exc:
            raise VendorRejectionError(
                self.name, exc.status_code, response_text(exc.response)
            ) from exc
        except (openai.APIConnectionError, httpx.TransportError) as exc:
            raise TransportError(f"{self.name} model listing failed: {exc}") from exc

    async def health_check(self) -> bool:
        ping = Request(
            model=self.default_model,
            messages=[Message(role=Role.USER, content="ping")],
            max_tokens=1,
        )
        try:
            await self.complete(ping)
        except Exception as exc:  # noqa: BLE001
            logger.info("%s health check failed: %s", self.name, exc)
            return False
        return True


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
    wire = [
        {"role": "tool", "tool_call_id": result.tool_use_id, "content": result.content}
        for result in results
    ]
    if rest or not results:
        role = Role.USER if results else message.role
        wire.append(_plain_message(role, rest))
    return wire


def _assistant_message(blocks: List[ContentBlock]) -> Dict[str, Any]:
    text_parts: List[str] = []
    tool_calls: List[Dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            tool_calls.append(
                {
                    "id": block.id,
                    "type": "function",
                    "function": {"name": block.name, "arguments": json.dumps(block.input)},
                }
            )
        else:
            raise TranslationError(f"openai assistant messages cannot carry {block.type} blocks")

    text = "".join(text_parts)
    wire: Dict[str, Any] = {"role": "assistant", "content": text or None}
    if tool_calls:
        wire["tool_calls"] = tool_calls
    return wire


def _plain_message(role: Role, blocks: List[ContentBlock]) -> Dict[str, Any]:
    if any(isinstance(block, ToolUseBlock) for block in blocks):
        raise TranslationError(f"openai {role.value} messages cannot carry tool_use blocks")

    if not any(isinstance(block, ImageBlock) for block in blocks):
        text = "".join(block.text for block in blocks if isinstance(block, TextBlock))
        return {"role": role.value, "content": text}

    parts: List[Dict[str, Any]] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            parts.append({"type": "text", "text": block.text})
        elif isinstance(block, ImageBlock):
            parts.append({"type": "image_url", "image_url": {"url": block.url}})
    return {"role": role.value, "content": parts}


def _parse_arguments(arguments: Optional[str]) -> Dict[str, Any]:
    if not arguments:
        return {}
    try:
        value = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"invalid tool-call arguments {arguments!r}: {exc}") from exc
    if not isinstance(value, dict):
        raise DecodeError(f"tool-call arguments must be a JSON object, got {arguments!r}")
    return value


def _usage(payload: Dict[str, Any]) -> Optional[Usage]:
    usage = payload.get("usage")
    if not usage:
        return None
    return Usage(
        input_tokens=usage.get("prompt_tokens", 0),
        output_tokens=usage.get("completion_tokens", 0),
    )


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class OpenAIStreamParser:
    """
    Incremental parser for Chat Completions SSE chunks.

    One chunk can translate into several events (say a text delta and a
    tool-call start); the extras wait in a FIFO and are handed out one per
    `next_event()` call before any new frame is parsed. The `[DONE]`
    sentinel becomes the terminal `MessageStop`.
    """

    def __init__(self) -> None:
        self._frames = SSEBuffer()
        self._pending: Deque[StreamEvent] = deque()
        self._open_tools: Dict[int, str] = {}
        self.model = ""

    def feed(self, chunk: bytes) -> None:
        self._frames.feed(chunk)

    def next_event(self) -> Optional[StreamEvent]:
        while not self._pending:
            frame = self._frames.next_frame()
            if frame is None:
                return None
            self._pending.extend(self._translate(frame))
        return self._pending.popleft()

    def finish(self) -> None:
        frame = self._frames.flush()
        if frame is not None:
            self._pending.extend(self._translate(frame))

    def _translate(self, frame: SSEFrame) -> List[StreamEvent]:
        if frame.data.strip() == DONE_SENTINEL:
            return [*self._close_open_tools(), MessageStop()]

        chunk = load_json(frame.data, "openai stream chunk")
        if "error" in chunk:
            raise VendorRejectionError("openai", None, json.dumps(chunk["error"]))
        self.model = chunk.get("model") or self.model

        events: List[StreamEvent] = []
        choices = chunk.get("choices") or []
        if not choices:
            usage = _usage(chunk)
            if usage is not None:
                events.append(MessageDelta(usage=usage))
            return events

        choice = choices[0]
        delta = choice.get("delta") or {}
        if delta.get("content"):
            events.append(TextDelta(delta["content"]))

        for call in delta.get("tool_calls") or []:
            index = call.get("index", 0)
            function = call.get("function") or {}
            if index not in self._open_tools:
                self._open_tools[index] = call.get("id", "")
                events.append(
                    ToolUseStart(index=index, id=call.get("id", ""), name=function.get("name", ""))
                )
            if function.get("arguments"):
                events.append(InputJsonDelta(index=index, partial_json=function["arguments"]))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            events.extend(self._close_open_tools())
            events.append(
                MessageDelta(stop_reason=normalize_stop_reason(finish_reason), usage=_usage(chunk))
            )
        return events

    def _close_open_tools(self) -> List[StreamEvent]:
        stops: List[StreamEvent] = [ContentBlockStop(index=index) for index in self._open_tools]
        self._open_tools.clear()
        return stops


__all__ = ["OpenAIProvider", "OpenAIStreamParser"]
