"""
Anthropic provider adapter (Messages API).
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from typing import Any, AsyncIterator, Deque, Dict, Optional

import anthropic
import httpx

from ..env import load_default_env
from ..exceptions import (
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
)
from ..usage import Usage
from ._utils import response_text, split_data_uri
from .base import Provider
from .streaming import SSEBuffer, SSEFrame, iter_events, load_json

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_BASE_URL = "https://api.anthropic.com"
API_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


class AnthropicProvider(Provider):
    """
    Adapter for Anthropic's Messages API.

    The official SDK is used as the HTTP transport (auth headers, base URL,
    timeouts); request/response translation and SSE parsing happen here so
    the unified model is preserved exactly.
    """

    name = "anthropic"
    supports_streaming = True

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = DEFAULT_MODEL,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Anthropic provider.

        Args:
            api_key: API key. Falls back to the ANTHROPIC_API_KEY env variable.
            default_model: Model used when a request leaves `model` empty.
            base_url: API root without the `/v1` suffix.
            timeout: Request timeout in seconds.
            http_client: Optional pre-built httpx client (proxies, testing).

        Raises:
            ProviderConfigurationError: If no API key is available.
        """
        load_default_env()
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ProviderConfigurationError("Anthropic", "API key", "ANTHROPIC_API_KEY")

        self.default_model = default_model
        self.base_url = (base_url or os.getenv("ANTHROPIC_BASE_URL") or DEFAULT_BASE_URL).rstrip(
            "/"
        )
        self._client = anthropic.AsyncAnthropic(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
            default_headers={"anthropic-version": API_VERSION},
            http_client=http_client,
        )

    def configured_model(self) -> Optional[str]:
        return self.default_model

    # ------------------------------------------------------------------
    # Outbound translation
    # ------------------------------------------------------------------

    def build_request(self, request: Request, stream: bool = False) -> Dict[str, Any]:
        """
        Translate a unified request into a Messages API body.

        System-role messages are dropped from the list; the request's
        `system` field is the only system text sent.

        Raises:
            TranslationError: If an image is not a base64 `data:` URI.
        """
        body: Dict[str, Any] = {
            "model": request.model or self.default_model,
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [
                _to_wire_message(message)
                for message in request.messages
                if message.role != Role.SYSTEM
            ],
        }
        if request.system:
            body["system"] = request.system
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.tools:
            body["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.input_schema,
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
        """Translate a Messages API response body into a unified response."""
        content = [_from_wire_block(block) for block in payload.get("content") or []]
        usage = payload.get("usage")
        return Response(
            content=content,
            model=payload.get("model") or "",
            usage=(
                Usage(
                    input_tokens=usage.get("input_tokens", 0),
                    output_tokens=usage.get("output_tokens", 0),
                )
                if usage
                else None
            ),
            stop_reason=payload.get("stop_reason"),
        )

    # ------------------------------------------------------------------
    # Provider contract
    # ------------------------------------------------------------------

    async def complete(self, request: Request) -> Response:
        body = self.build_request(request)
        logger.debug("anthropic request: model=%s", body["model"])
        try:
            raw = await self._client.messages.with_raw_response.create(**body)
        except anthropic.APIStatusError as exc:
            raise VendorRejectionError(
                self.name, exc.status_code, response_text(exc.response)
            ) from exc
        except (anthropic.APIConnectionError, httpx.TransportError) as exc:
            raise TransportError(f"anthropic request failed: {exc}") from exc

        return self.parse_response(load_json(raw.text, "anthropic response"))

    async def stream_complete(self, request: Request) -> AsyncIterator[StreamEvent]:
        body = self.build_request(request, stream=True)
        logger.debug("anthropic stream request: model=%s", body["model"])
        try:
            async with self._client.messages.with_streaming_response.create(**body) as response:
                parser = AnthropicStreamParser()
                async for event in iter_events(parser, response.iter_bytes(), self.name):
                    yield event
        except anthropic.APIStatusError as exc:
            raise VendorRejectionError(
                self.name, exc.status_code, response_text(exc.response)
            ) from exc
        except (anthropic.APIConnectionError, httpx.TransportError) as exc:
            raise TransportError(f"anthropic stream failed: {exc}") from exc

    async def health_check(self) -> bool:
        ping = Request(
            model=self.default_model,
            messages=[Message(role=Role.USER, content="ping")],
            max_tokens=1,
        )
        try:
            await self.complete(ping)
        except Exception as exc:  # noqa: BLE001
            logger.info("anthropic health check failed: %s", exc)
            return False
        return True


# ---------------------------------------------------------------------------
# Wire conversion
# ---------------------------------------------------------------------------


def _to_wire_message(message: Message) -> Dict[str, Any]:
    # The Messages API has no tool role: tool results travel in user turns.
    role = "assistant" if message.role == Role.ASSISTANT else "user"
    if isinstance(message.content, str):
        return {"role": role, "content": message.content}
    return {"role": role, "content": [_to_wire_block(block) for block in message.content]}


def _to_wire_block(block: ContentBlock) -> Dict[str, Any]:
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ImageBlock):
        parts = split_data_uri(block.url)
        if parts is None:
            raise TranslationError(
                "anthropic only accepts base64 data: URIs for images, got "
                f"{block.url[:60]!r}"
            )
        media_type, data = parts
        return {
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        }
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
    if isinstance(block, ToolResultBlock):
        wire: Dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": block.tool_use_id,
            "content": block.content,
        }
        if block.is_error:
            wire["is_error"] = True
        return wire
    raise TranslationError(f"unsupported content block: {block!r}")


def _from_wire_block(block: Dict[str, Any]) -> ContentBlock:
    block_type = block.get("type")
    if block_type == "text":
        return TextBlock(block.get("text", ""))
    if block_type == "tool_use":
        return ToolUseBlock(
            id=block.get("id", ""), name=block.get("name", ""), input=block.get("input") or {}
        )
    return TextBlock(f"[unsupported content block: {block_type}]")


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class AnthropicStreamParser:
    """
    Incremental parser for the Messages API event stream.

    Frames are `event:`/`data:` pairs separated by blank lines; dispatch is
    on the `type` field of the JSON payload. Unknown event types (and
    `ping`) are skipped.
    """

    def __init__(self) -> None:
        self._frames = SSEBuffer()
        self._flushed: Deque[StreamEvent] = deque()
        self._input_tokens = 0
        self.model = ""

    def feed(self, chunk: bytes) -> None:
        self._frames.feed(chunk)

    def next_event(self) -> Optional[StreamEvent]:
        if self._flushed:
            return self._flushed.popleft()
        while True:
            frame = self._frames.next_frame()
            if frame is None:
                return None
            event = self._dispatch(frame)
            if event is not None:
                return event

    def finish(self) -> None:
        frame = self._frames.flush()
        if frame is None:
            return
        event = self._dispatch(frame)
        if event is not None:
            self._flushed.append(event)

    def _dispatch(self, frame: SSEFrame) -> Optional[StreamEvent]:
        payload = load_json(frame.data, "anthropic stream event")
        event_type = payload.get("type") or frame.event

        if event_type == "message_start":
            message = payload.get("message") or {}
            self.model = message.get("model") or self.model
            self._input_tokens = (message.get("usage") or {}).get("input_tokens", 0)
            return None

        if event_type == "content_block_start":
            block = payload.get("content_block") or {}
            if block.get("type") == "tool_use":
                return ToolUseStart(
                    index=payload.get("index", 0),
                    id=block.get("id", ""),
                    name=block.get("name", ""),
                )
            return None

        if event_type == "content_block_delta":
            delta = payload.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return TextDelta(delta.get("text", ""))
            if delta_type == "input_json_delta":
                return InputJsonDelta(
                    index=payload.get("index", 0), partial_json=delta.get("partial_json", "")
                )
            return None

        if event_type == "content_block_stop":
            return ContentBlockStop(index=payload.get("index", 0))

        if event_type == "message_delta":
            delta = payload.get("delta") or {}
            usage = payload.get("usage")
            return MessageDelta(
                stop_reason=delta.get("stop_reason"),
                usage=(
                    Usage(
                        input_tokens=usage.get("input_tokens", self._input_tokens),
                        output_tokens=usage.get("output_tokens", 0),
                    )
                    if usage
                    else None
                ),
            )

        if event_type == "message_stop":
            return MessageStop()

        if event_type == "error":
            raise VendorRejectionError("anthropic", None, json.dumps(payload.get("error")))

        return None


__all__ = ["AnthropicProvider", "AnthropicStreamParser"]
