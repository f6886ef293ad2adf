"""
Incremental stream framing shared by the provider adapters.

Vendors deliver streamed completions as raw byte chunks whose boundaries
have nothing to do with logical events: a chunk may end mid-line, mid-frame
or in the middle of a multi-byte UTF-8 sequence, and one chunk may carry
several frames. The buffers here accumulate bytes and only decode complete
frames (SSE) or complete lines (NDJSON).

Each adapter owns an event parser with a small pull interface:

    parser.feed(chunk)          # append transport bytes
    parser.next_event()         # one StreamEvent, or None if more bytes are needed
    parser.finish()             # transport ended; flush what is buffered

`iter_events()` drives a parser from an async byte iterator so the transport
is only read when the parser cannot produce the next event.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Protocol

from ..exceptions import DecodeError
from ..types import (
    ContentBlock,
    ContentBlockStop,
    InputJsonDelta,
    MessageDelta,
    MessageStop,
    Response,
    StreamEvent,
    TextBlock,
    TextDelta,
    ToolUseBlock,
    ToolUseStart,
)
from ..usage import Usage

logger = logging.getLogger(__name__)


@dataclass
class SSEFrame:
    """One server-sent event: optional `event:` name plus joined `data:` lines."""

    event: Optional[str]
    data: str


class SSEBuffer:
    """Accumulates bytes and splits them into SSE frames on blank lines."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def next_frame(self) -> Optional[SSEFrame]:
        """Return the next complete frame carrying data, or None if none is buffered."""
        while True:
            if b"\r" in self._buffer:
                self._buffer = bytearray(self._buffer.replace(b"\r\n", b"\n"))
            boundary = self._buffer.find(b"\n\n")
            if boundary < 0:
                return None
            raw = bytes(self._buffer[:boundary])
            del self._buffer[: boundary + 2]
            frame = _parse_frame(raw)
            if frame is not None:
                return frame

    def flush(self) -> Optional[SSEFrame]:
        """Parse whatever is left once the transport has ended."""
        raw = bytes(self._buffer).strip(b"\r\n")
        self._buffer.clear()
        if not raw:
            return None
        return _parse_frame(raw.replace(b"\r\n", b"\n"))


def _parse_frame(raw: bytes) -> Optional[SSEFrame]:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid UTF-8 in event stream: {exc}") from exc

    event: Optional[str] = None
    data_lines: List[str] = []
    for line in text.split("\n"):
        if not line or line.startswith(":"):
            continue
        field_name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field_name == "event":
            event = value
        elif field_name == "data":
            data_lines.append(value)
    if not data_lines:
        return None
    return SSEFrame(event=event, data="\n".join(data_lines))


class LineBuffer:
    """Accumulates bytes and splits them into newline-delimited lines."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, chunk: bytes) -> None:
        self._buffer.extend(chunk)

    def next_line(self) -> Optional[str]:
        """Return the next complete non-empty line, or None if none is buffered."""
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                return None
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            line = _decode_line(raw)
            if line:
                return line

    def flush(self) -> Optional[str]:
        """Return a final unterminated line, if any."""
        raw = bytes(self._buffer)
        self._buffer.clear()
        line = _decode_line(raw)
        return line or None


def _decode_line(raw: bytes) -> str:
    try:
        return raw.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid UTF-8 in stream line: {exc}") from exc


def load_json(payload: str, what: str) -> Dict:
    try:
        value = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"failed to parse {what}: {exc}") from exc
    if not isinstance(value, dict):
        raise DecodeError(f"failed to parse {what}: expected a JSON object")
    return value


class EventParser(Protocol):
    """Pull interface implemented by every adapter's stream parser."""

    def feed(self, chunk: bytes) -> None: ...

    def next_event(self) -> Optional[StreamEvent]: ...

    def finish(self) -> None: ...


async def iter_events(
    parser: EventParser, chunks: AsyncIterator[bytes], provider: str
) -> AsyncIterator[StreamEvent]:
    """
    Yield parsed events, reading from `chunks` only when the parser runs dry.

    Stops right after `MessageStop`. Raises `DecodeError` if the transport
    ends before a terminal event was produced.
    """
    async for chunk in chunks:
        parser.feed(chunk)
        event = parser.next_event()
        while event is not None:
            yield event
            if isinstance(event, MessageStop):
                return
            event = parser.next_event()

    parser.finish()
    event = parser.next_event()
    while event is not None:
        yield event
        if isinstance(event, MessageStop):
            return
        event = parser.next_event()
    raise DecodeError(f"{provider} stream ended without a terminal event")


class StreamAccumulator:
    """
    Folds stream events back into a `Response`.

    Text deltas extend the current text block; tool-call argument fragments
    are concatenated per index and JSON-parsed when the block stops (or when
    the response is built).
    """

    def __init__(self, model: str = "") -> None:
        self.model = model
        self.stop_reason: Optional[str] = None
        self.usage: Optional[Usage] = None
        self.finished = False
        self._blocks: List[ContentBlock] = []
        self._tool_blocks: Dict[int, ToolUseBlock] = {}
        self._fragments: Dict[int, List[str]] = {}

    def add(self, event: StreamEvent) -> None:
        if isinstance(event, TextDelta):
            if self._blocks and isinstance(self._blocks[-1], TextBlock):
                self._blocks[-1].text += event.text
            else:
                self._blocks.append(TextBlock(event.text))
        elif isinstance(event, ToolUseStart):
            block = ToolUseBlock(id=event.id, name=event.name, input={})
            self._tool_blocks[event.index] = block
            self._fragments[event.index] = []
            self._blocks.append(block)
        elif isinstance(event, InputJsonDelta):
            if event.index not in self._fragments:
                raise DecodeError(f"input JSON for unknown tool-call index {event.index}")
            self._fragments[event.index].append(event.partial_json)
        elif isinstance(event, ContentBlockStop):
            self._close(event.index)
        elif isinstance(event, MessageDelta):
            if event.stop_reason is not None:
                self.stop_reason = event.stop_reason
            if event.usage is not None:
                self.usage = event.usage
        elif isinstance(event, MessageStop):
            self.finished = True

    def _close(self, index: int) -> None:
        fragments = self._fragments.pop(index, None)
        if fragments is None:
            return
        raw = "".join(fragments)
        self._tool_blocks[index].input = load_json(raw, "tool input") if raw else {}

    def response(self) -> Response:
        for index in list(self._fragments):
            self._close(index)
        return Response(
            content=list(self._blocks),
            model=self.model,
            usage=self.usage,
            stop_reason=self.stop_reason,
        )


async def collect_stream(events: AsyncIterator[StreamEvent], model: str = "") -> Response:
    """Consume a whole event stream and return the equivalent `Response`."""
    accumulator = StreamAccumulator(model=model)
    async for event in events:
        accumulator.add(event)
    return accumulator.response()


__all__ = [
    "SSEFrame",
    "SSEBuffer",
    "LineBuffer",
    "EventParser",
    "iter_events",
    "load_json",
    "StreamAccumulator",
    "collect_stream",
]
