"""
Tests for the shared stream framing in providers/streaming.py.

Tests cover:
- SSE frames split across arbitrary chunk boundaries (including mid UTF-8)
- CRLF line endings, comments and multi-line data
- NDJSON line buffering with an unterminated final line
- The pull driver: lazy transport reads, stop after the terminal event,
  and a decode error when the transport ends early
- Folding events back into a Response
"""

from __future__ import annotations

from typing import List

import pytest

from agentloop.exceptions import DecodeError
from agentloop.providers.ollama_provider import OllamaStreamParser
from agentloop.providers.streaming import (
    LineBuffer,
    SSEBuffer,
    StreamAccumulator,
    collect_stream,
    iter_events,
    load_json,
)
from agentloop.types import (
    ContentBlockStop,
    InputJsonDelta,
    MessageDelta,
    MessageStop,
    TextBlock,
    TextDelta,
    ToolUseBlock,
    ToolUseStart,
)
from agentloop.usage import Usage


async def _chunks(parts: List[bytes], reads: List[int] = None):
    for part in parts:
        if reads is not None:
            reads.append(1)
        yield part


def _frames(buffer: SSEBuffer):
    frames = []
    frame = buffer.next_frame()
    while frame is not None:
        frames.append(frame)
        frame = buffer.next_frame()
    return frames


class TestSSEBuffer:
    def test_frame_split_across_chunks(self):
        buffer = SSEBuffer()
        buffer.feed(b"event: message_stop\nda")
        assert buffer.next_frame() is None
        buffer.feed(b'ta: {"type":"message_stop"}\n')
        assert buffer.next_frame() is None
        buffer.feed(b"\n")

        frame = buffer.next_frame()
        assert frame.event == "message_stop"
        assert frame.data == '{"type":"message_stop"}'

    def test_multibyte_character_split_between_chunks(self):
        encoded = 'data: {"text":"café ☕"}\n\n'.encode("utf-8")
        split_at = encoded.index("é".encode("utf-8")) + 1

        buffer = SSEBuffer()
        buffer.feed(encoded[:split_at])
        assert buffer.next_frame() is None
        buffer.feed(encoded[split_at:])

        assert load_json(buffer.next_frame().data, "test")["text"] == "café ☕"

    def test_several_frames_in_one_chunk(self):
        buffer = SSEBuffer()
        buffer.feed(b"data: 1\n\ndata: 2\n\ndata: 3")
        assert [f.data for f in _frames(buffer)] == ["1", "2"]
        assert buffer.flush().data == "3"

    def test_crlf_comments_and_multiline_data(self):
        buffer = SSEBuffer()
        buffer.feed(b": keep-alive\r\n\r\ndata: line one\r\ndata: line two\r\n\r\n")
        frames = _frames(buffer)
        assert len(frames) == 1
        assert frames[0].event is None
        assert frames[0].data == "line one\nline two"

    def test_invalid_utf8_is_a_decode_error(self):
        buffer = SSEBuffer()
        buffer.feed(b"data: \xff\xfe\n\n")
        with pytest.raises(DecodeError):
            buffer.next_frame()


class TestLineBuffer:
    def test_lines_and_unterminated_tail(self):
        buffer = LineBuffer()
        buffer.feed(b'{"a":1}\n\n{"b"')
        assert buffer.next_line() == '{"a":1}'
        assert buffer.next_line() is None
        buffer.feed(b":2}")
        assert buffer.next_line() is None
        assert buffer.flush() == '{"b":2}'
        assert buffer.flush() is None


class TestLoadJson:
    def test_rejects_non_objects(self):
        with pytest.raises(DecodeError, match="expected a JSON object"):
            load_json("[1, 2]", "payload")

    def test_rejects_malformed(self):
        with pytest.raises(DecodeError, match="failed to parse payload"):
            load_json("{nope", "payload")


class TestIterEvents:
    @pytest.mark.asyncio
    async def test_transport_read_only_when_parser_runs_dry(self):
        reads: List[int] = []
        chunks = _chunks(
            [
                b'{"message":{"content":"a"},"done":false}\n'
                b'{"message":{"content":"b"},"done":false}\n',
                b'{"message":{"content":""},"done":true}\n',
            ],
            reads,
        )
        events = iter_events(OllamaStreamParser(), chunks, "ollama")

        assert await events.__anext__() == TextDelta("a")
        assert len(reads) == 1
        assert await events.__anext__() == TextDelta("b")
        assert len(reads) == 1
        assert isinstance(await events.__anext__(), MessageDelta)
        assert len(reads) == 2
        assert await events.__anext__() == MessageStop()
        with pytest.raises(StopAsyncIteration):
            await events.__anext__()

    @pytest.mark.asyncio
    async def test_stops_after_terminal_event(self):
        chunks = _chunks([b'{"done":true}\n{"message":{"content":"ignored"}}\n'])
        events = [e async for e in iter_events(OllamaStreamParser(), chunks, "ollama")]
        assert isinstance(events[-1], MessageStop)
        assert not any(isinstance(e, TextDelta) for e in events)

    @pytest.mark.asyncio
    async def test_transport_ending_early_is_a_decode_error(self):
        chunks = _chunks([b'{"message":{"content":"partial"},"done":false}\n'])
        seen = []
        with pytest.raises(DecodeError, match="ollama stream ended without a terminal event"):
            async for event in iter_events(OllamaStreamParser(), chunks, "ollama"):
                seen.append(event)
        assert seen == [TextDelta("partial")]


class TestStreamAccumulator:
    def test_folds_text_and_tool_calls(self):
        accumulator = StreamAccumulator(model="m")
        for event in [
            TextDelta("Hel"),
            TextDelta("lo"),
            ToolUseStart(index=1, id="t1", name="bash"),
            InputJsonDelta(index=1, partial_json='{"cmd":'),
            InputJsonDelta(index=1, partial_json='"ls"}'),
            ContentBlockStop(index=1),
            MessageDelta(stop_reason="tool_use", usage=Usage(5, 7)),
            MessageStop(),
        ]:
            accumulator.add(event)

        response = accumulator.response()
        assert accumulator.finished
        assert response.content == [
            TextBlock("Hello"),
            ToolUseBlock(id="t1", name="bash", input={"cmd": "ls"}),
        ]
        assert response.stop_reason == "tool_use"
        assert response.usage == Usage(5, 7)
        assert response.model == "m"

    def test_empty_arguments_become_empty_object(self):
        accumulator = StreamAccumulator()
        accumulator.add(ToolUseStart(index=0, id="t1", name="now"))
        accumulator.add(ContentBlockStop(index=0))
        assert accumulator.response().tool_uses()[0].input == {}

    def test_unclosed_tool_call_is_parsed_on_response(self):
        accumulator = StreamAccumulator()
        accumulator.add(ToolUseStart(index=0, id="t1", name="bash"))
        accumulator.add(InputJsonDelta(index=0, partial_json='{"cmd":"pwd"}'))
        assert accumulator.response().tool_uses()[0].input == {"cmd": "pwd"}

    def test_fragment_for_unknown_index_is_rejected(self):
        accumulator = StreamAccumulator()
        with pytest.raises(DecodeError):
            accumulator.add(InputJsonDelta(index=3, partial_json="{}"))

    def test_invalid_argument_json_is_rejected(self):
        accumulator = StreamAccumulator()
        accumulator.add(ToolUseStart(index=0, id="t1", name="bash"))
        accumulator.add(InputJsonDelta(index=0, partial_json='{"cmd":'))
        with pytest.raises(DecodeError):
            accumulator.add(ContentBlockStop(index=0))

    @pytest.mark.asyncio
    async def test_collect_stream(self):
        async def events():
            yield TextDelta("hi")
            yield MessageStop()

        response = await collect_stream(events(), model="m")
        assert response.text() == "hi"
