"""
Tests for the Ollama adapter (native /api/chat, NDJSON streaming).
"""

from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from agentloop.exceptions import DecodeError, TranslationError, TransportError, VendorRejectionError
from agentloop.providers.ollama_provider import OllamaProvider, OllamaStreamParser
from agentloop.providers.streaming import collect_stream
from agentloop.types import (
    ContentBlockStop,
    ImageBlock,
    InputJsonDelta,
    Message,
    MessageDelta,
    MessageStop,
    Request,
    Role,
    TextBlock,
    TextDelta,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    ToolUseStart,
)
from agentloop.usage import Usage


def _ndjson(*lines) -> bytes:
    return "".join(json.dumps(line) + "\n" for line in lines).encode("utf-8")


def _provider(handler) -> OllamaProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OllamaProvider(base_url="http://ollama.test:11434/", http_client=client)


def _user(text: str = "Hi") -> Request:
    return Request(messages=[Message(role=Role.USER, content=text)])


class TestOllamaProviderInit:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("OLLAMA_HOST", raising=False)
        provider = OllamaProvider()
        assert provider.name == "ollama"
        assert provider.default_model == "llama3.1"
        assert provider.base_url == "http://localhost:11434"
        assert provider.supports_streaming is True

    def test_trailing_slash_is_stripped(self):
        assert OllamaProvider(base_url="http://gpu-box:11434/").base_url == "http://gpu-box:11434"


class TestBuildRequest:
    def setup_method(self):
        self.provider = OllamaProvider(base_url="http://ollama.test:11434")

    def test_sampling_options(self):
        body = self.provider.build_request(
            Request(
                messages=[Message(role=Role.USER, content="Hi")],
                system="Be brief",
                temperature=0.3,
                max_tokens=64,
                model="mistral",
            )
        )
        assert body["model"] == "mistral"
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.3, "num_predict": 64}
        assert body["messages"][0] == {"role": "system", "content": "Be brief"}

    def test_no_options_when_unset(self):
        assert "options" not in self.provider.build_request(_user())

    def test_images_are_stripped_to_base64(self):
        body = self.provider.build_request(
            Request(
                messages=[
                    Message(
                        role=Role.USER,
                        content=[
                            TextBlock("Describe"),
                            TextBlock("this image"),
                            ImageBlock("data:image/jpeg;base64,/9j/4AAQ"),
                        ],
                    )
                ]
            )
        )
        assert body["messages"] == [
            {"role": "user", "content": "Describe\nthis image", "images": ["/9j/4AAQ"]}
        ]

    def test_remote_image_is_a_translation_error(self):
        request = Request(
            messages=[Message(role=Role.USER, content=[ImageBlock("https://x.test/a.png")])]
        )
        with pytest.raises(TranslationError):
            self.provider.build_request(request)

    def test_tool_calls_and_results(self):
        body = self.provider.build_request(
            Request(
                messages=[
                    Message(
                        role=Role.ASSISTANT,
                        content=[ToolUseBlock(id="call_0", name="add", input={"a": 1, "b": 2})],
                    ),
                    Message(
                        role=Role.TOOL,
                        content=[ToolResultBlock(tool_use_id="call_0", content="3")],
                    ),
                ],
                tools=[ToolDefinition(name="add", description="Add numbers")],
            )
        )
        assert body["messages"] == [
            {
                "role": "assistant",
                "content": "",
                "tool_calls": [{"function": {"name": "add", "arguments": {"a": 1, "b": 2}}}],
            },
            {"role": "tool", "content": "3"},
        ]
        assert body["tools"][0]["function"]["name"] == "add"

    def test_text_conversation_round_trips(self):
        texts = ["Hi", "Hello! How can I help?", "Tell me a joke"]
        roles = [Role.USER, Role.ASSISTANT, Role.USER]
        body = self.provider.build_request(
            Request(messages=[Message(role=r, content=t) for r, t in zip(roles, texts)])
        )
        assert [m["role"] for m in body["messages"]] == ["user", "assistant", "user"]
        parsed = [
            self.provider.parse_response({"message": wire, "done": True}).text()
            for wire in body["messages"]
        ]
        assert parsed == texts


class TestParseResponse:
    def test_tool_calls_get_synthesized_ids(self):
        response = OllamaProvider().parse_response(
            {
                "model": "llama3.1",
                "message": {
                    "role": "assistant",
                    "content": "",
                    "tool_calls": [
                        {"function": {"name": "a", "arguments": {"x": 1}}},
                        {"function": {"name": "b", "arguments": '{"y": 2}'}},
                    ],
                },
                "done": True,
                "done_reason": "stop",
                "prompt_eval_count": 10,
                "eval_count": 5,
            }
        )
        assert response.tool_uses() == [
            ToolUseBlock(id="call_0", name="a", input={"x": 1}),
            ToolUseBlock(id="call_1", name="b", input={"y": 2}),
        ]
        assert response.stop_reason == "tool_use"
        assert response.usage == Usage(10, 5)

    def test_text_and_stop_reasons(self):
        provider = OllamaProvider()
        done = provider.parse_response({"message": {"content": "Hi"}, "done_reason": "stop"})
        cut = provider.parse_response({"message": {"content": "Hi"}, "done_reason": "length"})
        assert done.text() == "Hi"
        assert done.stop_reason == "end_turn"
        assert done.usage is None
        assert cut.stop_reason == "length"

    def test_error_payload(self):
        with pytest.raises(VendorRejectionError):
            OllamaProvider().parse_response({"error": "model 'nope' not found"})


class TestStreamParser:
    def test_done_only_usage(self):
        parser = OllamaStreamParser()
        parser.feed(
            _ndjson(
                {"model": "llama3.1", "message": {"content": "Hel"}, "done": False},
                {"message": {"content": "lo"}, "done": False},
                {
                    "message": {"content": ""},
                    "done": True,
                    "done_reason": "stop",
                    "prompt_eval_count": 26,
                    "eval_count": 2,
                },
            )
        )
        events = []
        event = parser.next_event()
        while event is not None:
            events.append(event)
            event = parser.next_event()
        assert events == [
            TextDelta("Hel"),
            TextDelta("lo"),
            MessageDelta(stop_reason="end_turn", usage=Usage(26, 2)),
            MessageStop(),
        ]
        assert parser.model == "llama3.1"

    def test_tool_call_expands_to_three_events(self):
        parser = OllamaStreamParser()
        parser.feed(
            _ndjson(
                {
                    "message": {
                        "content": "",
                        "tool_calls": [{"function": {"name": "add", "arguments": {"a": 1}}}],
                    },
                    "done": False,
                }
            )
        )
        assert parser.next_event() == ToolUseStart(index=0, id="call_0", name="add")
        assert parser.next_event() == InputJsonDelta(index=0, partial_json='{"a": 1}')
        assert parser.next_event() == ContentBlockStop(index=0)
        assert parser.next_event() is None

    def test_unterminated_final_line(self):
        parser = OllamaStreamParser()
        parser.feed(b'{"message":{"content":"x"},"done":true,"eval_count":1}')
        assert parser.next_event() is None
        parser.finish()
        assert parser.next_event() == TextDelta("x")
        assert parser.next_event() == MessageDelta(stop_reason="end_turn", usage=Usage(0, 1))
        assert parser.next_event() == MessageStop()

    def test_error_line(self):
        parser = OllamaStreamParser()
        parser.feed(b'{"error":"out of memory"}\n')
        with pytest.raises(VendorRejectionError, match="out of memory"):
            parser.next_event()

    def test_bad_line_is_a_decode_error(self):
        parser = OllamaStreamParser()
        parser.feed(b"{not json\n")
        with pytest.raises(DecodeError):
            parser.next_event()


class TestComplete:
    @pytest.mark.asyncio
    async def test_posts_to_api_chat(self):
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"model": "llama3.1", "message": {"content": "Hello!"}, "done": True},
            )

        response = await _provider(handler).complete(_user())
        assert response.text() == "Hello!"
        assert str(seen[0].url) == "http://ollama.test:11434/api/chat"
        assert json.loads(seen[0].content)["stream"] is False

    @pytest.mark.asyncio
    async def test_model_not_found(self):
        provider = _provider(
            lambda r: httpx.Response(404, json={"error": "model 'nope' not found"})
        )
        with pytest.raises(VendorRejectionError) as exc_info:
            await provider.complete(_user())
        assert exc_info.value.status_code == 404
        assert "not found" in exc_info.value.body

    @pytest.mark.asyncio
    async def test_server_down(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError):
            await _provider(handler).complete(_user())


class TestStreaming:
    @pytest.mark.asyncio
    async def test_stream_split_across_chunks(self):
        body = _ndjson(
            {"message": {"content": "Hé"}, "done": False},
            {"message": {"content": "llo"}, "done": False},
            {"message": {"content": ""}, "done": True, "prompt_eval_count": 3, "eval_count": 2},
        )

        async def chunks():
            for start in range(0, len(body), 5):
                yield body[start : start + 5]

        provider = _provider(lambda r: httpx.Response(200, content=chunks()))
        response = await collect_stream(provider.stream_complete(_user()))
        assert response.text() == "Héllo"
        assert response.usage == Usage(3, 2)
        assert response.stop_reason == "end_turn"

    @pytest.mark.asyncio
    async def test_stream_rejection(self):
        provider = _provider(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(VendorRejectionError) as exc_info:
            async for _ in provider.stream_complete(_user()):
                pass
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "boom"

    @pytest.mark.asyncio
    async def test_stream_without_done_is_a_decode_error(self):
        body = _ndjson({"message": {"content": "partial"}, "done": False})
        provider = _provider(lambda r: httpx.Response(200, content=body))
        with pytest.raises(DecodeError):
            async for _ in provider.stream_complete(_user()):
                pass


class TestModels:
    @pytest.mark.asyncio
    async def test_available_models(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(
                200, json={"models": [{"name": "llama3.1:latest"}, {"name": "mistral:7b"}]}
            )

        assert await _provider(handler).available_models() == ["llama3.1:latest", "mistral:7b"]

    @pytest.mark.asyncio
    async def test_health_check(self):
        def refused(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await _provider(lambda r: httpx.Response(200, json={"models": []})).health_check()
        assert await _provider(refused).health_check() is False


class TestClientLifecycle:
    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        async with OllamaProvider(base_url="http://ollama.test:11434") as provider:
            assert provider._client.is_closed is False
        assert provider._client.is_closed is True

    @pytest.mark.asyncio
    async def test_injected_client_stays_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        provider = OllamaProvider(http_client=client)
        await provider.aclose()
        assert client.is_closed is False
        await client.aclose()
