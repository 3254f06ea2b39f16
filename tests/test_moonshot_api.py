"""Tests for aimodel.llm.providers.moonshot.MoonshotApi over httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from aimodel.errors import (
    DecodeError,
    IncompleteToolCallError,
    TransportError,
)
from aimodel.llm.providers.moonshot import MoonshotApi
from aimodel.llm.types import (
    ChatCompletionMessage,
    ChatCompletionRequest,
    FinishReason,
    FunctionTool,
    Role,
)
from tests.mock_providers import (
    chunk_payload,
    make_transport,
    sse_body,
    tool_call_payloads,
)


def _request(stream: bool) -> ChatCompletionRequest:
    return ChatCompletionRequest(
        messages=[ChatCompletionMessage(content="hi", role=Role.USER)],
        stream=stream,
    )


async def _collect(agen):
    return [item async for item in agen]


COMPLETION = {
    "id": "cmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "moonshot-v1-8k",
    "choices": [{
        "index": 0,
        "message": {"role": "assistant", "content": "Paris"},
        "finish_reason": "stop",
    }],
    "usage": {"prompt_tokens": 5, "completion_tokens": 1, "total_tokens": 6},
}


class TestRequestBuilding:
    @pytest.mark.asyncio
    async def test_headers_and_body(self):
        requests: list[httpx.Request] = []
        api = MoonshotApi(
            base_url="https://example.test/",
            api_key="sk-test",
            transport=make_transport(COMPLETION, requests=requests),
        )
        request = _request(stream=False)
        request.tools = [FunctionTool.of("lookup", "Look up", {"type": "object"})]
        await api.chat_completion_entity(request)

        sent = requests[0]
        assert str(sent.url) == "https://example.test/v1/chat/completions"
        assert sent.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(sent.content)
        assert body["messages"] == [{"content": "hi", "role": "user"}]
        assert body["stream"] is False
        assert body["model"] == "moonshot-v1-8k"
        assert body["tools"][0]["function"]["name"] == "lookup"
        assert "max_tokens" not in body

    def test_negative_max_retries_rejected(self):
        with pytest.raises(ValueError, match="max_retries"):
            MoonshotApi(max_retries=-1)

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self):
        requests: list[httpx.Request] = []
        api = MoonshotApi(transport=make_transport(COMPLETION, requests=requests))
        await api.chat_completion_entity(_request(stream=False))
        assert "Authorization" not in requests[0].headers


class TestChatCompletionEntity:
    @pytest.mark.asyncio
    async def test_parses_completion(self):
        api = MoonshotApi(transport=make_transport(COMPLETION))
        completion = await api.chat_completion_entity(_request(stream=False))
        assert completion.id == "cmpl-1"
        assert completion.choices[0].message.content == "Paris"
        assert completion.choices[0].finish_reason is FinishReason.STOP
        assert completion.usage.total_tokens == 6

    @pytest.mark.asyncio
    async def test_rejects_stream_request(self):
        api = MoonshotApi(transport=make_transport(COMPLETION))
        with pytest.raises(ValueError, match="stream property to false"):
            await api.chat_completion_entity(_request(stream=True))

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        requests: list[httpx.Request] = []
        api = MoonshotApi(transport=make_transport({"error": "bad"}, 400, requests))
        with pytest.raises(TransportError) as exc_info:
            await api.chat_completion_entity(_request(stream=False))
        assert exc_info.value.status_code == 400
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_retried(self):
        requests: list[httpx.Request] = []
        api = MoonshotApi(
            max_retries=2,
            transport=make_transport({"error": "busy"}, 503, requests),
        )
        with pytest.raises(TransportError) as exc_info:
            await api.chat_completion_entity(_request(stream=False))
        assert exc_info.value.status_code == 503
        assert len(requests) == 3

    @pytest.mark.asyncio
    async def test_retry_then_success(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                return httpx.Response(429, json={"error": "slow down"})
            return httpx.Response(200, json=COMPLETION)

        api = MoonshotApi(transport=httpx.MockTransport(handler))
        completion = await api.chat_completion_entity(_request(stream=False))
        assert completion.id == "cmpl-1"
        assert len(attempts) == 2


class TestChatCompletionStream:
    @pytest.mark.asyncio
    async def test_text_stream_passes_through(self):
        body = sse_body([
            chunk_payload("Hel", role="assistant"),
            chunk_payload("lo"),
            chunk_payload(finish_reason="stop"),
        ])
        api = MoonshotApi(transport=make_transport(body))
        chunks = await _collect(api.chat_completion_stream(_request(stream=True)))
        assert [c.choices[0].delta.content for c in chunks] == ["Hel", "lo", None]

    @pytest.mark.asyncio
    async def test_tool_call_is_aggregated(self):
        body = sse_body(tool_call_payloads("get_weather", {"city": "Paris"}, content_prefix="Checking."))
        api = MoonshotApi(transport=make_transport(body))
        chunks = await _collect(api.chat_completion_stream(_request(stream=True)))

        assert len(chunks) == 2
        assert chunks[0].choices[0].delta.content == "Checking."
        tool_call = chunks[1].choices[0].delta.tool_calls[0]
        assert tool_call.id == "call_abc123"
        assert tool_call.function.name == "get_weather"
        assert json.loads(tool_call.function.arguments) == {"city": "Paris"}
        assert chunks[1].choices[0].finish_reason is FinishReason.TOOL_CALLS
        assert chunks[1].choices[0].usage.total_tokens == 15

    @pytest.mark.asyncio
    async def test_sentinel_inside_tool_call_drops_window(self):
        payloads = tool_call_payloads("get_weather", {"city": "Paris"})[:-1]
        api = MoonshotApi(transport=make_transport(sse_body(payloads)))
        chunks = await _collect(api.chat_completion_stream(_request(stream=True)))
        assert chunks == []

    @pytest.mark.asyncio
    async def test_sentinel_inside_tool_call_strict(self):
        payloads = tool_call_payloads("get_weather", {"city": "Paris"})[:-1]
        api = MoonshotApi(transport=make_transport(sse_body(payloads)))
        with pytest.raises(IncompleteToolCallError):
            await _collect(api.chat_completion_stream(_request(stream=True), strict=True))

    @pytest.mark.asyncio
    async def test_frames_after_sentinel_ignored(self):
        body = sse_body([chunk_payload("a")]) + sse_body(["not json"], done=False)
        api = MoonshotApi(transport=make_transport(body))
        chunks = await _collect(api.chat_completion_stream(_request(stream=True)))
        assert len(chunks) == 1

    @pytest.mark.asyncio
    async def test_decode_error_terminates(self):
        body = sse_body([chunk_payload("a"), "{broken"])
        api = MoonshotApi(transport=make_transport(body))
        seen = []
        with pytest.raises(DecodeError):
            async for chunk in api.chat_completion_stream(_request(stream=True)):
                seen.append(chunk)
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        requests: list[httpx.Request] = []
        api = MoonshotApi(transport=make_transport(b"overloaded", 503, requests))
        with pytest.raises(TransportError) as exc_info:
            await _collect(api.chat_completion_stream(_request(stream=True)))
        assert exc_info.value.status_code == 503
        # Streams are never retried.
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_transport_failure_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        api = MoonshotApi(transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError) as exc_info:
            await _collect(api.chat_completion_stream(_request(stream=True)))
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_rejects_non_stream_request(self):
        api = MoonshotApi(transport=make_transport(b""))
        with pytest.raises(ValueError, match="stream property to true"):
            await _collect(api.chat_completion_stream(_request(stream=False)))

    @pytest.mark.asyncio
    async def test_early_exit(self):
        body = sse_body([chunk_payload("a"), chunk_payload("b"), chunk_payload("c")])
        api = MoonshotApi(transport=make_transport(body))
        stream = api.chat_completion_stream(_request(stream=True))
        first = await stream.__anext__()
        assert first.choices[0].delta.content == "a"
        await stream.aclose()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    @pytest.mark.asyncio
    async def test_early_exit_closes_response_body(self):
        class RecordingStream(httpx.AsyncByteStream):
            def __init__(self, body: bytes) -> None:
                self._events = body.split(b"\n\n")
                self.closed = False

            async def __aiter__(self):
                for event in self._events:
                    yield event + b"\n\n"

            async def aclose(self) -> None:
                self.closed = True

        body = RecordingStream(sse_body([chunk_payload("a"), chunk_payload("b"), chunk_payload("c")]))

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, stream=body, headers={"Content-Type": "text/event-stream"}
            )

        api = MoonshotApi(transport=httpx.MockTransport(handler))
        stream = api.chat_completion_stream(_request(stream=True))
        first = await stream.__anext__()
        assert first.choices[0].delta.content == "a"
        assert not body.closed

        await stream.aclose()
        assert body.closed
