"""
Unit tests for the LLM Client and completion streams.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiorch.core.config import Settings
from aiorch.exceptions import ConfigurationError, LLMError
from aiorch.llm.client import LLMClient
from aiorch.llm.stream import StreamAccumulator
from aiorch.models.contracts import (
    AssistantMessage,
    LLMRequest,
    LLMToolCall,
    LLMToolDefinition,
    SystemMessage,
    ToolMessage,
    UserMessage,
)
from aiorch.models.enums import FinishReason, MessageRole


def make_request(**kwargs) -> LLMRequest:
    defaults = {
        "model": "openrouter/anthropic/claude-3.5-sonnet",
        "messages": [SystemMessage(content="rules"), UserMessage(content="Hello")],
    }
    defaults.update(kwargs)
    return LLMRequest(**defaults)


class FakeChunks:
    """Async iterator over raw chunk payloads, recording aclose()."""

    def __init__(self, chunks, fail_after=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.pulled = 0
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.fail_after is not None and self.pulled >= self.fail_after:
            raise ConnectionError("connection reset")
        if not self.chunks:
            raise StopAsyncIteration
        self.pulled += 1
        return self.chunks.pop(0)

    async def aclose(self):
        self.closed = True


class TestLLMClientInit:
    def test_requires_api_key_for_real_backend(self):
        with pytest.raises(ConfigurationError) as exc_info:
            LLMClient(api_key=None)
        assert exc_info.value.field == "llm_api_key"

    def test_injected_backend_needs_no_key(self):
        client = LLMClient(backend=AsyncMock())
        assert client.api_key is None

    def test_from_settings(self):
        settings = Settings(llm_api_key="sk-test", llm_site_url="https://app.example", llm_timeout=12)
        client = LLMClient.from_settings(settings)

        assert client.api_key == "sk-test"
        assert client.api_base == "https://openrouter.ai/api/v1"
        assert client.timeout == 12
        assert client.extra_headers == {"HTTP-Referer": "https://app.example", "X-Title": "aiorch"}


class TestComplete:
    @pytest.mark.asyncio
    async def test_request_kwargs(self):
        backend = AsyncMock(return_value={"choices": []})
        client = LLMClient(api_key="sk", api_base="https://api.example/v1", site_name="app", backend=backend)
        tool = LLMToolDefinition(name="calculator", description="math", parameters={"type": "object"})

        await client.complete(make_request(tools=[tool], max_tokens=256, temperature=0.2))

        kwargs = backend.await_args.kwargs
        assert kwargs["model"] == "openrouter/anthropic/claude-3.5-sonnet"
        assert kwargs["messages"] == [
            {"role": "system", "content": "rules"},
            {"role": "user", "content": "Hello"},
        ]
        assert kwargs["tools"][0]["function"]["name"] == "calculator"
        assert kwargs["max_tokens"] == 256
        assert kwargs["temperature"] == 0.2
        assert kwargs["api_key"] == "sk"
        assert kwargs["api_base"] == "https://api.example/v1"
        assert kwargs["extra_headers"] == {"X-Title": "app"}
        assert "stream" not in kwargs

    @pytest.mark.asyncio
    async def test_normalizes_dict_response(self):
        backend = AsyncMock(
            return_value={
                "id": "gen-1",
                "model": "anthropic/claude-3.5-sonnet",
                "choices": [
                    {
                        "index": 0,
                        "message": {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "call_1",
                                    "type": "function",
                                    "function": {"name": "calculator", "arguments": '{"expression":"2+2"}'},
                                }
                            ],
                        },
                        "finish_reason": "tool_calls",
                    }
                ],
                "usage": {"prompt_tokens": 120, "completion_tokens": 30, "total_tokens": 150},
            }
        )
        client = LLMClient(backend=backend)

        response = await client.complete(make_request())

        choice = response.choices[0]
        assert response.id == "gen-1"
        assert choice.message.content == ""
        assert choice.message.tool_calls == (
            LLMToolCall(id="call_1", name="calculator", arguments='{"expression":"2+2"}'),
        )
        assert choice.finish_reason == FinishReason.TOOL_CALLS
        assert response.usage.total_tokens == 150

    @pytest.mark.asyncio
    async def test_normalizes_attribute_response_with_missing_fields(self):
        raw = SimpleNamespace(
            id="gen-2",
            model=None,
            choices=[SimpleNamespace(index=0, message=SimpleNamespace(content="Hi", tool_calls=None), finish_reason=None)],
            usage=None,
        )
        client = LLMClient(backend=AsyncMock(return_value=raw))

        response = await client.complete(make_request(model="requested-model"))

        assert response.model == "requested-model"
        assert response.choices[0].message.content == "Hi"
        assert response.choices[0].finish_reason == FinishReason.STOP
        assert response.usage.prompt_tokens == 0
        assert response.usage.total_tokens == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,expected",
        [("length", FinishReason.LENGTH), ("function_call", FinishReason.TOOL_CALLS), ("end_turn", FinishReason.STOP)],
    )
    async def test_finish_reason_mapping(self, raw, expected):
        backend = AsyncMock(return_value={"choices": [{"message": {"content": "x"}, "finish_reason": raw}]})
        response = await LLMClient(backend=backend).complete(make_request())

        assert response.choices[0].finish_reason == expected

    @pytest.mark.asyncio
    async def test_backend_error_becomes_llm_error(self):
        error = Exception("rate limited")
        error.status_code = 429
        client = LLMClient(backend=AsyncMock(side_effect=error))

        with pytest.raises(LLMError) as exc_info:
            await client.complete(make_request())

        assert exc_info.value.status_code == 429
        assert exc_info.value.recoverable is True
        assert exc_info.value.message == "LLM completion failed: rate limited"
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_no_retry(self):
        backend = AsyncMock(side_effect=TimeoutError("read timeout"))
        client = LLMClient(backend=backend)

        with pytest.raises(LLMError):
            await client.complete(make_request())
        assert backend.await_count == 1


class TestLLMRequest:
    def test_tool_messages_must_follow_their_call(self):
        call = LLMToolCall(id="call_1", name="calculator", arguments="{}")
        LLMRequest(
            model="m",
            messages=[
                UserMessage(content="q"),
                AssistantMessage(tool_calls=(call,)),
                ToolMessage(content="{}", tool_call_id="call_1"),
            ],
        )

        with pytest.raises(ValueError):
            LLMRequest(
                model="m",
                messages=[UserMessage(content="q"), ToolMessage(content="{}", tool_call_id="call_9")],
            )

    def test_requires_at_least_one_message(self):
        with pytest.raises(ValueError):
            LLMRequest(model="m", messages=[])


class TestCompletionStream:
    def chunk(self, content=None, role=None, tool_calls=None, finish_reason=None, usage=None):
        delta = {}
        if role:
            delta["role"] = role
        if content is not None:
            delta["content"] = content
        if tool_calls:
            delta["tool_calls"] = tool_calls
        raw = {"id": "gen-s", "model": "m", "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}
        if usage:
            raw["usage"] = usage
        return raw

    @pytest.mark.asyncio
    async def test_is_lazy_and_streams_with_usage(self):
        source = FakeChunks([self.chunk("Hel", role="assistant"), self.chunk("lo", finish_reason="stop")])
        backend = AsyncMock(return_value=source)
        client = LLMClient(backend=backend)

        stream = client.stream(make_request())
        backend.assert_not_awaited()

        chunks = [chunk async for chunk in stream]

        assert [c.choices[0].delta.content for c in chunks] == ["Hel", "lo"]
        assert chunks[0].choices[0].delta.role == MessageRole.ASSISTANT
        assert chunks[-1].finish_reason == FinishReason.STOP
        assert stream.exhausted is True
        assert backend.await_args.kwargs["stream"] is True
        assert backend.await_args.kwargs["stream_options"] == {"include_usage": True}

    @pytest.mark.asyncio
    async def test_next_chunk_returns_none_then_refuses_restart(self):
        client = LLMClient(backend=AsyncMock(return_value=FakeChunks([self.chunk("x")])))
        stream = client.stream(make_request())

        assert (await stream.next_chunk()).choices[0].delta.content == "x"
        assert await stream.next_chunk() is None
        with pytest.raises(RuntimeError):
            await stream.next_chunk()
        with pytest.raises(RuntimeError):
            stream.__aiter__()

    @pytest.mark.asyncio
    async def test_aclose_abandons_stream(self):
        source = FakeChunks([self.chunk("a"), self.chunk("b")])
        stream = LLMClient(backend=AsyncMock(return_value=source)).stream(make_request())

        async with stream:
            first = await stream.next_chunk()

        assert first.choices[0].delta.content == "a"
        assert stream.closed is True
        assert source.closed is True
        await stream.aclose()
        with pytest.raises(RuntimeError, match="closed"):
            await stream.next_chunk()

    @pytest.mark.asyncio
    async def test_mid_stream_failure_becomes_llm_error(self):
        source = FakeChunks([self.chunk("a"), self.chunk("b")], fail_after=1)
        stream = LLMClient(backend=AsyncMock(return_value=source)).stream(make_request())

        await stream.next_chunk()
        with pytest.raises(LLMError, match="LLM stream failed: connection reset"):
            await stream.next_chunk()
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_accumulator_assembles_tool_calls(self):
        chunks = [
            self.chunk(role="assistant", tool_calls=[
                {"index": 0, "id": "call_1", "function": {"name": "calculator", "arguments": '{"expr'}},
            ]),
            self.chunk(tool_calls=[{"index": 0, "function": {"arguments": 'ession":"2+2"}'}}]),
            self.chunk(tool_calls=[{"index": 1, "id": "call_2", "function": {"name": "get_current_time", "arguments": "{}"}}]),
            self.chunk(finish_reason="tool_calls"),
            {"id": "gen-s", "model": "m", "choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 4}},
        ]
        stream = LLMClient(backend=AsyncMock(return_value=FakeChunks(chunks))).stream(make_request())
        accumulator = StreamAccumulator()

        async for chunk in stream:
            accumulator.add(chunk)
        response = accumulator.to_response()

        message = response.choices[0].message
        assert [tc.id for tc in message.tool_calls] == ["call_1", "call_2"]
        assert message.tool_calls[0].arguments == '{"expression":"2+2"}'
        assert response.choices[0].finish_reason == FinishReason.TOOL_CALLS
        assert response.usage.total_tokens == 14

    def test_accumulator_defaults(self):
        response = StreamAccumulator().to_response()

        assert response.choices[0].message.content == ""
        assert response.choices[0].finish_reason == FinishReason.STOP
        assert response.usage.total_tokens == 0
