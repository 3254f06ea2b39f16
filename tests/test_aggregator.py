"""Tests for aimodel.llm.aggregator."""

from __future__ import annotations

import logging

import pytest

from aimodel.errors import (
    DecodeError,
    IncompleteToolCallError,
    UnsupportedMultiToolCallError,
)
from aimodel.llm.aggregator import (
    INITIAL_STATE,
    AggregatorState,
    ChunkAggregator,
    WindowState,
    aggregate,
    aggregate_chunks,
    step,
)
from aimodel.llm.types import ChatCompletionFunction, FinishReason, ToolCall
from tests.mock_providers import make_chunk, make_tool_chunk


async def _async_iter(items):
    for item in items:
        if isinstance(item, Exception):
            raise item
        yield item


def _three_fragment_call():
    return [
        make_tool_chunk('{"x":', call_id="c1", name="f"),
        make_tool_chunk("1,"),
        make_tool_chunk("2}", finish_reason=FinishReason.TOOL_CALLS),
    ]


class TestStep:
    def test_ordinary_chunk_passes_through(self):
        chunk = make_chunk("hello")
        state, emitted = step(INITIAL_STATE, chunk)
        assert state is INITIAL_STATE
        assert emitted is chunk

    def test_opening_chunk_enters_window(self):
        chunk = make_tool_chunk("{", call_id="c1", name="f")
        state, emitted = step(INITIAL_STATE, chunk)
        assert emitted is None
        assert state.mode is WindowState.INSIDE
        assert state.window == chunk

    def test_inside_accumulates_without_emitting(self):
        state, _ = step(INITIAL_STATE, make_tool_chunk("{", call_id="c1", name="f"))
        state, emitted = step(state, make_tool_chunk("}"))
        assert emitted is None
        assert state.mode is WindowState.INSIDE
        assert state.window.choices[0].delta.tool_calls[0].function.arguments == "{}"

    def test_plain_chunk_inside_window_is_merged(self):
        state, _ = step(INITIAL_STATE, make_tool_chunk("{", call_id="c1", name="f"))
        state, emitted = step(state, make_chunk("ignored text"))
        assert emitted is None
        assert state.mode is WindowState.INSIDE
        assert state.window.choices[0].delta.content == "ignored text"

    def test_finish_closes_window(self):
        state = INITIAL_STATE
        for chunk in _three_fragment_call()[:-1]:
            state, _ = step(state, chunk)
        state, emitted = step(state, _three_fragment_call()[-1])
        assert state == INITIAL_STATE
        assert emitted.choices[0].delta.tool_calls[0].function.arguments == '{"x":1,2}'

    def test_single_fragment_tool_call_emits_at_once(self):
        chunk = make_tool_chunk(
            "{}", call_id="c1", name="f", finish_reason=FinishReason.TOOL_CALLS
        )
        state, emitted = step(INITIAL_STATE, chunk)
        assert state.mode is WindowState.OUTSIDE
        assert emitted == chunk

    def test_step_does_not_mutate_state(self):
        start = AggregatorState()
        step(start, make_tool_chunk("{", call_id="c1", name="f"))
        assert start == AggregatorState()


class TestChunkAggregator:
    def test_pass_through_one_output_per_input(self):
        chunks = [make_chunk("Hel"), make_chunk("lo"), make_chunk("!", finish_reason=FinishReason.STOP)]
        out = list(aggregate_chunks(chunks))
        assert out == chunks
        assert [c.choices[0].delta.content for c in out] == ["Hel", "lo", "!"]

    def test_three_fragment_tool_call_emits_one_record(self):
        out = list(aggregate_chunks(_three_fragment_call()))
        assert len(out) == 1
        tool_call = out[0].choices[0].delta.tool_calls[0]
        assert tool_call.id == "c1"
        assert tool_call.function.name == "f"
        assert tool_call.function.arguments == '{"x":1,2}'

    def test_text_then_tool_call_then_text(self):
        chunks = [make_chunk("Let me look.")] + _three_fragment_call() + [make_chunk("Done.")]
        out = list(aggregate_chunks(chunks))
        assert len(out) == 3
        assert out[0].choices[0].delta.content == "Let me look."
        assert out[1].choices[0].delta.tool_calls[0].id == "c1"
        assert out[2].choices[0].delta.content == "Done."

    def test_two_sequential_tool_calls(self):
        chunks = _three_fragment_call() + [
            make_tool_chunk('{"y":', call_id="c2", name="g"),
            make_tool_chunk("2}", finish_reason=FinishReason.TOOL_CALLS),
        ]
        out = list(aggregate_chunks(chunks))
        assert [c.choices[0].delta.tool_calls[0].id for c in out] == ["c1", "c2"]
        assert out[1].choices[0].delta.tool_calls[0].function.arguments == '{"y":2}'

    def test_unfinished_window_dropped(self, caplog):
        chunks = [make_chunk("before")] + _three_fragment_call()[:-1]
        with caplog.at_level(logging.WARNING, logger="aimodel.llm.aggregator"):
            out = list(aggregate_chunks(chunks))
        assert len(out) == 1
        assert out[0].choices[0].delta.content == "before"
        assert "c1" in caplog.text

    def test_unfinished_window_strict_raises(self):
        agg = ChunkAggregator(strict=True)
        for chunk in _three_fragment_call()[:-1]:
            assert agg.feed(chunk) == []
        assert agg.inside_tool_call
        with pytest.raises(IncompleteToolCallError) as exc_info:
            agg.finish()
        assert exc_info.value.tool_call_id == "c1"
        assert not agg.inside_tool_call

    def test_finish_outside_window_is_quiet(self):
        agg = ChunkAggregator(strict=True)
        agg.feed(make_chunk("hi"))
        assert agg.finish() == []

    def test_multi_tool_call_fragment_rejected(self):
        bad = make_chunk(tool_calls=(
            ToolCall(id="c1", function=ChatCompletionFunction("f", "{}")),
            ToolCall(id="c2", function=ChatCompletionFunction("g", "{}")),
        ))
        agg = ChunkAggregator()
        agg.feed(make_tool_chunk("{", call_id="c0", name="h"))
        with pytest.raises(UnsupportedMultiToolCallError):
            agg.feed(bad)

    @pytest.mark.parametrize("finish_reason", [None, FinishReason.TOOL_CALLS])
    def test_multi_tool_call_opener_rejected(self, finish_reason):
        opener = make_chunk(
            tool_calls=(
                ToolCall(id="c1", function=ChatCompletionFunction("f", "{}")),
                ToolCall(id="c2", function=ChatCompletionFunction("g", "{}")),
            ),
            finish_reason=finish_reason,
        )
        chunks = [opener, make_tool_chunk("x", finish_reason=FinishReason.TOOL_CALLS)]
        out = []
        with pytest.raises(UnsupportedMultiToolCallError):
            for chunk in aggregate_chunks(chunks):
                out.append(chunk)
        assert out == []

    def test_reset(self):
        agg = ChunkAggregator()
        agg.feed(make_tool_chunk("{", call_id="c1", name="f"))
        agg.reset()
        assert agg.state == INITIAL_STATE

    def test_independent_aggregators_share_nothing(self):
        first, second = ChunkAggregator(), ChunkAggregator()
        first.feed(make_tool_chunk("{", call_id="c1", name="f"))
        assert first.inside_tool_call
        assert not second.inside_tool_call
        assert second.feed(make_chunk("x")) == [make_chunk("x")]


class TestAsyncAggregate:
    @pytest.mark.asyncio
    async def test_pass_through(self):
        chunks = [make_chunk("a"), make_chunk("b")]
        out = [c async for c in aggregate(_async_iter(chunks))]
        assert out == chunks

    @pytest.mark.asyncio
    async def test_tool_call_window(self):
        chunks = [make_chunk("a")] + _three_fragment_call()
        out = [c async for c in aggregate(_async_iter(chunks))]
        assert len(out) == 2
        assert out[1].choices[0].delta.tool_calls[0].function.arguments == '{"x":1,2}'

    @pytest.mark.asyncio
    async def test_upstream_error_propagates_after_earlier_output(self):
        failure = DecodeError("bad frame", frame="{oops")
        source = _async_iter([make_chunk("kept"), make_tool_chunk("{", call_id="c1", name="f"), failure])

        out = []
        with pytest.raises(DecodeError) as exc_info:
            async for chunk in aggregate(source):
                out.append(chunk)
        assert exc_info.value is failure
        assert [c.choices[0].delta.content for c in out] == ["kept"]

    @pytest.mark.asyncio
    async def test_strict_mode(self):
        source = _async_iter(_three_fragment_call()[:2])
        with pytest.raises(IncompleteToolCallError):
            async for _ in aggregate(source, strict=True):
                pass

    @pytest.mark.asyncio
    async def test_consumer_stop_closes_upstream(self):
        closed = []

        async def source():
            try:
                yield make_chunk("first")
                yield make_tool_chunk("{", call_id="c1", name="f")
                yield make_chunk("never reached")
            finally:
                closed.append(True)

        upstream = source()
        gen = aggregate(upstream)
        first = await gen.__anext__()
        assert first.choices[0].delta.content == "first"
        await gen.aclose()
        await upstream.aclose()
        assert closed == [True]
