"""
Windowed aggregation of a chat-completion chunk stream.

Ordinary chunks pass straight through.  A chunk that opens a tool call
starts a *window*; every following chunk is merged into it until one
finishes the tool call, at which point the merged chunk is emitted and
aggregation returns to pass-through.

The state machine is explicit::

    OUTSIDE --ordinary--> emit, OUTSIDE
    OUTSIDE --opens-----> seed window, INSIDE (emit at once if it also finishes)
    INSIDE  --any-------> merge; on finish emit, OUTSIDE

``step`` is the pure transition function.  ``ChunkAggregator`` wraps it for
incremental use, and ``aggregate`` / ``aggregate_chunks`` drive it over
async and sync iterables.

When the input ends while a window is open, the window is dropped and a
warning is logged.  With ``strict=True`` an ``IncompleteToolCallError`` is
raised instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

from aimodel.errors import IncompleteToolCallError
from aimodel.llm.chunk_merger import (
    finishes_tool_call,
    merge,
    opens_or_continues_tool_call,
)
from aimodel.llm.types import ChatCompletionChunk

logger = logging.getLogger(__name__)


class WindowState(Enum):
    OUTSIDE = "outside"
    INSIDE = "inside"


@dataclass(frozen=True)
class AggregatorState:
    """Where the aggregator is, plus the accumulated window when INSIDE."""

    mode: WindowState = WindowState.OUTSIDE
    window: ChatCompletionChunk | None = None


INITIAL_STATE = AggregatorState()


def step(
    state: AggregatorState,
    chunk: ChatCompletionChunk,
) -> tuple[AggregatorState, ChatCompletionChunk | None]:
    """
    Advance the state machine by one chunk.

    Returns the new state and the chunk to emit, or ``None`` when nothing
    is ready yet.  May raise ``UnsupportedMultiToolCallError`` from the
    merge.
    """
    if state.mode is WindowState.OUTSIDE:
        if not opens_or_continues_tool_call(chunk):
            return state, chunk
        if finishes_tool_call(chunk):
            return INITIAL_STATE, merge(None, chunk)
        return AggregatorState(WindowState.INSIDE, merge(None, chunk)), None

    window = merge(state.window, chunk)
    if finishes_tool_call(chunk):
        return INITIAL_STATE, window
    return AggregatorState(WindowState.INSIDE, window), None


def _open_tool_call_id(window: ChatCompletionChunk | None) -> str | None:
    if window is None or not window.choices:
        return None
    delta = window.choices[0].delta
    if delta is None or not delta.tool_calls:
        return None
    return delta.tool_calls[-1].id


class ChunkAggregator:
    """Feeds chunks through ``step`` and remembers the current state."""

    def __init__(self, *, strict: bool = False) -> None:
        self.strict = strict
        self._state = INITIAL_STATE

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def inside_tool_call(self) -> bool:
        return self._state.mode is WindowState.INSIDE

    def feed(self, chunk: ChatCompletionChunk) -> list[ChatCompletionChunk]:
        """
        Feed one chunk.

        Returns a (possibly empty) list of chunks ready for emission.
        """
        self._state, emitted = step(self._state, chunk)
        return [emitted] if emitted is not None else []

    def finish(self) -> list[ChatCompletionChunk]:
        """
        Signal end of input.

        An open tool-call window is discarded (or, in strict mode, reported
        as ``IncompleteToolCallError``).  Returns an empty list.
        """
        state, self._state = self._state, INITIAL_STATE
        if state.mode is WindowState.INSIDE:
            call_id = _open_tool_call_id(state.window)
            if self.strict:
                raise IncompleteToolCallError(call_id)
            logger.warning(
                "Stream ended inside tool call %s; dropping unfinished window",
                call_id,
            )
        return []

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._state = INITIAL_STATE


async def aggregate(
    chunks: AsyncIterable[ChatCompletionChunk],
    *,
    strict: bool = False,
) -> AsyncIterator[ChatCompletionChunk]:
    """
    Aggregate an async chunk stream, yielding one chunk per closed window.

    Errors raised by *chunks* propagate unchanged; windows already yielded
    stay delivered.  If the consumer stops early, the open window is
    dropped with the generator.
    """
    aggregator = ChunkAggregator(strict=strict)
    async for chunk in chunks:
        for out in aggregator.feed(chunk):
            yield out
    for out in aggregator.finish():
        yield out


def aggregate_chunks(
    chunks: Iterable[ChatCompletionChunk],
    *,
    strict: bool = False,
) -> Iterator[ChatCompletionChunk]:
    """Synchronous counterpart of ``aggregate``."""
    aggregator = ChunkAggregator(strict=strict)
    for chunk in chunks:
        yield from aggregator.feed(chunk)
    yield from aggregator.finish()
