"""LLM subsystem -- wire types, stream aggregation, providers and routing."""

from aimodel.llm.aggregator import (
    AggregatorState,
    ChunkAggregator,
    WindowState,
    aggregate,
    aggregate_chunks,
    step,
)
from aimodel.llm.chunk_merger import (
    finishes_tool_call,
    merge,
    opens_or_continues_tool_call,
)
from aimodel.llm.router import ChatRouter
from aimodel.llm.types import (
    ChatCompletion,
    ChatCompletionChunk,
    ChatCompletionFunction,
    ChatCompletionMessage,
    ChatCompletionRequest,
    ChunkChoice,
    FinishReason,
    Role,
    ToolCall,
)

__all__ = [
    "AggregatorState",
    "ChatCompletion",
    "ChatCompletionChunk",
    "ChatCompletionFunction",
    "ChatCompletionMessage",
    "ChatCompletionRequest",
    "ChatRouter",
    "ChunkAggregator",
    "ChunkChoice",
    "FinishReason",
    "Role",
    "ToolCall",
    "WindowState",
    "aggregate",
    "aggregate_chunks",
    "finishes_tool_call",
    "merge",
    "opens_or_continues_tool_call",
    "step",
]
