"""
Merges streamed chat-completion chunks that belong to one tool call.

Providers stream a function call as a run of chunks: the first carries the
tool-call ``id`` and function ``name``, the following ones carry slices of
the JSON ``arguments`` string, and the run ends with a chunk whose
``finish_reason`` is ``tool_calls``.  ``merge`` folds such a run into one
chunk, left to right.

Field rules:
  - Scalar fields take the newer value when it is set, else keep the older.
  - ``content`` follows the same rule and falls back to ``""``; it is never
    concatenated.
  - ``role`` falls back to ``Role.ASSISTANT``.
  - ``function.arguments`` is concatenated in arrival order.

The fold is not associative: always reduce oldest-first.
"""

from __future__ import annotations

from aimodel.errors import UnsupportedMultiToolCallError
from aimodel.llm.types import (
    ChatCompletionChunk,
    ChatCompletionFunction,
    ChatCompletionMessage,
    ChunkChoice,
    FinishReason,
    Role,
    ToolCall,
)


# ---------------------------------------------------------------------------
# Boundary detection
# ---------------------------------------------------------------------------

def opens_or_continues_tool_call(chunk: ChatCompletionChunk | None) -> bool:
    """Return ``True`` if the chunk carries a tool-call fragment."""
    if chunk is None or not chunk.choices:
        return False
    delta = chunk.choices[0].delta
    if delta is None:
        return False
    return bool(delta.tool_calls)


def finishes_tool_call(chunk: ChatCompletionChunk | None) -> bool:
    """Return ``True`` if the chunk closes the current tool-call run."""
    if chunk is None or not chunk.choices:
        return False
    return chunk.choices[0].finish_reason is FinishReason.TOOL_CALLS


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------

def merge(
    previous: ChatCompletionChunk | None,
    current: ChatCompletionChunk,
) -> ChatCompletionChunk:
    """
    Fold *current* into *previous* and return the combined chunk.

    Raises ``UnsupportedMultiToolCallError`` when *current* carries more
    than one tool call, including when it is the first fragment.
    """
    _check_single_tool_call(current)
    if previous is None:
        return current

    prev_choice = previous.choices[0] if previous.choices else None
    cur_choice = current.choices[0] if current.choices else None
    choice = _merge_choice(prev_choice, cur_choice)

    return ChatCompletionChunk(
        id=_pick(current.id, previous.id),
        object=_pick(current.object, previous.object),
        created=_pick(current.created, previous.created),
        model=_pick(current.model, previous.model),
        choices=(choice,) if choice is not None else (),
    )


def _check_single_tool_call(chunk: ChatCompletionChunk) -> None:
    for choice in chunk.choices:
        if choice.delta is not None and choice.delta.tool_calls:
            if len(choice.delta.tool_calls) > 1:
                raise UnsupportedMultiToolCallError(len(choice.delta.tool_calls))


def _pick(current, previous):
    return current if current is not None else previous


def _merge_choice(
    previous: ChunkChoice | None,
    current: ChunkChoice | None,
) -> ChunkChoice | None:
    if previous is None:
        return current
    if current is None:
        return previous

    return ChunkChoice(
        index=_pick(current.index, previous.index),
        delta=_merge_message(previous.delta, current.delta),
        finish_reason=_pick(current.finish_reason, previous.finish_reason),
        usage=_pick(current.usage, previous.usage),
    )


def _merge_message(
    previous: ChatCompletionMessage | None,
    current: ChatCompletionMessage | None,
) -> ChatCompletionMessage:
    previous = previous or ChatCompletionMessage()
    current = current or ChatCompletionMessage()

    content = _pick(current.content, previous.content)
    role = _pick(current.role, previous.role)

    tool_calls: list[ToolCall] = []
    last_previous: ToolCall | None = None
    if previous.tool_calls:
        *carried, last_previous = previous.tool_calls
        tool_calls.extend(carried)

    if current.tool_calls:
        tool_call = current.tool_calls[0]
        if tool_call.id is not None:
            # A new call starts; keep the one we were building.
            if last_previous is not None:
                tool_calls.append(last_previous)
            tool_calls.append(tool_call)
        else:
            tool_calls.append(_merge_tool_call(last_previous, tool_call))
    elif last_previous is not None:
        tool_calls.append(last_previous)

    return ChatCompletionMessage(
        content=content if content is not None else "",
        role=role if role is not None else Role.ASSISTANT,
        name=_pick(current.name, previous.name),
        tool_call_id=_pick(current.tool_call_id, previous.tool_call_id),
        tool_calls=tuple(tool_calls) if tool_calls else None,
    )


def _merge_tool_call(previous: ToolCall | None, current: ToolCall) -> ToolCall:
    if previous is None:
        return current

    return ToolCall(
        id=_pick(current.id, previous.id),
        type=_pick(current.type, previous.type),
        function=_merge_function(previous.function, current.function),
    )


def _merge_function(
    previous: ChatCompletionFunction | None,
    current: ChatCompletionFunction | None,
) -> ChatCompletionFunction | None:
    if previous is None:
        return current
    if current is None:
        return previous

    arguments = (previous.arguments or "") + (current.arguments or "")
    return ChatCompletionFunction(
        name=_pick(current.name, previous.name),
        arguments=arguments,
    )
