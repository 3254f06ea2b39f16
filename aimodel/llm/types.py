"""
Wire types for OpenAI-style chat-completion endpoints (Moonshot).

Everything the provider streams back is decoded into the frozen dataclasses
below.  ``from_dict`` raises ``ValueError`` / ``TypeError`` on malformed
payloads; the stream decoder turns those into ``DecodeError``.  ``to_dict``
omits ``None`` fields so request bodies only carry what was set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"
    # Only for compatibility with the Mistral AI API.
    TOOL_CALL = "tool_call"


TOOL_CHOICE_AUTO = "auto"
TOOL_CHOICE_NONE = "none"


def tool_choice_function(function_name: str) -> dict:
    """Build a ``tool_choice`` value that forces a call to *function_name*."""
    return {"type": "function", "function": {"name": function_name}}


# ---------------------------------------------------------------------------
# Decoding helpers
# ---------------------------------------------------------------------------

def _get(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    value = data.get(key)
    if value is None:
        return None
    # bool is an int subclass; never accept it where a number is expected.
    if isinstance(value, bool) and kind is not bool:
        raise TypeError(f"field {key!r} has unexpected type bool")
    if not isinstance(value, kind):
        raise TypeError(
            f"field {key!r} has unexpected type {type(value).__name__}"
        )
    return value


def _get_dict(data: dict, key: str) -> dict | None:
    return _get(data, key, dict)


def _get_list(data: dict, key: str) -> list | None:
    return _get(data, key, list)


def _drop_none(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


# ---------------------------------------------------------------------------
# Shared records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the provider."""

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Usage:
        return cls(
            prompt_tokens=_get(data, "prompt_tokens", int),
            completion_tokens=_get(data, "completion_tokens", int),
            total_tokens=_get(data, "total_tokens", int),
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        })


@dataclass(frozen=True)
class ChatCompletionFunction:
    """Function name and (possibly partial) JSON argument string."""

    name: str | None = None
    arguments: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletionFunction:
        return cls(
            name=_get(data, "name", str),
            arguments=_get(data, "arguments", str),
        )

    def to_dict(self) -> dict:
        return _drop_none({"name": self.name, "arguments": self.arguments})


@dataclass(frozen=True)
class ToolCall:
    """
    A tool call requested by the model.

    While streaming, only the opening fragment carries ``id`` and
    ``function.name``; continuation fragments carry argument slices only.
    """

    id: str | None = None
    type: str | None = None
    function: ChatCompletionFunction | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ToolCall:
        func = _get_dict(data, "function")
        return cls(
            id=_get(data, "id", str),
            type=_get(data, "type", str),
            function=ChatCompletionFunction.from_dict(func) if func is not None else None,
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "id": self.id,
            "type": self.type,
            "function": self.function.to_dict() if self.function else None,
        })


@dataclass(frozen=True)
class ChatCompletionMessage:
    """A chat message, used both in requests and as a streamed delta."""

    content: str | None = None
    role: Role | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletionMessage:
        role = _get(data, "role", str)
        raw_calls = _get_list(data, "tool_calls")
        tool_calls = None
        if raw_calls is not None:
            tool_calls = tuple(
                ToolCall.from_dict(_require_dict(tc, "tool_calls[]"))
                for tc in raw_calls
            )
        return cls(
            content=_get(data, "content", str),
            role=Role(role) if role is not None else None,
            name=_get(data, "name", str),
            tool_call_id=_get(data, "tool_call_id", str),
            tool_calls=tool_calls,
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "content": self.content,
            "role": self.role.value if self.role else None,
            "name": self.name,
            "tool_call_id": self.tool_call_id,
            "tool_calls": (
                [tc.to_dict() for tc in self.tool_calls]
                if self.tool_calls is not None else None
            ),
        })


def _require_dict(value: Any, where: str) -> dict:
    if not isinstance(value, dict):
        raise TypeError(f"{where} must be an object, got {type(value).__name__}")
    return value


def _finish_reason(data: dict) -> FinishReason | None:
    raw = _get(data, "finish_reason", str)
    return FinishReason(raw) if raw is not None else None


# ---------------------------------------------------------------------------
# Streaming chunks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChunkChoice:
    """The per-choice part of a streamed chunk."""

    index: int | None = None
    delta: ChatCompletionMessage | None = None
    finish_reason: FinishReason | None = None
    usage: Usage | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChunkChoice:
        delta = _get_dict(data, "delta")
        usage = _get_dict(data, "usage")
        return cls(
            index=_get(data, "index", int),
            delta=ChatCompletionMessage.from_dict(delta) if delta is not None else None,
            finish_reason=_finish_reason(data),
            usage=Usage.from_dict(usage) if usage is not None else None,
        )

    def to_dict(self) -> dict:
        return _drop_none({
            "index": self.index,
            "delta": self.delta.to_dict() if self.delta else None,
            "finish_reason": self.finish_reason.value if self.finish_reason else None,
            "usage": self.usage.to_dict() if self.usage else None,
        })


@dataclass(frozen=True)
class ChatCompletionChunk:
    """One decoded stream frame (``object == "chat.completion.chunk"``)."""

    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    choices: tuple[ChunkChoice, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletionChunk:
        _require_dict(data, "chunk")
        raw_choices = _get_list(data, "choices") or []
        return cls(
            id=_get(data, "id", str),
            object=_get(data, "object", str),
            created=_get(data, "created", int),
            model=_get(data, "model", str),
            choices=tuple(
                ChunkChoice.from_dict(_require_dict(c, "choices[]"))
                for c in raw_choices
            ),
        )

    def to_dict(self) -> dict:
        d = _drop_none({
            "id": self.id,
            "object": self.object,
            "created": self.created,
            "model": self.model,
        })
        d["choices"] = [c.to_dict() for c in self.choices]
        return d


# ---------------------------------------------------------------------------
# Non-streaming completions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Choice:
    index: int | None = None
    message: ChatCompletionMessage | None = None
    finish_reason: FinishReason | None = None
    usage: Usage | None = None

    @classmethod
    def from_dict(cls, data: dict) -> Choice:
        message = _get_dict(data, "message")
        usage = _get_dict(data, "usage")
        return cls(
            index=_get(data, "index", int),
            message=ChatCompletionMessage.from_dict(message) if message is not None else None,
            finish_reason=_finish_reason(data),
            usage=Usage.from_dict(usage) if usage is not None else None,
        )


@dataclass(frozen=True)
class ChatCompletion:
    """A complete (non-streamed) chat completion response."""

    id: str | None = None
    object: str | None = None
    created: int | None = None
    model: str | None = None
    choices: tuple[Choice, ...] | None = None
    usage: Usage | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletion:
        _require_dict(data, "completion")
        raw_choices = _get_list(data, "choices")
        usage = _get_dict(data, "usage")
        return cls(
            id=_get(data, "id", str),
            object=_get(data, "object", str),
            created=_get(data, "created", int),
            model=_get(data, "model", str),
            choices=(
                tuple(Choice.from_dict(_require_dict(c, "choices[]")) for c in raw_choices)
                if raw_choices is not None else None
            ),
            usage=Usage.from_dict(usage) if usage is not None else None,
        )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

@dataclass
class FunctionDefinition:
    name: str
    description: str | None = None
    parameters: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return _drop_none({
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        })


@dataclass
class FunctionTool:
    """A tool the model may call, described by a JSON-schema ``parameters``."""

    function: FunctionDefinition
    type: str = "function"

    @classmethod
    def of(cls, name: str, description: str | None, parameters: dict) -> FunctionTool:
        return cls(FunctionDefinition(name, description, parameters))

    def to_dict(self) -> dict:
        return {"type": self.type, "function": self.function.to_dict()}


DEFAULT_CHAT_MODEL = "moonshot-v1-8k"


@dataclass
class ChatCompletionRequest:
    messages: list[ChatCompletionMessage]
    model: str = DEFAULT_CHAT_MODEL
    max_tokens: int | None = None
    temperature: float | None = 0.7
    top_p: float | None = 1.0
    n: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stop: list[str] | None = None
    stream: bool = False
    tools: list[FunctionTool] | None = None
    tool_choice: str | dict | None = None
    user: str | None = None

    def to_dict(self) -> dict:
        return _drop_none({
            "messages": [m.to_dict() for m in self.messages],
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "n": self.n,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
            "stop": self.stop,
            "stream": self.stream,
            "tools": [t.to_dict() for t in self.tools] if self.tools is not None else None,
            "tool_choice": self.tool_choice,
            "user": self.user,
        })
