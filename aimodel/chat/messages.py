"""
Chat message types.

Four kinds exist, one dataclass each, tagged by ``message_type``:

  - ``SystemMessage``        instructions for the model
  - ``UserMessage``          end-user input, optionally with media
  - ``AssistantMessage``     model output, optionally with tool calls
  - ``ToolResponseMessage``  results of tool calls sent back to the model

Every message copies its ``metadata`` on construction and records its kind
under the ``message_type`` key.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

from aimodel.chat.media import Media

MESSAGE_TYPE = "message_type"


class MessageType(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


def read_resource(path: str | Path, encoding: str = "utf-8") -> str:
    """Read a text resource from disk."""
    return Path(path).read_text(encoding=encoding)


@dataclass
class Message:
    """Base class; use one of the concrete message kinds."""

    text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    message_type: ClassVar[MessageType]

    def __post_init__(self) -> None:
        if self.message_type in (MessageType.SYSTEM, MessageType.USER) and self.text is None:
            raise ValueError(
                "Content must not be None for SYSTEM or USER messages"
            )
        if self.metadata is None:
            raise ValueError("Metadata must not be None")
        self.metadata = dict(self.metadata)
        self.metadata[MESSAGE_TYPE] = self.message_type

    @classmethod
    def from_resource(cls, path: str | Path, **kwargs: Any):
        """Create a message whose text is the contents of *path*."""
        return cls(read_resource(path), **kwargs)

    def copy(self):
        return replace(self)

    def mutate(self, **changes: Any):
        """Return a copy with *changes* applied."""
        return replace(self, **changes)


@dataclass
class SystemMessage(Message):
    message_type: ClassVar[MessageType] = MessageType.SYSTEM


@dataclass
class UserMessage(Message):
    media: list[Media] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.USER

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.media is None:
            raise ValueError("Media must not be None")
        self.media = list(self.media)


@dataclass
class ToolCall:
    """A tool invocation requested by the assistant."""

    id: str
    type: str
    name: str
    arguments: str


@dataclass
class AssistantMessage(Message):
    tool_calls: list[ToolCall] = field(default_factory=list)
    media: list[Media] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.ASSISTANT

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.tool_calls is None:
            raise ValueError("Tool calls must not be None")
        if self.media is None:
            raise ValueError("Media must not be None")
        self.tool_calls = list(self.tool_calls)
        self.media = list(self.media)

    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class ToolResponse:
    id: str | None
    name: str
    response_data: str


@dataclass
class ToolResponseMessage(Message):
    text: str | None = ""
    responses: list[ToolResponse] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.TOOL

    def __post_init__(self) -> None:
        super().__post_init__()
        self.responses = list(self.responses)
