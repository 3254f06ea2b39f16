"""Chat model responses and their metadata."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from aimodel.chat.messages import AssistantMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Usage:
    """
    Token usage for one model call.

    ``total_tokens`` defaults to prompt + completion.  *native* keeps the
    provider's own usage object for callers that need extra fields.
    """

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int | None = None
    native: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.total_tokens is None:
            object.__setattr__(
                self, "total_tokens", self.prompt_tokens + self.completion_tokens
            )

    def __add__(self, other: Usage) -> Usage:
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def is_empty(self) -> bool:
        return self.prompt_tokens == 0 and self.completion_tokens == 0 and self.total_tokens == 0


EMPTY_USAGE = Usage()


def cumulative_usage(current: Usage, previous: ChatResponse | None) -> Usage:
    """
    Add the usage of *previous* (e.g. an earlier tool-calling round) to
    *current*.  Returns *current* unchanged when there is nothing to add.
    """
    if previous is None or previous.metadata.usage.is_empty():
        return current
    return current + previous.metadata.usage


@dataclass(frozen=True)
class ChatGenerationMetadata:
    finish_reason: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


NULL_GENERATION_METADATA = ChatGenerationMetadata()


@dataclass
class Generation:
    output: AssistantMessage
    metadata: ChatGenerationMetadata = NULL_GENERATION_METADATA


@dataclass
class ChatResponseMetadata:
    """Response-level metadata; arbitrary provider values live in ``extra``."""

    id: str = ""
    model: str = ""
    usage: Usage = EMPTY_USAGE
    extra: dict[str, Any] = field(default_factory=dict)

    def with_value(self, key: str, value: Any) -> ChatResponseMetadata:
        """Store *value* under *key*, ignoring ``None``; returns ``self``."""
        if key is None:
            raise ValueError("Key must not be None")
        if value is None:
            logger.debug("Ignore None value for key [%s]", key)
        else:
            self.extra[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self.extra.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.extra[key]

    def __contains__(self, key: str) -> bool:
        return key in self.extra


@dataclass
class ChatResponse:
    """The generations a chat model produced for one prompt."""

    generations: list[Generation] = field(default_factory=list)
    metadata: ChatResponseMetadata = field(default_factory=ChatResponseMetadata)

    @property
    def result(self) -> Generation | None:
        """The first generation, or ``None`` when there are none."""
        return self.generations[0] if self.generations else None

    @property
    def results(self) -> list[Generation]:
        return self.generations

    def has_tool_calls(self) -> bool:
        return any(g.output.has_tool_calls() for g in self.generations)

    def has_finish_reasons(self, finish_reasons: Iterable[str]) -> bool:
        if finish_reasons is None:
            raise ValueError("finish_reasons cannot be None")
        wanted = set(finish_reasons)
        return any(g.metadata.finish_reason in wanted for g in self.generations)
