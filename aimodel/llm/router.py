"""
Chat router -- manages named chat models and drains streams.

The router is the entry point the CLI uses when it needs a model response.
It:

  1. Delegates ``call`` / ``stream`` to the active chat model.
  2. Drains a stream into one ``ChatResponse`` (``chat_complete``): text is
     concatenated, tool calls are collected in order, and the last
     non-empty usage and finish reason win.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator

from aimodel.chat.messages import AssistantMessage, ToolCall
from aimodel.chat.prompt import Prompt
from aimodel.chat.response import (
    EMPTY_USAGE,
    ChatGenerationMetadata,
    ChatResponse,
    ChatResponseMetadata,
    Generation,
)
from aimodel.llm.providers.base import ChatModel

logger = logging.getLogger(__name__)


class ChatRouter:
    """
    Routes prompts to a named chat model.
    """

    def __init__(self) -> None:
        self._models: dict[str, ChatModel] = {}
        self._active: str | None = None

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    def register_model(self, name: str, model: ChatModel) -> None:
        """Register a chat model under *name*.  Overwrites any existing entry."""
        self._models[name] = model
        if self._active is None:
            self._active = name

    def set_active(self, name: str) -> None:
        """
        Switch the active model.

        Raises ``KeyError`` if *name* has not been registered.
        """
        if name not in self._models:
            raise KeyError(
                f"Unknown model {name!r}. "
                f"Registered: {list(self._models)}"
            )
        self._active = name

    @property
    def active_name(self) -> str | None:
        return self._active

    @property
    def active_model(self) -> ChatModel:
        """
        Return the active ``ChatModel``.

        Raises ``RuntimeError`` if no model is active.
        """
        if self._active is None or self._active not in self._models:
            raise RuntimeError("No active chat model")
        return self._models[self._active]

    @property
    def model_names(self) -> list[str]:
        return list(self._models)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def call(self, prompt: Prompt) -> ChatResponse:
        return await self.active_model.call(prompt)

    async def stream(self, prompt: Prompt) -> AsyncIterator[ChatResponse]:
        async for response in self.active_model.stream(prompt):
            yield response

    async def chat_complete(self, prompt: Prompt) -> ChatResponse:
        """Consume the full stream and return a single ``ChatResponse``."""
        content_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        finish_reason = ""
        response_id = ""
        model = ""
        usage = EMPTY_USAGE
        metadata: dict = {}

        async for response in self.active_model.stream(prompt):
            for generation in response.generations:
                output = generation.output
                if output.text:
                    content_parts.append(output.text)
                tool_calls.extend(output.tool_calls)
                if generation.metadata.finish_reason:
                    finish_reason = generation.metadata.finish_reason
                metadata.update(
                    {k: v for k, v in output.metadata.items() if v not in (None, "")}
                )
            response_id = response.metadata.id or response_id
            model = response.metadata.model or model
            if not response.metadata.usage.is_empty():
                usage = response.metadata.usage

        if self._active:
            metadata["model_name"] = self._active
        logger.debug(
            "Drained stream: %d chars, %d tool calls, finish=%s",
            sum(len(p) for p in content_parts),
            len(tool_calls),
            finish_reason or "-",
        )

        message = AssistantMessage("".join(content_parts), metadata, tool_calls=tool_calls)
        return ChatResponse(
            [Generation(message, ChatGenerationMetadata(finish_reason=finish_reason))],
            ChatResponseMetadata(id=response_id, model=model, usage=usage),
        )
