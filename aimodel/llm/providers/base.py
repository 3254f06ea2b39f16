"""Abstract base class for chat models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from aimodel.chat.messages import Message
from aimodel.chat.options import ChatOptions
from aimodel.chat.prompt import Prompt
from aimodel.chat.response import ChatResponse


class ChatModel(ABC):
    """
    A chat model turns a ``Prompt`` into ``ChatResponse`` objects.

    Implementations must support:
      - Blocking calls (``call``).
      - Streaming calls (``stream``), one response per emitted chunk.
    """

    @abstractmethod
    async def call(self, prompt: Prompt) -> ChatResponse:
        """Run the prompt and return the complete response."""
        ...

    @abstractmethod
    async def stream(self, prompt: Prompt) -> AsyncIterator[ChatResponse]:
        """
        Run the prompt in streaming mode.

        Yields one ``ChatResponse`` per aggregated chunk.
        """
        ...
        # Make the method an async generator so sub-classes can ``yield``.
        if False:  # pragma: no cover
            yield ChatResponse()  # type: ignore[misc]

    @property
    def default_options(self) -> ChatOptions:
        return ChatOptions()

    async def call_text(self, message: str) -> str:
        """Send a single user message and return the reply text."""
        response = await self.call(Prompt(message))
        generation = response.result
        if generation is None:
            return ""
        return generation.output.text or ""

    async def call_messages(self, *messages: Message) -> str:
        """Send *messages* as one prompt and return the reply text."""
        response = await self.call(Prompt(list(messages)))
        generation = response.result
        if generation is None:
            return ""
        return generation.output.text or ""
