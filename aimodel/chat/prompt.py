"""The ``Prompt`` request object handed to a chat model."""

from __future__ import annotations

from typing import Callable, Sequence

from aimodel.chat.messages import Message, SystemMessage, UserMessage
from aimodel.chat.options import ChatOptions


class Prompt:
    """
    An ordered list of messages plus optional chat options.

    *messages* may be a plain string (wrapped in a ``UserMessage``), a single
    message or a sequence of messages.
    """

    def __init__(
        self,
        messages: str | Message | Sequence[Message],
        options: ChatOptions | None = None,
    ) -> None:
        if messages is None:
            raise ValueError("messages cannot be None")
        if isinstance(messages, str):
            messages = [UserMessage(messages)]
        elif isinstance(messages, Message):
            messages = [messages]
        messages = list(messages)
        if any(m is None for m in messages):
            raise ValueError("messages cannot contain None elements")
        self.messages: list[Message] = messages
        self.options = options

    @classmethod
    def build(
        cls,
        *,
        content: str | None = None,
        messages: Sequence[Message] | None = None,
        options: ChatOptions | None = None,
    ) -> Prompt:
        """Keyword-only constructor; *content* and *messages* are exclusive."""
        if content is not None and messages is not None:
            raise ValueError("content and messages cannot be set at the same time")
        if content is not None:
            return cls(content, options)
        if messages is not None:
            return cls(messages, options)
        raise ValueError("either content or messages must be set")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def contents(self) -> str:
        """Concatenated text of all messages."""
        return "".join(m.text or "" for m in self.messages)

    @property
    def system_message(self) -> SystemMessage:
        """The first system message, or an empty one."""
        for message in self.messages:
            if isinstance(message, SystemMessage):
                return message
        return SystemMessage("")

    @property
    def user_message(self) -> UserMessage:
        """The last user message, or an empty one."""
        for message in reversed(self.messages):
            if isinstance(message, UserMessage):
                return message
        return UserMessage("")

    @property
    def user_messages(self) -> list[UserMessage]:
        return [m for m in self.messages if isinstance(m, UserMessage)]

    # ------------------------------------------------------------------
    # Copies
    # ------------------------------------------------------------------

    def copy(self) -> Prompt:
        return Prompt(
            [m.copy() for m in self.messages],
            self.options.copy() if self.options is not None else None,
        )

    def mutate(
        self,
        *,
        messages: Sequence[Message] | None = None,
        options: ChatOptions | None = None,
    ) -> Prompt:
        """Return a new prompt with *messages* and/or *options* replaced."""
        return Prompt(
            list(messages) if messages is not None else list(self.messages),
            options if options is not None else self.options,
        )

    def augment_system_message(
        self,
        augmenter: str | Callable[[SystemMessage], SystemMessage],
    ) -> Prompt:
        """
        Replace the first system message with ``augmenter(message)``.

        A string sets the text.  When the prompt has no system message an
        empty one is augmented and inserted first.
        """
        if isinstance(augmenter, str):
            text = augmenter
            augmenter = lambda m: m.mutate(text=text)  # noqa: E731

        messages = list(self.messages)
        for i, message in enumerate(messages):
            if isinstance(message, SystemMessage):
                messages[i] = augmenter(message)
                break
        else:
            messages.insert(0, augmenter(SystemMessage("")))
        return Prompt(messages, self._options_copy())

    def augment_user_message(
        self,
        augmenter: str | Callable[[UserMessage], UserMessage],
    ) -> Prompt:
        """
        Replace the last user message with ``augmenter(message)``.

        A string sets the text.  When the prompt has no user message an
        empty one is augmented and appended.
        """
        if isinstance(augmenter, str):
            text = augmenter
            augmenter = lambda m: m.mutate(text=text)  # noqa: E731

        messages = list(self.messages)
        for i in range(len(messages) - 1, -1, -1):
            if isinstance(messages[i], UserMessage):
                messages[i] = augmenter(messages[i])
                break
        else:
            messages.append(augmenter(UserMessage("")))
        return Prompt(messages, self._options_copy())

    def _options_copy(self) -> ChatOptions | None:
        return self.options.copy() if self.options is not None else None

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Prompt):
            return NotImplemented
        return self.messages == other.messages and self.options == other.options

    def __repr__(self) -> str:
        return f"Prompt(messages={self.messages!r}, options={self.options!r})"
