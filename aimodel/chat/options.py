"""Portable chat options understood by every chat model."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass
class ChatOptions:
    model: str | None = None
    frequency_penalty: float | None = None
    max_tokens: int | None = None
    presence_penalty: float | None = None
    stop_sequences: list[str] | None = None
    temperature: float | None = None
    top_k: int | None = None
    top_p: float | None = None
    extra: dict = field(default_factory=dict)

    def copy(self) -> ChatOptions:
        return replace(
            self,
            stop_sequences=list(self.stop_sequences) if self.stop_sequences is not None else None,
            extra=dict(self.extra),
        )
