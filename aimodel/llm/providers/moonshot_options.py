"""Moonshot-specific chat options."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from aimodel.chat.options import ChatOptions
from aimodel.llm.types import FunctionTool


@dataclass
class MoonshotChatOptions(ChatOptions):
    """
    ``ChatOptions`` plus the request fields only Moonshot understands.

    ``functions``, ``proxy_tool_calls`` and ``tool_context`` are client-side
    settings and never sent on the wire.  ``functions`` filters ``tools``
    when building a request.  ``proxy_tool_calls`` and ``tool_context`` are
    not read by ``MoonshotChatModel``; they are carried through ``merge``
    for callers that execute returned tool calls themselves.
    """

    n: int | None = None
    tools: list[FunctionTool] | None = None
    tool_choice: str | dict | None = None
    user: str | None = None
    functions: set[str] = field(default_factory=set)
    proxy_tool_calls: bool | None = None
    tool_context: dict[str, Any] = field(default_factory=dict)

    @property
    def stop(self) -> list[str] | None:
        return self.stop_sequences

    @stop.setter
    def stop(self, value: list[str] | None) -> None:
        self.stop_sequences = value

    @classmethod
    def from_options(cls, options: ChatOptions) -> MoonshotChatOptions:
        """Lift portable options (or copy Moonshot ones)."""
        if isinstance(options, MoonshotChatOptions):
            return options.copy()
        common = {f.name: getattr(options, f.name) for f in fields(ChatOptions)}
        return cls(**common).copy()

    def copy(self) -> MoonshotChatOptions:
        return replace(
            self,
            stop_sequences=list(self.stop_sequences) if self.stop_sequences is not None else None,
            extra=dict(self.extra),
            tools=list(self.tools) if self.tools is not None else None,
            functions=set(self.functions),
            tool_context=dict(self.tool_context),
        )

    def merge(self, runtime: ChatOptions | None) -> MoonshotChatOptions:
        """
        Overlay *runtime* options on these defaults.

        Set (non-``None``, non-empty) runtime fields win; everything else
        falls back to the defaults.
        """
        if runtime is None:
            return self.copy()
        runtime = MoonshotChatOptions.from_options(runtime)
        merged: dict[str, Any] = {}
        for f in fields(MoonshotChatOptions):
            value = getattr(runtime, f.name)
            if value is None or (isinstance(value, (set, dict)) and not value):
                value = getattr(self, f.name)
            merged[f.name] = value
        merged["extra"] = {**self.extra, **runtime.extra}
        merged["tool_context"] = {**self.tool_context, **runtime.tool_context}
        return MoonshotChatOptions(**merged).copy()
