"""
Prompt templates with ``{name}`` placeholders.

Rendering uses ``str.format_map`` syntax (``{{`` / ``}}`` escape braces).
Every placeholder must be bound; missing ones raise ``ValueError``.
``pathlib.Path`` values render as the file's text and ``bytes`` values
as UTF-8 text.
"""

from __future__ import annotations

import logging
import string
from pathlib import Path
from typing import Any, Mapping

from aimodel.chat.media import Media
from aimodel.chat.messages import UserMessage, read_resource
from aimodel.chat.options import ChatOptions
from aimodel.chat.prompt import Prompt

logger = logging.getLogger(__name__)

_FORMATTER = string.Formatter()


def template_variables(template: str) -> set[str]:
    """Return the placeholder names used by *template*."""
    names: set[str] = set()
    for _, field_name, _, _ in _FORMATTER.parse(template):
        if field_name:
            names.add(field_name.split(".", 1)[0].split("[", 1)[0])
    return names


def _render_resource(value: Path | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        if not value.exists() or value.stat().st_size == 0:
            return ""
        return value.read_text(encoding="utf-8")
    except OSError:
        logger.warning("Failed to render resource: %s", value, exc_info=True)
        return f"[Unable to render resource: {value}]"


class PromptTemplate:
    """A reusable template that renders into messages and prompts."""

    def __init__(self, template: str, variables: Mapping[str, Any] | None = None) -> None:
        if not template or not template.strip():
            raise ValueError("template cannot be None or empty")
        variables = dict(variables or {})
        if any(k is None for k in variables):
            raise ValueError("variables keys cannot be None")
        self.template = template
        self.variables: dict[str, Any] = variables

    @classmethod
    def from_resource(
        cls,
        path: str | Path,
        variables: Mapping[str, Any] | None = None,
    ) -> PromptTemplate:
        return cls(read_resource(path), variables)

    def add(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def render(self, variables: Mapping[str, Any] | None = None) -> str:
        """Render with the template's variables updated by *variables*."""
        combined = dict(self.variables)
        if variables:
            combined.update(variables)
        processed = {
            k: _render_resource(v) if isinstance(v, (Path, bytes)) else v
            for k, v in combined.items()
        }

        missing = template_variables(self.template) - processed.keys()
        if missing:
            raise ValueError(
                "Not all variables were replaced in the template. "
                f"Missing variable names are: {sorted(missing)}"
            )
        return self.template.format_map(processed)

    def create_message(
        self,
        variables: Mapping[str, Any] | None = None,
        media: list[Media] | None = None,
    ) -> UserMessage:
        return UserMessage(self.render(variables), media=media or [])

    def create(
        self,
        variables: Mapping[str, Any] | None = None,
        options: ChatOptions | None = None,
    ) -> Prompt:
        return Prompt(self.render(variables), options)

    def mutate(self, **variables: Any) -> PromptTemplate:
        """Return a copy of this template with extra *variables* bound."""
        return PromptTemplate(self.template, {**self.variables, **variables})
