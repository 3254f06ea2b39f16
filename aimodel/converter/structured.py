"""
Structured output: ask the model for JSON that matches a Python type and
parse its reply back into that type.

``TypeOutputConverter`` derives a JSON Schema (draft 2020-12) from any type
pydantic understands (``BaseModel`` subclasses, dataclasses, ``TypedDict``,
``list[...]`` of those, ...).  Objects forbid additional properties unless
the schema already says otherwise.
"""

from __future__ import annotations

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import jsonschema
from pydantic import TypeAdapter, ValidationError

from aimodel.errors import OutputConversionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_DRAFT = "https://json-schema.org/draft/2020-12/schema"

FORMAT_TEMPLATE = (
    "Your response should be in JSON format.\n"
    "Do not include any explanations, only provide a RFC8259 compliant JSON "
    "response following this format without deviation.\n"
    "Do not include markdown code blocks in your response.\n"
    "Remove the ```json markdown from the output.\n"
    "Here is the JSON Schema instance your output must adhere to:\n"
    "```{schema}```"
)


class StructuredOutputConverter(ABC, Generic[T]):
    """Converts raw model text into ``T`` and describes the expected format."""

    @abstractmethod
    def convert(self, text: str) -> T:
        ...

    @property
    @abstractmethod
    def format(self) -> str:
        """Instructions to append to the prompt."""
        ...


def strip_code_fence(text: str) -> str:
    """Trim whitespace and a surrounding Markdown code fence, if any."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        first, _, rest = text.partition("\n")
        if first.strip().lower() == "```json":
            text = rest
        else:
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def forbid_additional_properties(schema: Any) -> Any:
    """Return a copy of *schema* with ``additionalProperties: false`` on objects."""
    schema = copy.deepcopy(schema)

    def _walk(node: Any) -> None:
        if isinstance(node, dict):
            if node.get("type") == "object" and "additionalProperties" not in node:
                node["additionalProperties"] = False
            for value in node.values():
                _walk(value)
        elif isinstance(node, list):
            for item in node:
                _walk(item)

    _walk(schema)
    return schema


class TypeOutputConverter(StructuredOutputConverter[T]):
    """
    Structured output converter for an arbitrary Python type.

    Parameters
    ----------
    target_type:
        The type replies are parsed into.
    forbid_additional:
        Add ``additionalProperties: false`` to every object schema.
    """

    def __init__(self, target_type: Any, *, forbid_additional: bool = True) -> None:
        if target_type is None:
            raise ValueError("Type cannot be None")
        self.target_type = target_type
        self._adapter: TypeAdapter = TypeAdapter(target_type)
        self._schema = self._generate_schema(forbid_additional)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _generate_schema(self, forbid_additional: bool) -> dict:
        schema = self._adapter.json_schema()
        if forbid_additional:
            schema = forbid_additional_properties(schema)
        schema = {"$schema": SCHEMA_DRAFT, **schema}
        jsonschema.Draft202012Validator.check_schema(schema)
        return schema

    @property
    def json_schema_map(self) -> dict:
        return copy.deepcopy(self._schema)

    @property
    def json_schema(self) -> str:
        """The schema, pretty printed."""
        return json.dumps(self._schema, indent=2)

    @property
    def format(self) -> str:
        return FORMAT_TEMPLATE.format(schema=self.json_schema)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    def validate(self, data: Any) -> tuple[bool, str | None]:
        """Check decoded JSON against the generated schema."""
        try:
            jsonschema.validate(instance=data, schema=self._schema)
            return True, None
        except jsonschema.ValidationError as e:
            return False, str(e.message)

    def convert(self, text: str) -> T:
        """
        Parse *text* into the target type.

        Unknown fields are ignored; missing or mistyped ones raise
        ``OutputConversionError``.
        """
        cleaned = strip_code_fence(text)
        try:
            data = json.loads(cleaned)
            return self._adapter.validate_python(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.error(
                "Could not parse the given text to the desired target type: %r into %r",
                cleaned[:200],
                self.target_type,
            )
            raise OutputConversionError(str(exc), text=text) from exc
