"""Structured output converters."""

from aimodel.converter.structured import (
    StructuredOutputConverter,
    TypeOutputConverter,
    strip_code_fence,
)

__all__ = [
    "StructuredOutputConverter",
    "TypeOutputConverter",
    "strip_code_fence",
]
