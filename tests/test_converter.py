"""Tests for aimodel.converter.structured."""

from __future__ import annotations

import json
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from aimodel.converter.structured import (
    SCHEMA_DRAFT,
    TypeOutputConverter,
    forbid_additional_properties,
    strip_code_fence,
)
from aimodel.errors import OutputConversionError


class Weather(BaseModel):
    city: str
    temperature_c: float


@dataclass
class Point:
    x: int
    y: int


class TestStripCodeFence:
    def test_json_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fence("```\n[1, 2]\n```") == "[1, 2]"

    def test_plain_text_trimmed(self):
        assert strip_code_fence('  {"a": 1}\n') == '{"a": 1}'


class TestForbidAdditionalProperties:
    def test_adds_flag_to_nested_objects(self):
        schema = {
            "type": "object",
            "properties": {"inner": {"type": "object", "properties": {}}},
        }
        result = forbid_additional_properties(schema)
        assert result["additionalProperties"] is False
        assert result["properties"]["inner"]["additionalProperties"] is False
        assert "additionalProperties" not in schema

    def test_existing_setting_kept(self):
        schema = {"type": "object", "additionalProperties": {"type": "integer"}}
        assert forbid_additional_properties(schema) == schema


class TestTypeOutputConverter:
    def test_schema_for_model(self):
        converter = TypeOutputConverter(Weather)
        schema = converter.json_schema_map
        assert schema["$schema"] == SCHEMA_DRAFT
        assert schema["type"] == "object"
        assert set(schema["required"]) == {"city", "temperature_c"}
        assert schema["additionalProperties"] is False
        assert json.loads(converter.json_schema) == schema

    def test_schema_allows_additional_when_asked(self):
        schema = TypeOutputConverter(Weather, forbid_additional=False).json_schema_map
        assert "additionalProperties" not in schema

    def test_format_instructions(self):
        converter = TypeOutputConverter(Weather)
        text = converter.format
        assert "RFC8259" in text
        assert "```" + converter.json_schema + "```" in text

    def test_convert_model(self):
        converter = TypeOutputConverter(Weather)
        weather = converter.convert('```json\n{"city": "Paris", "temperature_c": 21.5}\n```')
        assert weather == Weather(city="Paris", temperature_c=21.5)

    def test_convert_ignores_unknown_fields(self):
        weather = TypeOutputConverter(Weather).convert(
            '{"city": "Oslo", "temperature_c": -3, "humidity": 80}'
        )
        assert weather.city == "Oslo"

    def test_convert_list_of_models(self):
        converter = TypeOutputConverter(list[Weather])
        schema = converter.json_schema_map
        assert schema["type"] == "array"
        assert schema["$defs"]["Weather"]["additionalProperties"] is False

        reports = converter.convert('[{"city": "A", "temperature_c": 1}, {"city": "B", "temperature_c": 2}]')
        assert [r.city for r in reports] == ["A", "B"]

    def test_convert_dataclass(self):
        assert TypeOutputConverter(Point).convert('{"x": 1, "y": 2}') == Point(1, 2)

    @pytest.mark.parametrize("text", [
        "not json at all",
        '{"city": "Paris"}',
        '{"city": "Paris", "temperature_c": "warm"}',
    ])
    def test_convert_failures(self, text):
        with pytest.raises(OutputConversionError) as exc_info:
            TypeOutputConverter(Weather).convert(text)
        assert exc_info.value.text == text

    def test_validate(self):
        converter = TypeOutputConverter(Weather)
        assert converter.validate({"city": "Paris", "temperature_c": 1.0}) == (True, None)

        ok, message = converter.validate({"city": "Paris", "temperature_c": 1.0, "extra": 1})
        assert not ok
        assert "extra" in message

        ok, message = converter.validate({"city": "Paris"})
        assert not ok
        assert "temperature_c" in message

    def test_none_type_rejected(self):
        with pytest.raises(ValueError):
            TypeOutputConverter(None)
