"""Tests for schema parsing and structural value validation."""

from __future__ import annotations

import json
from typing import Any

import pytest

from specscope.validation.schema import (
    ArraySchema,
    ComposedSchema,
    ObjectSchema,
    PrimitiveSchema,
    ReferenceSchema,
    parse_schema,
)
from specscope.validation.validator import kind_of, matches_type, resolve_schema, validate_value

ROOT: dict[str, Any] = {
    "components": {
        "schemas": {
            "Name": {"type": "string", "minLength": 2},
            "Alias": {"$ref": "#/components/schemas/Name"},
            "User": {
                "type": "object",
                "required": ["email", "name"],
                "properties": {
                    "email": {"type": "string"},
                    "name": {"type": "string"},
                    "address": {
                        "type": "object",
                        "required": ["city"],
                        "properties": {"city": {"type": "string"}},
                    },
                },
            },
        }
    }
}


def _errors(value: Any, schema: dict[str, Any], **kwargs: Any) -> list[str]:
    return validate_value(value, schema, ROOT, **kwargs)


class TestParseSchema:
    def test_primitive(self) -> None:
        node = parse_schema({"type": "string", "maxLength": 3, "enum": ["a"]})
        assert isinstance(node, PrimitiveSchema)
        assert node.types == ("string",)
        assert node.max_length == 3
        assert node.enum == ("a",)

    def test_object_inferred_from_keywords(self) -> None:
        assert isinstance(parse_schema({"required": ["a"]}), ObjectSchema)

    def test_array_inferred_from_keywords(self) -> None:
        node = parse_schema({"items": {"type": "integer"}})
        assert isinstance(node, ArraySchema)
        assert isinstance(node.items, PrimitiveSchema)

    def test_composed_keeps_own_constraints(self) -> None:
        node = parse_schema({"allOf": [{"type": "object"}], "required": ["id"], "description": "x"})
        assert isinstance(node, ComposedSchema)
        assert isinstance(node.base, ObjectSchema)
        assert node.base.required == ("id",)

    def test_reference(self) -> None:
        node = parse_schema({"$ref": "#/components/schemas/Name"})
        assert isinstance(node, ReferenceSchema)
        assert node.kind == "reference"

    def test_type_list(self) -> None:
        assert parse_schema({"type": ["string", "null"]}).types == ("string", "null")

    def test_const_is_single_enum(self) -> None:
        assert parse_schema({"const": 3}).enum == (3,)

    def test_non_mapping_is_unconstrained(self) -> None:
        assert parse_schema(True) == PrimitiveSchema()


class TestTypes:
    @pytest.mark.parametrize(
        "value, kind",
        [(None, "null"), (True, "boolean"), (3, "integer"), (3.5, "number"), ("s", "string"),
         ([], "array"), ({}, "object")],
    )
    def test_kind_of(self, value: Any, kind: str) -> None:
        assert kind_of(value) == kind

    def test_integer_is_a_number(self) -> None:
        assert matches_type(3, "number")

    def test_integral_float_is_an_integer(self) -> None:
        assert matches_type(3.0, "integer")
        assert not matches_type(3.5, "integer")

    def test_boolean_is_not_a_number(self) -> None:
        assert not matches_type(True, "integer")

    def test_type_mismatch_message(self) -> None:
        assert _errors(5, {"type": "string"}) == ["Expected type 'string' but got 'integer'"]

    def test_type_list_accepts_any_member(self) -> None:
        assert _errors(None, {"type": ["string", "null"]}) == []

    def test_nullable(self) -> None:
        assert _errors(None, {"type": "string", "nullable": True}) == []
        assert _errors(None, {"type": "string"}) == ["Expected type 'string' but got 'null'"]


class TestStrings:
    def test_length(self) -> None:
        assert _errors("a", {"type": "string", "minLength": 2}) == [
            "String length is less than minimum 2"
        ]
        assert _errors("abcd", {"type": "string", "maxLength": 3}) == [
            "String length exceeds maximum 3"
        ]

    def test_pattern(self) -> None:
        assert _errors("abc", {"type": "string", "pattern": "^[0-9]+$"}) == [
            "String does not match pattern: ^[0-9]+$"
        ]
        assert _errors("x123", {"type": "string", "pattern": "[0-9]+"}) == []


class TestNumbers:
    def test_inclusive_maximum_accepts_boundary(self) -> None:
        assert _errors(10, {"type": "integer", "maximum": 10}) == []

    def test_exclusive_maximum_rejects_boundary(self) -> None:
        assert _errors(10, {"type": "integer", "maximum": 10, "exclusiveMaximum": True}) == [
            "Value must be less than 10"
        ]

    def test_numeric_exclusive_maximum(self) -> None:
        assert _errors(10, {"type": "number", "exclusiveMaximum": 10}) == [
            "Value must be less than 10"
        ]

    def test_minimum(self) -> None:
        assert _errors(0, {"type": "integer", "minimum": 1}) == [
            "Value must be greater than or equal to 1"
        ]
        assert _errors(1, {"type": "integer", "minimum": 1, "exclusiveMinimum": True}) == [
            "Value must be greater than 1"
        ]

    def test_above_maximum(self) -> None:
        assert _errors(11, {"maximum": 10}) == ["Value must be less than or equal to 10"]

    def test_multiple_of_decimal(self) -> None:
        assert _errors(0.3, {"type": "number", "multipleOf": 0.1}) == []
        assert _errors(7, {"type": "integer", "multipleOf": 2}) == ["Value must be a multiple of 2"]

    def test_integer_beyond_float_range(self) -> None:
        huge = json.loads("1" + "0" * 400)
        assert matches_type(huge, "integer")
        assert _errors(huge, {"type": "integer"}) == []
        assert _errors(huge, {"type": "integer", "maximum": 100}) == [
            "Value must be less than or equal to 100"
        ]
        assert _errors(huge, {"type": "integer", "multipleOf": 2}) == []
        assert _errors(huge + 1, {"type": "integer", "multipleOf": 2}) == [
            "Value must be a multiple of 2"
        ]


class TestArraysAndObjects:
    def test_item_counts(self) -> None:
        assert _errors([], {"type": "array", "minItems": 1}) == [
            "Array has fewer items than minimum 1"
        ]
        assert _errors([1, 2], {"type": "array", "maxItems": 1}) == [
            "Array has more items than maximum 1"
        ]

    def test_unique_items(self) -> None:
        schema = {"type": "array", "uniqueItems": True}
        assert _errors([{"a": 1, "b": 2}, {"b": 2, "a": 1}], schema) == ["Array items must be unique"]
        assert _errors([1, "1"], schema) == []

    def test_property_counts(self) -> None:
        assert _errors({}, {"type": "object", "minProperties": 1}) == [
            "Object has fewer properties than minimum 1"
        ]


class TestAggregation:
    def test_missing_required_reported_once(self) -> None:
        errors = _errors({"email": "a@example.com"}, {"$ref": "#/components/schemas/User"})
        assert errors == ["Missing required property: name"]

    def test_required_only_schema(self) -> None:
        assert _errors({"email": "a@b.com"}, {"required": ["email"]}) == []

    def test_valid_object(self) -> None:
        value = {"email": "a@example.com", "name": "Ann"}
        assert _errors(value, {"$ref": "#/components/schemas/User"}) == []

    def test_all_checks_run(self) -> None:
        schema = {"type": "string", "minLength": 5, "pattern": "^[a-z]+$", "enum": ["hello"]}
        assert _errors("AB", schema) == [
            "String length is less than minimum 5",
            "String does not match pattern: ^[a-z]+$",
            "Value must be one of: hello",
        ]

    def test_enum_is_type_strict(self) -> None:
        assert _errors(True, {"enum": [1, 2]}) == ["Value must be one of: 1, 2"]
        assert _errors(1, {"enum": [1, 2]}) == []


class TestReferences:
    def test_single_hop(self) -> None:
        assert _errors("a", {"$ref": "#/components/schemas/Name"}) == [
            "String length is less than minimum 2"
        ]

    def test_second_hop_not_followed(self) -> None:
        assert _errors("a", {"$ref": "#/components/schemas/Alias"}) == []

    def test_unresolvable_reference_yields_nothing(self) -> None:
        assert _errors(5, {"$ref": "#/components/schemas/Missing"}) == []
        assert resolve_schema({"$ref": "#/components/schemas/Missing"}, ROOT) is None


class TestComposition:
    def test_all_of(self) -> None:
        schema = {"allOf": [{"type": "string"}, {"minLength": 3}]}
        assert _errors("ab", schema) == ["String length is less than minimum 3"]

    def test_any_of(self) -> None:
        schema = {"anyOf": [{"type": "string"}, {"type": "integer"}]}
        assert _errors(1, schema) == []
        assert _errors(1.5, schema) == ["Value does not match any of the allowed schemas (anyOf)"]

    def test_one_of(self) -> None:
        schema = {"oneOf": [{"type": "number"}, {"type": "integer"}]}
        assert _errors(1.5, schema) == []
        assert _errors(2, schema) == ["Value matches 2 of the oneOf schemas; expected exactly one"]
        assert _errors("x", schema) == ["Value does not match any of the oneOf schemas"]


class TestDepth:
    def test_shallow_ignores_nested_values(self) -> None:
        value = {"email": "a@example.com", "name": 5, "address": {}}
        assert _errors(value, {"$ref": "#/components/schemas/User"}) == []

    def test_deep_reports_nested_paths(self) -> None:
        value = {"email": "a@example.com", "name": 5, "address": {}}
        errors = _errors(value, {"$ref": "#/components/schemas/User"}, deep=True)
        assert errors == [
            "name: Expected type 'string' but got 'integer'",
            "address: Missing required property: city",
        ]

    def test_deep_array_items(self) -> None:
        schema = {"type": "array", "items": {"type": "string"}}
        assert _errors(["a", 1], schema, deep=True) == [
            "[1]: Expected type 'string' but got 'integer'"
        ]
