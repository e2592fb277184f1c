"""Structural validation of values against OpenAPI schema nodes.

:func:`validate_value` checks one value against one schema node and returns
every violation it finds as a message string.  It is a pure function:
nothing is logged, raised, or mutated.

Reference handling is deliberately limited to a single hop.  A reference
node is looked up once in the root document; if the target is itself a
reference, no structural checks run for it.

All checks at a node are independent and all of them run, so one call
reports every problem at that node:

* declared type versus the value's runtime kind;
* strings: ``minLength``, ``maxLength``, ``pattern``;
* numbers: ``minimum``/``maximum`` (inclusive or exclusive), ``multipleOf``;
* arrays: ``minItems``, ``maxItems``, ``uniqueItems``;
* objects: ``required``, ``minProperties``, ``maxProperties``;
* ``enum`` membership;
* ``allOf`` / ``anyOf`` / ``oneOf`` composition.

By default validation is shallow: property values and array items are not
validated against their own sub-schemas.  Pass ``deep=True`` to descend;
nested messages are then prefixed with the value path (``address.city``,
``tags[2]``).
"""

from __future__ import annotations

import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from specscope.exceptions import ReferenceResolutionError
from specscope.models import Document
from specscope.parser.resolver import lookup_pointer
from specscope.validation.schema import (
    ArraySchema,
    ComposedSchema,
    ObjectSchema,
    PrimitiveSchema,
    ReferenceSchema,
    SchemaNode,
    parse_schema,
)

Root = Union[Document, dict[str, Any]]


def kind_of(value: Any) -> str:
    """Return the JSON Schema type name for a Python value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def matches_type(value: Any, declared: str) -> bool:
    """Whether *value* satisfies a single declared JSON Schema type."""
    if declared == "number":
        return _is_number(value)
    if declared == "integer":
        return _is_number(value) and (isinstance(value, int) or value.is_integer())
    return kind_of(value) == declared


def _tree(root: Root) -> dict[str, Any]:
    return root.tree if isinstance(root, Document) else root


def resolve_schema(schema: Union[SchemaNode, dict[str, Any]], root: Root) -> Optional[SchemaNode]:
    """Perform the single reference hop.

    Returns the node itself when it is not a reference, the parsed target
    when it is, and ``None`` when the reference cannot be resolved.
    """
    node = parse_schema(schema) if isinstance(schema, dict) else schema
    if not isinstance(node, ReferenceSchema):
        return node
    try:
        return parse_schema(lookup_pointer(_tree(root), node.ref))
    except ReferenceResolutionError:
        return None


def validate_value(
    value: Any,
    schema: Union[SchemaNode, dict[str, Any]],
    root: Root,
    *,
    deep: bool = False,
) -> list[str]:
    """Validate *value* against *schema* and return the violations.

    Args:
        value: The candidate value (decoded JSON).
        schema: A :data:`~specscope.validation.schema.SchemaNode` or a raw
            schema mapping.
        root: The document that references are looked up in.
        deep: Also validate property values and array items.

    Returns:
        Human-readable messages, empty when the value is valid.  An
        unresolvable reference yields no messages.
    """
    return _validate(value, schema, _tree(root), deep, "")


def _validate(
    value: Any,
    schema: Union[SchemaNode, dict[str, Any]],
    root: dict[str, Any],
    deep: bool,
    path: str,
) -> list[str]:
    node = resolve_schema(schema, root)
    if node is None or isinstance(node, ReferenceSchema):
        return []
    if value is None and node.nullable:
        return []

    local: list[str] = []
    nested: list[str] = []
    _check_type(value, node.types, local)

    if isinstance(node, PrimitiveSchema):
        _check_string(value, node, local)
        _check_number(value, node, local)
    elif isinstance(node, ArraySchema):
        _check_array(value, node, local)
        if deep and node.items is not None and isinstance(value, list):
            for index, item in enumerate(value):
                nested.extend(_validate(item, node.items, root, deep, f"{path}[{index}]"))
    elif isinstance(node, ObjectSchema):
        _check_object(value, node, local)
        if deep and isinstance(value, dict):
            for name, sub in node.properties.items():
                if name in value:
                    nested.extend(
                        _validate(value[name], sub, root, deep, f"{path}.{name}" if path else name)
                    )
    elif isinstance(node, ComposedSchema):
        _check_composed(value, node, root, deep, path, local, nested)

    _check_enum(value, node.enum, local)

    if path:
        local = [f"{path}: {message}" for message in local]
    return local + nested


# ---------------------------------------------------------------------- #
# Individual checks
# ---------------------------------------------------------------------- #


def _check_type(value: Any, types: tuple[str, ...], errors: list[str]) -> None:
    if not types or any(matches_type(value, t) for t in types):
        return
    expected = " or ".join(f"'{t}'" for t in types)
    errors.append(f"Expected type {expected} but got '{kind_of(value)}'")


def _check_string(value: Any, node: PrimitiveSchema, errors: list[str]) -> None:
    if not isinstance(value, str) or (node.types and "string" not in node.types):
        return
    if node.min_length is not None and len(value) < node.min_length:
        errors.append(f"String length is less than minimum {node.min_length}")
    if node.max_length is not None and len(value) > node.max_length:
        errors.append(f"String length exceeds maximum {node.max_length}")
    if node.pattern is not None:
        try:
            matched = re.search(node.pattern, value) is not None
        except re.error:
            # Patterns Python cannot compile are not enforced.
            matched = True
        if not matched:
            errors.append(f"String does not match pattern: {node.pattern}")


def _check_number(value: Any, node: PrimitiveSchema, errors: list[str]) -> None:
    if not _is_number(value):
        return
    if node.types and not {"number", "integer"} & set(node.types):
        return

    if node.minimum is not None:
        if node.exclusive_minimum is True:
            if value <= node.minimum:
                errors.append(f"Value must be greater than {node.minimum}")
        elif value < node.minimum:
            errors.append(f"Value must be greater than or equal to {node.minimum}")
    if _is_number(node.exclusive_minimum) and value <= node.exclusive_minimum:
        errors.append(f"Value must be greater than {node.exclusive_minimum}")

    if node.maximum is not None:
        if node.exclusive_maximum is True:
            if value >= node.maximum:
                errors.append(f"Value must be less than {node.maximum}")
        elif value > node.maximum:
            errors.append(f"Value must be less than or equal to {node.maximum}")
    if _is_number(node.exclusive_maximum) and value >= node.exclusive_maximum:
        errors.append(f"Value must be less than {node.exclusive_maximum}")

    if node.multiple_of:
        if isinstance(value, int) and isinstance(node.multiple_of, int):
            remainder = value % node.multiple_of
        else:
            try:
                remainder = Decimal(str(value)) % Decimal(str(node.multiple_of))
            except InvalidOperation:
                return
        if remainder != 0:
            errors.append(f"Value must be a multiple of {node.multiple_of}")


def _canonical(item: Any) -> str:
    return json.dumps(item, sort_keys=True, default=str)


def _check_array(value: Any, node: ArraySchema, errors: list[str]) -> None:
    if not isinstance(value, list):
        return
    if node.min_items is not None and len(value) < node.min_items:
        errors.append(f"Array has fewer items than minimum {node.min_items}")
    if node.max_items is not None and len(value) > node.max_items:
        errors.append(f"Array has more items than maximum {node.max_items}")
    if node.unique_items and len({_canonical(item) for item in value}) != len(value):
        errors.append("Array items must be unique")


def _check_object(value: Any, node: ObjectSchema, errors: list[str]) -> None:
    if not isinstance(value, dict):
        return
    for name in node.required:
        if name not in value:
            errors.append(f"Missing required property: {name}")
    count = len(value)
    if node.min_properties is not None and count < node.min_properties:
        errors.append(f"Object has fewer properties than minimum {node.min_properties}")
    if node.max_properties is not None and count > node.max_properties:
        errors.append(f"Object has more properties than maximum {node.max_properties}")


def _same_literal(value: Any, candidate: Any) -> bool:
    if _is_number(value) and _is_number(candidate):
        return value == candidate
    return kind_of(value) == kind_of(candidate) and value == candidate


def _check_enum(value: Any, enum: Optional[tuple[Any, ...]], errors: list[str]) -> None:
    if enum is None or any(_same_literal(value, candidate) for candidate in enum):
        return
    errors.append(f"Value must be one of: {', '.join(str(candidate) for candidate in enum)}")


def _check_composed(
    value: Any,
    node: ComposedSchema,
    root: dict[str, Any],
    deep: bool,
    path: str,
    local: list[str],
    nested: list[str],
) -> None:
    if node.base is not None:
        nested.extend(_validate(value, node.base, root, deep, path))
    for member in node.all_of:
        nested.extend(_validate(value, member, root, deep, path))
    if node.any_of and not any(
        not _validate(value, member, root, deep, path) for member in node.any_of
    ):
        local.append("Value does not match any of the allowed schemas (anyOf)")
    if node.one_of:
        passing = sum(1 for member in node.one_of if not _validate(value, member, root, deep, path))
        if passing == 0:
            local.append("Value does not match any of the oneOf schemas")
        elif passing > 1:
            local.append(f"Value matches {passing} of the oneOf schemas; expected exactly one")
