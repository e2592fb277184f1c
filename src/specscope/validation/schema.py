"""Typed schema nodes built from OpenAPI schema objects.

Raw schema objects are loose mappings in which any keyword may appear.
:func:`parse_schema` classifies each one into exactly one variant so the
validator can dispatch on the variant instead of probing optional keys:

* :class:`PrimitiveSchema` -- strings, numbers, integers, booleans, null, or
  an unconstrained ("any") value.
* :class:`ArraySchema` -- ``type: array`` or a typeless node with array
  keywords.
* :class:`ObjectSchema` -- ``type: object`` or a typeless node with object
  keywords.
* :class:`ComposedSchema` -- ``allOf`` / ``oneOf`` / ``anyOf``, plus the
  node's own constraints as ``base``.
* :class:`ReferenceSchema` -- an unexpanded ``$ref`` (a back-reference left
  by the resolver, or a raw document).

Every variant carries ``types`` (empty means any type) and ``enum``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

_ARRAY_KEYWORDS = frozenset({"items", "minItems", "maxItems", "uniqueItems"})
_OBJECT_KEYWORDS = frozenset(
    {"properties", "required", "minProperties", "maxProperties", "additionalProperties"}
)
_COMPOSITION_KEYWORDS = ("allOf", "oneOf", "anyOf")


@dataclass(frozen=True)
class PrimitiveSchema:
    kind = "primitive"

    types: tuple[str, ...] = ()
    enum: Optional[tuple[Any, ...]] = None
    nullable: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    # bool in OpenAPI 3.0 (modifies minimum/maximum), number in 3.1
    exclusive_minimum: Union[bool, float, None] = None
    exclusive_maximum: Union[bool, float, None] = None
    multiple_of: Optional[float] = None


@dataclass(frozen=True)
class ArraySchema:
    kind = "array"

    types: tuple[str, ...] = ()
    enum: Optional[tuple[Any, ...]] = None
    nullable: bool = False
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: bool = False
    items: Optional[SchemaNode] = None


@dataclass(frozen=True)
class ObjectSchema:
    kind = "object"

    types: tuple[str, ...] = ()
    enum: Optional[tuple[Any, ...]] = None
    nullable: bool = False
    required: tuple[str, ...] = ()
    min_properties: Optional[int] = None
    max_properties: Optional[int] = None
    properties: dict[str, SchemaNode] = field(default_factory=dict)


@dataclass(frozen=True)
class ComposedSchema:
    kind = "composed"

    types: tuple[str, ...] = ()
    enum: Optional[tuple[Any, ...]] = None
    nullable: bool = False
    all_of: tuple[SchemaNode, ...] = ()
    one_of: tuple[SchemaNode, ...] = ()
    any_of: tuple[SchemaNode, ...] = ()
    base: Optional[SchemaNode] = None


@dataclass(frozen=True)
class ReferenceSchema:
    kind = "reference"

    ref: str
    types: tuple[str, ...] = ()
    enum: Optional[tuple[Any, ...]] = None
    nullable: bool = False


SchemaNode = Union[PrimitiveSchema, ArraySchema, ObjectSchema, ComposedSchema, ReferenceSchema]


def _types(raw: dict[str, Any]) -> tuple[str, ...]:
    declared = raw.get("type")
    if isinstance(declared, str):
        return (declared,)
    if isinstance(declared, list):
        return tuple(t for t in declared if isinstance(t, str))
    return ()


def _enum(raw: dict[str, Any]) -> Optional[tuple[Any, ...]]:
    values = raw.get("enum")
    if isinstance(values, list):
        return tuple(values)
    if "const" in raw:
        return (raw["const"],)
    return None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _exclusive(value: Any) -> Union[bool, float, None]:
    if isinstance(value, bool):
        return value
    return _number(value)


def _count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_schema(raw: Any) -> SchemaNode:
    """Classify a raw schema mapping into a :data:`SchemaNode` variant.

    Non-mapping input (``true``, missing schemas) becomes an unconstrained
    :class:`PrimitiveSchema`.
    """
    if not isinstance(raw, dict):
        return PrimitiveSchema()

    types = _types(raw)
    common: dict[str, Any] = {
        "types": types,
        "enum": _enum(raw),
        "nullable": raw.get("nullable") is True,
    }

    if isinstance(raw.get("$ref"), str):
        return ReferenceSchema(ref=raw["$ref"], **common)

    if any(isinstance(raw.get(key), list) for key in _COMPOSITION_KEYWORDS):
        own = {k: v for k, v in raw.items() if k not in _COMPOSITION_KEYWORDS}
        has_own_constraints = any(
            k not in ("description", "title", "example", "discriminator") for k in own
        )
        return ComposedSchema(
            all_of=tuple(parse_schema(s) for s in raw.get("allOf") or ()),
            one_of=tuple(parse_schema(s) for s in raw.get("oneOf") or ()),
            any_of=tuple(parse_schema(s) for s in raw.get("anyOf") or ()),
            base=parse_schema(own) if has_own_constraints else None,
            nullable=common["nullable"],
        )

    if "object" in types or (not types and raw.keys() & _OBJECT_KEYWORDS):
        properties = raw.get("properties")
        required = raw.get("required")
        return ObjectSchema(
            required=tuple(r for r in required if isinstance(r, str)) if isinstance(required, list) else (),
            min_properties=_count(raw.get("minProperties")),
            max_properties=_count(raw.get("maxProperties")),
            properties=(
                {name: parse_schema(sub) for name, sub in properties.items()}
                if isinstance(properties, dict)
                else {}
            ),
            **common,
        )

    if "array" in types or (not types and raw.keys() & _ARRAY_KEYWORDS):
        return ArraySchema(
            min_items=_count(raw.get("minItems")),
            max_items=_count(raw.get("maxItems")),
            unique_items=raw.get("uniqueItems") is True,
            items=parse_schema(raw["items"]) if isinstance(raw.get("items"), dict) else None,
            **common,
        )

    pattern = raw.get("pattern")
    return PrimitiveSchema(
        min_length=_count(raw.get("minLength")),
        max_length=_count(raw.get("maxLength")),
        pattern=pattern if isinstance(pattern, str) else None,
        minimum=_number(raw.get("minimum")),
        maximum=_number(raw.get("maximum")),
        exclusive_minimum=_exclusive(raw.get("exclusiveMinimum")),
        exclusive_maximum=_exclusive(raw.get("exclusiveMaximum")),
        multiple_of=_number(raw.get("multipleOf")),
        **common,
    )
