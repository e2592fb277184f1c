"""Validate a concrete HTTP request against a loaded document.

:func:`validate_request` locates the operation for a path and method, then
checks path, query and header parameters and the request body against the
operation's declarations.  Every problem is collected into one
:class:`~specscope.models.ValidationResult`; nothing short-circuits except
an unknown path or method, which raises
:class:`~specscope.exceptions.OperationNotFoundError`.

Parameter values arrive as strings on the wire, so string values are
coerced to the parameter's declared scalar type (``"42"`` for an integer
parameter becomes ``42``) before schema validation.  Values that cannot be
coerced are validated as given and fail the type check.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from specscope.exceptions import OperationNotFoundError
from specscope.models import Document, HTTPMethod, ParameterLocation, ValidationResult
from specscope.validation.schema import ReferenceSchema, parse_schema
from specscope.validation.validator import resolve_schema, validate_value

_TEMPLATE_VAR = re.compile(r"\{([^}/]+)\}")
_METHODS = frozenset(m.value for m in HTTPMethod)

# Swagger 2 parameters declare their schema inline.
_INLINE_SCHEMA_KEYS = frozenset(
    {
        "type",
        "format",
        "items",
        "enum",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "minLength",
        "maxLength",
        "pattern",
        "minItems",
        "maxItems",
        "uniqueItems",
    }
)

_LOCATION_LABELS = {
    ParameterLocation.PATH: "Path parameter",
    ParameterLocation.QUERY: "Query parameter",
    ParameterLocation.HEADER: "Header",
}


def validate_request(
    document: Document,
    path: str,
    method: str,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    *,
    deep: bool = False,
) -> ValidationResult:
    """Validate one request and return every finding.

    Args:
        document: The loaded document.
        path: A path template (``/pets/{petId}``) or a concrete path
            (``/pets/42``).  Values captured from a concrete path take
            precedence over ``params``.
        method: HTTP method, case-insensitive.
        params: Path and query parameter values by name.
        headers: Header values; names are matched case-insensitively.
        body: The decoded request body, ``None`` when absent.
        deep: Also validate nested property values and array items.

    Raises:
        OperationNotFoundError: If the path or the method is not declared.
    """
    _, path_item, operation, captured = find_operation(document, path, method)

    values = {**(params or {}), **captured}
    lowered_headers = {str(k).lower(): v for k, v in (headers or {}).items()}
    result = ValidationResult()

    body_parameter: Optional[dict[str, Any]] = None
    for param in merge_parameters(path_item.get("parameters"), operation.get("parameters")):
        location = param.get("in")
        if location == "body":
            body_parameter = param
        elif location == ParameterLocation.PATH.value:
            _check_parameter(document, param, ParameterLocation.PATH, values, result, deep)
        elif location == ParameterLocation.QUERY.value:
            _check_parameter(document, param, ParameterLocation.QUERY, values, result, deep)
        elif location == ParameterLocation.HEADER.value:
            _check_parameter(
                document, param, ParameterLocation.HEADER, lowered_headers, result, deep
            )

    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        _check_body(
            document,
            _media_schema(request_body.get("content")),
            request_body.get("required") is True,
            body,
            result,
            deep,
        )
    elif body_parameter is not None:
        _check_body(
            document,
            body_parameter.get("schema"),
            body_parameter.get("required") is True,
            body,
            result,
            deep,
        )
    elif body is not None:
        result.warnings.append("Request body provided but not expected for this endpoint")

    if operation.get("deprecated") is True:
        result.warnings.append("This endpoint is deprecated")
    return result


def find_path(document: Document, path: str) -> tuple[str, dict[str, Any], dict[str, str]]:
    """Locate the path item for *path*.

    An exact template key wins.  Otherwise *path* is matched against every
    template, preferring templates with fewer variables, so ``/pets/mine``
    beats ``/pets/{petId}``.

    Returns:
        ``(template, path_item, captured_path_values)``.

    Raises:
        OperationNotFoundError: If no template matches.
    """
    paths = document.paths
    exact = paths.get(path)
    if isinstance(exact, dict):
        return path, exact, {}

    candidates = sorted(
        (t for t, item in paths.items() if isinstance(item, dict) and "{" in t),
        key=lambda t: len(_TEMPLATE_VAR.findall(t)),
    )
    for template in candidates:
        names = _TEMPLATE_VAR.findall(template)
        pattern = "".join(
            "([^/]+)" if i % 2 else re.escape(part)
            for i, part in enumerate(_TEMPLATE_VAR.split(template))
        )
        match = re.fullmatch(pattern, path)
        if match:
            return template, paths[template], dict(zip(names, match.groups()))
    raise OperationNotFoundError(f"Path not found: {path}")


def find_operation(
    document: Document, path: str, method: str
) -> tuple[str, dict[str, Any], dict[str, Any], dict[str, str]]:
    """Locate the operation for *path* and *method*.

    Returns:
        ``(template, path_item, operation, captured_path_values)``.

    Raises:
        OperationNotFoundError: If the path or the method is not declared.
    """
    template, path_item, captured = find_path(document, path)
    method_key = method.lower()
    operation = path_item.get(method_key) if method_key in _METHODS else None
    if not isinstance(operation, dict):
        raise OperationNotFoundError(f"Method {method.upper()} not found for path {template}")
    return template, path_item, operation, captured


def merge_parameters(path_level: Any, operation_level: Any) -> list[dict[str, Any]]:
    """Merge path-item and operation parameters.

    Operation-level parameters replace path-level ones that share the same
    ``name`` and ``in`` values.
    """
    path_params = [p for p in path_level or () if isinstance(p, dict) and "name" in p]
    op_params = [p for p in operation_level or () if isinstance(p, dict) and "name" in p]
    overridden = {(p["name"], p.get("in")) for p in op_params}
    merged = [p for p in path_params if (p["name"], p.get("in")) not in overridden]
    merged.extend(op_params)
    return merged


def parameter_schema(param: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Return the parameter's schema, or its inline Swagger 2 schema keywords."""
    schema = param.get("schema")
    if isinstance(schema, dict):
        return schema
    inline = {k: v for k, v in param.items() if k in _INLINE_SCHEMA_KEYS}
    return inline or None


def coerce_parameter(value: Any, schema: Optional[dict[str, Any]]) -> Any:
    """Convert a wire string to the parameter's declared scalar type."""
    if not isinstance(value, str) or not isinstance(schema, dict):
        return value
    declared = schema.get("type")
    types = declared if isinstance(declared, list) else [declared]
    if "string" in types:
        return value
    if "integer" in types:
        try:
            return int(value)
        except ValueError:
            pass
    if "number" in types:
        try:
            return float(value)
        except ValueError:
            pass
    if "boolean" in types and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return value


def _check_parameter(
    document: Document,
    param: dict[str, Any],
    location: ParameterLocation,
    provided: Mapping[str, Any],
    result: ValidationResult,
    deep: bool,
) -> None:
    name = str(param["name"])
    key = name.lower() if location is ParameterLocation.HEADER else name
    label = _LOCATION_LABELS[location]

    if location is ParameterLocation.PATH:
        required = param.get("required") is not False
    else:
        required = param.get("required") is True

    if key not in provided:
        if required:
            if location is ParameterLocation.HEADER:
                message = f"Required header '{name}' is missing"
            else:
                message = f"Required {label.lower()} '{name}' is missing"
            result.add_error(location.value, name, message)
        return

    schema = parameter_schema(param)
    value = coerce_parameter(provided[key], schema)
    if schema is not None:
        for message in validate_value(value, schema, document, deep=deep):
            result.add_error(location.value, name, message)

    if param.get("deprecated") is True:
        result.warnings.append(f"{label} '{name}' is deprecated")

    if (
        location is ParameterLocation.QUERY
        and value == ""
        and param.get("allowEmptyValue") is not True
    ):
        result.add_error(location.value, name, f"Query parameter '{name}' cannot be empty")


def _media_schema(content: Any) -> Any:
    """Pick the schema of the JSON media type, else of the first media type."""
    if not isinstance(content, dict) or not content:
        return None
    for media_type, media in content.items():
        if media_type == "application/json" or media_type.split(";")[0].endswith("+json"):
            return media.get("schema") if isinstance(media, dict) else None
    first = next(iter(content.values()))
    return first.get("schema") if isinstance(first, dict) else None


def _check_body(
    document: Document,
    schema: Any,
    required: bool,
    body: Any,
    result: ValidationResult,
    deep: bool,
) -> None:
    if body is None:
        if required:
            result.add_error("body", "body", "Request body is required but not provided")
        return
    if not isinstance(schema, dict):
        return

    node = parse_schema(schema)
    if isinstance(node, ReferenceSchema):
        target = resolve_schema(node, document)
        if target is None or isinstance(target, ReferenceSchema):
            result.warnings.append(f"Could not resolve schema reference: {node.ref}")
            return

    for message in validate_value(body, node, document, deep=deep):
        result.add_error("body", "body", message)
