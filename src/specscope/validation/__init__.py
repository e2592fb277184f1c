"""Schema and request validation."""

from specscope.validation.request import validate_request
from specscope.validation.schema import SchemaNode, parse_schema
from specscope.validation.validator import resolve_schema, validate_value

__all__ = ["SchemaNode", "parse_schema", "resolve_schema", "validate_request", "validate_value"]
