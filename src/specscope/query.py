"""Read-only queries over a loaded document.

These functions back the ``specscope inspect`` commands:

* :func:`list_endpoints` -- every operation, filtered by tag, method and
  deprecation, sorted by path then method, and paginated.
* :func:`search_endpoints` -- fuzzy search over path, summary,
  description, tags and operationId.
* :func:`endpoint_details` -- one operation with merged parameters, request
  body, responses, and the effective security and servers.
* :func:`list_schemas` / :func:`get_schema` -- ``components.schemas``.
* :func:`api_info` -- ``info`` metadata plus document statistics.

Search scores run from ``0.0`` (the query occurs verbatim in a field) to
``1.0``.  A field scores ``1 - similarity``, where similarity is the best
:class:`difflib.SequenceMatcher` ratio between a query term and a word of
the field, averaged over query terms.  Hits scoring above
:data:`SEARCH_THRESHOLD` are dropped.
"""

from __future__ import annotations

import re
from collections import Counter
from difflib import SequenceMatcher
from typing import Any, Iterable, Optional

from specscope.exceptions import InvalidQueryError, SchemaNotFoundError
from specscope.models import Document, Endpoint, EndpointPage, HTTPMethod, SearchHit
from specscope.validation.request import find_operation, merge_parameters, parameter_schema

SEARCH_FIELDS = ("path", "summary", "description", "tags", "operationId")
SEARCH_THRESHOLD = 0.4

_WORD = re.compile(r"[^0-9a-z]+")


def _endpoint(path: str, method: HTTPMethod, operation: dict[str, Any]) -> Endpoint:
    tags = operation.get("tags")
    return Endpoint(
        path=path,
        method=method.value.upper(),
        summary=operation.get("summary"),
        description=operation.get("description"),
        tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
        operation_id=operation.get("operationId"),
        deprecated=operation.get("deprecated") is True,
    )


def _endpoints(document: Document) -> list[Endpoint]:
    endpoints = [_endpoint(path, method, op) for path, method, op in document.operations()]
    endpoints.sort(key=lambda e: (e.path, e.method))
    return endpoints


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


def list_endpoints(
    document: Document,
    *,
    tag: Optional[str] = None,
    method: Optional[str] = None,
    deprecated: Optional[bool] = None,
    limit: int = 100,
    offset: int = 0,
) -> EndpointPage:
    """List the document's operations.

    Args:
        document: The loaded document.
        tag: Keep only operations carrying this tag.
        method: Keep only this HTTP method (case-insensitive).
        deprecated: ``True`` keeps only deprecated operations, ``False``
            only current ones, ``None`` keeps both.
        limit: Maximum number of endpoints in the page.
        offset: Number of matching endpoints to skip.

    Raises:
        InvalidQueryError: If *method* is not an HTTP method, or *limit* or
            *offset* is out of range.
    """
    if limit < 1 or offset < 0:
        raise InvalidQueryError("limit must be at least 1 and offset at least 0")
    wanted_method = None
    if method is not None:
        try:
            wanted_method = HTTPMethod(method.lower()).value.upper()
        except ValueError:
            raise InvalidQueryError(f"Unknown HTTP method: {method}") from None

    matches = [
        endpoint
        for endpoint in _endpoints(document)
        if (wanted_method is None or endpoint.method == wanted_method)
        and (tag is None or tag in endpoint.tags)
        and (deprecated is None or endpoint.deprecated == deprecated)
    ]
    return EndpointPage(
        total=len(matches),
        offset=offset,
        limit=limit,
        endpoints=matches[offset : offset + limit],
    )


def _field_text(endpoint: Endpoint, field: str) -> str:
    if field == "tags":
        return " ".join(endpoint.tags)
    if field == "operationId":
        return endpoint.operation_id or ""
    return getattr(endpoint, field) or ""


def _similarity(terms: list[str], query: str, text: str) -> float:
    text = text.lower()
    if not text:
        return 0.0
    if query in text:
        return 1.0
    words = [w for w in _WORD.split(text) if w]
    if not words:
        return 0.0
    best = [max(SequenceMatcher(None, term, word).ratio() for word in words) for term in terms]
    return sum(best) / len(best)


def search_endpoints(
    document: Document,
    query: str,
    *,
    fields: Optional[Iterable[str]] = None,
    limit: int = 20,
) -> list[SearchHit]:
    """Fuzzy-search operations, best match first.

    Args:
        document: The loaded document.
        query: Free text; matching is case-insensitive.
        fields: Subset of :data:`SEARCH_FIELDS` to search (default: all).
        limit: Maximum number of hits.

    Raises:
        InvalidQueryError: If *query* is blank, *limit* is below 1, or a
            field name is unknown.
    """
    needle = query.strip().lower()
    if not needle:
        raise InvalidQueryError("Search query must not be empty")
    if limit < 1:
        raise InvalidQueryError("limit must be at least 1")
    selected = tuple(fields) if fields else SEARCH_FIELDS
    unknown = [f for f in selected if f not in SEARCH_FIELDS]
    if unknown:
        raise InvalidQueryError(
            f"Unknown search field(s): {', '.join(unknown)}; expected {', '.join(SEARCH_FIELDS)}"
        )

    terms = [t for t in _WORD.split(needle) if t] or [needle]
    hits = []
    for endpoint in _endpoints(document):
        similarity = max(_similarity(terms, needle, _field_text(endpoint, f)) for f in selected)
        score = round(1.0 - similarity, 3)
        if score <= SEARCH_THRESHOLD:
            hits.append(SearchHit(endpoint=endpoint, score=score))
    hits.sort(key=lambda h: (h.score, h.endpoint.path, h.endpoint.method))
    return hits[:limit]


def endpoint_details(document: Document, path: str, method: str) -> dict[str, Any]:
    """Describe one operation.

    *path* may be a template or a concrete path.  Path-level and
    operation-level parameters are merged; security and servers fall back
    to the document-level declarations.

    Raises:
        OperationNotFoundError: If the path or the method is not declared.
    """
    template, path_item, operation, _ = find_operation(document, path, method)

    parameters = []
    for param in merge_parameters(path_item.get("parameters"), operation.get("parameters")):
        parameters.append(
            _compact(
                {
                    "name": param["name"],
                    "in": param.get("in"),
                    "required": param.get("required") is True or param.get("in") == "path",
                    "description": param.get("description"),
                    "schema": parameter_schema(param),
                    "deprecated": param.get("deprecated") is True,
                }
            )
        )

    details: dict[str, Any] = {
        "path": template,
        "method": method.upper(),
        "summary": operation.get("summary"),
        "description": operation.get("description"),
        "operation_id": operation.get("operationId"),
        "tags": operation.get("tags") or [],
        "deprecated": operation.get("deprecated") is True,
        "parameters": parameters,
    }

    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        details["request_body"] = _compact(
            {
                "required": request_body.get("required") is True,
                "description": request_body.get("description"),
                "content": request_body.get("content"),
            }
        )

    responses = operation.get("responses")
    if isinstance(responses, dict):
        details["responses"] = {
            str(status): _compact(
                {
                    "description": response.get("description"),
                    "content": response.get("content"),
                    "headers": response.get("headers"),
                }
            )
            for status, response in responses.items()
            if isinstance(response, dict)
        }

    details["security"] = operation.get("security", document.tree.get("security"))
    details["servers"] = operation.get("servers", document.tree.get("servers"))
    details["external_docs"] = operation.get("externalDocs")
    return _compact(details)


def _schemas(document: Document) -> dict[str, Any]:
    schemas = document.components.get("schemas")
    return schemas if isinstance(schemas, dict) else {}


def schema_kind(schema: Any) -> str:
    """Short label for a schema: its type, composition keyword, or ``reference``."""
    if not isinstance(schema, dict):
        return "unknown"
    if "$ref" in schema:
        return "reference"
    declared = schema.get("type")
    if isinstance(declared, str):
        return declared
    if isinstance(declared, list):
        return " | ".join(str(t) for t in declared)
    for keyword in ("allOf", "oneOf", "anyOf"):
        if keyword in schema:
            return keyword
    if "properties" in schema:
        return "object"
    return "unknown"


def list_schemas(document: Document) -> list[dict[str, Any]]:
    """Name, kind and description of every schema, sorted by name."""
    return [
        _compact(
            {
                "name": name,
                "type": schema_kind(schema),
                "description": schema.get("description") if isinstance(schema, dict) else None,
            }
        )
        for name, schema in sorted(_schemas(document).items())
    ]


def get_schema(document: Document, name: str) -> Any:
    """Return the resolved schema called *name*.

    Cycles appear as ``{"$ref": "#/components/schemas/..."}`` back-references.

    Raises:
        SchemaNotFoundError: If no such schema is declared.
    """
    schemas = _schemas(document)
    if name not in schemas:
        raise SchemaNotFoundError(f"Schema not found: {name}")
    return schemas[name]


def api_info(document: Document, url: Optional[str] = None) -> dict[str, Any]:
    """Document metadata and statistics.

    Args:
        document: The loaded document.
        url: The location the document was loaded from, if known.
    """
    info = document.info
    tree = document.tree
    endpoints = _endpoints(document)
    methods = Counter(endpoint.method for endpoint in endpoints)
    tags = sorted({tag for endpoint in endpoints for tag in endpoint.tags})
    security_schemes = document.components.get("securitySchemes")
    security_schemes = security_schemes if isinstance(security_schemes, dict) else {}

    data: dict[str, Any] = {
        "title": document.title,
        "version": info.get("version"),
        "description": info.get("description"),
        "contact": info.get("contact"),
        "license": info.get("license"),
        "terms_of_service": info.get("termsOfService"),
        "openapi": document.openapi_version,
        "dialect": document.source_dialect,
        "servers": tree.get("servers") or [],
        "external_docs": tree.get("externalDocs"),
        "spec_url": url,
        "statistics": {
            "total_endpoints": len(endpoints),
            "total_paths": len(document.paths),
            "method_distribution": dict(sorted(methods.items())),
            "total_tags": len(tags),
            "tags": tags,
            "total_schemas": len(_schemas(document)),
            "total_security_schemes": len(security_schemes),
        },
    }
    if security_schemes:
        data["security"] = {
            "schemes": [
                _compact(
                    {
                        "name": name,
                        "type": scheme.get("type") if isinstance(scheme, dict) else None,
                        "description": (
                            scheme.get("description") if isinstance(scheme, dict) else None
                        ),
                    }
                )
                for name, scheme in security_schemes.items()
            ],
            "global_requirements": tree.get("security") or [],
        }
    declared_tags = tree.get("tags")
    if isinstance(declared_tags, list):
        data["tags"] = [
            _compact({"name": t.get("name"), "description": t.get("description")})
            for t in declared_tags
            if isinstance(t, dict)
        ]
    return _compact(data)
