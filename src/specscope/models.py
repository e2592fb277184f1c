"""Canonical Pydantic models shared across all specscope modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, :class:`ValidationConfig`
    and :class:`GlobalConfig`.

**Document models** -- produced by the acquisition pipeline:
    :class:`Document`, :class:`CacheEntry` and :class:`DocumentState`.

**Validation models** -- returned by request validation:
    :class:`ValidationIssue` and :class:`ValidationResult`.

**Query models** -- returned by endpoint listing and search:
    :class:`Endpoint`, :class:`EndpointPage` and :class:`SearchHit`.

All models use Pydantic v2.  Stored documents are frozen so that a cached
:class:`Document` cannot be swapped out from under the cache that owns it.
"""

from __future__ import annotations

import enum
from typing import Any, Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


# --- Config ---


class CacheConfig(BaseModel):
    """Document cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable document caching")
    ttl_seconds: int = Field(default=3600, ge=0, description="Cache TTL in seconds")
    max_size_mb: int = Field(
        default=100, ge=1, description="In-memory cache budget in megabytes"
    )
    directory: Optional[str] = Field(
        default=None,
        description="Durable cache directory (defaults to <cache_dir>/documents)",
    )


class RequestConfig(BaseModel):
    """HTTP settings used when fetching documents and external references."""

    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")
    retry_attempts: int = Field(
        default=3, ge=1, description="Total attempts for transient failures"
    )
    retry_delay: float = Field(
        default=1.0, ge=0, description="Base backoff delay in seconds (doubles per attempt)"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class ValidationConfig(BaseModel):
    """Request validation preferences."""

    deep: bool = Field(
        default=False,
        description="Also validate property values and array items against their sub-schemas",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specscope/config.json``.

    Loaded and saved by :func:`~specscope.config.load_global_config` and
    :func:`~specscope.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~specscope.config.resolve_config`
    for the full precedence chain.
    """

    openapi_url: Optional[str] = Field(
        default=None, description="Default OpenAPI document URL or file path"
    )
    log_level: Literal["debug", "info", "warning", "error"] = "warning"
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)


# --- Documents ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI path-item objects."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ParameterLocation(str, enum.Enum):
    """Locations where an API parameter can appear, per OpenAPI ``in`` field."""

    QUERY = "query"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"


_HTTP_METHODS = frozenset(m.value for m in HTTPMethod)


class Document(BaseModel):
    """A dereferenced OpenAPI document ready to be queried.

    ``tree`` holds the resolved JSON-compatible document.  Cyclic schemas
    are represented by back-references (``{"$ref": "#/..."}`` mappings)
    rather than by Python object cycles, so the tree can always be
    serialised.  The tree is shared with the cache and must be treated as
    read-only.

    Attributes:
        openapi_version: The effective ``openapi`` version string.  Swagger
            2.x documents report the synthesised ``"3.0.0"`` marker.
        source_dialect: ``"openapi"`` or ``"swagger"``.
        tree: The resolved document.
        warnings: Non-fatal findings from resolution and validation, plus
            a degradation notice when a stale copy was served.
    """

    model_config = ConfigDict(frozen=True)

    openapi_version: str
    source_dialect: Literal["openapi", "swagger"] = "openapi"
    tree: dict[str, Any]
    warnings: list[str] = Field(default_factory=list)

    @property
    def info(self) -> dict[str, Any]:
        return self.tree.get("info") or {}

    @property
    def paths(self) -> dict[str, Any]:
        return self.tree.get("paths") or {}

    @property
    def components(self) -> dict[str, Any]:
        return self.tree.get("components") or {}

    @property
    def title(self) -> str:
        return str(self.info.get("title", "Untitled API"))

    def operations(self) -> Iterator[tuple[str, HTTPMethod, dict[str, Any]]]:
        """Yield ``(path, method, operation)`` for every declared operation."""
        for path, path_item in self.paths.items():
            if not isinstance(path_item, dict):
                continue
            for key, operation in path_item.items():
                if key in _HTTP_METHODS and isinstance(operation, dict):
                    yield path, HTTPMethod(key), operation

    @property
    def operation_count(self) -> int:
        return sum(1 for _ in self.operations())

    def lookup(self, pointer: str) -> Any:
        """Return the node at an internal JSON pointer (``#/components/...``).

        Raises:
            ReferenceResolutionError: If the pointer is external or does
                not exist in this document.
        """
        from specscope.parser.resolver import lookup_pointer

        return lookup_pointer(self.tree, pointer)

    def with_warning(self, message: str) -> Document:
        """Return a copy carrying one more warning; the original is untouched."""
        return self.model_copy(update={"warnings": [*self.warnings, message]})


class CacheEntry(BaseModel):
    """A cached document plus the tokens needed to revalidate it.

    ``stored_at`` is epoch seconds of the write that produced the entry.
    Freshness is measured from it, never from the last read.
    """

    document: Document
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    stored_at: float
    source_url: str


class DocumentState(str, enum.Enum):
    """Lifecycle of the document held by a :class:`~specscope.session.SpecSession`."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


# --- Validation ---


class ValidationIssue(BaseModel):
    """A single validation failure."""

    location: str = Field(description="path, query, header, or body")
    field: str
    message: str


class ValidationResult(BaseModel):
    """Aggregated outcome of validating one request.

    ``valid`` is derived from ``errors`` so the two can never disagree.
    """

    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def valid(self) -> bool:
        return not self.errors

    def add_error(self, location: str, field: str, message: str) -> None:
        self.errors.append(ValidationIssue(location=location, field=field, message=message))


# --- Queries ---


class Endpoint(BaseModel):
    """One operation as listed by :func:`~specscope.query.list_endpoints`."""

    path: str
    method: str = Field(description="Upper-case HTTP method")
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    operation_id: Optional[str] = None
    deprecated: bool = False


class EndpointPage(BaseModel):
    """A filtered, paginated slice of a document's endpoints."""

    total: int = Field(description="Matches before pagination")
    offset: int
    limit: int
    endpoints: list[Endpoint] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def count(self) -> int:
        return len(self.endpoints)


class SearchHit(BaseModel):
    """A search match; ``score`` runs from 0.0 (exact) to 1.0 (no match)."""

    endpoint: Endpoint
    score: float
