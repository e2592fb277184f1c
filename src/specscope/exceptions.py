"""Exception hierarchy for specscope.

All exceptions inherit from :class:`SpecscopeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specscope.exit_codes`.
The top-level error handler in :func:`specscope.app.main` catches
``SpecscopeError`` and exits with the appropriate code.

Not every error reaches a caller.  The cache absorbs
:class:`CacheCorruptionError` by evicting the record, and the reference
resolver turns :class:`ReferenceResolutionError` into document warnings.
Network, parse and version failures surface as :class:`AcquisitionError`
only when no cached copy of the document can be served instead.

Subclass hierarchy::

    SpecscopeError              (exit 1)
    +-- ConfigError             (exit 1)
    +-- AcquisitionError        (exit code of its cause)
    +-- NetworkError            (exit 6, or 5 for HTTP 5xx)
    +-- ClientRequestError      (exit 2, or 4 for HTTP 404)
    +-- ParseError              (exit 7)
    +-- UnsupportedVersionError (exit 7)
    +-- CacheCorruptionError    (exit 1)
    +-- ReferenceResolutionError (exit 1)
    +-- OperationNotFoundError  (exit 4)
    +-- SchemaNotFoundError     (exit 4)
    +-- InvalidQueryError       (exit 2)
"""

from __future__ import annotations

from typing import Optional

from specscope.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecscopeError(Exception):
    """Base exception for all specscope errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specscope.exit_codes`.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SpecscopeError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE


class NetworkError(SpecscopeError):
    """Raised when the origin is unreachable or answers with a transient 5xx.

    These failures are retried by the acquirer before being reported.

    Args:
        message: Error description.
        status_code: The HTTP status for 5xx answers, ``None`` for
            connection-level failures.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(
            message,
            exit_code=EXIT_SERVER_ERROR if status_code is not None else None,
        )
        self.status_code = status_code


class ClientRequestError(SpecscopeError):
    """Raised when the origin answers with a 4xx status.  Never retried."""

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, message: str, status_code: int):
        super().__init__(
            message,
            exit_code=EXIT_NOT_FOUND if status_code == 404 else None,
        )
        self.status_code = status_code


class ParseError(SpecscopeError):
    """Raised when a payload is not valid JSON/YAML or is not a mapping."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class UnsupportedVersionError(SpecscopeError):
    """Raised when a document declares neither ``openapi: 3.x`` nor ``swagger: 2.x``."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class CacheCorruptionError(SpecscopeError):
    """Raised internally when a durable cache record cannot be decoded."""


class ReferenceResolutionError(SpecscopeError):
    """Raised internally when a ``$ref`` target cannot be reached."""


class OperationNotFoundError(SpecscopeError):
    """Raised when a path or HTTP method is not declared by the document."""

    exit_code = EXIT_NOT_FOUND


class AcquisitionError(SpecscopeError):
    """Raised by :meth:`~specscope.client.acquirer.DocumentAcquirer.fetch_spec`
    when a document cannot be obtained and no cached copy exists.

    Args:
        message: Error description.
        cause: The last-observed underlying failure.  Its exit code is
            inherited so the CLI reports the real failure class.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(self, message: str, cause: Optional[SpecscopeError] = None):
        super().__init__(message, exit_code=cause.exit_code if cause else None)
        self.cause = cause


class SchemaNotFoundError(SpecscopeError):
    """Raised when a named schema is not declared under ``components.schemas``."""

    exit_code = EXIT_NOT_FOUND


class InvalidQueryError(SpecscopeError):
    """Raised for malformed endpoint queries (empty search, unknown field)."""

    exit_code = EXIT_INVALID_USAGE
