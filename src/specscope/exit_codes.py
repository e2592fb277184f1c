"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specscope.exceptions.SpecscopeError` subclass.
Shell wrappers and tool hosts can inspect the exit code to determine the
failure class without parsing stderr.

Example::

    $ specscope validate /pets/{petId} GET --param petId=abc
    $ echo $?
    8   # EXIT_VALIDATION_FAILED -- the request does not match the schema
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The document, path, or operation was not found."""

EXIT_SERVER_ERROR = 5
"""The origin returned an HTTP 5xx error on every attempt."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_SPEC_PARSE_ERROR = 7
"""The OpenAPI document could not be parsed or declares an unsupported version."""

EXIT_VALIDATION_FAILED = 8
"""Request data did not validate against the document's schemas."""
