"""OpenAPI document parsing -- decode payloads, resolve ``$ref`` pointers, check versions.

This sub-package turns the raw bytes of an OpenAPI document (JSON or YAML)
into a :class:`~specscope.models.Document`.  It performs no caching and no
network I/O of its own; :class:`~specscope.client.acquirer.DocumentAcquirer`
drives it.

Typical usage::

    from specscope.parser import DocumentValidator, ReferenceResolver, parse_content

    raw = parse_content(text, hint="yaml")
    resolution = await ReferenceResolver().resolve(raw, "openapi.yaml")
    document = DocumentValidator().validate(resolution.tree, resolution.warnings)

Sub-modules:

* :mod:`~specscope.parser.loader` -- format detection and parsing.
* :mod:`~specscope.parser.resolver` -- ``$ref`` resolution with
  back-references for cycles.
* :mod:`~specscope.parser.validator` -- version checks and Swagger 2.x
  normalisation.
"""

from specscope.parser.loader import load_file, parse_content
from specscope.parser.resolver import ReferenceResolver, Resolution, lookup_pointer
from specscope.parser.validator import DocumentValidator

__all__ = [
    "DocumentValidator",
    "ReferenceResolver",
    "Resolution",
    "load_file",
    "lookup_pointer",
    "parse_content",
]
