"""Parse raw OpenAPI payloads into Python dictionaries.

This module turns the bytes of a fetched document into a ``dict``.  Format
selection follows the transport metadata when it is decisive and the payload
itself when it is not:

* :func:`format_hint_for_content_type` -- map a ``Content-Type`` header to
  ``"json"``, ``"yaml"`` or ``""`` (undecided).
* :func:`sniff_format` -- decide from the first non-whitespace character:
  ``{`` or ``[`` means JSON, anything else YAML.
* :func:`parse_content` -- parse with the chosen parser and insist on a
  mapping at the top level.
* :func:`load_file` -- read a local file, using its extension as the hint.

Network retrieval lives in :mod:`specscope.client.acquirer`; this module
performs no network I/O.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from specscope.exceptions import ParseError


def format_hint_for_content_type(content_type: str) -> str:
    """Return ``"json"``, ``"yaml"`` or ``""`` for a ``Content-Type`` value."""
    content_type = content_type.lower()
    if "json" in content_type:
        return "json"
    if "yaml" in content_type or "yml" in content_type:
        return "yaml"
    return ""


def format_hint_for_path(path: str) -> str:
    """Return a format hint from a file name or URL path extension."""
    suffix = Path(path.split("?", 1)[0]).suffix.lower()
    if suffix == ".json":
        return "json"
    if suffix in (".yaml", ".yml"):
        return "yaml"
    return ""


def sniff_format(content: str) -> str:
    """Guess the format of *content* from its leading structural character."""
    stripped = content.lstrip("\ufeff \t\r\n")
    if stripped[:1] in ("{", "["):
        return "json"
    return "yaml"


def parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    When *hint* is empty the format is sniffed from the payload.  A JSON
    parse failure is final: JSON is not retried as YAML.

    Args:
        content: The raw string content.
        hint: Optional format hint (``'json'`` or ``'yaml'``).

    Returns:
        The parsed dictionary.

    Raises:
        ParseError: If the content is empty, malformed, or not a mapping.
    """
    if not content.strip():
        raise ParseError("Document is empty")

    fmt = hint or sniff_format(content)
    if fmt == "json":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Invalid JSON: {exc}") from exc
    else:
        try:
            result = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid YAML: {exc}") from exc

    if not isinstance(result, dict):
        raise ParseError(
            "Document must be a JSON/YAML object (got "
            f"{type(result).__name__ if result is not None else 'empty document'})"
        )
    return result


def load_file(path: str | Path) -> dict[str, Any]:
    """Load a document from a local file.

    Supports ``.json``, ``.yaml`` and ``.yml`` extensions and falls back to
    content sniffing for anything else.

    Raises:
        ParseError: If the file is missing, unreadable, or malformed.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ParseError(f"Document file not found: {path}")
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"Failed to read document file {path}: {exc}") from exc
    return parse_content(content, hint=format_hint_for_path(str(file_path)))
