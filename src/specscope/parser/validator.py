"""Check the declared specification version and normalise older dialects.

:class:`DocumentValidator` is the last step of the acquisition pipeline.  It
accepts OpenAPI 3.x documents as they are and Swagger 2.x documents after
normalising them to the shape downstream consumers expect:

* an ``openapi: "3.0.0"`` marker is synthesised next to the ``swagger`` one;
* ``definitions``, ``parameters`` and ``responses`` are exposed under the
  corresponding ``components`` sections when those are absent.

Anything else is rejected with
:class:`~specscope.exceptions.UnsupportedVersionError`.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from specscope.exceptions import ParseError, UnsupportedVersionError
from specscope.models import Document

logger = logging.getLogger(__name__)

SYNTHESISED_OPENAPI_VERSION = "3.0.0"

_SWAGGER_COMPONENTS = {
    "definitions": "schemas",
    "parameters": "parameters",
    "responses": "responses",
}


class DocumentValidator:
    """Validate and normalise a resolved document tree."""

    def validate(self, tree: dict[str, Any], warnings: Iterable[str] = ()) -> Document:
        """Return a :class:`~specscope.models.Document` for *tree*.

        Args:
            tree: The dereferenced document.
            warnings: Findings from earlier pipeline stages to carry along.

        Raises:
            UnsupportedVersionError: If the document is neither OpenAPI 3.x
                nor Swagger 2.x.
            ParseError: If the ``info`` object is missing.
        """
        notes = list(warnings)
        dialect = "openapi"

        if "swagger" in tree:
            swagger_version = str(tree["swagger"])
            if not swagger_version.startswith("2."):
                raise UnsupportedVersionError(
                    f"Unsupported Swagger version: {swagger_version}. "
                    "Only Swagger 2.x and OpenAPI 3.x are supported."
                )
            tree = _normalise_swagger(tree)
            dialect = "swagger"
            message = (
                f"This is a Swagger {swagger_version} document; it was normalised to "
                f"OpenAPI {SYNTHESISED_OPENAPI_VERSION}. Consider upgrading to OpenAPI 3.x."
            )
            logger.warning(message)
            notes.append(message)
        elif "openapi" not in tree:
            raise UnsupportedVersionError(
                "Missing version field: expected 'openapi' (3.x) or 'swagger' (2.x)"
            )

        version = str(tree["openapi"])
        if not version.startswith("3."):
            raise UnsupportedVersionError(
                f"Unsupported OpenAPI version: {version}. Only OpenAPI 3.x is supported."
            )

        if not isinstance(tree.get("info"), dict):
            raise ParseError("Invalid document: missing info object")

        document = Document(
            openapi_version=version,
            source_dialect=dialect,
            tree=tree,
            warnings=notes,
        )
        if document.operation_count == 0:
            message = "Document declares no operations"
            logger.warning(message)
            document = document.with_warning(message)
        return document


def _normalise_swagger(tree: dict[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of a Swagger 2.x tree with 3.x markers added."""
    normalised = dict(tree)
    normalised["openapi"] = SYNTHESISED_OPENAPI_VERSION
    components = dict(normalised.get("components") or {})
    for swagger_key, component_key in _SWAGGER_COMPONENTS.items():
        section = tree.get(swagger_key)
        if isinstance(section, dict) and component_key not in components:
            components[component_key] = section
    if components:
        normalised["components"] = components
    return normalised
