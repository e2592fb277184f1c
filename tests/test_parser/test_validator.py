"""Tests for specscope.parser.validator."""

from __future__ import annotations

from pathlib import Path

import pytest

from specscope.exceptions import ParseError, UnsupportedVersionError
from specscope.models import HTTPMethod
from specscope.parser.loader import load_file
from specscope.parser.validator import SYNTHESISED_OPENAPI_VERSION, DocumentValidator


def _tree(**overrides):
    tree = {
        "openapi": "3.1.0",
        "info": {"title": "T", "version": "1"},
        "paths": {"/a": {"get": {"responses": {}}}},
    }
    tree.update(overrides)
    return tree


class TestOpenAPI3:
    def test_accepts_3x(self) -> None:
        document = DocumentValidator().validate(_tree())
        assert document.openapi_version == "3.1.0"
        assert document.source_dialect == "openapi"
        assert document.warnings == []

    def test_carries_earlier_warnings(self) -> None:
        document = DocumentValidator().validate(_tree(), ["unresolved ref"])
        assert document.warnings == ["unresolved ref"]

    def test_rejects_other_major(self) -> None:
        with pytest.raises(UnsupportedVersionError, match="4.0.0"):
            DocumentValidator().validate(_tree(openapi="4.0.0"))

    def test_missing_version(self) -> None:
        tree = _tree()
        del tree["openapi"]
        with pytest.raises(UnsupportedVersionError, match="Missing version"):
            DocumentValidator().validate(tree)

    def test_missing_info(self) -> None:
        tree = _tree()
        del tree["info"]
        with pytest.raises(ParseError, match="info"):
            DocumentValidator().validate(tree)

    def test_no_operations_is_warning(self) -> None:
        document = DocumentValidator().validate(_tree(paths={}))
        assert document.operation_count == 0
        assert "Document declares no operations" in document.warnings


class TestSwagger2:
    def test_normalised(self, swagger_path: Path) -> None:
        raw = load_file(swagger_path)
        document = DocumentValidator().validate(raw)

        assert document.openapi_version == SYNTHESISED_OPENAPI_VERSION
        assert document.source_dialect == "swagger"
        assert document.tree["swagger"] == "2.0"
        assert document.components["schemas"]["Pet"]["required"] == ["name"]
        assert any("Swagger 2.0" in w for w in document.warnings)
        assert "openapi" not in raw

    def test_operations(self, swagger_path: Path) -> None:
        document = DocumentValidator().validate(load_file(swagger_path))
        assert sorted((path, method) for path, method, _ in document.operations()) == [
            ("/pets", HTTPMethod.POST),
            ("/pets/{petId}", HTTPMethod.GET),
        ]

    def test_rejects_swagger_1(self) -> None:
        with pytest.raises(UnsupportedVersionError, match="Swagger version"):
            DocumentValidator().validate({"swagger": "1.2", "info": {}, "paths": {}})
