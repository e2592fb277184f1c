"""Tests for specscope.parser.resolver."""

from __future__ import annotations

import asyncio
import copy
import json
from pathlib import Path
from typing import Any

import pytest

from specscope.exceptions import ParseError, ReferenceResolutionError
from specscope.parser.loader import load_file
from specscope.parser.resolver import (
    ARENA_KEY,
    ReferenceResolver,
    join_location,
    lookup_pointer,
    split_ref,
)

BASE = "https://api.example.com/openapi.json"


def _resolve(raw: dict[str, Any], base: str = BASE, loader=None):
    return asyncio.run(ReferenceResolver(loader=loader).resolve(raw, base))


class TestLookupPointer:
    def test_nested(self) -> None:
        doc = {"components": {"schemas": {"Pet": {"type": "object"}}}}
        assert lookup_pointer(doc, "#/components/schemas/Pet") == {"type": "object"}

    def test_escapes(self) -> None:
        doc = {"paths": {"/pets/{id}": {"get": 1}}, "a~b": 2}
        assert lookup_pointer(doc, "#/paths/~1pets~1{id}/get") == 1
        assert lookup_pointer(doc, "#/a~0b") == 2

    def test_percent_encoded(self) -> None:
        doc = {"paths": {"/pets/{id}": "x"}}
        assert lookup_pointer(doc, "#/paths/~1pets~1%7Bid%7D") == "x"

    def test_array_index(self) -> None:
        assert lookup_pointer({"a": [10, 20]}, "#/a/1") == 20

    def test_whole_document(self) -> None:
        doc = {"a": 1}
        assert lookup_pointer(doc, "#") is doc

    def test_missing_key(self) -> None:
        with pytest.raises(ReferenceResolutionError, match="not found"):
            lookup_pointer({"a": {}}, "#/a/b")

    def test_external_pointer_rejected(self) -> None:
        with pytest.raises(ReferenceResolutionError):
            lookup_pointer({}, "other.json#/a")


class TestLocations:
    def test_join_relative_url(self) -> None:
        assert join_location(BASE, "defs/pet.yaml") == "https://api.example.com/defs/pet.yaml"

    def test_join_relative_path(self) -> None:
        assert join_location("/specs/api.yaml", "../common/errors.yaml") == "/common/errors.yaml"

    def test_split(self) -> None:
        assert split_ref("pet.yaml#/Pet") == ("pet.yaml", "/Pet")
        assert split_ref("#/components/schemas/Pet") == ("", "/components/schemas/Pet")


class TestInternalReferences:
    def test_simple_ref_replaced(self) -> None:
        raw = {
            "paths": {"/pets": {"get": {"schema": {"$ref": "#/components/schemas/Pet"}}}},
            "components": {"schemas": {"Pet": {"type": "object"}}},
        }
        resolution = _resolve(raw)
        assert resolution.tree["paths"]["/pets"]["get"]["schema"] == {"type": "object"}
        assert resolution.warnings == []

    def test_input_not_mutated(self, petstore_raw: dict[str, Any]) -> None:
        before = copy.deepcopy(petstore_raw)
        _resolve(petstore_raw)
        assert petstore_raw == before

    def test_sibling_keys_merged(self) -> None:
        raw = {
            "a": {"$ref": "#/defs/Name", "description": "Overridden"},
            "defs": {"Name": {"type": "string", "description": "Original"}},
        }
        assert _resolve(raw).tree["a"] == {"type": "string", "description": "Overridden"}

    def test_missing_target_is_warning(self) -> None:
        raw = {"a": {"$ref": "#/defs/Missing"}, "defs": {}}
        resolution = _resolve(raw)
        assert resolution.tree["a"] == {"$ref": "#/defs/Missing"}
        assert len(resolution.warnings) == 1
        assert "#/defs/Missing" in resolution.warnings[0]


class TestCycles:
    def test_self_reference_becomes_back_reference(self, petstore_raw: dict[str, Any]) -> None:
        tree = _resolve(petstore_raw).tree
        node = tree["components"]["schemas"]["Node"]
        children = node["properties"]["children"]["items"]

        assert children["properties"]["value"] == {"type": "string"}
        assert children["properties"]["children"]["items"] == {"$ref": "#/components/schemas/Node"}

    def test_mutual_cycle_terminates(self) -> None:
        raw = {
            "components": {
                "schemas": {
                    "A": {"properties": {"b": {"$ref": "#/components/schemas/B"}}},
                    "B": {"properties": {"a": {"$ref": "#/components/schemas/A"}}},
                }
            }
        }
        tree = _resolve(raw).tree
        a = tree["components"]["schemas"]["A"]
        assert a["properties"]["b"]["properties"]["a"]["properties"]["b"] == {
            "$ref": "#/components/schemas/B"
        }

    def test_resolved_tree_is_serialisable(self, petstore_raw: dict[str, Any]) -> None:
        json.dumps(_resolve(petstore_raw).tree)

    def test_back_reference_is_resolvable(self, petstore_raw: dict[str, Any]) -> None:
        tree = _resolve(petstore_raw).tree
        back = tree["components"]["schemas"]["Node"]["properties"]["children"]["items"][
            "properties"
        ]["children"]["items"]["$ref"]
        assert lookup_pointer(tree, back)["type"] == "object"


class TestExternalReferences:
    def test_file_reference(self, tmp_path: Path) -> None:
        (tmp_path / "pet.yaml").write_text("Pet:\n  type: object\n  required: [name]\n")
        root = tmp_path / "api.yaml"
        raw = {"schema": {"$ref": "pet.yaml#/Pet"}}

        async def loader(location: str) -> dict[str, Any]:
            return load_file(location)

        resolution = _resolve(raw, str(root), loader)
        assert resolution.tree["schema"] == {"type": "object", "required": ["name"]}

    def test_each_document_fetched_once(self) -> None:
        calls: list[str] = []

        async def loader(location: str) -> dict[str, Any]:
            calls.append(location)
            return {"A": {"type": "string"}, "B": {"type": "integer"}}

        raw = {"a": {"$ref": "defs.json#/A"}, "b": {"$ref": "defs.json#/B"}}
        tree = _resolve(raw, loader=loader).tree
        assert tree == {"a": {"type": "string"}, "b": {"type": "integer"}}
        assert calls == ["https://api.example.com/defs.json"]

    def test_external_cycle_uses_arena(self) -> None:
        async def loader(location: str) -> dict[str, Any]:
            return {"Tree": {"properties": {"child": {"$ref": "#/Tree"}}}}

        raw = {"openapi": "3.0.3", "schema": {"$ref": "tree.json#/Tree"}}
        tree = _resolve(raw, loader=loader).tree

        back = tree["schema"]["properties"]["child"]
        assert back["$ref"].startswith(f"#/components/{ARENA_KEY}/Tree-")
        target = lookup_pointer(tree, back["$ref"])
        assert target["properties"]["child"] == back

    def test_loader_failure_is_warning(self) -> None:
        async def loader(location: str) -> dict[str, Any]:
            raise ParseError("boom")

        raw = {"a": {"$ref": "defs.json#/A"}}
        resolution = _resolve(raw, loader=loader)
        assert resolution.tree == raw
        assert any("boom" in w for w in resolution.warnings)

    def test_no_loader_is_warning(self) -> None:
        resolution = _resolve({"a": {"$ref": "defs.json#/A"}})
        assert resolution.warnings
