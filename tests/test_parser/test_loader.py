"""Tests for specscope.parser.loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from specscope.exceptions import ParseError
from specscope.parser.loader import (
    format_hint_for_content_type,
    format_hint_for_path,
    load_file,
    parse_content,
    sniff_format,
)


class TestFormatHints:
    @pytest.mark.parametrize(
        "content_type, expected",
        [
            ("application/json", "json"),
            ("application/vnd.oai.openapi+json;version=3.0", "json"),
            ("application/yaml", "yaml"),
            ("text/x-yaml; charset=utf-8", "yaml"),
            ("text/plain", ""),
            ("", ""),
        ],
    )
    def test_content_type(self, content_type: str, expected: str) -> None:
        assert format_hint_for_content_type(content_type) == expected

    def test_path_extension(self) -> None:
        assert format_hint_for_path("api/openapi.JSON") == "json"
        assert format_hint_for_path("openapi.yml?raw=1") == "yaml"
        assert format_hint_for_path("openapi") == ""


class TestSniff:
    def test_json_object(self) -> None:
        assert sniff_format('  \n{"openapi": "3.0.0"}') == "json"

    def test_byte_order_mark(self) -> None:
        assert sniff_format("\ufeff{\"openapi\": \"3.0.0\"}") == "json"

    def test_yaml(self) -> None:
        assert sniff_format("openapi: 3.0.0\n") == "yaml"


class TestParseContent:
    def test_json(self) -> None:
        assert parse_content('{"openapi": "3.0.0"}') == {"openapi": "3.0.0"}

    def test_yaml(self) -> None:
        assert parse_content("openapi: 3.0.0\ninfo:\n  title: T\n") == {
            "openapi": "3.0.0",
            "info": {"title": "T"},
        }

    def test_hint_overrides_sniffing(self) -> None:
        # YAML is a superset of JSON, so a yaml hint still parses JSON text.
        assert parse_content('{"a": 1}', hint="yaml") == {"a": 1}

    def test_empty(self) -> None:
        with pytest.raises(ParseError, match="empty"):
            parse_content("   \n")

    def test_invalid_json_not_retried_as_yaml(self) -> None:
        with pytest.raises(ParseError, match="Invalid JSON"):
            parse_content('{"openapi": ')

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ParseError, match="Invalid YAML"):
            parse_content("openapi: [unclosed\n")

    def test_non_mapping(self) -> None:
        with pytest.raises(ParseError, match="must be a JSON/YAML object"):
            parse_content("[1, 2, 3]")

    def test_scalar_yaml(self) -> None:
        with pytest.raises(ParseError):
            parse_content("just a string")


class TestLoadFile:
    def test_yaml_file(self, swagger_path: Path) -> None:
        assert load_file(swagger_path)["swagger"] == "2.0"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ParseError, match="not found"):
            load_file(tmp_path / "missing.json")
