"""``specscope validate`` -- check a request against the loaded document."""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from specscope.commands.common import load_config, open_session, run
from specscope.exit_codes import EXIT_VALIDATION_FAILED
from specscope.models import ValidationResult
from specscope.output import OutputFormat, get_output, success, warning


def parse_pairs(values: Optional[list[str]], option: str) -> dict[str, str]:
    """Parse repeated ``key=value`` options into a mapping.

    Raises:
        typer.BadParameter: If an item has no ``=``.
    """
    pairs: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {item!r}", param_hint=option)
        pairs[key] = value
    return pairs


def parse_body(body: Optional[str]) -> Any:
    if body is None:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Body is not valid JSON: {exc}", param_hint="--body") from None


async def _validate(
    url: Optional[str],
    deep: Optional[bool],
    path: str,
    method: str,
    params: dict[str, str],
    headers: dict[str, str],
    body: Any,
) -> ValidationResult:
    async with open_session(load_config(url, deep)) as session:
        document = await session.load()
        for message in document.warnings:
            warning(message)
        return session.validate_request(path, method, params, headers, body)


def validate_command(
    path: str = typer.Argument(..., help="Path template or concrete path, e.g. /pets/42."),
    method: str = typer.Argument(..., help="HTTP method."),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="Document URL or path (defaults to SPECSCOPE_URL / config)."
    ),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-p", help="Path or query parameter as key=value (repeatable)."
    ),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Header as key=value (repeatable)."
    ),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="JSON request body."),
    deep: Optional[bool] = typer.Option(
        None, "--deep/--shallow", help="Validate nested properties and array items."
    ),
) -> None:
    """Validate a request against an OpenAPI document.

    Exits with code 8 when the request is invalid.

    Example::

        specscope validate /pets/42 GET --url ./petstore.yaml
        specscope validate /pets POST --body '{"name": "Rex"}' --deep
    """
    result = run(
        _validate(
            url,
            deep,
            path,
            method,
            parse_pairs(param, "--param"),
            parse_pairs(header, "--header"),
            parse_body(body),
        )
    )
    output = get_output()

    if output.format == OutputFormat.JSON:
        output.print_json(result.model_dump())
    else:
        if result.errors:
            output.print_table(
                ["Location", "Field", "Message"],
                [[issue.location, issue.field, issue.message] for issue in result.errors],
                title=f"{method.upper()} {path}: {len(result.errors)} error(s)",
            )
        for message in result.warnings:
            warning(message)
        if result.valid:
            success(f"{method.upper()} {path} is valid")

    if not result.valid:
        raise typer.Exit(code=EXIT_VALIDATION_FAILED)
