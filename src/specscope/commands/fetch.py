"""``specscope fetch`` -- load a document and print its summary."""

from __future__ import annotations

from typing import Any

import typer

from specscope.commands.common import load_config, open_session, run
from specscope.models import Document
from specscope.output import OutputFormat, get_output, warning


def summarise(document: Document) -> dict[str, Any]:
    """Flatten the fields shown by ``fetch`` into one record."""
    return {
        "title": document.title,
        "version": document.info.get("version"),
        "openapi": document.openapi_version,
        "dialect": document.source_dialect,
        "operations": document.operation_count,
        "warnings": list(document.warnings),
    }


async def _fetch(url: str, refresh: bool) -> Document:
    async with open_session(load_config(url)) as session:
        return await session.load(force_refresh=refresh)


def fetch_command(
    url: str = typer.Argument(..., help="Document URL or local file path."),
    refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Revalidate with the origin even when the cached copy is fresh."
    ),
) -> None:
    """Fetch an OpenAPI document and print a summary.

    Example::

        specscope fetch https://petstore3.swagger.io/api/v3/openapi.json
        specscope --json fetch ./openapi.yaml
    """
    document = run(_fetch(url, refresh))
    output = get_output()
    output.print_record(summarise(document), title=document.title)
    if output.format != OutputFormat.JSON:
        for message in document.warnings:
            warning(message)
