"""``specscope inspect`` -- examine the contents of a document.

Read-only commands that load the document through a
:class:`~specscope.session.SpecSession` (so the cache applies) and print
endpoints, schemas and API metadata as tables or JSON.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import typer

from specscope import query
from specscope.commands.common import fail, load_config, open_session, run
from specscope.exceptions import SpecscopeError
from specscope.models import Document
from specscope.output import OutputFormat, get_output, info, print_json, warning

T = TypeVar("T")

inspect_app = typer.Typer(no_args_is_help=True)

_URL_OPTION = typer.Option(
    None, "--url", "-u", help="Document URL or path (defaults to SPECSCOPE_URL / config)."
)


async def _load(url: Optional[str]) -> tuple[Document, Optional[str]]:
    async with open_session(load_config(url)) as session:
        document = await session.load()
        return document, session.url


def _query(url: Optional[str], action: Callable[[Document, Optional[str]], T]) -> T:
    """Load the document and run *action* on it, exiting cleanly on library errors."""
    document, source = run(_load(url))
    if get_output().format != OutputFormat.JSON:
        for message in document.warnings:
            warning(message)
    try:
        return action(document, source)
    except SpecscopeError as exc:
        fail(exc)


def _short(text: Optional[str], width: int = 60) -> str:
    if not text:
        return "-"
    return text if len(text) <= width else text[: width - 3] + "..."


@inspect_app.command("endpoints")
def inspect_endpoints(
    url: Optional[str] = _URL_OPTION,
    tag: Optional[str] = typer.Option(None, "--tag", "-t", help="Only endpoints with this tag."),
    method: Optional[str] = typer.Option(None, "--method", "-m", help="Only this HTTP method."),
    deprecated: Optional[bool] = typer.Option(
        None, "--deprecated/--current", help="Only deprecated, or only current, endpoints."
    ),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum number of endpoints."),
    offset: int = typer.Option(0, "--offset", help="Number of endpoints to skip."),
) -> None:
    """List API endpoints.

    Example::

        specscope inspect endpoints --tag pets
        specscope inspect endpoints --method post --current
    """
    page = _query(
        url,
        lambda document, _: query.list_endpoints(
            document, tag=tag, method=method, deprecated=deprecated, limit=limit, offset=offset
        ),
    )

    output = get_output()
    if output.format == OutputFormat.JSON:
        print_json(page.model_dump())
        return
    output.print_table(
        ["Method", "Path", "Summary", "Tags", "Deprecated"],
        [
            [
                e.method,
                e.path,
                _short(e.summary),
                ", ".join(e.tags) or "-",
                "Yes" if e.deprecated else "",
            ]
            for e in page.endpoints
        ],
        title=f"Endpoints ({page.count} of {page.total})",
    )


@inspect_app.command("search")
def inspect_search(
    text: str = typer.Argument(..., help="Search text."),
    url: Optional[str] = _URL_OPTION,
    fields: Optional[list[str]] = typer.Option(
        None,
        "--in",
        help=f"Field to search, repeatable: {', '.join(query.SEARCH_FIELDS)}.",
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of results."),
) -> None:
    """Fuzzy-search endpoints by path, summary, description, tags and operationId.

    Example::

        specscope inspect search "list pets"
        specscope inspect search owner --in summary --in description
    """
    hits = _query(
        url, lambda document, _: query.search_endpoints(document, text, fields=fields, limit=limit)
    )

    output = get_output()
    if output.format == OutputFormat.JSON:
        print_json({"query": text, "count": len(hits), "results": [h.model_dump() for h in hits]})
        return
    if not hits:
        info(f"No endpoints match {text!r}.")
        return
    output.print_table(
        ["Score", "Method", "Path", "Summary"],
        [
            [f"{h.score:.3f}", h.endpoint.method, h.endpoint.path, _short(h.endpoint.summary)]
            for h in hits
        ],
        title=f"Search: {text} ({len(hits)})",
    )


@inspect_app.command("endpoint")
def inspect_endpoint(
    path: str = typer.Argument(..., help="Path template or concrete path, e.g. /pets/{petId}."),
    method: str = typer.Argument(..., help="HTTP method."),
    url: Optional[str] = _URL_OPTION,
) -> None:
    """Show parameters, request body and responses of one endpoint.

    Example::

        specscope inspect endpoint /pets/{petId} get
    """
    details = _query(url, lambda document, _: query.endpoint_details(document, path, method))
    print_json(details)


@inspect_app.command("schemas")
def inspect_schemas(
    name: Optional[str] = typer.Argument(None, help="Show this schema in full."),
    url: Optional[str] = _URL_OPTION,
) -> None:
    """List schemas, or show one schema with its references expanded.

    Example::

        specscope inspect schemas
        specscope inspect schemas Pet
    """
    if name is not None:
        print_json(_query(url, lambda document, _: query.get_schema(document, name)))
        return

    schemas: list[dict[str, Any]] = _query(url, lambda document, _: query.list_schemas(document))
    output = get_output()
    if output.format == OutputFormat.JSON:
        print_json({"count": len(schemas), "schemas": schemas})
        return
    if not schemas:
        info("No schemas defined in this document.")
        return
    output.print_table(
        ["Schema", "Type", "Description"],
        [[s["name"], s["type"], _short(s.get("description"))] for s in schemas],
        title=f"Schemas ({len(schemas)})",
    )


@inspect_app.command("info")
def inspect_info(url: Optional[str] = _URL_OPTION) -> None:
    """Show API metadata and endpoint statistics.

    Example::

        specscope inspect info
    """
    print_json(_query(url, query.api_info))
