"""``specscope cache`` -- inspect and manage the document cache."""

from __future__ import annotations

import typer

from specscope.commands.common import load_config, open_cache, run
from specscope.output import get_output, success

cache_app = typer.Typer(no_args_is_help=True)


@cache_app.command("stats")
def cache_stats() -> None:
    """Show cache settings and occupancy."""
    stats = open_cache(load_config()).stats()
    get_output().print_record(stats, title="Document cache")


@cache_app.command("clear")
def cache_clear() -> None:
    """Remove every cached document from disk."""
    run(open_cache(load_config()).clear())
    success("Cache cleared")


@cache_app.command("invalidate")
def cache_invalidate(
    url: str = typer.Argument(..., help="Document URL whose cached copy should be dropped."),
) -> None:
    """Drop the cached copy of one document."""
    run(open_cache(load_config()).invalidate(url))
    success(f"Invalidated {url}")
