"""Helpers shared by the CLI commands.

Commands are synchronous Typer callbacks; each one builds the async
pipeline with :func:`open_session` and drives it with :func:`asyncio.run`.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine, NoReturn, Optional, TypeVar

import typer

from specscope.cache.store import CacheStore
from specscope.client.acquirer import DocumentAcquirer
from specscope.config import get_document_cache_dir, resolve_config
from specscope.exceptions import SpecscopeError
from specscope.exit_codes import EXIT_CONNECTION_ERROR
from specscope.models import GlobalConfig
from specscope.output import error, suggest
from specscope.session import SpecSession

T = TypeVar("T")


def load_config(url: Optional[str] = None, deep: Optional[bool] = None) -> GlobalConfig:
    """Resolve configuration, exiting with the error's code on failure."""
    overrides: dict[str, Any] = {}
    if deep is not None:
        overrides["validation"] = {"deep": deep}
    try:
        return resolve_config(cli_url=url, cli_overrides=overrides or None)
    except SpecscopeError as exc:
        fail(exc)


def open_cache(config: GlobalConfig) -> CacheStore:
    return CacheStore(get_document_cache_dir(config), config.cache)


@asynccontextmanager
async def open_session(config: GlobalConfig) -> AsyncIterator[SpecSession]:
    """Yield a :class:`SpecSession` whose HTTP client is closed on exit."""
    async with DocumentAcquirer(open_cache(config), config.request) as acquirer:
        yield SpecSession(acquirer, config.openapi_url, deep=config.validation.deep)


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run *coro* to completion, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except SpecscopeError as exc:
        fail(exc)


def fail(exc: SpecscopeError) -> NoReturn:
    """Print *exc* and exit with its code."""
    error(str(exc))
    if exc.exit_code == EXIT_CONNECTION_ERROR:
        suggest("Check the URL and your network connection.")
    raise typer.Exit(code=exc.exit_code)
