"""Typer application and console-script entry point for specscope.

The root callback builds the global :class:`~specscope.output.OutputManager`
and routes library logging through a :class:`rich.logging.RichHandler` on
stderr.  Sub-commands live in :mod:`specscope.commands`.

:func:`main` is the ``specscope`` console script declared in
``pyproject.toml``.
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any

import typer
from rich.logging import RichHandler

from specscope import __version__
from specscope.commands.cache import cache_app
from specscope.commands.config import config_app
from specscope.commands.fetch import fetch_command
from specscope.commands.inspect import inspect_app
from specscope.commands.validate import validate_command
from specscope.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="specscope",
    help="Fetch, cache, inspect and validate requests against OpenAPI documents.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("fetch")(fetch_command)
app.command("validate")(validate_command)
app.add_typer(inspect_app, name="inspect", help="Examine endpoints, schemas and API info.")
app.add_typer(cache_app, name="cache", help="Document cache management.")
app.add_typer(config_app, name="config", help="View and modify the global configuration.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"specscope {__version__}")
        raise typer.Exit()


def configure_logging(level: int, console: Any = None) -> None:
    """Send ``specscope.*`` log records to stderr through Rich.

    Replaces any handler installed by a previous call, so repeated CLI
    invocations in one process do not duplicate output.
    """
    logger = logging.getLogger("specscope")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(console=console, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def _log_level(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.ERROR
    from specscope.config import resolve_config
    from specscope.exceptions import ConfigError

    try:
        configured = resolve_config().log_level
    except ConfigError:
        # Reported by the command that loads the config.
        return logging.WARNING
    return getattr(logging, configured.upper())


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Args:
        ctx: Typer invocation context.
        version: Print the version string and exit.
        json_output: Force JSON output.
        plain_output: Force plain-text output.
        no_color: Disable colour and Rich markup.
        quiet: Hide informational messages and non-error log records.
        verbose: Show debug messages and log records.
    """
    from specscope.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    output = OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose)
    set_output(output)
    configure_logging(_log_level(verbose, quiet), output.stderr_console)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``specscope`` console script.

    :class:`~specscope.exceptions.SpecscopeError` instances that escape a
    command exit with the error's ``exit_code``; anything else exits with
    :data:`~specscope.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from specscope.exceptions import SpecscopeError
        from specscope.output import error

        if isinstance(exc, SpecscopeError):
            error(str(exc))
            sys.exit(exc.exit_code)
        logging.getLogger(__name__).debug("Unhandled error", exc_info=True)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
