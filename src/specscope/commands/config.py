"""``specscope config`` -- view and modify the global configuration.

Settings are persisted in ``config.json`` under the specscope config
directory and form the lowest-precedence layer of
:func:`~specscope.config.resolve_config`.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from specscope.commands.common import fail
from specscope.config import get_config_dir, load_global_config, save_global_config
from specscope.exceptions import ConfigError
from specscope.exit_codes import EXIT_INVALID_USAGE
from specscope.models import GlobalConfig
from specscope.output import error, info, print_json, success


config_app = typer.Typer(no_args_is_help=True)


def _load() -> GlobalConfig:
    try:
        return load_global_config()
    except ConfigError as exc:
        fail(exc)


@config_app.command("show")
def config_show() -> None:
    """Show the persisted global configuration.

    Example::

        specscope config show
        specscope --json config show
    """
    config = _load()
    info(f"Config directory: {get_config_dir()}")
    print_json(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Config key in dot notation, e.g. 'cache.ttl_seconds'."),
    value: str = typer.Argument(..., help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is validated against the field's declared type before the
    file is written.

    Example::

        specscope config set openapi_url https://petstore3.swagger.io/api/v3/openapi.json
        specscope config set cache.ttl_seconds 600
        specscope config set validation.deep true
    """
    data = _load().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if not isinstance(target.get(k), dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    target[final_key] = value

    try:
        config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc.errors()[0]['msg']}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(config)
    success(f"Set {key} = {value}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Reset the global configuration to defaults."""
    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
