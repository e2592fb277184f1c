"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specscope:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specscope/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **Global config** -- A single :class:`~specscope.models.GlobalConfig`
  JSON file storing defaults (document URL, cache, request and validation
  settings).
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`), which the durable document cache shares.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from specscope.exceptions import ConfigError
from specscope.models import GlobalConfig

_APP_NAME = "specscope"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "specscope.json"

# Environment variable -> (section, field) in GlobalConfig.
_ENV_OVERRIDES: dict[str, tuple[Optional[str], str]] = {
    "SPECSCOPE_URL": (None, "openapi_url"),
    "SPECSCOPE_LOG_LEVEL": (None, "log_level"),
    "SPECSCOPE_CACHE_TTL": ("cache", "ttl_seconds"),
    "SPECSCOPE_CACHE_DIR": ("cache", "directory"),
    "SPECSCOPE_MAX_CACHE_SIZE": ("cache", "max_size_mb"),
    "SPECSCOPE_REQUEST_TIMEOUT": ("request", "timeout"),
    "SPECSCOPE_RETRY_ATTEMPTS": ("request", "retry_attempts"),
    "SPECSCOPE_RETRY_DELAY": ("request", "retry_delay"),
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specscope/`` (default ``~/.config/specscope/``).
    On macOS/Windows: ``~/.specscope/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the durable document cache. Cached data can be safely deleted
    at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/specscope/`` (default ``~/.cache/specscope/``).
    On macOS/Windows: ``~/.specscope/cache/``.

    Returns:
        Absolute path to the cache directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_document_cache_dir(config: GlobalConfig) -> Path:
    """Return the durable document cache directory for *config*.

    Relative ``cache.directory`` values are placed under :func:`get_cache_dir`.
    """
    if config.cache.directory:
        path = Path(config.cache.directory).expanduser()
        if not path.is_absolute():
            path = get_cache_dir() / path
    else:
        path = get_cache_dir() / "documents"
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str | bytes) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = data.encode("utf-8") if isinstance(data, str) else data

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        )
        tmp_path = fd.name
        fd.write(payload)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specscope.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./specscope.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It uses the same shape as the global config and
    is merged over it section by section.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge *overlay* into *base* one level deep (config sections are flat)."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _env_overrides() -> dict[str, Any]:
    """Collect ``SPECSCOPE_*`` environment variables as a config overlay."""
    overlay: dict[str, Any] = {}
    for var, (section, field) in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if not value:
            continue
        if section is None:
            overlay[field] = value.lower() if field == "log_level" else value
        else:
            overlay.setdefault(section, {})[field] = value
    return overlay


def resolve_config(
    cli_url: Optional[str] = None,
    cli_overrides: Optional[dict[str, Any]] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_url``, ``cli_overrides``)
        2. Environment variables (``SPECSCOPE_URL``, ``SPECSCOPE_CACHE_TTL``, ...)
        3. Project config (``./specscope.json``)
        4. User config (``~/.config/specscope/config.json``)
        5. Defaults

    Args:
        cli_url: Document URL given on the command line.
        cli_overrides: Nested overlay in :class:`GlobalConfig` shape, e.g.
            ``{"validation": {"deep": True}}``.

    Returns:
        The effective :class:`~specscope.models.GlobalConfig`.

    Raises:
        ConfigError: If any layer is malformed or the merged values fail
            validation.
    """
    # 5 + 4. Load base global config (fills in defaults automatically)
    data = load_global_config().model_dump()

    # 3. Project-local config
    project = load_project_config()
    if project is not None:
        data = _merge(data, project)

    # 2. Environment variables
    data = _merge(data, _env_overrides())

    # 1. CLI flags
    if cli_overrides:
        data = _merge(data, cli_overrides)
    if cli_url is not None:
        data["openapi_url"] = cli_url

    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
