"""Shared test fixtures for specscope.

Provides document fixtures, an isolated config environment, output state
management and a CLI runner.  These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from specscope.cache.store import CacheStore
from specscope.client.acquirer import DocumentAcquirer
from specscope.models import CacheConfig, Document, RequestConfig
from specscope.output import OutputFormat, OutputManager, reset_output, set_output
from specscope.parser.validator import DocumentValidator

FIXTURES_DIR = Path(__file__).parent / "fixtures"

PETSTORE_URL = "https://api.example.com/openapi.json"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.  The CLI
    also installs a handler on the ``specscope`` logger and stops
    propagation; both are undone so ``caplog`` keeps working.
    """
    yield
    reset_output()
    logger = logging.getLogger("specscope")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Document fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Raw petstore 3.0 document (unresolved)."""
    with open(FIXTURES_DIR / "petstore_3.0.json") as f:
        return json.load(f)


@pytest.fixture
def petstore_text() -> str:
    return (FIXTURES_DIR / "petstore_3.0.json").read_text()


@pytest.fixture
def swagger_path() -> Path:
    return FIXTURES_DIR / "petstore_swagger_2.0.yaml"


@pytest.fixture
def petstore_document(petstore_raw: dict[str, Any]) -> Document:
    """Petstore as a Document with references left in place.

    Request validation performs its own single reference hop, so an
    unresolved tree is a valid input.
    """
    return DocumentValidator().validate(petstore_raw)


@pytest.fixture
def make_document() -> Callable[..., Document]:
    """Factory for small documents: ``make_document(paths, schemas=None)``."""

    def _make(paths: dict[str, Any], schemas: dict[str, Any] | None = None) -> Document:
        tree: dict[str, Any] = {
            "openapi": "3.0.3",
            "info": {"title": "Test", "version": "1"},
            "paths": paths,
        }
        if schemas is not None:
            tree["components"] = {"schemas": schemas}
        return DocumentValidator().validate(tree)

    return _make


# ---------------------------------------------------------------------------
# Cache / acquirer fixtures
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock for cache freshness tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def cache_store(tmp_path: Path, clock: FakeClock) -> CacheStore:
    return CacheStore(tmp_path / "documents", CacheConfig(ttl_seconds=3600), clock=clock)


@pytest.fixture
def make_acquirer(
    cache_store: CacheStore, sleeps: SleepRecorder
) -> Callable[..., DocumentAcquirer]:
    """Factory: ``make_acquirer(handler, **request_config)`` over a MockTransport."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **config: Any) -> DocumentAcquirer:
        return DocumentAcquirer(
            cache_store,
            RequestConfig(**config),
            transport=httpx.MockTransport(handler),
            sleep=sleeps,
        )

    return _make


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_CACHE_HOME to subdirectories of tmp_path
    so that tests never touch real user config, clears all SPECSCOPE_*
    environment variables, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("specscope.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))

    for var in [
        "SPECSCOPE_URL",
        "SPECSCOPE_CACHE_TTL",
        "SPECSCOPE_CACHE_DIR",
        "SPECSCOPE_MAX_CACHE_SIZE",
        "SPECSCOPE_REQUEST_TIMEOUT",
        "SPECSCOPE_RETRY_ATTEMPTS",
        "SPECSCOPE_RETRY_DELAY",
        "SPECSCOPE_LOG_LEVEL",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
