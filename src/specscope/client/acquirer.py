"""Fetch OpenAPI documents over HTTP with caching, revalidation, and retry.

:class:`DocumentAcquirer` implements the acquisition pipeline::

    cache lookup -> conditional GET (with retry) -> parse -> resolve $refs
    -> version check -> cache store

* A fresh cache hit short-circuits the network entirely.
* Otherwise the request carries ``If-None-Match`` / ``If-Modified-Since``
  from the stored entry, and a ``304 Not Modified`` answer re-stores the
  cached document without parsing anything.
* 5xx answers and transport failures are retried with exponential backoff
  (``retry_delay * 2**attempt``) using :func:`asyncio.sleep`; 4xx answers
  are never retried.
* When every attempt fails but a cached copy exists, even a stale one, that
  copy is served with a warning attached.  Only without any cached copy
  does :class:`~specscope.exceptions.AcquisitionError` reach the caller.

Local files (plain paths or ``file://`` URLs) go through the same parse,
resolve and validate steps but are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import unquote, urlsplit

import httpx

from specscope.cache.store import CacheStore
from specscope.exceptions import (
    AcquisitionError,
    ClientRequestError,
    NetworkError,
    SpecscopeError,
)
from specscope.models import CacheEntry, Document, RequestConfig
from specscope.parser.loader import format_hint_for_content_type, load_file, parse_content
from specscope.parser.resolver import ReferenceResolver
from specscope.parser.validator import DocumentValidator

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/json, application/yaml, text/yaml, text/plain"


def is_remote(source: str) -> bool:
    """Whether *source* is an ``http``/``https`` URL."""
    return urlsplit(source).scheme in ("http", "https")


def _local_path(source: str) -> str:
    if source.startswith("file://"):
        return unquote(urlsplit(source).path)
    return source


class DocumentAcquirer:
    """Obtain :class:`~specscope.models.Document` objects for URLs.

    The acquirer owns an :class:`httpx.AsyncClient`, created on first use.
    Use it as an async context manager (or call :meth:`aclose`) to release
    connections.

    Args:
        cache: The document cache consulted before and updated after every
            network fetch.
        config: Timeout, retry and TLS settings.  Defaults to
            :class:`~specscope.models.RequestConfig` defaults.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.
        sleep: Coroutine used to wait between attempts.

    Example::

        async with DocumentAcquirer(cache, config.request) as acquirer:
            document = await acquirer.fetch_spec("https://petstore3.swagger.io/api/v3/openapi.json")
    """

    def __init__(
        self,
        cache: CacheStore,
        config: Optional[RequestConfig] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._cache = cache
        self._config = config or RequestConfig()
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._validator = DocumentValidator()

    @property
    def cache(self) -> CacheStore:
        return self._cache

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> DocumentAcquirer:
        self._http()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                verify=self._config.verify_ssl,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def fetch_spec(self, url: str, force_refresh: bool = False) -> Document:
        """Return the document at *url*, from cache when fresh.

        Args:
            url: An ``http(s)`` URL, ``file://`` URL, or local path.
            force_refresh: Skip the freshness check and revalidate with the
                origin (conditional headers are still sent).

        Returns:
            The resolved, version-checked document.  When the origin could
            not be reached but a cached copy exists, that copy is returned
            with a warning describing the failure.

        Raises:
            AcquisitionError: If the document cannot be obtained and no
                cached copy exists.  ``cause`` holds the typed failure.
        """
        if not is_remote(url):
            return await self._load_local(url)

        previous = await self._cache.peek(url)
        if not force_refresh and previous is not None and self._cache.is_fresh(previous):
            self._cache.promote(url, previous)
            logger.info("Using cached OpenAPI document for %s", url)
            return previous.document

        logger.info("Fetching OpenAPI document from %s", url)
        try:
            return await self._fetch_and_store(url, previous)
        except SpecscopeError as exc:
            if previous is None:
                raise AcquisitionError(
                    f"Failed to fetch OpenAPI document from {url}: {exc}", cause=exc
                ) from exc
            stored = datetime.fromtimestamp(previous.stored_at, tz=timezone.utc)
            logger.warning(
                "Failed to fetch updated document from %s, using cached version: %s", url, exc
            )
            return previous.document.with_warning(
                f"Refresh failed ({exc}); serving the copy cached at {stored.isoformat()}"
            )

    async def refresh(self, url: str) -> Document:
        """Shorthand for ``fetch_spec(url, force_refresh=True)``."""
        return await self.fetch_spec(url, force_refresh=True)

    async def load_external(self, location: str) -> dict[str, Any]:
        """Fetch and parse an external ``$ref`` target (no caching, same retry policy)."""
        if not is_remote(location):
            return await asyncio.to_thread(load_file, _local_path(location))
        response = await self._get_with_retry(location, {"Accept": ACCEPT_HEADER})
        return self._parse_response(response)

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def _fetch_and_store(self, url: str, previous: Optional[CacheEntry]) -> Document:
        headers = {"Accept": ACCEPT_HEADER}
        if previous is not None:
            if previous.etag:
                headers["If-None-Match"] = previous.etag
            if previous.last_modified:
                headers["If-Modified-Since"] = previous.last_modified

        response = await self._get_with_retry(url, headers)
        if response.status_code == 304:
            if previous is not None:
                logger.info("OpenAPI document for %s not modified, using cached version", url)
                revalidated = previous.model_copy(update={"stored_at": self._cache.now()})
                return (await self._cache.set(url, revalidated)).document
            logger.debug("Got 304 for %s without a cached copy, refetching unconditionally", url)
            response = await self._get_with_retry(url, {"Accept": ACCEPT_HEADER})
            if response.status_code == 304:
                raise NetworkError(f"Origin answered 304 for {url} to an unconditional request")

        raw = self._parse_response(response)
        document = await self._build(raw, str(response.url))
        await self._cache.set(
            url,
            CacheEntry(
                document=document,
                etag=response.headers.get("etag"),
                last_modified=response.headers.get("last-modified"),
                stored_at=self._cache.now(),
                source_url=url,
            ),
        )
        return document

    async def _load_local(self, source: str) -> Document:
        path = _local_path(source)
        try:
            raw = await asyncio.to_thread(load_file, path)
            return await self._build(raw, path)
        except SpecscopeError as exc:
            raise AcquisitionError(
                f"Failed to load OpenAPI document from {source}: {exc}", cause=exc
            ) from exc

    async def _build(self, raw: dict[str, Any], location: str) -> Document:
        resolution = await ReferenceResolver(loader=self.load_external).resolve(raw, location)
        return self._validator.validate(resolution.tree, resolution.warnings)

    def _parse_response(self, response: httpx.Response) -> dict[str, Any]:
        hint = format_hint_for_content_type(response.headers.get("content-type", ""))
        return parse_content(response.text, hint=hint)

    async def _get_with_retry(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """GET *url* with exponential-backoff retry.

        Retries on 5xx status codes and transport errors (connect, timeout,
        read) up to ``retry_attempts`` total attempts.  The delay doubles
        each attempt: ``retry_delay``, ``2 * retry_delay``, ...  Other
        request failures (redirect loops, undecodable bodies, malformed
        URLs) are not transient and fail on the first attempt.

        Raises:
            ClientRequestError: Immediately on a 4xx answer.
            NetworkError: When every attempt failed, or on a non-transient
                request failure.
        """
        attempts = self._config.retry_attempts
        client = self._http()
        attempt = 0

        while True:
            try:
                response = await client.get(url, headers=headers)
            except httpx.TransportError as exc:
                failure = NetworkError(f"Failed to fetch {url}: {exc}")
            except (httpx.RequestError, httpx.InvalidURL) as exc:
                raise NetworkError(f"Failed to fetch {url}: {exc}") from exc
            else:
                status = response.status_code
                if status < 400:
                    return response
                if status < 500:
                    raise ClientRequestError(f"HTTP {status} fetching {url}", status_code=status)
                failure = NetworkError(f"HTTP {status} fetching {url}", status_code=status)

            attempt += 1
            if attempt >= attempts:
                raise failure
            delay = self._config.retry_delay * 2 ** (attempt - 1)
            logger.info(
                "%s; retrying in %.1fs (attempt %d/%d)",
                failure,
                delay,
                attempt,
                attempts,
            )
            await self._sleep(delay)
