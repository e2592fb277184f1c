"""Hold one loaded document and validate requests against it.

:class:`SpecSession` is the stateful front of the library.  It tracks the
document lifecycle::

    unloaded -> loading -> loaded
                       \\-> failed        (first load failed)
    loaded   -> loading -> loaded        (refresh, success or failure)

A refresh that fails while a document is loaded keeps serving the previous
document with a warning attached instead of dropping it.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from specscope.client.acquirer import DocumentAcquirer
from specscope.exceptions import ConfigError, SpecscopeError
from specscope.models import Document, DocumentState, ValidationResult
from specscope.validation.request import validate_request

logger = logging.getLogger(__name__)


class SpecSession:
    """A document slot backed by a :class:`DocumentAcquirer`.

    Args:
        acquirer: Used for every load and refresh.
        url: Default document URL or path.
        deep: Default for :meth:`validate_request`'s ``deep`` flag.
    """

    def __init__(
        self,
        acquirer: DocumentAcquirer,
        url: Optional[str] = None,
        *,
        deep: bool = False,
    ) -> None:
        self._acquirer = acquirer
        self._url = url
        self._deep = deep
        self._document: Optional[Document] = None
        self._state = DocumentState.UNLOADED

    @property
    def state(self) -> DocumentState:
        return self._state

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def document(self) -> Optional[Document]:
        return self._document

    async def load(self, url: Optional[str] = None, force_refresh: bool = False) -> Document:
        """Load the document at *url* (or the session default).

        Loading a different URL replaces the current document.

        Raises:
            ConfigError: If no URL was given and the session has none.
            AcquisitionError: If the first load fails.
        """
        target = url or self._url
        if not target:
            raise ConfigError(
                "No OpenAPI URL configured. Pass a URL or set SPECSCOPE_URL."
            )
        switching = target != self._url
        previous = None if switching else self._document
        self._url = target
        self._state = DocumentState.LOADING

        try:
            document = await self._acquirer.fetch_spec(target, force_refresh=force_refresh)
        except SpecscopeError as exc:
            if previous is None:
                self._document = None
                self._state = DocumentState.FAILED
                raise
            logger.warning("Refresh of %s failed, keeping the loaded document: %s", target, exc)
            self._document = previous.with_warning(
                f"Refresh failed ({exc}); keeping the previously loaded document"
            )
            self._state = DocumentState.LOADED
            return self._document
        except BaseException:
            self._state = DocumentState.FAILED if previous is None else DocumentState.LOADED
            if previous is None:
                self._document = None
            raise

        self._document = document
        self._state = DocumentState.LOADED
        logger.info(
            "Loaded %s (OpenAPI %s, %d operations)",
            document.title,
            document.openapi_version,
            document.operation_count,
        )
        return document

    async def refresh(self) -> Document:
        """Revalidate the current document with its origin."""
        return await self.load(force_refresh=True)

    def validate_request(
        self,
        path: str,
        method: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, Any]] = None,
        body: Any = None,
        *,
        deep: Optional[bool] = None,
    ) -> ValidationResult:
        """Validate a request against the loaded document.

        Raises:
            SpecscopeError: If no document is loaded.
            OperationNotFoundError: If the path or method is not declared.
        """
        if self._document is None:
            raise SpecscopeError("No OpenAPI document loaded")
        return validate_request(
            self._document,
            path,
            method,
            params,
            headers,
            body,
            deep=self._deep if deep is None else deep,
        )
