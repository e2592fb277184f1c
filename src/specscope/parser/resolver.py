"""Resolve ``$ref`` JSON Reference pointers in OpenAPI documents.

OpenAPI documents use ``$ref`` pointers (e.g.,
``{"$ref": "#/components/schemas/Pet"}``) to avoid repetition, and large
APIs split their definitions across several files.  :class:`ReferenceResolver`
walks a document depth-first and replaces every reference with the content
it points to:

* **Internal** references (``#/...``) are looked up in the document that
  contains them.
* **External** references (``common.yaml#/Error``,
  ``https://host/defs.json``) are fetched once per target document through
  an injected async loader, before the walk starts.

Every reference is identified by its *canonical id*: the absolute location
of the target document plus the JSON pointer.  The walk carries the set of
ids currently being expanded.  Meeting an id that is already on that stack
means the schema graph is cyclic, so the reference is emitted as a
*back-reference* (a ``{"$ref": "#/..."}`` mapping) instead of being
expanded again.  Resolution therefore always terminates.  Back-references
into external documents point at an arena grafted onto the root document
under ``components.x-external`` so they stay resolvable locally.

Resolution never fails the overall fetch.  Unreachable targets are left
as-is and reported in :attr:`Resolution.warnings`.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator, Optional
from urllib.parse import unquote, urljoin, urlsplit

from specscope.exceptions import ReferenceResolutionError, SpecscopeError

logger = logging.getLogger(__name__)

ExternalLoader = Callable[[str], Awaitable[dict[str, Any]]]
"""Async callable fetching and parsing the document at an absolute location."""

ARENA_KEY = "x-external"


@dataclass
class Resolution:
    """Result of :meth:`ReferenceResolver.resolve`."""

    tree: dict[str, Any]
    warnings: list[str] = field(default_factory=list)


def lookup_pointer(document: Any, pointer: str) -> Any:
    """Resolve a JSON pointer against *document*.

    Accepts ``#/a/b``, ``/a/b`` and the whole-document forms ``#`` and ``""``.
    Segments are percent-decoded, then RFC 6901 escapes (``~1`` for ``/``,
    ``~0`` for ``~``) are undone.

    Raises:
        ReferenceResolutionError: If the pointer names an external document
            or any segment does not exist.
    """
    if pointer.startswith("#"):
        pointer = pointer[1:]
    elif pointer and not pointer.startswith("/"):
        raise ReferenceResolutionError(
            f"Cannot resolve '{pointer}': only internal references (#/...) can be looked up"
        )
    if not pointer:
        return document

    current: Any = document
    for raw_segment in pointer[1:].split("/"):
        segment = unquote(raw_segment).replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                raise ReferenceResolutionError(
                    f"Cannot resolve '#{pointer}': key '{segment}' not found"
                )
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise ReferenceResolutionError(
                    f"Cannot resolve '#{pointer}': invalid array index '{segment}'"
                ) from exc
        else:
            raise ReferenceResolutionError(
                f"Cannot resolve '#{pointer}': cannot navigate into {type(current).__name__}"
            )
    return current


def is_url(location: str) -> bool:
    return urlsplit(location).scheme in ("http", "https", "file")


def join_location(base: str, reference: str) -> str:
    """Return the absolute location of *reference* relative to *base*."""
    if is_url(reference):
        return reference
    if is_url(base):
        return urljoin(base, reference)
    return os.path.normpath(os.path.join(os.path.dirname(base), reference))


def split_ref(ref: str) -> tuple[str, str]:
    """Split ``doc#/pointer`` into ``(doc, "/pointer")``."""
    document, _, fragment = ref.partition("#")
    return document, fragment


def iter_refs(node: Any) -> Iterator[str]:
    """Yield every ``$ref`` string in *node*, depth-first."""
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            yield ref
        for value in node.values():
            yield from iter_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_refs(item)


class ReferenceResolver:
    """Dereference internal and external ``$ref`` pointers.

    Args:
        loader: Fetches external documents.  When ``None``, external
            references are left unresolved with a warning.

    Example::

        resolver = ReferenceResolver(loader=acquirer.load_external)
        resolution = await resolver.resolve(raw, "https://api.example.com/openapi.yaml")
        resolution.tree["paths"]["/pets"]["get"]
    """

    def __init__(self, loader: Optional[ExternalLoader] = None) -> None:
        self._loader = loader

    async def resolve(self, raw: dict[str, Any], base_location: str) -> Resolution:
        """Return a dereferenced copy of *raw*.  *raw* itself is not modified."""
        documents = {base_location: raw}
        warnings: list[str] = []
        await self._collect_external(base_location, documents, warnings)

        walk = _Walk(documents, base_location, warnings)
        try:
            tree = walk.run()
        except RecursionError:
            message = "Reference resolution exceeded the maximum nesting depth; document left unresolved"
            logger.warning(message)
            return Resolution(tree=raw, warnings=[*warnings, message])
        return Resolution(tree=tree, warnings=warnings)

    async def _collect_external(
        self,
        base_location: str,
        documents: dict[str, Any],
        warnings: list[str],
    ) -> None:
        """Fetch every external document reachable from *base_location*."""
        pending = [base_location]
        failed: set[str] = set()
        while pending:
            location = pending.pop()
            for ref in iter_refs(documents[location]):
                target, _ = split_ref(ref)
                if not target:
                    continue
                target = join_location(location, target)
                if target in documents or target in failed:
                    continue
                if self._loader is None:
                    failed.add(target)
                    warnings.append(f"External reference '{ref}' was not resolved: no loader available")
                    continue
                logger.debug("Fetching external reference target %s", target)
                try:
                    documents[target] = await self._loader(target)
                except SpecscopeError as exc:
                    failed.add(target)
                    message = f"Could not resolve external reference '{ref}': {exc}"
                    logger.warning(message)
                    warnings.append(message)
                    continue
                pending.append(target)


class _Walk:
    """State for one depth-first dereferencing pass."""

    def __init__(self, documents: dict[str, Any], root: str, warnings: list[str]) -> None:
        self._documents = documents
        self._root = root
        self._warnings = warnings
        self._memo: dict[str, Any] = {}
        self._needed: dict[str, str] = {}
        self._arena: dict[str, Any] = {}

    def run(self) -> dict[str, Any]:
        tree, _ = self._expand(self._documents[self._root], self._root, frozenset())
        if self._arena:
            components = tree.get("components")
            components = dict(components) if isinstance(components, dict) else {}
            components[ARENA_KEY] = {self._needed[ref_id]: value for ref_id, value in self._arena.items()}
            tree["components"] = components
        return tree

    def _expand(self, node: Any, location: str, stack: frozenset[str]) -> tuple[Any, bool]:
        """Return ``(expanded, contains_back_reference)``."""
        if isinstance(node, list):
            expanded = [self._expand(item, location, stack) for item in node]
            return [value for value, _ in expanded], any(back for _, back in expanded)
        if not isinstance(node, dict):
            return node, False

        ref = node.get("$ref")
        if isinstance(ref, str):
            return self._expand_ref(node, ref, location, stack)

        result: dict[str, Any] = {}
        has_back = False
        for key, value in node.items():
            result[key], back = self._expand(value, location, stack)
            has_back = has_back or back
        return result, has_back

    def _expand_ref(
        self,
        node: dict[str, Any],
        ref: str,
        location: str,
        stack: frozenset[str],
    ) -> tuple[Any, bool]:
        target_doc, pointer = split_ref(ref)
        target = join_location(location, target_doc) if target_doc else location
        ref_id = f"{target}#{pointer}"

        if ref_id in stack:
            return self._back_reference(ref_id, target, pointer), True

        if ref_id in self._memo:
            value, has_back = self._memo[ref_id], False
        else:
            document = self._documents.get(target)
            if document is None:
                # Already reported when the external fetch failed.
                return dict(node), False
            try:
                resolved = lookup_pointer(document, pointer)
            except ReferenceResolutionError as exc:
                self._warnings.append(f"Could not resolve reference '{ref}': {exc}")
                return dict(node), False
            value, has_back = self._expand(resolved, target, stack | {ref_id})
            if not has_back:
                self._memo[ref_id] = value
            if ref_id in self._needed:
                self._arena[ref_id] = value

        siblings = {key: item for key, item in node.items() if key != "$ref"}
        if siblings and isinstance(value, dict):
            extra, back = self._expand(siblings, location, stack)
            value = {**value, **extra}
            has_back = has_back or back
        return value, has_back

    def _back_reference(self, ref_id: str, target: str, pointer: str) -> dict[str, str]:
        if target == self._root:
            return {"$ref": f"#{pointer}"}
        if ref_id not in self._needed:
            name = pointer.rsplit("/", 1)[-1] or "document"
            digest = hashlib.sha256(ref_id.encode("utf-8")).hexdigest()[:10]
            self._needed[ref_id] = re.sub(r"[^A-Za-z0-9_.-]", "-", f"{name}-{digest}")
        return {"$ref": f"#/components/{ARENA_KEY}/{self._needed[ref_id]}"}
