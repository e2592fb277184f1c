"""Two-tier document cache: an in-process LRU in front of gzip files on disk.

The memory tier is an LRU bounded by a byte budget, where each entry is
charged the length of its serialised JSON.  The durable tier stores one
``<sha256(url)>.json.gz`` file per source URL containing a gzip-compressed
UTF-8 JSON dump of a :class:`~specscope.models.CacheEntry`.  Hashing the URL
keeps file names filesystem-safe and independent of URL length.

Freshness is tied to write time: an entry is fresh while
``now - stored_at < ttl``.  Reads refresh LRU recency only.

Durable I/O runs in a worker thread via :func:`asyncio.to_thread` so the
calling task yields while a record is read, decompressed, or written.
Corrupt records are deleted and reported as misses; failed writes are
logged and leave the memory copy authoritative.

See Also:
    :class:`~specscope.models.CacheConfig` -- the Pydantic model that
    controls ``enabled``, ``ttl_seconds`` and ``max_size_mb``.
"""

from __future__ import annotations

import asyncio
import gzip
import hashlib
import logging
import time
import zlib
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError

from specscope.config import atomic_write
from specscope.exceptions import CacheCorruptionError
from specscope.models import CacheConfig, CacheEntry

logger = logging.getLogger(__name__)

_SUFFIX = ".json.gz"


def cache_key(url: str) -> str:
    """Return the durable-tier key for *url*: the SHA-256 hex digest."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def encode_entry(entry: CacheEntry) -> bytes:
    """Serialise *entry* to the durable record format."""
    return gzip.compress(entry.model_dump_json().encode("utf-8"))


def decode_entry(data: bytes) -> CacheEntry:
    """Parse a durable record.

    Raises:
        CacheCorruptionError: If the payload is not gzip, not UTF-8 JSON,
            or does not describe a cache entry.
    """
    try:
        return CacheEntry.model_validate_json(gzip.decompress(data))
    except (OSError, EOFError, zlib.error, ValidationError, UnicodeDecodeError) as exc:
        raise CacheCorruptionError(f"Unreadable cache record: {exc}") from exc


class CacheStore:
    """Durable + in-memory document cache keyed by source URL.

    Args:
        cache_dir: Directory holding the ``*.json.gz`` records.  Created on
            first write.
        config: Cache configuration (``enabled``, ``ttl_seconds``,
            ``max_size_mb``).
        clock: Returns the current time in epoch seconds.  Injected by
            tests to move time forward.

    Example::

        store = CacheStore(get_document_cache_dir(config), config.cache)
        await store.set(url, CacheEntry(document=doc, stored_at=0, source_url=url))
        entry = await store.get(url)
    """

    def __init__(
        self,
        cache_dir: str | Path,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(cache_dir)
        self._config = config
        self._clock = clock
        self._budget = config.max_size_mb * 1024 * 1024
        self._memory: OrderedDict[str, tuple[CacheEntry, int]] = OrderedDict()
        self._memory_bytes = 0

    @property
    def ttl(self) -> float:
        return float(self._config.ttl_seconds)

    @property
    def directory(self) -> Path:
        return self._dir

    def now(self) -> float:
        """Current time on the store's clock, used to stamp new entries."""
        return self._clock()

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Whether *entry* is younger than the configured TTL."""
        return self._clock() - entry.stored_at < self.ttl

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Return the fresh entry for *key*, or ``None``.

        Memory is consulted first.  A stale memory entry is dropped and the
        durable tier is tried; a fresh durable record is promoted into
        memory, a stale or corrupt one is deleted.
        """
        if not self._config.enabled:
            return None

        held = self._memory.get(key)
        if held is not None:
            entry = held[0]
            if self.is_fresh(entry):
                self._memory.move_to_end(key)
                return entry
            self._forget(key)

        entry = await self._read_durable(key)
        if entry is None:
            return None
        if not self.is_fresh(entry):
            logger.debug("Cached document for %s expired, evicting", key)
            await asyncio.to_thread(self._delete_durable, key)
            return None
        self._remember(key, entry)
        return entry

    async def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for *key* regardless of age.

        Neither evicts nor promotes.  Used to obtain revalidation tokens
        and a stale fallback copy.
        """
        if not self._config.enabled:
            return None
        held = self._memory.get(key)
        if held is not None:
            return held[0]
        return await self._read_durable(key)

    async def set(self, key: str, entry: CacheEntry) -> CacheEntry:
        """Store *entry* under *key* and return the entry actually stored.

        ``stored_at`` is clamped so it never moves backwards for a key,
        even if the wall clock does.
        """
        if not self._config.enabled:
            return entry

        held = self._memory.get(key)
        previous = held[0] if held is not None else await self._read_durable(key)
        if previous is not None and previous.stored_at > entry.stored_at:
            entry = entry.model_copy(update={"stored_at": previous.stored_at})

        self._remember(key, entry)
        try:
            await asyncio.to_thread(self._write_durable, key, entry)
        except OSError as exc:
            logger.warning("Failed to write cache record for %s: %s", key, exc)
        return entry

    def promote(self, key: str, entry: CacheEntry) -> None:
        """Mark *entry*, obtained from :meth:`peek`, as most recently used.

        Lets a caller that already peeked a fresh entry serve it without
        reading the durable record a second time.
        """
        if not self._config.enabled:
            return
        if key in self._memory:
            self._memory.move_to_end(key)
        else:
            self._remember(key, entry)

    async def invalidate(self, key: str) -> None:
        """Remove *key* from both tiers.  Missing keys are ignored."""
        self._forget(key)
        await asyncio.to_thread(self._delete_durable, key)

    async def clear(self) -> None:
        """Remove every entry from both tiers."""
        self._memory.clear()
        self._memory_bytes = 0
        await asyncio.to_thread(self._clear_durable)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``enabled`` (bool), and when enabled:
            ``memory_bytes``, ``memory_entries``, ``disk_entries``,
            ``directory`` (str path), and ``ttl_seconds``.
        """
        if not self._config.enabled:
            return {"enabled": False}
        disk_entries = len(list(self._dir.glob(f"*{_SUFFIX}"))) if self._dir.is_dir() else 0
        return {
            "enabled": True,
            "memory_bytes": self._memory_bytes,
            "memory_entries": len(self._memory),
            "disk_entries": disk_entries,
            "directory": str(self._dir),
            "ttl_seconds": self._config.ttl_seconds,
        }

    # ------------------------------------------------------------------ #
    # Memory tier
    # ------------------------------------------------------------------ #

    def _remember(self, key: str, entry: CacheEntry) -> None:
        size = len(entry.model_dump_json())
        self._forget(key)
        if size > self._budget:
            logger.debug(
                "Document for %s (%d bytes) exceeds the memory budget, keeping it on disk only",
                key,
                size,
            )
            return
        self._memory[key] = (entry, size)
        self._memory_bytes += size
        while self._memory_bytes > self._budget:
            evicted, (_, evicted_size) = self._memory.popitem(last=False)
            self._memory_bytes -= evicted_size
            logger.debug("Evicted %s from the memory cache", evicted)

    def _forget(self, key: str) -> None:
        held = self._memory.pop(key, None)
        if held is not None:
            self._memory_bytes -= held[1]

    # ------------------------------------------------------------------ #
    # Durable tier
    # ------------------------------------------------------------------ #

    def _path(self, key: str) -> Path:
        return self._dir / f"{cache_key(key)}{_SUFFIX}"

    async def _read_durable(self, key: str) -> Optional[CacheEntry]:
        try:
            return await asyncio.to_thread(self._load_durable, key)
        except CacheCorruptionError as exc:
            logger.warning("Discarding corrupt cache record for %s: %s", key, exc)
            await asyncio.to_thread(self._delete_durable, key)
            return None

    def _load_durable(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        try:
            data = path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as exc:
            raise CacheCorruptionError(f"Cannot read {path}: {exc}") from exc
        entry = decode_entry(data)
        if entry.source_url != key:
            raise CacheCorruptionError(
                f"Record {path.name} belongs to {entry.source_url}, not {key}"
            )
        return entry

    def _write_durable(self, key: str, entry: CacheEntry) -> None:
        atomic_write(self._path(key), encode_entry(entry))

    def _delete_durable(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Failed to delete cache record for %s: %s", key, exc)

    def _clear_durable(self) -> None:
        if not self._dir.is_dir():
            return
        for path in self._dir.glob(f"*{_SUFFIX}"):
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to delete cache record %s: %s", path.name, exc)
