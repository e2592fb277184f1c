"""Document caching for specscope.

This package provides :class:`CacheStore`, the two-tier (memory + gzip
files) cache that sits in front of every document fetch.  Entries are keyed
by source URL and expire a configurable TTL after they were written.

The cache is consumed by :class:`~specscope.client.acquirer.DocumentAcquirer`
and is controlled by the ``cache`` section of the configuration
(:class:`~specscope.models.CacheConfig`).
"""

from specscope.cache.store import CacheStore, cache_key

__all__ = ["CacheStore", "cache_key"]
