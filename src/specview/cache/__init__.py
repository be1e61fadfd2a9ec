"""Resolved-document caching for specview.

This package provides :class:`SchemaCache`, the keyed store of fully
resolved documents shared by every :class:`~specview.parser.resolver.SpecResolver`
in a process.  Entries are keyed by file hash and carry a staleness flag
that change notifications flip without discarding the last good document.

The store lives in memory by default; when the ``cache`` section of the
global configuration (:class:`~specview.models.CacheConfig`) enables
persistence it is backed by :mod:`diskcache` so resolved documents survive
between CLI invocations.
"""

from specview.cache.cache import SchemaCache

__all__ = ["SchemaCache"]
