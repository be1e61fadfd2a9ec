"""Keyed store of resolved documents with a staleness flag.

Entries are :class:`~specview.models.CacheEntry` values keyed by the
8-character file hash of their source path.  The resolver writes an entry
once a file's resolution completes; change notifications only flip the
``must_revalidate`` flag so downstream readers keep serving the last good
document while a re-resolution is pending.

Entries are replaced as whole values and never mutated in place, so the
cache needs no locking: the resolver is the sole writer of documents and
invalidation is an idempotent flag flip.

See Also:
    :class:`~specview.models.CacheConfig` -- the Pydantic model that
    controls ``persistent`` and ``directory``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import diskcache

from specview.models import CacheEntry

logger = logging.getLogger(__name__)


class SchemaCache:
    """Store of resolved documents, in memory or on disk.

    Create one instance per process and pass it explicitly to every resolver
    that should share results.

    Args:
        directory: When given, entries are persisted in a
            :class:`diskcache.Cache` at this path.  When ``None`` (the
            default) entries live in a plain dict for the lifetime of the
            instance.

    Example::

        from specview.cache import SchemaCache
        from specview.models import CacheEntry

        cache = SchemaCache()
        cache.set("3f2a9c1b", CacheEntry(document={}, source_path="/a.yaml"))
        cache.must_revalidate("3f2a9c1b")        # False
        cache.set_validation_state("3f2a9c1b", True)
        cache.must_revalidate("3f2a9c1b")        # True
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self._directory = Path(directory) if directory is not None else None
        self._store: Union[dict[str, CacheEntry], diskcache.Cache]
        if self._directory is not None:
            self._store = diskcache.Cache(str(self._directory))
        else:
            self._store = {}

    @property
    def persistent(self) -> bool:
        """Whether entries are kept on disk."""
        return self._directory is not None

    def has(self, file_hash: str) -> bool:
        return file_hash in self._store

    def get(self, file_hash: str) -> Optional[CacheEntry]:
        """Return the entry stored under *file_hash*, or ``None``."""
        return self._store.get(file_hash)

    def set(self, file_hash: str, entry: CacheEntry) -> None:
        """Store *entry* under *file_hash*, replacing any previous entry."""
        self._store[file_hash] = entry
        logger.debug("cached %s (%s)", file_hash, entry.source_path)

    def delete(self, file_hash: str) -> None:
        """Remove the entry for *file_hash*.  Missing keys are ignored."""
        self._store.pop(file_hash, None)

    def must_revalidate(self, file_hash: str) -> bool:
        """Return True if *file_hash* has no entry or its entry is stale."""
        entry = self.get(file_hash)
        return entry is None or entry.must_revalidate

    def set_validation_state(self, file_hash: str, stale: bool) -> None:
        """Flip the staleness flag of an existing entry.

        The entry keeps its document; it is replaced by a copy with the new
        flag.  Unknown hashes are ignored.
        """
        entry = self.get(file_hash)
        if entry is None:
            return
        if entry.must_revalidate != stale:
            self._store[file_hash] = entry.model_copy(update={"must_revalidate": stale})
        logger.debug("validation state of %s -> stale=%s", file_hash, stale)

    def hashes(self) -> list[str]:
        """Return every stored hash."""
        return list(self._store)

    def entries(self) -> Iterator[tuple[str, CacheEntry]]:
        """Iterate over ``(hash, entry)`` pairs."""
        for file_hash in self.hashes():
            entry = self.get(file_hash)
            if entry is not None:
                yield file_hash, entry

    def dependents_of(self, file_hash: str) -> list[str]:
        """Return hashes of entries whose documents referenced *file_hash*."""
        return [
            other for other, entry in self.entries() if file_hash in entry.dependencies
        ]

    def clear(self) -> None:
        """Remove all entries."""
        self._store.clear()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``persistent`` (bool), ``size`` (number of
            entries), ``stale`` (entries flagged for revalidation) and, for a
            persistent cache, ``directory``.
        """
        entries = list(self.entries())
        result: dict[str, Any] = {
            "persistent": self.persistent,
            "size": len(entries),
            "stale": sum(1 for _, entry in entries if entry.must_revalidate),
        }
        if self._directory is not None:
            result["directory"] = str(self._directory)
        return result

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if isinstance(self._store, diskcache.Cache):
            self._store.close()

    def __enter__(self) -> SchemaCache:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._store)
