"""Deliver file-change notifications to the resolver.

A file watcher (an editor integration, a polling loop, a filesystem
observer) does not touch the cache directly.  It posts a
:class:`ChangeEvent` to a :class:`ChangeQueue`; the process that owns the
cache drains the queue, which flags the changed file and every cached
document that embedded it as stale, then re-runs the resolver.  Stale
entries keep being served until their re-resolution completes.

:func:`scan_modified` is a minimal polling watcher used by the CLI when the
cache is persistent: it reports cached files whose modification time
changed since they were resolved.
"""

from __future__ import annotations

import logging
import os
import queue
from dataclasses import dataclass
from typing import Iterator, Optional

from specview.cache import SchemaCache
from specview.parser.refs import hash_file_name
from specview.parser.resolver import SpecResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """Notification that the file at ``path`` changed on disk."""

    path: str

    @property
    def hash(self) -> str:
        return hash_file_name(os.path.abspath(self.path))


class ChangeQueue:
    """Thread-safe queue of :class:`ChangeEvent` drained by the cache owner.

    ``notify`` may be called from any thread; ``drain`` must be called from
    the thread that owns the cache and the resolvers.

    Example::

        changes = ChangeQueue()
        changes.notify("/abs/shared.yaml")      # from the watcher
        changes.drain(cache, resolver)          # from the owner
    """

    def __init__(self) -> None:
        self._events: queue.SimpleQueue[ChangeEvent] = queue.SimpleQueue()

    def notify(self, path: str) -> None:
        """Enqueue a change of *path*."""
        self._events.put(ChangeEvent(path))

    def pending(self) -> bool:
        return not self._events.empty()

    def drain(
        self, cache: SchemaCache, resolver: Optional[SpecResolver] = None
    ) -> list[str]:
        """Invalidate every queued file, then re-resolve once.

        Each changed file is flagged stale together with all cached
        documents that depend on it, directly or transitively.  Entries are
        never deleted.

        Args:
            cache: The cache to invalidate.
            resolver: If given, :meth:`~SpecResolver.parse` is called once
                after all events are processed.

        Returns:
            The invalidated hashes, in invalidation order.
        """
        invalidated: list[str] = []
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            logger.info("file %s changed", event.path)
            for file_hash in _with_dependents(cache, event.hash):
                if file_hash not in invalidated:
                    cache.set_validation_state(file_hash, True)
                    invalidated.append(file_hash)

        if resolver is not None and invalidated:
            resolver.parse()
        return invalidated


def _with_dependents(cache: SchemaCache, file_hash: str) -> list[str]:
    """Return *file_hash* followed by every cached document that embeds it."""
    result = [file_hash]
    index = 0
    while index < len(result):
        for dependent in cache.dependents_of(result[index]):
            if dependent not in result:
                result.append(dependent)
        index += 1
    return result


def scan_modified(cache: SchemaCache) -> Iterator[str]:
    """Yield source paths of fresh entries whose file changed or vanished.

    Entries without a recorded modification time are skipped.
    """
    for _, entry in cache.entries():
        if entry.must_revalidate or entry.source_mtime is None:
            continue
        try:
            mtime = os.path.getmtime(entry.source_path)
        except OSError:
            yield entry.source_path
            continue
        if mtime != entry.source_mtime:
            yield entry.source_path
