"""Resolve a multi-file OpenAPI document graph into one dereferenced document.

:class:`SpecResolver` walks the ``$ref`` graph that starts at an entry file
depth-first.  Every file is parsed at most once per :meth:`SpecResolver.parse`
call and, once finalized, stored in a shared
:class:`~specview.cache.SchemaCache`.  Finalizing a file means:

1. expanding its internal references (cycles stay as ``$ref`` nodes),
2. substituting each external reference with the matching subtree of the
   target file's cached document.

Dependencies are finalized before the file that references them, so their
documents are already in the cache at substitution time.  A file that is
still on the traversal stack when a cycle reaches it again is not visited a
second time; the reference that closes the loop stays as an absolute-form
``$ref`` marker.

Failures are contained per file: any error raised while loading, rewriting,
expanding or storing one document is logged, that document never reaches
the cache, and references to it stay unresolved in the documents that
point at it.  Sibling files and the entry file still resolve.  No exception
escapes :meth:`SpecResolver.parse`.
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional

from specview.cache import SchemaCache
from specview.exceptions import SpecviewError
from specview.models import CacheEntry, PreviewHandle
from specview.parser.dereference import dereference_internal
from specview.parser.loader import load_document
from specview.parser.refs import (
    REF_KEY,
    hash_file_name,
    is_external_reference,
    lookup_fragment,
    normalize_ref,
)
from specview.parser.rewriter import PathRewriter

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """A file whose dependencies are being visited."""

    file_name: str
    file_hash: str
    document: dict[str, Any]
    dependencies: list[str]
    source_mtime: Optional[float] = None
    pending: Iterator[str] = field(init=False)

    def __post_init__(self) -> None:
        self.pending = iter(self.dependencies)


class SpecResolver:
    """Resolve one entry file and everything it references.

    Args:
        file_name: Path of the entry document.  Made absolute.
        cache: The process-wide cache shared with other resolvers and with
            the change-notification side (see :mod:`specview.changes`).
        rewrite_config: Ordered ``pattern -> replacement`` rules passed to
            every :class:`~specview.parser.rewriter.PathRewriter`.
        require_spec_header: Treat files without an ``openapi`` or
            ``swagger`` field as parse failures.

    Raises:
        ConfigError: If a rewrite pattern is not a valid regular expression.

    Example::

        cache = SchemaCache()
        resolver = SpecResolver("api/openapi.yaml", cache, {"^@shared/": "../shared/"})
        handle = resolver.parse()
        document = cache.get(handle.hash).document
    """

    def __init__(
        self,
        file_name: str,
        cache: SchemaCache,
        rewrite_config: Optional[Mapping[str, str]] = None,
        require_spec_header: bool = False,
    ) -> None:
        self.file_name = os.path.abspath(file_name)
        self.hash = hash_file_name(self.file_name)
        self._cache = cache
        self._rewrite_config: dict[str, str] = dict(rewrite_config or {})
        self._require_spec_header = require_spec_header
        self._seen: set[str] = set()
        # Validate the rules up front; each file gets its own rewriter later.
        PathRewriter(self._rewrite_config, self.file_name)

    @property
    def handle(self) -> PreviewHandle:
        return PreviewHandle(hash=self.hash, basename=os.path.basename(self.file_name))

    def parse(self) -> PreviewHandle:
        """Resolve the entry file unless its cache entry is fresh.

        Returns:
            The :class:`~specview.models.PreviewHandle` of the entry file.
            It is returned even when resolution failed partially or
            completely; the caller serves whatever reached the cache.
        """
        self._seen.clear()
        if not self._cache.must_revalidate(self.hash):
            logger.debug("%s is cached and fresh", self.file_name)
            return self.handle
        try:
            self._resolve(self.file_name)
        except Exception:
            logger.exception("unexpected error while resolving %s", self.file_name)
        return self.handle

    def resolve(self) -> Optional[dict[str, Any]]:
        """Run :meth:`parse` and return the entry file's resolved document.

        Returns:
            The cached document, or ``None`` if the entry file itself could
            not be resolved.  The document belongs to the cache and must not
            be mutated.
        """
        handle = self.parse()
        entry = self._cache.get(handle.hash)
        return entry.document if entry is not None else None

    # ------------------------------------------------------------------ #
    # Traversal
    # ------------------------------------------------------------------ #

    def _resolve(self, file_name: str) -> None:
        """Depth-first traversal with an explicit stack of frames."""
        stack: list[_Frame] = []
        root = self._enter(file_name)
        if root is not None:
            stack.append(root)

        while stack:
            frame = stack[-1]
            dependency = next(frame.pending, None)
            if dependency is None:
                stack.pop()
                self._finalize(frame)
                continue
            child = self._enter(dependency)
            if child is not None:
                stack.append(child)

    def _enter(self, file_name: str) -> Optional[_Frame]:
        """Parse and rewrite *file_name*, or return ``None`` if it must be skipped."""
        file_hash = hash_file_name(file_name)
        if file_hash in self._seen or not self._cache.must_revalidate(file_hash):
            return None
        # Mark before any work so a cycle back to this file stops here.
        self._seen.add(file_hash)

        logger.debug("resolving %s (%s)", file_name, file_hash)
        try:
            raw = load_document(file_name, require_spec_header=self._require_spec_header)
            rewriter = PathRewriter(self._rewrite_config, file_name)
            document = rewriter.rewrite(raw)
        except SpecviewError as exc:
            logger.warning("failed to parse %s: %s", file_name, exc)
            return None
        except Exception as exc:
            logger.warning(
                "failed to read references of %s: %s: %s",
                file_name,
                type(exc).__name__,
                exc,
            )
            return None

        return _Frame(
            file_name=file_name,
            file_hash=file_hash,
            document=document,
            dependencies=rewriter.get_all_refs(),
            source_mtime=_mtime(file_name),
        )

    def _finalize(self, frame: _Frame) -> None:
        """Expand, substitute, and store the document of *frame*."""
        try:
            expanded = dereference_internal(frame.document)
            self._dereference_external(expanded)
            self._cache.set(
                frame.file_hash,
                CacheEntry(
                    document=expanded,
                    source_path=frame.file_name,
                    must_revalidate=False,
                    source_mtime=frame.source_mtime,
                    dependencies=tuple(hash_file_name(dep) for dep in frame.dependencies),
                ),
            )
        except SpecviewError as exc:
            logger.warning(
                "failed to dereference internal references of %s: %s",
                frame.file_name,
                exc,
            )
            return
        except Exception as exc:
            logger.warning(
                "failed to resolve %s: %s: %s", frame.file_name, type(exc).__name__, exc
            )
            return
        logger.info("resolved %s", frame.file_name)

    # ------------------------------------------------------------------ #
    # External substitution
    # ------------------------------------------------------------------ #

    def _dereference_external(self, node: Any) -> None:
        """Replace absolute-form ``$ref`` nodes under *node* in place."""
        if isinstance(node, dict):
            for key, value in list(node.items()):
                if key != REF_KEY:
                    self._dereference_external(value)
            ref = node.get(REF_KEY)
            if is_external_reference(REF_KEY, ref):
                self._substitute(node, ref)
        elif isinstance(node, list):
            for item in node:
                self._dereference_external(item)

    def _substitute(self, node: dict[str, Any], ref: str) -> None:
        normalized = normalize_ref(ref)
        entry = self._cache.get(hash_file_name(normalized.absolute_path))
        if entry is None:
            logger.debug("leaving %s unresolved: target not cached", ref)
            return
        try:
            target = lookup_fragment(entry.document, normalized.fragment_path)
        except KeyError as exc:
            logger.debug("leaving %s unresolved: %s", ref, exc.args[0])
            return
        if not isinstance(target, dict):
            logger.debug("leaving %s unresolved: target is not a mapping", ref)
            return

        del node[REF_KEY]
        node.update(copy.deepcopy(target))


def _mtime(file_name: str) -> Optional[float]:
    try:
        return os.path.getmtime(file_name)
    except OSError:
        return None
