"""Classify and normalize ``$ref`` pointers.

A reference is the string value of a ``$ref`` key with the grammar::

    <path>? "#/" <fragment>?

An empty ``<path>`` makes the reference *internal* (scoped to the document
that contains it); anything else is *external*.  Values that do not follow
the grammar are ordinary data and are never rewritten or resolved.

The functions here are pure and are shared by the
:class:`~specview.parser.rewriter.PathRewriter` and the
:class:`~specview.parser.resolver.SpecResolver`.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any, Iterator

from specview.models import NormalizedRef

REF_KEY = "$ref"
REF_HASH_SEPARATOR = "#/"
FRAGMENT_SEPARATOR = "/"
FILE_HASH_LENGTH = 8

_INDEX_SEGMENT = re.compile(r"[0-9]+")
_INTEGER_KEY_SEGMENT = re.compile(r"-?[0-9]+")


def hash_file_name(file_name: str) -> str:
    """Return the 8-character hex identifier of an absolute file path.

    The same path always maps to the same hash; the value is used as the
    cache key and as a URL segment by the preview server.
    """
    return hashlib.md5(file_name.encode("utf-8")).hexdigest()[:FILE_HASH_LENGTH]


def is_reference(key: Any, value: Any) -> bool:
    """Return True if *key*/*value* form a well-formed ``$ref`` pair."""
    return (
        key == REF_KEY
        and isinstance(value, str)
        and REF_HASH_SEPARATOR in value
    )


def is_internal_reference(key: Any, value: Any) -> bool:
    """Return True for a reference into the current document (``#/...``)."""
    return is_reference(key, value) and value.startswith(REF_HASH_SEPARATOR)


def is_external_reference(key: Any, value: Any) -> bool:
    """Return True for a reference that names another file."""
    return is_reference(key, value) and not value.startswith(REF_HASH_SEPARATOR)


def is_remote(path: str) -> bool:
    """Return True if *path* looks like a URL (``scheme://...``)."""
    scheme, sep, _ = path.partition("://")
    return bool(sep) and scheme.isalpha()


def split_ref(ref: str) -> tuple[str, str]:
    """Split *ref* at the first ``#/`` into ``(path, fragment)``.

    A reference without the separator is all path.
    """
    path, sep, fragment = ref.partition(REF_HASH_SEPARATOR)
    if not sep:
        return ref, ""
    return path, fragment


def normalize_ref(ref: str) -> NormalizedRef:
    """Split an absolute-form reference into a :class:`NormalizedRef`."""
    path, fragment = split_ref(ref)
    return NormalizedRef(absolute_path=path, fragment_path=fragment)


def internal_ref(fragment_path: str) -> str:
    """Build the canonical internal form of *fragment_path*."""
    return f"{REF_HASH_SEPARATOR}{fragment_path}"


def lookup_fragment(document: Any, fragment_path: str) -> Any:
    """Navigate *document* along *fragment_path*, one field at a time.

    Segments follow RFC 6901 escaping (``~1`` for ``/``, ``~0`` for ``~``).
    List segments are non-negative decimal indices.  Mapping keys that YAML
    loaded as integers (``200:`` under ``responses``) are matched by their
    text form.
    An empty fragment returns the whole document.

    Raises:
        KeyError: If any segment does not exist.
    """
    current = document
    if not fragment_path:
        return current

    for raw_segment in fragment_path.split(FRAGMENT_SEPARATOR):
        segment = raw_segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment in current:
                current = current[segment]
            elif _INTEGER_KEY_SEGMENT.fullmatch(segment) and int(segment) in current:
                current = current[int(segment)]
            else:
                raise KeyError(f"key '{segment}' not found at '{fragment_path}'")
        elif isinstance(current, list):
            index = int(segment) if _INDEX_SEGMENT.fullmatch(segment) else len(current)
            if index >= len(current):
                raise KeyError(f"invalid array index '{segment}' at '{fragment_path}'")
            current = current[index]
        else:
            raise KeyError(
                f"cannot navigate into {type(current).__name__} at '{fragment_path}'"
            )

    return current


def iter_external_refs(node: Any) -> Iterator[str]:
    """Yield every external ``$ref`` value left in *node*, depth-first."""
    if isinstance(node, dict):
        for key, value in node.items():
            if is_external_reference(key, value):
                yield value
            else:
                yield from iter_external_refs(value)
    elif isinstance(node, list):
        for item in node:
            yield from iter_external_refs(item)
