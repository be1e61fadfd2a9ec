"""OpenAPI document graph parser -- load, rewrite, and resolve ``$ref`` pointers.

This sub-package turns an entry document whose definitions are spread over
several files into one fully dereferenced document stored in a
:class:`~specview.cache.SchemaCache`.

Typical usage::

    from specview.cache import SchemaCache
    from specview.parser import SpecResolver

    cache = SchemaCache()
    handle = SpecResolver("api/openapi.yaml", cache).parse()
    resolved = cache.get(handle.hash).document

Sub-modules:

* :mod:`~specview.parser.refs` -- ``$ref`` classification, file hashing and
  fragment lookup.
* :mod:`~specview.parser.rewriter` -- Rewrite rules and relocation of
  external references to absolute paths.
* :mod:`~specview.parser.loader` -- I/O layer plus JSON/YAML detection.
* :mod:`~specview.parser.dereference` -- Internal ``$ref`` expansion with
  circular-reference detection.
* :mod:`~specview.parser.resolver` -- Graph traversal and external
  substitution.
"""

from specview.parser.loader import load_document
from specview.parser.resolver import SpecResolver
from specview.parser.rewriter import PathRewriter

__all__ = ["load_document", "PathRewriter", "SpecResolver"]
