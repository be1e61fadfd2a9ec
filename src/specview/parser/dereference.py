"""Expand internal ``$ref`` pointers of a single document.

This module performs a recursive deep-copy traversal of a document,
replacing every internal reference (``{"$ref": "#/..."}``) with the object it
points to.  References in absolute form (``/abs/file.yaml#/...``), as left by
the :class:`~specview.parser.rewriter.PathRewriter`, are copied unchanged so
that the resolver can substitute them from the cache afterwards.

Circular references are detected via a ``seen`` set and left unresolved to
prevent infinite recursion.  A schema that references itself (common in
tree-like structures) keeps its ``$ref`` dict at the cycle point.

The single public function is :func:`dereference_internal`.
"""

from __future__ import annotations

from typing import Any

from specview.exceptions import ReferenceExpansionError
from specview.parser.refs import REF_KEY, is_internal_reference, lookup_fragment, split_ref


def dereference_internal(document: dict[str, Any]) -> dict[str, Any]:
    """Resolve all internal ``$ref`` pointers in *document*.

    Args:
        document: A document whose external references are already in
            absolute form.

    Returns:
        A **new** dictionary with every resolvable internal ``$ref``
        replaced by its target.  Targets are themselves expanded.

    Raises:
        ReferenceExpansionError: If the root is not a mapping or a ``$ref``
            points to a location that does not exist in the document.

    Example::

        resolved = dereference_internal({
            "a": {"$ref": "#/components/schemas/Pet"},
            "components": {"schemas": {"Pet": {"type": "object"}}},
        })
        # resolved["a"] == {"type": "object"}
    """
    if not isinstance(document, dict):
        raise ReferenceExpansionError(
            f"Document root must be a mapping (got {type(document).__name__})"
        )
    return _deep_resolve(document, document, seen=None)


def _resolve_ref(ref: str, root: dict[str, Any]) -> Any:
    """Resolve a single internal ``$ref`` string against *root*."""
    _, fragment = split_ref(ref)
    try:
        return lookup_fragment(root, fragment)
    except KeyError as exc:
        raise ReferenceExpansionError(
            f"Cannot resolve $ref '{ref}': {exc.args[0]}"
        ) from exc


def _deep_resolve(obj: Any, root: dict[str, Any], seen: set[str] | None = None) -> Any:
    """Recursively resolve internal ``$ref`` pointers within *obj*.

    ``seen`` holds the ``$ref`` strings on the current resolution stack.
    A new set is created per branch so that sibling references to the same
    target do not count as a cycle.
    """
    if seen is None:
        seen = set()

    if isinstance(obj, dict):
        ref = obj.get(REF_KEY)
        if is_internal_reference(REF_KEY, ref):
            if ref in seen:
                return dict(obj)
            seen = seen | {ref}
            resolved = _resolve_ref(ref, root)
            return _deep_resolve(resolved, root, seen)

        return {key: _deep_resolve(value, root, seen) for key, value in obj.items()}

    if isinstance(obj, list):
        return [_deep_resolve(item, root, seen) for item in obj]

    return obj
