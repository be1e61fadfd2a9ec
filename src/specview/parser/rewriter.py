"""Rewrite and relocate external ``$ref`` pointers of a single document.

Multi-file specs often refer to shared definitions through logical paths
(``./catalog-shared/spec.yaml#/components/responses/Unauthorized``) that only
exist after a package manager or a monorepo layout has put the file
somewhere else.  :class:`PathRewriter` first applies user-supplied rewrite
rules to each external reference, then resolves the result against the
directory of the document that contains it.  The rewritten document only
holds two reference shapes afterwards:

* internal: ``#/components/schemas/Pet``
* absolute: ``/abs/path/shared.yaml#/components/schemas/Pet``

Rules are applied before path resolution so that they can redirect logical
paths to real filesystem locations; both steps happen in one traversal.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Mapping

from specview.exceptions import ConfigError
from specview.parser.refs import (
    REF_HASH_SEPARATOR,
    internal_ref,
    is_internal_reference,
    is_reference,
    is_remote,
    split_ref,
)

logger = logging.getLogger(__name__)


class RewriteRule:
    """A compiled ``pattern -> replacement`` pair.

    The replacement is inserted literally (no ``\\1`` group expansion) and
    only the first match is replaced.
    """

    __slots__ = ("pattern", "replacement", "_regex")

    def __init__(self, pattern: str, replacement: str) -> None:
        self.pattern = pattern
        self.replacement = replacement
        try:
            self._regex = re.compile(pattern)
        except re.error as exc:
            raise ConfigError(f"Invalid rewrite pattern '{pattern}': {exc}") from exc

    def apply(self, value: str) -> str:
        return self._regex.sub(lambda _match: self.replacement, value, count=1)

    def __repr__(self) -> str:
        return f"RewriteRule({self.pattern!r}, {self.replacement!r})"


def parse_rewrite_rules(rewrite_config: Mapping[str, str]) -> list[RewriteRule]:
    """Compile *rewrite_config* into rules, preserving declaration order.

    Raises:
        ConfigError: If a pattern is not a valid regular expression.
    """
    rules: list[RewriteRule] = []
    for pattern, replacement in rewrite_config.items():
        rules.append(RewriteRule(pattern, replacement))
        logger.info('rewrite rule created: "%s" -> "%s"', pattern, replacement)
    return rules


class PathRewriter:
    """Normalize every external ``$ref`` of one document to absolute form.

    Args:
        rewrite_config: Ordered mapping of regex pattern to literal
            replacement.  An empty mapping only normalizes paths.
        file_name: Absolute path of the document being rewritten.  Relative
            references are resolved against its directory.

    Example::

        rewriter = PathRewriter({r"^\\./shared/": "/abs/shared/"}, "/abs/a.yaml")
        doc = rewriter.rewrite({"$ref": "./shared/x.yaml#/Foo"})
        # doc == {"$ref": "/abs/shared/x.yaml#/Foo"}
        rewriter.get_all_refs()  # ["/abs/shared/x.yaml"]
    """

    def __init__(self, rewrite_config: Mapping[str, str], file_name: str) -> None:
        self.file_name = os.path.normpath(file_name)
        self._base_dir = os.path.dirname(self.file_name)
        self._rules = parse_rewrite_rules(rewrite_config)
        self._refs: dict[str, None] = {}

    def rewrite(self, document: Any) -> Any:
        """Return a deep copy of *document* with external references rewritten.

        Internal references and all other keys and values are copied
        unchanged.  The set reported by :meth:`get_all_refs` is reset on
        every call.
        """
        self._refs = {}
        return self._rewrite_node(document)

    def get_all_refs(self) -> list[str]:
        """Return the distinct absolute external paths found by the last :meth:`rewrite`."""
        return list(self._refs)

    def _rewrite_node(self, node: Any) -> Any:
        if isinstance(node, dict):
            result: dict[Any, Any] = {}
            for key, value in node.items():
                if is_reference(key, value) and not is_internal_reference(key, value):
                    result[key] = self._rewrite_ref(value)
                else:
                    result[key] = self._rewrite_node(value)
            return result

        if isinstance(node, list):
            return [self._rewrite_node(item) for item in node]

        return node

    def _rewrite_ref(self, ref: str) -> str:
        rewritten = ref
        for rule in self._rules:
            rewritten = rule.apply(rewritten)

        path, fragment = split_ref(rewritten)
        if not path:
            return internal_ref(fragment)
        if is_remote(path):
            logger.debug("leaving remote reference untouched: %s", rewritten)
            return rewritten

        absolute_path = os.path.normpath(os.path.join(self._base_dir, path))
        logger.debug("resolving path %s -> %s", ref, absolute_path)

        if absolute_path == self.file_name:
            return internal_ref(fragment)

        self._refs[absolute_path] = None
        return f"{absolute_path}{REF_HASH_SEPARATOR}{fragment}"
