"""Resolve commands -- dereference a multi-file spec and locate its preview.

Provides the ``specview resolve`` and ``specview preview`` commands. Both
build the effective configuration, open the document cache (in memory or
persistent), pick up file changes recorded since the last run when the cache
is persistent, and run a :class:`~specview.parser.resolver.SpecResolver` on
the given entry file.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Optional

import typer

from specview.output import debug, error, print_data, print_document, warning


class DocumentFormat(str, Enum):
    """Serialisation used for resolved documents."""

    JSON = "json"
    YAML = "yaml"


_REWRITE_HELP = "Rewrite rule PATTERN=REPLACEMENT for $ref paths (repeatable)."


def _run(
    file: Path,
    rewrite: Optional[list[str]],
    document_format: Optional[DocumentFormat] = None,
    server_url: Optional[str] = None,
) -> tuple[Any, Optional[dict[str, Any]], Any]:
    """Resolve *file* and return ``(handle, document_or_None, config)``.

    Raises:
        SpecviewError: On configuration problems.
    """
    from specview.cache import SchemaCache
    from specview.changes import ChangeQueue, scan_modified
    from specview.config import get_document_cache_dir, resolve_config
    from specview.parser import SpecResolver

    config = resolve_config(
        cli_rewrite=rewrite,
        cli_server_url=server_url,
        cli_format=document_format.value if document_format else None,
    )
    directory = get_document_cache_dir(config) if config.cache.persistent else None

    with SchemaCache(directory) as cache:
        resolver = SpecResolver(
            str(file),
            cache,
            config.rewrite,
            require_spec_header=config.require_spec_header,
        )
        if cache.persistent:
            changes = ChangeQueue()
            for changed in scan_modified(cache):
                debug(f"Changed since last run: {changed}")
                changes.notify(changed)
            changes.drain(cache)

        handle = resolver.parse()
        entry = cache.get(handle.hash)
        document = entry.document if entry is not None else None

    return handle, document, config


def _report_unresolved(document: dict[str, Any]) -> None:
    from specview.parser.refs import iter_external_refs

    unresolved = sorted(set(iter_external_refs(document)))
    if unresolved:
        warning(f"{len(unresolved)} reference(s) left unresolved:")
        for ref in unresolved:
            warning(f"  {ref}")


def resolve_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, resolve_path=True, help="Entry spec file."
    ),
    rewrite: Optional[list[str]] = typer.Option(
        None, "--rewrite", "-r", help=_REWRITE_HELP
    ),
    document_format: Optional[DocumentFormat] = typer.Option(
        None, "--format", help="Output serialisation (json or yaml)."
    ),
) -> None:
    """Print the fully dereferenced document of FILE.

    Every ``$ref`` into another file is replaced by the referenced
    definition.  References that cannot be resolved are kept and reported
    on stderr.

    Example::

        specview resolve api/openapi.yaml
        specview resolve api/openapi.yaml --format yaml -r '^@shared/=../shared/'
    """
    from specview.exceptions import SpecParseError, SpecviewError

    try:
        _, document, config = _run(file, rewrite, document_format)
        if document is None:
            raise SpecParseError(f"Could not resolve {file}")
    except SpecviewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    _report_unresolved(document)
    print_document(document, config.output.document_format)


def preview_command(
    file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, resolve_path=True, help="Entry spec file."
    ),
    rewrite: Optional[list[str]] = typer.Option(
        None, "--rewrite", "-r", help=_REWRITE_HELP
    ),
    server_url: Optional[str] = typer.Option(
        None, "--server-url", help="Base URL of the preview server."
    ),
) -> None:
    """Resolve FILE and print the URL the preview server serves it at.

    The URL is printed even if resolution failed; the server then serves
    whatever did resolve.

    Example::

        specview preview api/openapi.yaml
        specview preview api/openapi.yaml --server-url http://localhost:9000
    """
    from specview.exceptions import SpecviewError

    try:
        handle, document, config = _run(file, rewrite, server_url=server_url)
    except SpecviewError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if document is None:
        warning(f"Could not resolve {file}")
    else:
        _report_unresolved(document)
    print_data(handle.url(config.server.base_url))
