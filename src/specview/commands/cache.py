"""Cache commands -- inspect and clear the persistent document cache."""

from __future__ import annotations

import typer

from specview.output import format_response, info, success


cache_app = typer.Typer(no_args_is_help=True)


def _open_cache():  # noqa: ANN202
    from specview.cache import SchemaCache
    from specview.config import get_document_cache_dir, resolve_config

    return SchemaCache(get_document_cache_dir(resolve_config()))


@cache_app.command("stats")
def cache_stats() -> None:
    """Show the number of cached and stale documents.

    Example::

        specview cache stats
    """
    with _open_cache() as cache:
        format_response(cache.stats())


@cache_app.command("clear")
def cache_clear(ctx: typer.Context) -> None:
    """Remove every resolved document from the persistent cache.

    Asks for confirmation unless ``--force`` is active.
    """
    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm("Remove all cached documents?"):
            info("Cancelled.")
            raise typer.Exit()

    with _open_cache() as cache:
        count = len(cache)
        cache.clear()
    success(f"Removed {count} cached document(s).")
