"""Canonical Pydantic models shared across all specview modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`ServerConfig`, :class:`OutputConfig`, and
    :class:`GlobalConfig`.

**Resolution models** -- produced by the parser and stored in the cache:
    :class:`NormalizedRef`, :class:`CacheEntry`, and :class:`PreviewHandle`.

All models use Pydantic v2. Resolution models are frozen: a cache entry is
replaced wholesale (see :meth:`CacheEntry.model_copy`) rather than mutated.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Config ---


class CacheConfig(BaseModel):
    """Resolved-document cache settings stored in :class:`GlobalConfig`."""

    persistent: bool = Field(
        default=False,
        description="Keep resolved documents on disk between invocations",
    )
    directory: Optional[str] = Field(
        default=None,
        description="Cache directory (defaults to <cache_dir>/documents)",
    )


class ServerConfig(BaseModel):
    """Location of the preview server that serves resolved documents."""

    host: str = Field(default="localhost", description="Preview server host")
    port: int = Field(default=18512, description="Preview server port")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class OutputConfig(BaseModel):
    """Default output preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )
    document_format: str = Field(
        default="json", description="Serialisation of resolved documents: json, yaml"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/specview/config.json``.

    Loaded and saved by :func:`~specview.config.load_global_config` and
    :func:`~specview.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~specview.config.resolve_config`
    for the full precedence chain.

    ``rewrite`` maps regular-expression patterns to literal replacements.
    Dict order is significant: rules are applied in declaration order.
    """

    rewrite: dict[str, str] = Field(
        default_factory=dict,
        description="Ordered $ref rewrite rules: regex pattern -> replacement",
    )
    require_spec_header: bool = Field(
        default=False,
        description="Reject documents without an 'openapi' or 'swagger' field",
    )
    cache: CacheConfig = Field(default_factory=CacheConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Resolution ---


class NormalizedRef(BaseModel):
    """A ``$ref`` string split into an absolute file path and a fragment.

    ``fragment_path`` carries no leading separator: ``/a/b.yaml#/Foo/Bar``
    normalizes to ``absolute_path="/a/b.yaml"`` and ``fragment_path="Foo/Bar"``.
    """

    model_config = ConfigDict(frozen=True)

    absolute_path: str
    fragment_path: str = ""


class CacheEntry(BaseModel):
    """A fully resolved document as stored in :class:`~specview.cache.SchemaCache`.

    Attributes:
        document: The resolved document tree. Owned by the cache once stored;
            readers must not mutate it. Keys are kept as loaded, so YAML
            keys such as ``200:`` or ``on:`` stay ``int`` or ``bool``.
        source_path: Absolute path of the file the document was parsed from.
        must_revalidate: ``True`` once a change notification flagged the
            entry as stale. Stale entries keep serving until re-resolved.
        source_mtime: Modification time of ``source_path`` when it was read,
            or ``None`` if unknown.
        dependencies: File hashes of every external document referenced.
    """

    model_config = ConfigDict(frozen=True)

    document: dict[Any, Any]
    source_path: str
    must_revalidate: bool = False
    source_mtime: Optional[float] = None
    dependencies: tuple[str, ...] = ()


class PreviewHandle(BaseModel):
    """Opaque locator the preview server uses to find a resolved document.

    Example::

        handle = PreviewHandle(hash="3f2a9c1b", basename="openapi.yaml")
        handle.path                          # "/3f2a9c1b/openapi.yaml"
        handle.url("http://localhost:18512") # "http://localhost:18512/3f2a9c1b/openapi.yaml"
    """

    model_config = ConfigDict(frozen=True)

    hash: str
    basename: str

    @property
    def path(self) -> str:
        return f"/{self.hash}/{self.basename}"

    def url(self, base_url: str) -> str:
        """Join :attr:`path` onto *base_url*."""
        return base_url.rstrip("/") + self.path
