"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specview:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specview/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Global config** -- A single :class:`~specview.models.GlobalConfig`
  JSON file storing rewrite rules, cache and preview server settings.
* **Project config** -- ``./specview.json`` next to the specs of a
  repository, typically holding the rewrite rules of that repository.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, project-local config, and global config into the
  final effective configuration.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlsplit

from specview.exceptions import ConfigError, InvalidUsageError
from specview.models import GlobalConfig

_APP_NAME = "specview"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "specview.json"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specview/`` (default ``~/.config/specview/``).
    On macOS/Windows: ``~/.specview/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the persistent document cache. Cached data can be safely deleted
    at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/specview/`` (default ``~/.cache/specview/``).
    On macOS/Windows: ``~/.specview/cache/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CACHE_HOME", (".cache",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specview/`` (default ``~/.local/share/specview/``).
    On macOS/Windows: ``~/.specview/logs/``.
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_document_cache_dir(config: GlobalConfig) -> Path:
    """Return the directory of the persistent document cache for *config*."""
    if config.cache.directory:
        return Path(config.cache.directory).expanduser()
    return get_cache_dir() / "documents"


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems.  On any failure the
    temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specview.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./specview.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. Its ``rewrite`` rules are appended to the global
    ones; every other key overrides the global value.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but does not contain a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def parse_rewrite_option(value: str) -> tuple[str, str]:
    """Split a ``PATTERN=REPLACEMENT`` CLI option at the last ``=``.

    Raises:
        InvalidUsageError: If *value* contains no ``=``.
    """
    pattern, sep, replacement = value.rpartition("=")
    if not sep or not pattern:
        raise InvalidUsageError(
            f"Invalid rewrite rule '{value}': expected PATTERN=REPLACEMENT"
        )
    return pattern, replacement


def resolve_config(
    cli_rewrite: Optional[list[str]] = None,
    cli_server_url: Optional[str] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_rewrite``, ``cli_server_url``, ``cli_format``)
        2. Environment variables (``SPECVIEW_SERVER_URL``, ``SPECVIEW_CACHE_DIR``)
        3. Project config (``./specview.json``)
        4. User config (``~/.config/specview/config.json``)
        5. Defaults

    Rewrite rules accumulate rather than override: global rules come first,
    then project rules, then CLI rules.  A pattern declared again later keeps
    its original position but takes the later replacement.

    Returns:
        The effective :class:`~specview.models.GlobalConfig`.

    Raises:
        ConfigError: If any layer is invalid.
    """
    # 5 + 4. Defaults and user config
    config = load_global_config()
    data = config.model_dump(mode="json")
    rewrite: dict[str, str] = dict(config.rewrite)

    # 3. Project config
    project = load_project_config()
    if project is not None:
        project_rewrite = project.get("rewrite") or {}
        if not isinstance(project_rewrite, dict):
            raise ConfigError("Project config 'rewrite' must be an object")
        rewrite.update(project_rewrite)
        for key, value in project.items():
            if key == "rewrite":
                continue
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key].update(value)
            else:
                data[key] = value

    # 2. Environment
    env_cache_dir = os.environ.get("SPECVIEW_CACHE_DIR")
    if env_cache_dir:
        data["cache"]["persistent"] = True
        data["cache"]["directory"] = env_cache_dir
    server_url = os.environ.get("SPECVIEW_SERVER_URL") or None

    # 1. CLI flags
    for option in cli_rewrite or []:
        pattern, replacement = parse_rewrite_option(option)
        rewrite[pattern] = replacement
    if cli_server_url is not None:
        server_url = cli_server_url
    if cli_format is not None:
        data["output"]["document_format"] = cli_format

    if server_url:
        data["server"].update(_parse_server_url(server_url))

    data["rewrite"] = rewrite
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _parse_server_url(url: str) -> dict[str, Any]:
    """Split a preview server URL into ``host`` and ``port`` settings."""
    parts = urlsplit(url if "://" in url else f"http://{url}")
    if not parts.hostname:
        raise ConfigError(f"Invalid server URL: {url}")
    result: dict[str, Any] = {"host": parts.hostname}
    try:
        port = parts.port
    except ValueError as exc:
        raise ConfigError(f"Invalid server URL: {url}") from exc
    if port is not None:
        result["port"] = port
    return result
