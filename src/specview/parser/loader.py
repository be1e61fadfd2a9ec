"""Load a single OpenAPI/Swagger document from a local file.

This module handles all I/O for reading raw documents and converting them
into Python dictionaries.  It supports both JSON and YAML formats with
automatic format detection.  Documents in a multi-file graph are often
fragments (a file holding nothing but ``components``), so the
``openapi``/``swagger`` header is only enforced when the caller asks for it.

The two public functions are:

* :func:`load_document` -- Read and parse one file.
* :func:`detect_spec_version` -- Return the declared ``openapi`` or
  ``swagger`` version of a document, if any.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from specview.exceptions import SpecParseError


def load_document(path: str, require_spec_header: bool = False) -> dict[str, Any]:
    """Load a document from a local file.

    Supports .json, .yaml, and .yml extensions. Falls back to content-based
    detection if the extension is not recognized.

    Args:
        path: Path to the local file.
        require_spec_header: Reject documents that declare neither an
            ``openapi`` nor a ``swagger`` version.

    Returns:
        The parsed document.

    Raises:
        SpecParseError: If the file cannot be read or content cannot be parsed.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecParseError(f"Spec file not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SpecParseError(f"Failed to read spec file {path}: {exc}") from exc

    if not content.strip():
        raise SpecParseError(f"Spec file is empty: {path}")

    suffix = file_path.suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"

    document = _parse_content(content, hint=hint)
    if require_spec_header and detect_spec_version(document) is None:
        raise SpecParseError(
            f"{path} is not an OpenAPI or Swagger document "
            "(missing 'openapi' or 'swagger' field)"
        )
    return document


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Args:
        content: The raw string content.
        hint: Optional format hint ('json' or 'yaml').

    Returns:
        The parsed dictionary.

    Raises:
        SpecParseError: If the content cannot be parsed as either format.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
            if not isinstance(result, dict):
                raise SpecParseError(
                    "Spec must be a JSON/YAML object (got "
                    f"{type(result).__name__})"
                )
            return result
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc

    try:
        result = yaml.safe_load(content)
        if not isinstance(result, dict):
            raise SpecParseError(
                "Spec must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result
    except yaml.YAMLError as exc:
        yaml_error = exc

    msg = "Failed to parse spec as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise SpecParseError(msg)


def detect_spec_version(document: dict[str, Any]) -> Optional[str]:
    """Return the declared spec version of *document*.

    Swagger 2.x documents are reported as ``"swagger <version>"`` and
    OpenAPI 3.x documents as the bare ``openapi`` value.  Fragments without
    either field return ``None``.
    """
    if "openapi" in document:
        return str(document["openapi"])
    if "swagger" in document:
        return f"swagger {document['swagger']}"
    return None
