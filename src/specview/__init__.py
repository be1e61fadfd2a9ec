"""specview -- Resolve multi-file OpenAPI/Swagger documents for previewing.

This package follows ``$ref`` pointers across files, rewrites logical paths
to real locations, and produces one fully dereferenced document per entry
file, so that a viewer can render a spec whose definitions are spread over
many files.  Resolved documents are kept in a cache that change
notifications can mark stale.

Typical workflow::

    specview resolve api/openapi.yaml --format yaml
    specview preview api/openapi.yaml

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration with precedence resolution.
    changes: Change notifications and invalidation.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
