"""Exception hierarchy for specview.

All exceptions inherit from :class:`SpecviewError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specview.exit_codes`.
The resolver catches ``SpecviewError`` per file so that one broken document
never aborts the rest of the graph.  The top-level error handler in
:func:`specview.app.main` catches it and exits with the appropriate code,
while unexpected exceptions produce a crash log and exit with
:data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SpecviewError (exit 1)
    +-- InvalidUsageError        (exit 2)
    +-- SpecParseError           (exit 7)
    +-- ReferenceExpansionError  (exit 8)
    +-- ConfigError              (exit 1)
"""

from specview.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REFERENCE_ERROR,
    EXIT_SPEC_PARSE_ERROR,
)


class SpecviewError(Exception):
    """Base exception for all specview errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specview.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(SpecviewError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class SpecParseError(SpecviewError):
    """Raised when a document cannot be read or parsed as JSON/YAML."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class ReferenceExpansionError(SpecviewError):
    """Raised when an internal ``$ref`` points at a location that does not exist."""

    exit_code = EXIT_REFERENCE_ERROR


class ConfigError(SpecviewError):
    """Raised for configuration problems (invalid JSON, bad rewrite rules)."""

    exit_code = EXIT_GENERIC_FAILURE
