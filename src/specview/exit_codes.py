"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specview.exceptions.SpecviewError` subclass.
Editor integrations and shell wrappers can inspect the exit code to tell
a broken entry document apart from a bad configuration without parsing
stderr.

Example::

    $ specview resolve api/openapi.yaml
    $ echo $?
    7   # EXIT_SPEC_PARSE_ERROR -- the entry document could not be parsed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_SPEC_PARSE_ERROR = 7
"""A document could not be read or parsed."""

EXIT_REFERENCE_ERROR = 8
"""Internal ``$ref`` pointers of a document could not be expanded."""
