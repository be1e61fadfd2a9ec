"""Built-in CLI sub-commands for specview.

This package groups all Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~specview.commands.resolve` -- resolve a multi-file spec and print
  the result or its preview URL.
* :mod:`~specview.commands.config` -- view and modify global settings and
  rewrite rules.
* :mod:`~specview.commands.cache` -- inspect and clear the persistent
  document cache.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config`` and ``cache``) or plain callback
functions registered directly on the root app (``resolve``, ``preview``).
"""
