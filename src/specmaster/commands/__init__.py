"""Built-in CLI sub-commands for specmaster.

This package groups the Typer sub-command modules that form the CLI's
command tree:

* :mod:`~specmaster.commands.parse` -- stream-parse a document and print a
  summary; also hosts the shared source loader.
* :mod:`~specmaster.commands.inspect` -- query endpoints and schemas,
  compare schemas, analytics and design review.
* :mod:`~specmaster.commands.config` -- view and modify global settings.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``inspect`` and ``config``) or a plain callback
function registered directly on the root app (for ``parse``).
"""
