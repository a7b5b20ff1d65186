"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specmaster.exceptions.SpecmasterError` subclass.
Shell wrappers can inspect the exit code to tell a missing file apart from
a document that could not be parsed without scraping stderr.

Example::

    $ specmaster parse huge.json
    $ echo $?
    9   # EXIT_TOO_LARGE -- the file exceeds the configured size ceiling
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_FOUND = 4
"""The requested endpoint or schema does not exist in the document."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred while fetching a remote document."""

EXIT_SPEC_PARSE_ERROR = 7
"""The document could not be parsed or yielded no usable content."""

EXIT_READ_ERROR = 8
"""The input file or stream could not be read."""

EXIT_TOO_LARGE = 9
"""The input exceeds the configured maximum file size."""

EXIT_CANCELLED = 130
"""The parse was cancelled (Ctrl-C or an explicit cancellation token)."""
