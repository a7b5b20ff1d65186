"""Exception hierarchy for specmaster.

All exceptions inherit from :class:`SpecmasterError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specmaster.exit_codes`.
The top-level error handler in :func:`specmaster.app.main` catches
``SpecmasterError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Only I/O problems are fatal inside the parsing pipeline. The scanner and
the analysis functions degrade gracefully instead of raising.

Subclass hierarchy::

    SpecmasterError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- NotFoundError        (exit 4)
    +-- ConnectionError_     (exit 6)
    +-- SpecParseError       (exit 7)
    +-- SpecReadError        (exit 8)
    +-- SpecTooLargeError    (exit 9)
    +-- ParseCancelledError  (exit 130)
    +-- ConfigError          (exit 1)
"""

from specmaster.exit_codes import (
    EXIT_CANCELLED,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_READ_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_TOO_LARGE,
)


class SpecmasterError(Exception):
    """Base exception for all specmaster errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specmaster.exit_codes`. The entry point catches
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


class InvalidUsageError(SpecmasterError):
    """Raised for invalid CLI arguments or option values."""

    exit_code = EXIT_INVALID_USAGE


class NotFoundError(SpecmasterError):
    """Raised when a requested endpoint or schema is not in the document."""

    exit_code = EXIT_NOT_FOUND


class ConnectionError_(SpecmasterError):
    """Raised on network-level failures while fetching a remote document.

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class SpecParseError(SpecmasterError):
    """Raised when a document cannot be interpreted at all (e.g. unknown format)."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class SpecReadError(SpecmasterError):
    """Raised when the input file or stream cannot be read to the end."""

    exit_code = EXIT_READ_ERROR


class SpecTooLargeError(SpecmasterError):
    """Raised by the size pre-check when a file exceeds the configured ceiling."""

    exit_code = EXIT_TOO_LARGE


class ParseCancelledError(SpecmasterError):
    """Raised at a yield point after the parse's cancel token was triggered."""

    exit_code = EXIT_CANCELLED


class ConfigError(SpecmasterError):
    """Raised for configuration problems (invalid JSON, bad override values)."""

    exit_code = EXIT_GENERIC_FAILURE
