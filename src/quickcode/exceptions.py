"""Exception hierarchy for quickcode.

All exceptions inherit from :class:`QuickCodeError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`quickcode.exit_codes`.
The top-level error handler in :func:`quickcode.app.main` catches
``QuickCodeError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    QuickCodeError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
    +-- PushError           (exit 8)
        +-- PushConnectError
        +-- PushTransportError
"""

from quickcode.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_PUSH_ERROR,
    EXIT_SERVER_ERROR,
)


class QuickCodeError(Exception):
    """Base exception for all quickcode errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`quickcode.exit_codes`. The entry point catches
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


class InvalidUsageError(QuickCodeError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(QuickCodeError):
    """Raised when the API rejects the request with HTTP 401 or 403."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(QuickCodeError):
    """Raised when the API returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(QuickCodeError):
    """Raised when the API returns an HTTP 5xx or an unmapped 4xx status."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(QuickCodeError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(QuickCodeError):
    """Raised for configuration problems (invalid JSON, missing project email or secret)."""

    exit_code = EXIT_GENERIC_FAILURE


class PushError(QuickCodeError):
    """Base class for failures of the live progress push channel."""

    exit_code = EXIT_PUSH_ERROR


class PushConnectError(PushError):
    """Raised when the push subscription cannot be established."""


class PushTransportError(PushError):
    """Raised when an established push subscription is lost and does not recover."""
