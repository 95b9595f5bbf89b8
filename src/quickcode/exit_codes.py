"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~quickcode.exceptions.QuickCodeError` subclass.
Shell wrappers and CI scripts can inspect the exit code to tell a rejected
secret code from an unreachable API without parsing stderr.

Example::

    $ quickcode project verify-secret --name demo
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- secret code was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authentication or authorisation failed."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP error status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_GENERATION_FAILED = 7
"""The generation session was rejected by the server (invalid run id)."""

EXIT_PUSH_ERROR = 8
"""The live progress channel could not be established or was lost."""

EXIT_INTERRUPTED = 130
"""The user interrupted the command with Ctrl-C."""
