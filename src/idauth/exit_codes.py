"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~idauth.exceptions.IdauthError` subclass.
Shell wrappers and CI scripts can inspect the exit code to tell a rejected
login apart from an unreachable identity service without parsing stderr.

Example::

    $ idauth login --username alice@example.com
    $ echo $?
    8   # EXIT_TIMEOUT -- the push notification was never approved
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments, an unusable redirect URI, or an unsupported mechanism."""

EXIT_AUTH_FAILURE = 3
"""The identity service rejected the login attempt."""

EXIT_RESPONSE_ERROR = 5
"""The identity service returned a body that could not be decoded."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (non-200 status, refused connection, port in use)."""

EXIT_TIMEOUT = 8
"""An out-of-band factor, external login, or browser callback timed out."""

EXIT_INTERRUPTED = 130
"""The user interrupted the command with Ctrl-C."""
