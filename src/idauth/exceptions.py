"""Exception hierarchy for idauth.

All exceptions inherit from :class:`IdauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`idauth.exit_codes`.
The top-level error handler in :func:`idauth.app.main` catches
``IdauthError`` and exits with the appropriate code.

Subclass hierarchy::

    IdauthError (exit 1)
    +-- InvalidUsageError          (exit 2)
    |   +-- ChallengeError
    |   +-- UnsupportedMechanismError
    |   +-- InvalidRedirectError
    +-- AuthError                  (exit 3)
    |   +-- AuthTimeoutError       (exit 8)
    +-- ResponseParseError         (exit 5)
    +-- ConnectionError_           (exit 6)
    |   +-- PodRedirectError
    +-- ConfigError                (exit 1)
"""

from idauth.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_RESPONSE_ERROR,
    EXIT_TIMEOUT,
)


class IdauthError(Exception):
    """Base exception for all idauth errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`idauth.exit_codes`. The entry point catches
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


class InvalidUsageError(IdauthError):
    """Raised for invalid arguments or inputs rejected before any network activity."""

    exit_code = EXIT_INVALID_USAGE


class ChallengeError(InvalidUsageError):
    """Raised when the service offers no challenges or a challenge has no mechanisms."""


class UnsupportedMechanismError(InvalidUsageError):
    """Raised when a challenge names a mechanism kind this client cannot drive."""


class InvalidRedirectError(InvalidUsageError):
    """Raised when an authorization URL carries an unusable ``redirect_uri``."""


class AuthError(IdauthError):
    """Raised when the identity service rejects the login (``Success`` is false, bad state)."""

    exit_code = EXIT_AUTH_FAILURE


class AuthTimeoutError(AuthError):
    """Raised when a wait phase (out-of-band, external login, callback) runs out of time."""

    exit_code = EXIT_TIMEOUT


class ResponseParseError(IdauthError):
    """Raised when a response body from the identity service is not valid JSON."""

    exit_code = EXIT_RESPONSE_ERROR


class ConnectionError_(IdauthError):
    """Raised on network-level failures (non-200 status, connection refused, port in use).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class PodRedirectError(ConnectionError_):
    """Raised when the service keeps redirecting to another pod past the hop limit."""


class ConfigError(IdauthError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
