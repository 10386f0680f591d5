"""Logins delegated to an external identity provider.

When a tenant federates with another identity provider, ``StartAuthentication``
returns a short redirect URL instead of challenges. The user completes the
login in a browser, and the client learns the outcome in one of two ways:

- by polling ``OobAuthStatus`` until the provider reports ``success``, or
- when the service asks for it, by reading a PIN that the browser shows at
  the end of the login and answering the ``OOBAUTHPIN`` pseudo-mechanism.
"""

from __future__ import annotations

import logging
import time

from idauth.exceptions import AuthError, AuthTimeoutError
from idauth.identity.client import AdvanceAction, IdentityClient
from idauth.interaction.base import BrowserLauncher, PromptGateway
from idauth.models import ExternalAuthState

logger = logging.getLogger(__name__)

PIN_MECHANISM_ID = "OOBAUTHPIN"
PIN_QUESTION = "Enter the pin code that you received in the browser"

STATE_PENDING = "pending"
STATE_SUCCESS = "success"


class ExternalRedirectWaiter:
    """Drive a browser login with an external identity provider.

    Args:
        client: The session's identity client.
        browser: Opens the provider's login page.
        prompts: Asks for the PIN when one is required.
        interval: Seconds between status polls.
        timeout: Seconds before giving up on the browser login.
    """

    def __init__(
        self,
        client: IdentityClient,
        browser: BrowserLauncher,
        prompts: PromptGateway,
        interval: float = 3.0,
        timeout: float = 300.0,
    ) -> None:
        self._client = client
        self._browser = browser
        self._prompts = prompts
        self._interval = interval
        self._timeout = timeout

    def wait(self, state: ExternalAuthState) -> str:
        """Open the provider login and return the token it results in.

        Raises:
            AuthError: If the provider reports a failed login or rejects the PIN.
            AuthTimeoutError: If the login does not complete within the timeout.
            ConnectionError_: On transport errors while checking the status.
        """
        self._open(state.redirect_url)
        if state.pin_required:
            return self._login_with_pin(state)
        return self._poll_status(state.session_id)

    def _open(self, url: str) -> None:
        logger.debug("Opening browser for external authentication: %s", url)
        try:
            opened = self._browser.open(url)
        except Exception as exc:  # noqa: BLE001 - headless systems still log in
            logger.debug("Browser launch raised: %s", exc)
            opened = False
        if not opened:
            logger.debug("Browser not opened; waiting for the user to visit %s", url)

    def _poll_status(self, session_id: str) -> str:
        deadline = time.monotonic() + self._timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthTimeoutError("timed out waiting for external authentication")
            time.sleep(min(self._interval, remaining))

            status = self._client.oob_status(session_id)
            if status.state == STATE_PENDING:
                continue
            if status.state == STATE_SUCCESS:
                if status.token:
                    return status.token
                logger.debug("External login reported success without a token yet")
                continue
            raise AuthError("authentication failed")

    def _login_with_pin(self, state: ExternalAuthState) -> str:
        self._client.session_id = state.session_id
        pin = self._prompts.ask(PIN_QUESTION)
        try:
            result = self._client.advance(PIN_MECHANISM_ID, AdvanceAction.ANSWER, pin)
        except AuthError as exc:
            raise AuthError(
                f"authentication with federated identity provider failed: {exc}"
            ) from exc
        if not result.token:
            raise AuthError(
                "authentication with federated identity provider failed: no token received"
            )
        return result.token
