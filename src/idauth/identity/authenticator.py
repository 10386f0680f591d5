"""The login state machine.

:class:`IdentityAuthenticator` exchanges a username (and optionally a
password) for a bearer token:

1. ``StartAuthentication`` opens a session. If the tenant federates with an
   external identity provider, the browser login is handed to
   :class:`~idauth.identity.external.ExternalRedirectWaiter`.
2. Each challenge in turn has a mechanism chosen for it, and the mechanism
   is driven according to its kind (see :meth:`IdentityAuthenticator._handlers`).
3. The first response carrying a token ends the login. The token is handed
   to the credential store, when one is configured, and returned.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from idauth.auth.credential_store import CredentialStore
from idauth.exceptions import AuthError, ChallengeError, UnsupportedMechanismError
from idauth.identity import mechanisms as catalog
from idauth.identity.client import AdvanceAction, IdentityClient
from idauth.identity.external import ExternalRedirectWaiter
from idauth.identity.polling import OOBPoller
from idauth.identity.qr import display_qr_code
from idauth.identity.race import AnswerRace
from idauth.interaction.base import BrowserLauncher, PromptGateway
from idauth.models import AdvanceResult, Mechanism, MechanismKind
from idauth.output import get_output

logger = logging.getLogger(__name__)

_Handler = Callable[[Mechanism, str], Optional[AdvanceResult]]


class IdentityAuthenticator:
    """Negotiate a token with the identity service.

    Args:
        client: Identity client for this login. Its session state is reset by
            every :meth:`get_token` call.
        prompts: Asks the user for answers and mechanism choices.
        browser: Opens identity-provider login pages.
        credential_store: Receives the token after a successful login.
        timeout: Seconds to wait for out-of-band factors and browser logins.
        poll_interval: Seconds between status polls.
    """

    def __init__(
        self,
        client: IdentityClient,
        prompts: PromptGateway,
        browser: BrowserLauncher,
        credential_store: Optional[CredentialStore] = None,
        timeout: float = 300.0,
        poll_interval: float = 3.0,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._browser = browser
        self._credential_store = credential_store
        self._poller = OOBPoller(client, interval=poll_interval, timeout=timeout)
        self._race = AnswerRace(client, prompts, self._poller)
        self._external = ExternalRedirectWaiter(
            client, browser, prompts, interval=poll_interval, timeout=timeout
        )

    def get_token(self, username: str, password: str = "") -> str:
        """Log *username* in and return the issued token.

        Args:
            username: Login name sent to ``StartAuthentication``.
            password: Used for the password mechanism; asked for when empty.

        Raises:
            ChallengeError: If the service offers no challenges, or a challenge
                has no usable mechanism.
            UnsupportedMechanismError: If the chosen mechanism is of an
                unknown kind.
            AuthError: If the service rejects the login or never issues a token.
            AuthTimeoutError: If an out-of-band factor times out.
            ConnectionError_: On transport errors.
            ResponseParseError: On undecodable responses.
        """
        start = self._client.start(username)

        external = start.external_auth
        if external is not None:
            logger.debug("Login delegated to an external identity provider")
            token = self._external.wait(external)
            return self._finish(username, token)

        challenges = start.result.challenges
        if not challenges:
            raise ChallengeError("no challenges available for authentication")

        handlers = self._handlers()
        for number, challenge in enumerate(challenges, 1):
            mechanism = catalog.choose(challenge.mechanisms, self._prompts)
            kind = mechanism.kind
            if kind is None:
                raise UnsupportedMechanismError(
                    f"unsupported authentication mechanism: {mechanism.name}"
                )
            logger.debug("Challenge %d: using %s", number, kind.value)

            result = handlers[kind](mechanism, password)
            if result is not None and result.token:
                return self._finish(username, result.token)

        raise AuthError("no token received from identity service")

    def _finish(self, username: str, token: str) -> str:
        if self._credential_store is not None:
            self._credential_store.store(
                username,
                token,
                identity_url=self._client.identity_url,
                tenant_id=self._client.tenant_id,
            )
        return token

    # ------------------------------------------------------------------ #
    # Mechanism handlers
    # ------------------------------------------------------------------ #

    def _handlers(self) -> dict[MechanismKind, _Handler]:
        return {
            MechanismKind.PASSWORD: self._password,
            MechanismKind.SECURITY_QUESTION: self._security_question,
            MechanismKind.SMS: self._answer_or_poll,
            MechanismKind.EMAIL: self._answer_or_poll,
            MechanismKind.OATH_OTP: self._answer_or_poll,
            MechanismKind.MOBILE_APP: self._answer_or_poll,
            MechanismKind.FIDO2: self._answer_or_poll,
            MechanismKind.PHONE_CALL: self._out_of_band,
            MechanismKind.QR_CODE: self._qr_code,
        }

    def _password(self, mechanism: Mechanism, password: str) -> Optional[AdvanceResult]:
        if not password:
            password = self._prompts.ask(catalog.prompt_for(mechanism), masked=True)
        return self._client.advance(
            mechanism.mechanism_id, AdvanceAction.ANSWER, password
        )

    def _security_question(self, mechanism: Mechanism, _: str) -> Optional[AdvanceResult]:
        multipart = mechanism.multipart_mechanism
        if multipart is None or len(multipart.mechanism_parts) < 2:
            answer = self._prompts.ask(catalog.prompt_for(mechanism))
            if not answer:
                logger.debug("No answer for %s; skipping it", mechanism.mechanism_id)
                return None
            return self._client.advance(
                mechanism.mechanism_id, AdvanceAction.ANSWER, answer
            )

        if multipart.prompt_select_mech:
            get_output().info(multipart.prompt_select_mech)
        answers = {
            part.uuid: self._prompts.ask(part.question_text or part.prompt_mech_chosen)
            for part in multipart.mechanism_parts
        }
        return self._client.advance(
            mechanism.mechanism_id, AdvanceAction.ANSWER, answers
        )

    def _answer_or_poll(self, mechanism: Mechanism, _: str) -> Optional[AdvanceResult]:
        self._client.advance(mechanism.mechanism_id, AdvanceAction.START_OOB)
        return self._race.run(mechanism)

    def _out_of_band(self, mechanism: Mechanism, _: str) -> Optional[AdvanceResult]:
        self._client.advance(mechanism.mechanism_id, AdvanceAction.START_OOB)
        return self._poller.poll(mechanism.mechanism_id)

    def _qr_code(self, mechanism: Mechanism, _: str) -> Optional[AdvanceResult]:
        display_qr_code(mechanism.image)
        return self._poller.poll(mechanism.mechanism_id)
