"""MFA negotiation with the identity service.

- :class:`IdentityClient` -- the ``/Security`` REST calls.
- :class:`IdentityAuthenticator` -- the challenge loop that yields a token.
- :class:`OOBPoller`, :class:`AnswerRace`, :class:`ExternalRedirectWaiter`
  -- the waiting strategies used for out-of-band factors.

Typical usage::

    from idauth.identity import IdentityAuthenticator, IdentityClient
    from idauth.interaction import ConsolePrompt, SystemBrowser

    with IdentityClient("https://abc1234.id.example.com") as client:
        authenticator = IdentityAuthenticator(client, ConsolePrompt(), SystemBrowser())
        token = authenticator.get_token("alice@example.com")
"""

from idauth.identity.authenticator import IdentityAuthenticator
from idauth.identity.client import AdvanceAction, IdentityClient
from idauth.identity.external import ExternalRedirectWaiter
from idauth.identity.polling import OOBPoller
from idauth.identity.race import AnswerRace

__all__ = [
    "AdvanceAction",
    "AnswerRace",
    "ExternalRedirectWaiter",
    "IdentityAuthenticator",
    "IdentityClient",
    "OOBPoller",
]
