"""Polling of out-of-band mechanisms until the service reports completion."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

from idauth.exceptions import AuthTimeoutError, IdauthError
from idauth.identity.client import AdvanceAction, IdentityClient
from idauth.models import AdvanceResult

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3.0
DEFAULT_TIMEOUT = 300.0


class OOBPoller:
    """Repeatedly ``Poll`` a mechanism until its challenge is finished.

    The poller waits one *interval* before the first poll, so a freshly
    started out-of-band factor is never queried immediately. Errors from an
    individual poll are logged and the next tick is attempted; only the
    overall *timeout* ends the wait unsuccessfully.

    Args:
        client: The session's identity client.
        interval: Seconds between polls.
        timeout: Seconds before giving up, measured from :meth:`poll`.
    """

    def __init__(
        self,
        client: IdentityClient,
        interval: float = DEFAULT_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._interval = interval
        self._timeout = timeout

    def poll(
        self, mechanism_id: str, cancel: Optional[threading.Event] = None
    ) -> Optional[AdvanceResult]:
        """Poll *mechanism_id* until a terminal summary arrives.

        Args:
            mechanism_id: The mechanism started with ``StartOOB``.
            cancel: Set by another thread to stop polling.

        Returns:
            The terminal :class:`~idauth.models.AdvanceResult`, or ``None``
            if *cancel* was set first.

        Raises:
            AuthTimeoutError: If no terminal summary arrives within the timeout.
        """
        cancel = cancel or threading.Event()
        deadline = time.monotonic() + self._timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AuthTimeoutError("timed out waiting for out-of-band authentication")
            if cancel.wait(min(self._interval, remaining)):
                logger.debug("Polling of %s cancelled", mechanism_id)
                return None
            if time.monotonic() >= deadline:
                raise AuthTimeoutError("timed out waiting for out-of-band authentication")

            try:
                result = self._client.advance(mechanism_id, AdvanceAction.POLL)
            except IdauthError as exc:
                logger.debug("Poll of %s failed: %s", mechanism_id, exc)
                continue

            if result.is_terminal:
                logger.debug("Poll of %s finished with %s", mechanism_id, result.summary)
                return result
