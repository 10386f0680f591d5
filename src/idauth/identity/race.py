"""Racing a typed answer against an out-of-band approval.

Factors such as SMS or the mobile app can be completed two ways: the user
types the code they received, or they approve the login on another device.
:class:`AnswerRace` runs both paths on their own threads and returns whichever
finishes first. The loser is cancelled through a shared
:class:`threading.Event` and joined before :meth:`AnswerRace.run` returns, so
the terminal is left clean for the next challenge.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Optional, Union

from idauth.identity.client import AdvanceAction, IdentityClient
from idauth.identity.mechanisms import prompt_for
from idauth.identity.polling import OOBPoller
from idauth.interaction.base import PromptGateway
from idauth.models import AdvanceResult, Mechanism

logger = logging.getLogger(__name__)

_Outcome = Union[AdvanceResult, BaseException]


class AnswerRace:
    """Run the answer prompt and the poller concurrently.

    Args:
        client: The session's identity client.
        prompts: Asks the user for the code.
        poller: Polls the mechanism while the question is open.
    """

    def __init__(
        self,
        client: IdentityClient,
        prompts: PromptGateway,
        poller: OOBPoller,
    ) -> None:
        self._client = client
        self._prompts = prompts
        self._poller = poller

    def run(self, mechanism: Mechanism) -> AdvanceResult:
        """Return the first outcome of answering or polling *mechanism*.

        ``StartOOB`` must already have been sent for *mechanism*.

        Raises:
            IdauthError: Whatever the winning path raised (a rejected answer,
                a poll timeout, a prompt failure).
        """
        outcomes: queue.Queue[_Outcome] = queue.Queue(maxsize=1)
        cancel = threading.Event()

        def emit(outcome: _Outcome) -> None:
            try:
                outcomes.put_nowait(outcome)
            except queue.Full:
                # Lost the race
                pass

        def answer_task() -> None:
            try:
                result = self._answer(mechanism, cancel)
            except BaseException as exc:  # noqa: BLE001 - handed to the caller
                emit(exc)
                return
            if result is not None:
                emit(result)

        def poll_task() -> None:
            try:
                result = self._poller.poll(mechanism.mechanism_id, cancel)
            except BaseException as exc:  # noqa: BLE001 - handed to the caller
                emit(exc)
                return
            if result is not None:
                emit(result)

        workers = [
            threading.Thread(target=answer_task, name="idauth-answer", daemon=True),
            threading.Thread(target=poll_task, name="idauth-poll", daemon=True),
        ]
        for worker in workers:
            worker.start()

        try:
            outcome = outcomes.get()
        finally:
            cancel.set()
            for worker in workers:
                worker.join()

        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def _answer(
        self, mechanism: Mechanism, cancel: threading.Event
    ) -> Optional[AdvanceResult]:
        answer = self._prompts.ask(prompt_for(mechanism), cancel=cancel)
        if not answer or cancel.is_set():
            logger.debug("No answer for %s; leaving it to the poller", mechanism.mechanism_id)
            return None
        return self._client.advance(mechanism.mechanism_id, AdvanceAction.ANSWER, answer)
