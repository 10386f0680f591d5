"""Tests for racing a typed answer against out-of-band polling."""

from __future__ import annotations

import time
from typing import Any

import pytest

from conftest import BlockingStdin, FakeIdentityService, ScriptedPrompt, advance_reply
from idauth.exceptions import AuthError
from idauth.identity.client import IdentityClient
from idauth.identity.polling import OOBPoller
from idauth.identity.race import AnswerRace
from idauth.interaction.console import ConsolePrompt
from idauth.models import Mechanism


SMS = Mechanism.model_validate({"Name": "SMS", "MechanismId": "sms-id", "Enrolled": True})


def _by_action(**replies: dict[str, Any]):
    def reply(payload: dict[str, Any]) -> dict[str, Any]:
        return replies.get(payload["Action"], advance_reply("OobPending"))

    return reply


def _make_race(client: IdentityClient, prompts: ScriptedPrompt, interval: float = 0.05) -> AnswerRace:
    return AnswerRace(client, prompts, OOBPoller(client, interval=interval, timeout=5))


class TestAnswerRace:
    def test_typed_answer_wins_and_stops_polling(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            _by_action(Answer=advance_reply("LoginSuccess", "user-token")),
        )
        prompts = ScriptedPrompt(answers=["123456"])

        result = _make_race(identity_client, prompts).run(SMS)

        assert result.token == "user-token"
        answers = [p for p in identity_service.calls_to("AdvanceAuthentication") if p["Action"] == "Answer"]
        assert answers[0]["Answer"] == "123456"
        assert prompts.asked == [("Please enter the code sent to your phone via SMS", False)]

        calls_after_return = len(identity_service.calls)
        time.sleep(0.2)
        assert len(identity_service.calls) == calls_after_return

    def test_poll_wins_and_cancels_prompt(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            _by_action(Poll=advance_reply("LoginSuccess", "push-token")),
        )
        prompts = ScriptedPrompt()

        result = _make_race(identity_client, prompts, interval=0.01).run(SMS)

        assert result.token == "push-token"
        # The prompt thread has been joined, so it has observed the cancel.
        assert prompts.cancelled.is_set()
        assert all(p["Action"] == "Poll" for p in identity_service.calls_to("AdvanceAuthentication"))

    def test_empty_answer_leaves_outcome_to_poller(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            _by_action(Poll=advance_reply("StartNextChallenge")),
        )
        prompts = ScriptedPrompt(answers=[""])

        result = _make_race(identity_client, prompts, interval=0.01).run(SMS)

        assert result.summary == "StartNextChallenge"
        assert not any(p["Action"] == "Answer" for p in identity_service.calls_to("AdvanceAuthentication"))

    def test_rejected_answer_is_raised(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            _by_action(Answer=advance_reply(success=False, message="Invalid code")),
        )
        prompts = ScriptedPrompt(answers=["000000"])

        with pytest.raises(AuthError, match="authentication failed: Invalid code"):
            _make_race(identity_client, prompts, interval=1).run(SMS)

    def test_poll_win_returns_while_unpollable_stdin_is_still_open(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            _by_action(Poll=advance_reply("LoginSuccess", "push-token")),
        )
        stdin = BlockingStdin()
        monkeypatch.setattr("sys.stdin", stdin)
        race = AnswerRace(
            identity_client,
            ConsolePrompt(poll_interval=0.01),
            OOBPoller(identity_client, interval=0.01, timeout=5),
        )

        started = time.monotonic()
        result = race.run(SMS)

        assert result.token == "push-token"
        assert time.monotonic() - started < 2
        stdin.feed("\n")
