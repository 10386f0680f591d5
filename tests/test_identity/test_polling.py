"""Tests for the out-of-band poller."""

from __future__ import annotations

import threading
import time

import httpx
import pytest

from conftest import FakeIdentityService, advance_reply
from idauth.exceptions import AuthTimeoutError
from idauth.identity.client import IdentityClient
from idauth.identity.polling import OOBPoller


class TestTerminalSummaries:
    def test_polls_until_login_success(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            advance_reply("OobPending"),
            advance_reply("OobPending"),
            advance_reply("LoginSuccess", "valid-token"),
        )

        result = OOBPoller(identity_client, interval=0.01, timeout=5).poll("sms-id")

        assert result is not None
        assert result.token == "valid-token"
        payloads = identity_service.calls_to("AdvanceAuthentication")
        assert len(payloads) == 3
        assert all(p["Action"] == "Poll" and p["MechanismId"] == "sms-id" for p in payloads)

    def test_start_next_challenge_is_terminal(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply("AdvanceAuthentication", advance_reply("StartNextChallenge"))

        result = OOBPoller(identity_client, interval=0.01, timeout=5).poll("pf-id")

        assert result is not None
        assert result.summary == "StartNextChallenge"
        assert result.token == ""


class TestErrors:
    def test_tick_errors_are_swallowed(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication",
            httpx.Response(500),
            advance_reply(success=False, message="not yet"),
            httpx.Response(200, text="garbage"),
            advance_reply("LoginSuccess", "tok"),
        )

        result = OOBPoller(identity_client, interval=0.01, timeout=5).poll("sms-id")

        assert result is not None and result.token == "tok"
        assert len(identity_service.calls_to("AdvanceAuthentication")) == 4

    def test_times_out_even_when_every_tick_fails(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply("AdvanceAuthentication", httpx.Response(500))

        with pytest.raises(AuthTimeoutError, match="timed out waiting for out-of-band authentication"):
            OOBPoller(identity_client, interval=0.01, timeout=0.1).poll("sms-id")
        assert identity_service.calls_to("AdvanceAuthentication")

    def test_times_out_while_pending(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply("AdvanceAuthentication", advance_reply("OobPending"))

        with pytest.raises(AuthTimeoutError):
            OOBPoller(identity_client, interval=0.01, timeout=0.1).poll("sms-id")


class TestCancellation:
    def test_cancel_returns_none_promptly(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        identity_service.reply("AdvanceAuthentication", advance_reply("OobPending"))
        cancel = threading.Event()
        threading.Timer(0.05, cancel.set).start()

        started = time.monotonic()
        result = OOBPoller(identity_client, interval=5, timeout=60).poll("sms-id", cancel)

        assert result is None
        assert time.monotonic() - started < 2

    def test_waits_one_interval_before_first_poll(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        cancel = threading.Event()
        cancel.set()

        assert OOBPoller(identity_client, interval=0.01, timeout=5).poll("sms-id", cancel) is None
        assert identity_service.calls == []
