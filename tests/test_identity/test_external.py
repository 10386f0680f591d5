"""Tests for logins delegated to an external identity provider."""

from __future__ import annotations

import httpx
import pytest

from conftest import FakeIdentityService, RecordingBrowser, ScriptedPrompt, advance_reply
from idauth.exceptions import AuthError, AuthTimeoutError, ConnectionError_
from idauth.identity.client import IdentityClient
from idauth.identity.external import PIN_QUESTION, ExternalRedirectWaiter
from idauth.models import ExternalAuthState


IDP_URL = "https://abc1234.id.example.com/r/xyz"


def _status(state: str, token: str = "") -> dict:
    return {"success": True, "Result": {"State": state, "Token": token}}


def _make_waiter(
    client: IdentityClient,
    browser: RecordingBrowser,
    prompts: ScriptedPrompt | None = None,
    timeout: float = 5,
) -> ExternalRedirectWaiter:
    return ExternalRedirectWaiter(
        client, browser, prompts or ScriptedPrompt(), interval=0.01, timeout=timeout
    )


class TestStatusPolling:
    def test_returns_token_after_pending(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply(
            "OobAuthStatus",
            _status("Pending"),
            _status("Success"),
            _status("Success", "idp-token"),
        )
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session")

        token = _make_waiter(identity_client, browser).wait(state)

        assert token == "idp-token"
        assert browser.opened == [IDP_URL]
        payloads = identity_service.calls_to("OobAuthStatus")
        assert len(payloads) == 3
        assert payloads[0]["SessionId"] == "idp-session"

    def test_failed_state(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply("OobAuthStatus", _status("Pending"), _status("Failure"))
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session")

        with pytest.raises(AuthError, match="^authentication failed$"):
            _make_waiter(identity_client, browser).wait(state)

    def test_timeout(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply("OobAuthStatus", _status("Pending"))
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session")

        with pytest.raises(AuthTimeoutError, match="timed out waiting for external authentication"):
            _make_waiter(identity_client, browser, timeout=0.1).wait(state)

    def test_transport_errors_propagate(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply("OobAuthStatus", httpx.Response(502))
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session")

        with pytest.raises(ConnectionError_, match="502"):
            _make_waiter(identity_client, browser).wait(state)

    def test_browser_failure_is_not_fatal(
        self, identity_service: FakeIdentityService, identity_client: IdentityClient
    ) -> None:
        def explode(url: str) -> None:
            raise OSError("no display")

        identity_service.reply("OobAuthStatus", _status("Success", "idp-token"))
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session")

        assert _make_waiter(identity_client, RecordingBrowser(on_open=explode)).wait(state) == "idp-token"
        assert _make_waiter(identity_client, RecordingBrowser(result=False)).wait(state) == "idp-token"


class TestPinLogin:
    def test_answers_pin_mechanism(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply("AdvanceAuthentication", advance_reply("LoginSuccess", "pin-token"))
        prompts = ScriptedPrompt(answers=["482913"])
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="idp-session", pin_required=True)

        token = _make_waiter(identity_client, browser, prompts).wait(state)

        assert token == "pin-token"
        assert browser.opened == [IDP_URL]
        assert prompts.asked == [(PIN_QUESTION, False)]
        payload = identity_service.calls_to("AdvanceAuthentication")[0]
        assert payload["SessionId"] == "idp-session"
        assert payload["MechanismId"] == "OOBAUTHPIN"
        assert payload["Answer"] == "482913"
        assert identity_service.calls_to("OobAuthStatus") == []

    def test_rejected_pin(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply(
            "AdvanceAuthentication", advance_reply(success=False, message="Bad pin")
        )
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="s", pin_required=True)

        with pytest.raises(AuthError, match="federated identity provider failed: .*Bad pin"):
            _make_waiter(identity_client, browser, ScriptedPrompt(answers=["1"])).wait(state)

    def test_pin_without_token(
        self,
        identity_service: FakeIdentityService,
        identity_client: IdentityClient,
        browser: RecordingBrowser,
    ) -> None:
        identity_service.reply("AdvanceAuthentication", advance_reply("LoginSuccess"))
        state = ExternalAuthState(redirect_url=IDP_URL, session_id="s", pin_required=True)

        with pytest.raises(AuthError, match="no token received"):
            _make_waiter(identity_client, browser, ScriptedPrompt(answers=["1"])).wait(state)
