"""Shared test fixtures for idauth.

Provides fixtures for isolating configuration, resetting output state,
scripting the user, and faking the identity service with
:class:`httpx.MockTransport`. These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
import queue
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from idauth.identity.client import IdentityClient
from idauth.interaction.base import BrowserLauncher, PromptGateway
from idauth.output import OutputManager, reset_output, set_output


IDENTITY_URL = "https://abc1234.id.example.com"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stderr at creation time.
    When Typer's CliRunner redirects those streams during a test and the
    test finishes, the cached references become stale. Resetting forces a
    fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager."""
    output = OutputManager(no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration and data to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG layout, and clears all IDAUTH_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("idauth.config._is_xdg_platform", lambda: True)

    for var in [
        "IDAUTH_IDENTITY_URL",
        "IDAUTH_TENANT_ID",
        "IDAUTH_USERNAME",
        "IDAUTH_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Scripted collaborators
# ---------------------------------------------------------------------------


class ScriptedPrompt(PromptGateway):
    """Answers questions from a script and records what was asked.

    Args:
        answers: Returned in order by :meth:`ask`. When exhausted, ``ask``
            blocks until its cancel event is set and then returns ``""``.
        choice: Returned by :meth:`choose`; defaults to the first option.
    """

    def __init__(self, answers: Optional[list[str]] = None, choice: Optional[str] = None):
        self.answers = list(answers or [])
        self.choice = choice
        self.asked: list[tuple[str, bool]] = []
        self.choices: list[tuple[str, list[str]]] = []
        self.cancelled = threading.Event()

    def ask(
        self,
        label: str,
        masked: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        self.asked.append((label, masked))
        if self.answers:
            return self.answers.pop(0)
        if cancel is None:
            return ""
        cancel.wait(10)
        self.cancelled.set()
        return ""

    def choose(self, label: str, options: list[str]) -> str:
        self.choices.append((label, list(options)))
        return self.choice if self.choice is not None else options[0]


class BlockingStdin:
    """A stdin stand-in with no file descriptor whose ``readline`` blocks.

    Lines are supplied with :meth:`feed`. Streams like this cannot be
    watched with ``select``, like a pipe on Windows.
    """

    def __init__(self) -> None:
        self._lines: queue.Queue[str] = queue.Queue()

    def feed(self, line: str) -> None:
        self._lines.put(line)

    def readline(self) -> str:
        return self._lines.get()

    def isatty(self) -> bool:
        return False


class RecordingBrowser(BrowserLauncher):
    """Records opened URLs and optionally reacts to them."""

    def __init__(
        self,
        on_open: Optional[Callable[[str], None]] = None,
        result: bool = True,
    ) -> None:
        self.opened: list[str] = []
        self._on_open = on_open
        self._result = result

    def open(self, url: str) -> bool:
        self.opened.append(url)
        if self._on_open is not None:
            self._on_open(url)
        return self._result


@pytest.fixture
def prompts() -> ScriptedPrompt:
    return ScriptedPrompt()


@pytest.fixture
def browser() -> RecordingBrowser:
    return RecordingBrowser()


# ---------------------------------------------------------------------------
# Fake identity service
# ---------------------------------------------------------------------------


class FakeIdentityService:
    """Route ``/Security/*`` requests to queued JSON replies.

    Replies are queued per endpoint name (``StartAuthentication``,
    ``AdvanceAuthentication``, ``OobAuthStatus``). A queue's last reply is
    repeated once the others have been consumed. Every request body is
    recorded in :attr:`calls` as ``(endpoint, payload, url)``.
    """

    def __init__(self) -> None:
        self.replies: dict[str, list[Any]] = {}
        self.calls: list[tuple[str, dict[str, Any], str]] = []
        self.headers: list[httpx.Headers] = []
        self.built_for: list[str] = []
        self._lock = threading.Lock()

    def reply(self, endpoint: str, *replies: Any) -> FakeIdentityService:
        self.replies.setdefault(endpoint, []).extend(replies)
        return self

    def calls_to(self, endpoint: str) -> list[dict[str, Any]]:
        return [payload for name, payload, _ in self.calls if name == endpoint]

    def handler(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        payload = json.loads(request.content or b"{}")
        with self._lock:
            self.calls.append((endpoint, payload, str(request.url)))
            self.headers.append(request.headers)
            queue = self.replies.get(endpoint, [])
            if not queue:
                return httpx.Response(404)
            reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            reply = reply(payload)
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)


@pytest.fixture
def identity_service() -> FakeIdentityService:
    return FakeIdentityService()


@pytest.fixture
def identity_client(identity_service: FakeIdentityService) -> IdentityClient:
    http_client = httpx.Client(transport=httpx.MockTransport(identity_service.handler))
    client = IdentityClient(IDENTITY_URL, http_client=http_client)
    yield client
    http_client.close()


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------


def start_reply(*challenges: list[dict[str, Any]], **result: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"SessionId": "session-1", "TenantId": "ABC1234"}
    body["Challenges"] = [{"Mechanisms": mechs} for mechs in challenges]
    body.update(result)
    return {"success": True, "Result": body}


def advance_reply(summary: str = "", token: str = "", success: bool = True, message: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {"Summary": summary}
    if token:
        result["Token"] = token
    return {"success": success, "Message": message, "Result": result}


def mechanism(name: str, mechanism_id: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "Name": name,
        "MechanismId": mechanism_id or f"{name.lower()}-id",
        "Enrolled": True,
    }
    data.update(extra)
    return data


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
