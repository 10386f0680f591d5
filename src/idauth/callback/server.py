"""Local HTTP listener that captures an OIDC authorization code.

:func:`capture_authorization_code` serves a single login: it validates the
``redirect_uri`` of the authorization URL, binds a throwaway
:class:`~http.server.HTTPServer` on the loopback address it names, opens the
browser with a fresh CSRF ``state``, and waits for the identity provider to
redirect back with ``code`` and the same ``state``.

Every call builds its own server and handler class, so concurrent flows on
different ports never share state.
"""

from __future__ import annotations

import base64
import logging
import secrets
import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urlparse, urlunparse

from idauth.exceptions import AuthTimeoutError, ConnectionError_, InvalidRedirectError
from idauth.interaction.base import BrowserLauncher
from idauth.models import CallbackResult, RedirectTarget

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
DEFAULT_PORT = 80
DEFAULT_TIMEOUT = 300.0

SUCCESS_PAGE = (
    "Logged in successfully. You may close the browser and return to the command line."
)
FAILURE_PAGE = "Failed to log in. You may close the browser and try again."

_BAD_REDIRECT = "redirect_uri must be http://127.0.0.1[:port]/callback"
_BAD_PORT = "Port in redirect_uri must be between 1 and 65535"


def generate_state() -> str:
    """Return a CSRF ``state`` value made of 16 random bytes, base64-encoded."""
    return base64.urlsafe_b64encode(secrets.token_bytes(16)).decode("ascii").rstrip("=")


def _raw_port(netloc: str) -> str:
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        rest = hostport.partition("]")[2]
        return rest[1:] if rest.startswith(":") else ""
    return hostport.partition(":")[2]


def parse_redirect_target(auth_url: str) -> RedirectTarget:
    """Extract and validate the ``redirect_uri`` query parameter of *auth_url*.

    Raises:
        InvalidRedirectError: If the redirect is missing, is not plain HTTP,
            does not point at a loopback host, has a bad port, or its path
            is not ``/callback``.
    """
    params = parse_qs(urlparse(auth_url).query)
    redirect_uri = params.get("redirect_uri", [""])[0]
    if not redirect_uri:
        raise InvalidRedirectError(_BAD_REDIRECT)

    parsed = urlparse(redirect_uri)
    host = parsed.hostname or ""
    if parsed.scheme != "http" or host not in LOOPBACK_HOSTS:
        raise InvalidRedirectError(_BAD_REDIRECT)
    if parsed.path != CALLBACK_PATH:
        raise InvalidRedirectError(_BAD_REDIRECT)

    raw_port = _raw_port(parsed.netloc)
    if not raw_port:
        port = DEFAULT_PORT
    elif raw_port.isdigit():
        port = int(raw_port)
    else:
        raise InvalidRedirectError(_BAD_REDIRECT)
    if not 1 <= port <= 65535:
        raise InvalidRedirectError(_BAD_PORT)

    return RedirectTarget(scheme=parsed.scheme, host=host, port=port, path=parsed.path)


def with_state(auth_url: str, state: str) -> str:
    """Return *auth_url* with its ``state`` query parameter set to *state*."""
    parsed = urlparse(auth_url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "state"]
    query.append(("state", state))
    return urlunparse(parsed._replace(query=urlencode(query)))


def _same_state(received: str, expected: str) -> bool:
    return bool(received) and secrets.compare_digest(
        received.encode("utf-8"), expected.encode("utf-8")
    )


class _IPv6HTTPServer(HTTPServer):
    address_family = socket.AF_INET6


def _make_handler(
    target: RedirectTarget,
    expected_state: str,
    on_result: Callable[[CallbackResult], bool],
) -> type[BaseHTTPRequestHandler]:
    class CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:
            parsed = urlparse(self.path)
            if parsed.path != target.path:
                self._reply(404, "Not found.")
                return

            params = parse_qs(parsed.query)
            code = params.get("code", [""])[0]
            state = params.get("state", [""])[0]
            if not code or not _same_state(state, expected_state):
                logger.debug("Rejected callback: missing code or state mismatch")
                self._reply(400, FAILURE_PAGE)
                return

            if on_result(CallbackResult(code=code, state=state)):
                self._reply(200, SUCCESS_PAGE)
            else:
                self._reply(400, FAILURE_PAGE)

        def _reply(self, status: int, body: str) -> None:
            payload = f"{body}\n".encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug("callback listener: " + format, *args)

    return CallbackHandler


def capture_authorization_code(
    auth_url: str,
    browser: BrowserLauncher,
    timeout: float = DEFAULT_TIMEOUT,
    state_factory: Callable[[], str] = generate_state,
) -> CallbackResult:
    """Run one redirect-based login and return the code it produced.

    Args:
        auth_url: The provider's authorization URL. Its ``redirect_uri``
            decides where the listener binds.
        browser: Opens the authorization URL (with ``state`` set).
        timeout: Seconds to wait for the redirect.
        state_factory: Produces the CSRF ``state`` value.

    Returns:
        The captured :class:`~idauth.models.CallbackResult`.

    Raises:
        InvalidRedirectError: If ``redirect_uri`` is unusable. Nothing is
            bound and the browser is not opened.
        ConnectionError_: If the port cannot be bound. The browser is not
            opened.
        AuthTimeoutError: If no valid callback arrives in time.
    """
    target = parse_redirect_target(auth_url)
    state = state_factory()

    done = threading.Event()
    lock = threading.Lock()
    captured: list[CallbackResult] = []

    def on_result(result: CallbackResult) -> bool:
        with lock:
            if captured:
                return False
            captured.append(result)
        done.set()
        return True

    server_cls = _IPv6HTTPServer if target.is_ipv6 else HTTPServer
    bind_host = "::1" if target.is_ipv6 else "127.0.0.1"
    handler = _make_handler(target, state, on_result)
    try:
        server = server_cls((bind_host, target.port), handler)
    except OSError as exc:
        raise ConnectionError_(
            f"failed to start callback listener on {bind_host}:{target.port}: {exc}"
        ) from exc

    serve_thread = threading.Thread(
        target=server.serve_forever,
        kwargs={"poll_interval": 0.1},
        name="idauth-callback",
        daemon=True,
    )
    serve_thread.start()
    logger.debug("Callback listener on %s:%d", bind_host, target.port)

    try:
        _open_browser(browser, with_state(auth_url, state))
        if not done.wait(timeout):
            raise AuthTimeoutError("timeout waiting for OIDC callback")
    finally:
        server.shutdown()
        server.server_close()
        serve_thread.join()

    return captured[0]


def _open_browser(browser: BrowserLauncher, url: str) -> Optional[bool]:
    try:
        return browser.open(url)
    except Exception as exc:  # noqa: BLE001 - the URL can still be opened by hand
        logger.debug("Browser launch raised: %s", exc)
        return None
