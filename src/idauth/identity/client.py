"""HTTP client for the identity service's ``/Security`` endpoints.

:class:`IdentityClient` performs the three calls a login needs:

- ``StartAuthentication`` -- opens a session for a user and returns the
  challenges to satisfy (or an identity-provider redirect).
- ``AdvanceAuthentication`` -- answers, starts, or polls one mechanism.
- ``OobAuthStatus`` -- reports the state of an identity-provider redirect.

Failures are mapped onto three distinct exceptions so that callers (and exit
codes) can tell them apart:

- transport problems and non-200 statuses raise
  :class:`~idauth.exceptions.ConnectionError_`,
- bodies that are not valid JSON raise
  :class:`~idauth.exceptions.ResponseParseError`,
- decodable bodies with ``Success: false`` raise
  :class:`~idauth.exceptions.AuthError` carrying the service's message.

The client owns the session id for the duration of one login and never
persists it.
"""

from __future__ import annotations

import enum
import logging
import platform
import sys
from typing import Any, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from idauth import __version__
from idauth.exceptions import (
    AuthError,
    ConnectionError_,
    PodRedirectError,
    ResponseParseError,
)
from idauth.models import AdvanceResult, OobStatusResult, StartResult

logger = logging.getLogger(__name__)

START_PATH = "/Security/StartAuthentication"
ADVANCE_PATH = "/Security/AdvanceAuthentication"
OOB_STATUS_PATH = "/Security/OobAuthStatus"

API_VERSION = "1.0"
MAX_POD_REDIRECTS = 1

_ModelT = TypeVar("_ModelT", bound=BaseModel)

Answer = Union[str, dict[str, str]]


class AdvanceAction(str, enum.Enum):
    """The ``Action`` values accepted by ``AdvanceAuthentication``."""

    ANSWER = "Answer"
    START_OOB = "StartOOB"
    POLL = "Poll"


def normalize_url(url: str) -> str:
    """Strip trailing slashes and default to ``https://`` for bare host names."""
    url = url.strip().rstrip("/")
    if "://" not in url:
        url = f"https://{url}"
    return url


def user_agent() -> str:
    """Return the ``User-Agent`` sent with every identity request."""
    system = platform.system()
    name = {"Darwin": "Macintosh"}.get(system, system or sys.platform)
    return f"idauth/{__version__} ({name}; {sys.platform} {platform.machine()})"


class IdentityClient:
    """Blocking client for one login session against the identity service.

    Must be closed after use, either explicitly or as a context manager,
    when it created its own :class:`httpx.Client`.

    Args:
        identity_url: Base URL of the identity service. A bare host name is
            given the ``https://`` scheme.
        tenant_id: Tenant id to send with every request. When empty, the
            tenant reported by ``StartAuthentication`` is adopted.
        http_client: Optional pre-configured :class:`httpx.Client` (tests
            pass one backed by :class:`httpx.MockTransport`).
        timeout: Per-request timeout in seconds for the owned client.
        verify: Verify TLS certificates for the owned client.
        max_pod_redirects: How many pod-redirect hops ``start`` follows.

    Example::

        with IdentityClient("https://abc1234.id.example.com") as client:
            start = client.start("alice@example.com")
            result = client.advance(mechanism_id, AdvanceAction.ANSWER, "s3cret")
    """

    def __init__(
        self,
        identity_url: str,
        tenant_id: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        verify: bool = True,
        max_pod_redirects: int = MAX_POD_REDIRECTS,
    ) -> None:
        self._identity_url = normalize_url(identity_url)
        self._tenant_id = tenant_id or ""
        self._max_pod_redirects = max_pod_redirects
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout, verify=verify)
        self.session_id = ""

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> IdentityClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    @property
    def identity_url(self) -> str:
        """The endpoint currently in use (updated by pod redirects)."""
        return self._identity_url

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #

    def start(self, username: str) -> StartResult:
        """Open a login session for *username*.

        Follows at most ``max_pod_redirects`` pod-redirect hints (a
        ``PodFQDN`` naming a different endpoint) before treating the
        response as final.

        Returns:
            The decoded :class:`~idauth.models.StartResult`. Its session id
            is also stored on :attr:`session_id`.

        Raises:
            ConnectionError_: On transport errors or non-200 responses.
            PodRedirectError: If the service is still redirecting after the
                allowed number of hops.
            ResponseParseError: If the body is not valid JSON.
            AuthError: If the service reports ``Success: false``.
        """
        hops = 0
        while True:
            payload: dict[str, Any] = {"User": username, "Version": API_VERSION}
            if self._tenant_id:
                payload["TenantId"] = self._tenant_id
            result = self._decode(StartResult, self._post(START_PATH, payload))

            pod_fqdn = result.result.pod_fqdn
            if not pod_fqdn or normalize_url(pod_fqdn) == self._identity_url:
                break
            if hops >= self._max_pod_redirects:
                raise PodRedirectError(
                    f"too many pod redirects: still redirected to {pod_fqdn} "
                    f"after {hops} hop(s)"
                )
            logger.debug("Redirected from %s to pod %s", self._identity_url, pod_fqdn)
            self._identity_url = normalize_url(pod_fqdn)
            hops += 1

        if not result.success:
            raise AuthError(f"authentication failed: {result.message}")
        if not self._tenant_id and result.result.tenant_id:
            self._tenant_id = result.result.tenant_id
        self.session_id = result.result.session_id
        return result

    def advance(
        self,
        mechanism_id: str,
        action: AdvanceAction,
        answer: Optional[Answer] = None,
    ) -> AdvanceResult:
        """Advance *mechanism_id* within the current session.

        Args:
            mechanism_id: The mechanism to act on.
            action: ``Answer``, ``StartOOB`` or ``Poll``.
            answer: The user's answer. Only sent with ``Answer`` and only
                when non-empty. Multipart security questions pass a mapping
                of part uuid to answer.

        Raises:
            ConnectionError_: On transport errors or non-200 responses.
            ResponseParseError: If the body is not valid JSON.
            AuthError: If the service reports ``Success: false``.
        """
        action = AdvanceAction(action)
        payload: dict[str, Any] = {
            "SessionId": self.session_id,
            "MechanismId": mechanism_id,
            "Action": action.value,
        }
        if action is AdvanceAction.ANSWER and answer:
            payload["Answer"] = answer
        if self._tenant_id:
            payload["TenantId"] = self._tenant_id

        logger.debug("AdvanceAuthentication %s on %s", action.value, mechanism_id)
        result = self._decode(AdvanceResult, self._post(ADVANCE_PATH, payload))
        if not result.success:
            raise AuthError(f"authentication failed: {result.message}")
        return result

    def oob_status(self, session_id: str) -> OobStatusResult:
        """Fetch the state of an identity-provider login identified by *session_id*."""
        payload: dict[str, Any] = {"SessionId": session_id}
        if self._tenant_id:
            payload["TenantId"] = self._tenant_id
        return self._decode(OobStatusResult, self._post(OOB_STATUS_PATH, payload))

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-IDAP-NATIVE-CLIENT": "true",
            "OobIdPAuth": "true",
            "User-Agent": user_agent(),
        }

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self._identity_url}{path}"
        try:
            response = self._client.post(url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"failed to send HTTP request: {exc}") from exc

        if response.status_code != 200:
            raise ConnectionError_(f"received non-200 response: {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise ResponseParseError(f"failed to parse response: {exc}") from exc

    @staticmethod
    def _decode(model: type[_ModelT], data: Any) -> _ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ResponseParseError(f"failed to parse response: {exc}") from exc
