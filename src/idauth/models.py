"""Canonical Pydantic models shared across all idauth modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`IdentityConfig`.

**Identity service models** -- decoded from the JSON returned by the
``/Security/*`` endpoints and passed between the negotiation components:
    :class:`MechanismKind`, :class:`Mechanism`, :class:`Challenge`,
    :class:`StartResult`, :class:`AdvanceResult`, :class:`OobStatusResult`,
    :class:`ExternalAuthState`, plus the callback listener's
    :class:`RedirectTarget` and :class:`CallbackResult`.

The identity service is inconsistent about the casing of a few envelope keys
(``success`` vs ``Success``), so envelope fields accept both spellings. JSON
``null`` values are dropped before validation so that the field defaults
apply, which keeps the models tolerant of sparse responses.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


SUMMARY_LOGIN_SUCCESS = "LoginSuccess"
SUMMARY_START_NEXT_CHALLENGE = "StartNextChallenge"
TERMINAL_SUMMARIES = frozenset({SUMMARY_LOGIN_SUCCESS, SUMMARY_START_NEXT_CHALLENGE})


def _alias(name: str) -> AliasChoices:
    """Accept both ``PascalCase`` and ``camelCase`` spellings of a key."""
    return AliasChoices(name, name[0].lower() + name[1:])


# --- Configuration ---


class IdentityConfig(BaseModel):
    """Connection settings for the identity service.

    Persisted in ``config.json`` under the configuration directory and
    overridable from environment variables and CLI flags (see
    :func:`idauth.config.resolve_config`).

    Example::

        IdentityConfig(
            identity_url="https://abc1234.id.example.com",
            username="alice@example.com",
        )
    """

    identity_url: Optional[str] = Field(
        default=None, description="Base URL of the identity service"
    )
    tenant_id: Optional[str] = Field(
        default=None, description="Tenant id sent with every request, if known"
    )
    username: Optional[str] = Field(
        default=None, description="Default login name"
    )
    timeout: float = Field(
        default=300.0,
        gt=0,
        description="Seconds to wait for out-of-band factors and browser callbacks",
    )
    request_timeout: float = Field(
        default=30.0, gt=0, description="Per-request HTTP timeout in seconds"
    )
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")


# --- Identity service payloads ---


class _IdentityModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class MechanismKind(str, enum.Enum):
    """The closed set of authentication factors the client knows how to drive.

    Values are the wire names used in a mechanism's ``Name`` field.
    """

    SECURITY_QUESTION = "SQ"
    PASSWORD = "UP"
    SMS = "SMS"
    EMAIL = "EMAIL"
    OATH_OTP = "OATH"
    MOBILE_APP = "OTP"
    FIDO2 = "U2F"
    QR_CODE = "QR"
    PHONE_CALL = "PF"

    @classmethod
    def parse(cls, name: str) -> Optional[MechanismKind]:
        """Map a wire name to a kind, case-insensitively. Unknown names give ``None``."""
        try:
            return cls(name.strip().upper())
        except ValueError:
            return None


class MechanismPart(_IdentityModel):
    """One question of a multipart security-question mechanism."""

    uuid: str = Field(default="", alias="Uuid")
    question_text: str = Field(default="", alias="QuestionText")
    prompt_mech_chosen: str = Field(default="", alias="PromptMechChosen")


class MultipartMechanism(_IdentityModel):
    prompt_select_mech: str = Field(default="", alias="PromptSelectMech")
    mechanism_parts: list[MechanismPart] = Field(
        default_factory=list, alias="MechanismParts"
    )


class Mechanism(_IdentityModel):
    """One authentication factor offered by a challenge.

    Attributes:
        mechanism_id: Opaque id echoed back in ``AdvanceAuthentication``.
        name: Wire kind tag such as ``"UP"`` or ``"SMS"``.
        prompt_select_mech: Label for choosing this mechanism from a list.
        prompt_mech_chosen: Question shown once the mechanism is chosen.
        enrolled: Whether the user has set this factor up.
        image: ``data:image/png;base64,...`` payload for QR mechanisms.
        multipart_mechanism: Sub-questions for multipart security questions.
    """

    mechanism_id: str = Field(default="", alias="MechanismId")
    name: str = Field(default="", alias="Name")
    answer_type: str = Field(default="", alias="AnswerType")
    prompt_select_mech: str = Field(default="", alias="PromptSelectMech")
    prompt_mech_chosen: str = Field(default="", alias="PromptMechChosen")
    enrolled: bool = Field(default=False, alias="Enrolled")
    image: str = Field(default="", alias="Image")
    multipart_mechanism: Optional[MultipartMechanism] = Field(
        default=None, alias="MultipartMechanism"
    )

    @property
    def kind(self) -> Optional[MechanismKind]:
        return MechanismKind.parse(self.name)


class Challenge(_IdentityModel):
    mechanisms: list[Mechanism] = Field(default_factory=list, alias="Mechanisms")


class StartDetails(_IdentityModel):
    """The ``Result`` object of a ``StartAuthentication`` response."""

    session_id: str = Field(default="", alias="SessionId")
    tenant_id: str = Field(default="", alias="TenantId")
    challenges: list[Challenge] = Field(default_factory=list, alias="Challenges")
    pod_fqdn: str = Field(default="", alias="PodFQDN")
    idp_redirect_short_url: str = Field(default="", alias="IdpRedirectShortUrl")
    idp_redirect_url: str = Field(default="", alias="IdpRedirectUrl")
    idp_login_session_id: str = Field(default="", alias="IdpLoginSessionId")
    idp_oob_auth_pin_required: bool = Field(
        default=False, alias="IdpOobAuthPinRequired"
    )


class StartResult(_IdentityModel):
    """Decoded ``StartAuthentication`` response envelope."""

    success: bool = Field(default=False, validation_alias=_alias("Success"))
    message: str = Field(default="", validation_alias=_alias("Message"))
    result: StartDetails = Field(
        default_factory=StartDetails, validation_alias=_alias("Result")
    )

    @property
    def external_auth(self) -> Optional[ExternalAuthState]:
        """The identity-provider redirect in progress, if the service asked for one."""
        details = self.result
        if details.idp_redirect_short_url and details.idp_login_session_id:
            return ExternalAuthState(
                redirect_url=details.idp_redirect_short_url,
                session_id=details.idp_login_session_id,
                pin_required=details.idp_oob_auth_pin_required,
            )
        return None


class AdvanceDetails(_IdentityModel):
    """The ``Result`` object of an ``AdvanceAuthentication`` response."""

    summary: str = Field(default="", alias="Summary")
    token: str = Field(default="", alias="Token")
    generated_auth_value: str = Field(default="", alias="GeneratedAuthValue")


class AdvanceResult(_IdentityModel):
    """Decoded ``AdvanceAuthentication`` response envelope."""

    success: bool = Field(default=False, validation_alias=_alias("Success"))
    message: str = Field(default="", validation_alias=_alias("Message"))
    result: AdvanceDetails = Field(
        default_factory=AdvanceDetails, validation_alias=_alias("Result")
    )

    @property
    def summary(self) -> str:
        return self.result.summary

    @property
    def token(self) -> str:
        return self.result.token

    @property
    def is_terminal(self) -> bool:
        """True once the service reports the current challenge as finished."""
        return self.result.summary in TERMINAL_SUMMARIES


class OobStatusDetails(_IdentityModel):
    state: str = Field(default="", alias="State")
    token: str = Field(default="", alias="Token")


class OobStatusResult(_IdentityModel):
    """Decoded ``OobAuthStatus`` response envelope."""

    result: OobStatusDetails = Field(
        default_factory=OobStatusDetails, validation_alias=_alias("Result")
    )

    @property
    def state(self) -> str:
        return self.result.state.lower()

    @property
    def token(self) -> str:
        return self.result.token


class ExternalAuthState(BaseModel):
    """An identity-provider redirect login in progress."""

    redirect_url: str
    session_id: str
    pin_required: bool = False


# --- Callback listener ---


class RedirectTarget(BaseModel):
    """Where the local callback listener binds, parsed from a ``redirect_uri``."""

    model_config = ConfigDict(frozen=True)

    scheme: str
    host: str
    port: int
    path: str

    @property
    def is_ipv6(self) -> bool:
        return ":" in self.host


class CallbackResult(BaseModel):
    """The authorization code and CSRF state captured from a redirect."""

    model_config = ConfigDict(frozen=True)

    code: str
    state: str
