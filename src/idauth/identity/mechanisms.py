"""Mechanism classification and selection.

Maps the wire names of the identity service's authentication factors onto
:class:`~idauth.models.MechanismKind`, supplies the default labels and
questions used when the service sends none, and asks the user to pick a
mechanism when a challenge offers more than one.
"""

from __future__ import annotations

import logging
from typing import Optional

from idauth.exceptions import ChallengeError
from idauth.interaction.base import PromptGateway
from idauth.models import Mechanism, MechanismKind

logger = logging.getLogger(__name__)

CHOOSE_TITLE = "Select MFA Mechanism"

ANSWERABLE_KINDS = frozenset(
    {
        MechanismKind.SECURITY_QUESTION,
        MechanismKind.PASSWORD,
        MechanismKind.SMS,
        MechanismKind.EMAIL,
        MechanismKind.OATH_OTP,
        MechanismKind.MOBILE_APP,
        MechanismKind.FIDO2,
    }
)

_SELECT_LABELS: dict[MechanismKind, str] = {
    MechanismKind.SECURITY_QUESTION: "Security Question",
    MechanismKind.PASSWORD: "Password",
    MechanismKind.SMS: "SMS",
    MechanismKind.EMAIL: "Email",
    MechanismKind.OATH_OTP: "OATH One-Time Passcode",
    MechanismKind.MOBILE_APP: "Identity Mobile App",
    MechanismKind.FIDO2: "FIDO2 Security Key",
    MechanismKind.QR_CODE: "QR Code",
    MechanismKind.PHONE_CALL: "Phone Call",
}

_QUESTIONS: dict[MechanismKind, str] = {
    MechanismKind.SECURITY_QUESTION: "Please answer your security question",
    MechanismKind.PASSWORD: "Please enter your password",
    MechanismKind.SMS: "Please enter the code sent to your phone via SMS",
    MechanismKind.EMAIL: "Please enter the code sent to your email",
    MechanismKind.OATH_OTP: "Please enter your OATH one-time passcode",
    MechanismKind.MOBILE_APP: "Please enter the code from your identity mobile app",
    MechanismKind.FIDO2: "Please complete the FIDO2 security key challenge",
}

_DEFAULT_QUESTION = (
    "Please provide the required input for the selected authentication mechanism"
)


def is_answerable(kind: Optional[MechanismKind]) -> bool:
    """Whether *kind* can be satisfied by typed input.

    Phone calls and QR codes are purely out-of-band; unknown kinds are not
    answerable either.
    """
    return kind in ANSWERABLE_KINDS


def select_label(mechanism: Mechanism) -> str:
    """The label shown for *mechanism* in a choice list."""
    if mechanism.prompt_select_mech:
        return mechanism.prompt_select_mech
    kind = mechanism.kind
    if kind is None:
        return mechanism.name
    return _SELECT_LABELS[kind]


def prompt_for(mechanism: Mechanism) -> str:
    """The question asked once *mechanism* has been chosen."""
    if mechanism.prompt_mech_chosen:
        return mechanism.prompt_mech_chosen
    kind = mechanism.kind
    if kind is None:
        return _DEFAULT_QUESTION
    return _QUESTIONS.get(kind, _DEFAULT_QUESTION)


def choose(mechanisms: list[Mechanism], prompts: PromptGateway) -> Mechanism:
    """Pick the mechanism to use for one challenge.

    A single mechanism is returned as-is, without asking. Otherwise the user
    chooses among the enrolled, named mechanisms.

    Args:
        mechanisms: The challenge's mechanisms, in service order.
        prompts: Used to present the choice list.

    Raises:
        ChallengeError: If *mechanisms* is empty or none of them is enrolled,
            or if the chosen label matches no candidate.
    """
    if not mechanisms:
        raise ChallengeError("no mechanisms available for authentication")
    if len(mechanisms) == 1:
        return mechanisms[0]

    candidates = [m for m in mechanisms if m.enrolled and m.name]
    if not candidates:
        raise ChallengeError("no enrolled mechanisms available for authentication")

    labels = [select_label(m) for m in candidates]
    chosen = prompts.choose(CHOOSE_TITLE, labels)
    for label, mechanism in zip(labels, candidates):
        if label == chosen:
            logger.debug("Chose mechanism %s (%s)", mechanism.name, mechanism.mechanism_id)
            return mechanism
    raise ChallengeError(f"selected mechanism not found: {chosen}")
