"""Loopback listener for redirect-based OIDC logins."""

from idauth.callback.server import (
    capture_authorization_code,
    generate_state,
    parse_redirect_target,
)

__all__ = ["capture_authorization_code", "generate_state", "parse_redirect_target"]
