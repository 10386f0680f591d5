"""idauth -- multi-factor login client for federated identity services.

This package exchanges a username (and, when the service asks for one, a
password) for a bearer token by negotiating the identity service's challenge
sequence: password, SMS, email, one-time passcodes, push approvals, QR codes,
phone calls and identity-provider redirects. It also ships a single-use local
listener that captures the authorization code of a browser-based OIDC login.

Typical workflow::

    idauth config set identity_url https://tenant.id.example.com
    idauth login --username alice@example.com

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models for configuration and identity service payloads.
    config: XDG-aware configuration loading and credential source resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stderr diagnostics with Rich support.
    identity: The challenge negotiation client.
    callback: The local OIDC redirect listener.
"""

__version__ = "0.3.0"
