"""Login commands -- obtain, discard and capture credentials.

* ``idauth login`` -- negotiate MFA with the identity service and store the
  issued token.
* ``idauth logout`` -- remove the stored token.
* ``idauth oidc-callback`` -- run the loopback listener for a redirect-based
  OIDC login and print the authorization code.

Typical workflow::

    idauth config set identity_url https://abc1234.id.example.com
    idauth login -u alice@example.com
    idauth logout
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

import typer

from idauth.output import debug, info, print_data, success

if TYPE_CHECKING:
    from idauth.identity import IdentityClient
    from idauth.interaction import BrowserLauncher, PromptGateway
    from idauth.models import IdentityConfig


def _build_client(config: IdentityConfig) -> IdentityClient:
    """Create the identity client for *config* (replaced in tests)."""
    from idauth.identity import IdentityClient

    return IdentityClient(
        config.identity_url,
        tenant_id=config.tenant_id,
        timeout=config.request_timeout,
        verify=config.verify_ssl,
    )


def _profile(ctx: typer.Context) -> str:
    return (ctx.obj or {}).get("profile") or "default"


def _build_prompts() -> PromptGateway:
    from idauth.interaction import ConsolePrompt

    return ConsolePrompt()


def _build_browser() -> BrowserLauncher:
    from idauth.interaction import SystemBrowser

    return SystemBrowser()


def login_command(
    ctx: typer.Context,
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Login name (default: config or prompt)."
    ),
    identity_url: Optional[str] = typer.Option(
        None, "--identity-url", help="Identity service URL."
    ),
    tenant_id: Optional[str] = typer.Option(
        None, "--tenant-id", help="Tenant id sent with every request."
    ),
    password_source: Optional[str] = typer.Option(
        None,
        "--password-source",
        help="Where to read the password: env:VAR, file:/path or 'prompt'.",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for out-of-band factors."
    ),
    show_token: bool = typer.Option(
        False, "--show-token", help="Print the issued token to stdout."
    ),
) -> None:
    """Log in to the identity service and store the issued token.

    Settings not given as options come from the environment and the config
    file (see ``idauth config show``). The password is asked for only if the
    service requests one and no ``--password-source`` was given.

    Raises:
        ConfigError: If no identity URL is configured.
        IdauthError: If the login fails (exit code depends on the failure).

    Example::

        idauth login -u alice@example.com
        idauth login --password-source env:IDAUTH_PASSWORD --show-token
    """
    from idauth.auth import CredentialStore
    from idauth.config import resolve_config, resolve_credential
    from idauth.exceptions import ConfigError
    from idauth.identity import IdentityAuthenticator

    config = resolve_config(
        cli_identity_url=identity_url,
        cli_tenant_id=tenant_id,
        cli_username=username,
        cli_timeout=timeout,
    )
    if not config.identity_url:
        raise ConfigError(
            "No identity URL configured. Use --identity-url, IDAUTH_IDENTITY_URL "
            "or 'idauth config set identity_url <url>'."
        )

    login_id = config.username or typer.prompt("Username", err=True)
    password = resolve_credential(password_source) if password_source else ""
    store = CredentialStore(_profile(ctx))

    debug(f"Logging in to {config.identity_url} as {login_id}")
    with _build_client(config) as client:
        authenticator = IdentityAuthenticator(
            client,
            _build_prompts(),
            _build_browser(),
            credential_store=store,
            timeout=config.timeout,
        )
        token = authenticator.get_token(login_id, password)

    success(f"Logged in as {login_id}.")
    if show_token:
        print_data(token)


def logout_command(ctx: typer.Context) -> None:
    """Remove the stored token for the active profile.

    Example::

        idauth logout
    """
    from idauth.auth import CredentialStore

    store = CredentialStore(_profile(ctx))
    if store.purge():
        success("Logged out.")
    else:
        info("Not logged in.")


def oidc_callback_command(
    auth_url: str = typer.Argument(
        help="Authorization URL whose redirect_uri points at this machine."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Seconds to wait for the browser redirect."
    ),
) -> None:
    """Capture an OIDC authorization code through a local listener.

    Starts a listener on the loopback address named by the URL's
    ``redirect_uri`` (which must end in ``/callback``), opens the browser,
    and prints the code the provider redirects back with.

    Example::

        idauth oidc-callback "https://idp.example.com/authorize?client_id=cli&redirect_uri=http://127.0.0.1:8888/callback"
    """
    from idauth.callback import capture_authorization_code
    from idauth.config import resolve_config

    config = resolve_config(cli_timeout=timeout)
    result = capture_authorization_code(auth_url, _build_browser(), timeout=config.timeout)
    success("Authorization code received.")
    print_data(result.code)
