"""Persistent store for login material obtained from the identity service.

Stores the most recent login in
``~/.local/share/idauth/credentials/<profile>.json`` (XDG) or the
platform-equivalent directory. Files are written atomically (see
:func:`idauth.config._atomic_write`) with ``0o600`` permissions applied
before any content is written, so tokens are never world-readable, even
momentarily.

Each profile maps to exactly one JSON file holding a serialised
:class:`CredentialEntry`.

See Also:
    :class:`~idauth.identity.authenticator.IdentityAuthenticator` -- calls
    :meth:`CredentialStore.store` after a successful login.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from idauth.config import _atomic_write, get_data_dir

DEFAULT_PROFILE = "default"
CREDENTIAL_FILE_MODE = 0o600


class CredentialEntry(BaseModel):
    """A single stored login.

    Attributes:
        login_id: The username the token was issued to.
        secret: The bearer token.
        issued_at: UTC time the entry was written.
        metadata: Context such as the identity URL that issued the token.
    """

    login_id: str = Field(description="Login name the secret belongs to")
    secret: str = Field(description="Bearer token issued by the identity service")
    issued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the secret was stored",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Context such as identity_url or tenant_id",
    )


def _credentials_dir() -> Path:
    """Return the credentials directory, creating it if needed."""
    path = get_data_dir() / "credentials"
    path.mkdir(parents=True, exist_ok=True)
    return path


class CredentialStore:
    """Read/write login material for a single profile.

    All writes are atomic: content is written to a temporary file in the
    same directory, fsynced, then renamed into place.

    Args:
        profile_name: The profile identifier used to derive the file name.

    Example::

        store = CredentialStore()
        store.store("alice@example.com", "eyJhbGciOi...")
        entry = store.load()
        assert entry.login_id == "alice@example.com"
        store.purge()
    """

    def __init__(self, profile_name: str = DEFAULT_PROFILE) -> None:
        self._profile_name = profile_name
        self._path = _credentials_dir() / f"{profile_name}.json"

    @property
    def path(self) -> Path:
        """The filesystem path to this profile's credential file."""
        return self._path

    def store(self, login_id: str, secret: str, **metadata: Any) -> None:
        """Persist *secret* for *login_id*, replacing any previous login."""
        self.save(CredentialEntry(login_id=login_id, secret=secret, metadata=metadata))

    def save(self, entry: CredentialEntry) -> None:
        """Persist a credential entry atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        _atomic_write(self._path, text, mode=CREDENTIAL_FILE_MODE)

    def load(self) -> Optional[CredentialEntry]:
        """Load the stored entry, or ``None`` if missing or unreadable."""
        if not self._path.is_file():
            return None
        try:
            text = self._path.read_text(encoding="utf-8")
            data = json.loads(text)
            return CredentialEntry.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def purge(self) -> bool:
        """Delete the stored login.

        Returns:
            ``True`` if a file was removed, ``False`` if there was nothing
            to remove.
        """
        if self._path.is_file():
            self._path.unlink()
            return True
        return False
