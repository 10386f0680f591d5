"""Persistence of login material.

- :class:`CredentialStore` -- per-profile, atomically written token file.
- :class:`CredentialEntry` -- the stored record.

Typical usage::

    from idauth.auth import CredentialStore

    store = CredentialStore()
    store.store("alice@example.com", token)
    ...
    store.purge()
"""

from idauth.auth.credential_store import CredentialEntry, CredentialStore

__all__ = ["CredentialEntry", "CredentialStore"]
