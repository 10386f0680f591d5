"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for idauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.idauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Identity config** -- A single :class:`~idauth.models.IdentityConfig`
  JSON file storing the identity service URL, tenant, default username and
  timeouts.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables and the config file into the effective settings.
* **Credential resolution** -- :func:`resolve_credential` reads a password
  from an env var, a file, or an interactive prompt.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from idauth.exceptions import ConfigError
from idauth.models import IdentityConfig

_APP_NAME = "idauth"
_CONFIG_FILENAME = "config.json"

ENV_IDENTITY_URL = "IDAUTH_IDENTITY_URL"
ENV_TENANT_ID = "IDAUTH_TENANT_ID"
ENV_USERNAME = "IDAUTH_USERNAME"
ENV_TIMEOUT = "IDAUTH_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/idauth/`` (default ``~/.config/idauth/``).
    On macOS/Windows: ``~/.idauth/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (stored credentials), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/idauth/`` (default ``~/.local/share/idauth/``).
    On macOS/Windows: ``~/.idauth/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up. When *mode* is given it is applied to the temp
    file before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Identity config ---


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_config() -> IdentityConfig:
    """Load the identity configuration from the config directory.

    Returns:
        The deserialised :class:`~idauth.models.IdentityConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return IdentityConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return IdentityConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: IdentityConfig) -> None:
    """Persist the identity configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


def update_config(key: str, value: str) -> IdentityConfig:
    """Set a single config key from its string form and save the result.

    Args:
        key: A field name of :class:`~idauth.models.IdentityConfig`.
        value: The new value; coerced by Pydantic validation.

    Returns:
        The saved configuration.

    Raises:
        ConfigError: If *key* is unknown or *value* fails validation.
    """
    if key not in IdentityConfig.model_fields:
        known = ", ".join(sorted(IdentityConfig.model_fields))
        raise ConfigError(f"Unknown config key '{key}'. Known keys: {known}")
    data: dict[str, Any] = load_config().model_dump()
    data[key] = value
    try:
        config = IdentityConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for '{key}': {exc}") from exc
    save_config(config)
    return config


# --- Precedence resolution ---


def resolve_config(
    cli_identity_url: Optional[str] = None,
    cli_tenant_id: Optional[str] = None,
    cli_username: Optional[str] = None,
    cli_timeout: Optional[float] = None,
) -> IdentityConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags
        2. Environment variables (``IDAUTH_IDENTITY_URL``, ``IDAUTH_TENANT_ID``,
           ``IDAUTH_USERNAME``, ``IDAUTH_TIMEOUT``)
        3. Config file (``~/.config/idauth/config.json``)
        4. Defaults

    Returns:
        The effective :class:`~idauth.models.IdentityConfig`.

    Raises:
        ConfigError: If the config file is invalid or ``IDAUTH_TIMEOUT`` is
            not a positive number.
    """
    config = load_config()

    overrides: dict[str, Any] = {}
    env_map = {
        "identity_url": ENV_IDENTITY_URL,
        "tenant_id": ENV_TENANT_ID,
        "username": ENV_USERNAME,
        "timeout": ENV_TIMEOUT,
    }
    for field, var in env_map.items():
        value = os.environ.get(var)
        if value:
            overrides[field] = value

    cli_values = {
        "identity_url": cli_identity_url,
        "tenant_id": cli_tenant_id,
        "username": cli_username,
        "timeout": cli_timeout,
    }
    overrides.update({k: v for k, v in cli_values.items() if v is not None})

    if not overrides:
        return config
    try:
        return IdentityConfig.model_validate({**config.model_dump(), **overrides})
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration override: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts the user without echo (requires a TTY)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
