"""Config commands -- view and modify the identity configuration.

Provides the ``idauth config`` sub-command group. Settings are persisted in
``config.json`` under the idauth config directory and supply the defaults
for ``idauth login`` (identity URL, tenant, username, timeouts).
"""

from __future__ import annotations

import json

import typer

from idauth.output import info, print_data, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Prints the config file path to stderr and the configuration, with
    environment overrides applied, as JSON to stdout.

    Example::

        idauth config show
    """
    from idauth.config import config_path, resolve_config

    config = resolve_config()
    info(f"Config file: {config_path()}")
    print_data(json.dumps(config.model_dump(mode="json"), indent=2))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key, e.g. 'identity_url' or 'timeout'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    The value is validated against the field's type before saving, so
    ``idauth config set timeout soon`` fails without touching the file.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.

    Example::

        idauth config set identity_url https://abc1234.id.example.com
        idauth config set timeout 120
    """
    from idauth.config import update_config

    config = update_config(key, value)
    success(f"Set {key} = {getattr(config, key)}")
