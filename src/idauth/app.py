"""Typer application and CLI entry point for idauth.

This module wires together the top-level Typer application and registers
the built-in sub-commands (``login``, ``logout``, ``oidc-callback``,
``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler, invokes the Typer app, and
maps :class:`~idauth.exceptions.IdauthError` onto its exit code. Unexpected
exceptions are written to a crash log under the data directory.

See Also:
    :mod:`idauth.config`: Configuration resolution.
    :mod:`idauth.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from idauth import __version__
from idauth.commands.config import config_app
from idauth.commands.login import login_command, logout_command, oidc_callback_command
from idauth.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED


app = typer.Typer(
    name="idauth",
    help="Log in to a federated identity service with multi-factor authentication.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("login")(login_command)
app.command("logout")(logout_command)
app.command("oidc-callback")(oidc_callback_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"idauth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send ``idauth`` log records to stderr when *verbose* is set."""
    logger = logging.getLogger("idauth")
    if not verbose:
        logger.setLevel(logging.WARNING)
        return
    logger.setLevel(logging.DEBUG)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Credential profile to use."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~idauth.output.OutputManager` and the
    ``idauth`` logger from CLI flags, and stores shared options in the
    Typer context so that sub-commands can read them via ``ctx.obj``.
    """
    from idauth.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the traceback of *exc*, the exception being handled, to a crash log."""
    from idauth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``idauth`` console script.

    :class:`~idauth.exceptions.IdauthError` instances cause a clean exit
    with the error's ``exit_code``. All other exceptions produce a crash log
    and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from idauth.exceptions import IdauthError
        from idauth.output import error

        if isinstance(exc, IdauthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
