"""Terminal implementations of the interaction interfaces.

:class:`ConsolePrompt` reads answers from stdin. A cancellable question must
notice its cancel event while the user is still typing, so the read happens
in short slices:

- on POSIX, :func:`select.select` waits for stdin to become readable;
- on a Windows console, :mod:`msvcrt` is polled for keystrokes;
- anything else (pipes on Windows, streams without a file descriptor) is
  read on a daemon thread while the caller waits on the cancel event.

Masked questions use :mod:`getpass`, and choices are numbered lists read with
:func:`typer.prompt`.

:class:`SystemBrowser` delegates to :mod:`webbrowser`.
"""

from __future__ import annotations

import getpass
import logging
import os
import queue
import select
import sys
import threading
import webbrowser
from typing import Optional

import typer

from idauth.exceptions import InvalidUsageError
from idauth.interaction.base import BrowserLauncher, PromptGateway
from idauth.output import get_output

logger = logging.getLogger(__name__)

_LINE_ENDINGS = ("\r", "\n")
_BACKSPACE = "\b"


def _can_poll_stdin() -> bool:
    # select() only supports sockets on Windows
    if os.name == "nt":
        return False
    try:
        sys.stdin.fileno()
    except (AttributeError, OSError, ValueError):
        return False
    return True


def _can_poll_console() -> bool:
    return os.name == "nt" and sys.stdin.isatty()


def _select_line(cancel: threading.Event, interval: float) -> Optional[str]:
    while not cancel.is_set():
        ready, _, _ = select.select([sys.stdin], [], [], interval)
        if ready:
            return sys.stdin.readline()
    return None


def _console_line(cancel: threading.Event, interval: float) -> Optional[str]:
    import msvcrt

    chars: list[str] = []
    while not cancel.is_set():
        if not msvcrt.kbhit():
            cancel.wait(interval)
            continue
        char = msvcrt.getwche()
        if char in _LINE_ENDINGS:
            print(file=sys.stderr, flush=True)
            return "".join(chars)
        if char == _BACKSPACE:
            if chars:
                chars.pop()
                msvcrt.putwch(" ")
                msvcrt.putwch(_BACKSPACE)
            continue
        chars.append(char)
    return None


def _background_line(cancel: threading.Event, interval: float) -> Optional[str]:
    stream = sys.stdin
    lines: queue.Queue[str] = queue.Queue(maxsize=1)
    reader = threading.Thread(
        target=lambda: lines.put(stream.readline()),
        name="idauth-stdin",
        daemon=True,
    )
    reader.start()
    while not cancel.is_set():
        try:
            return lines.get(timeout=interval)
        except queue.Empty:
            continue
    return None


class ConsolePrompt(PromptGateway):
    """Ask questions on the controlling terminal.

    Args:
        poll_interval: How often, in seconds, a cancellable question checks
            its cancel event while waiting for input.
    """

    def __init__(self, poll_interval: float = 0.1) -> None:
        self._poll_interval = poll_interval

    def ask(
        self,
        label: str,
        masked: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        if masked:
            if not sys.stdin.isatty():
                raise InvalidUsageError(
                    "Secrets cannot be requested in non-interactive mode"
                )
            return getpass.getpass(f"{label} ").strip()

        output = get_output()
        output.prompt_label(label)

        if cancel is None:
            return sys.stdin.readline().strip()

        if _can_poll_stdin():
            line = _select_line(cancel, self._poll_interval)
        elif _can_poll_console():
            line = _console_line(cancel, self._poll_interval)
        else:
            line = _background_line(cancel, self._poll_interval)
        if line is not None:
            return line.strip()

        # Finish the dangling prompt line before anything else is printed
        print(file=sys.stderr, flush=True)
        logger.debug("Prompt %r cancelled", label)
        return ""

    def choose(self, label: str, options: list[str]) -> str:
        if not options:
            raise InvalidUsageError(f"{label}: nothing to choose from")

        output = get_output()
        output.info(label)
        for i, option in enumerate(options, 1):
            output.info(f"  {i}. {option}")

        choice = typer.prompt("Select number", default="1", err=True)
        try:
            idx = int(choice) - 1
        except ValueError:
            raise InvalidUsageError(f"Invalid selection: {choice}") from None
        if idx < 0 or idx >= len(options):
            raise InvalidUsageError(f"Selection must be between 1 and {len(options)}.")
        return options[idx]


class SystemBrowser(BrowserLauncher):
    """Open URLs with the platform's default browser."""

    def open(self, url: str) -> bool:
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as exc:
            logger.debug("Browser launch failed: %s", exc)
            opened = False
        if not opened:
            get_output().warning(
                f"Could not open a browser. Please open the following URL manually:\n{url}"
            )
        return opened
