"""Abstract interfaces for the user-facing collaborators of a login.

The negotiation components never talk to the terminal or the desktop
directly. They go through two narrow interfaces so that tests can script the
user and headless environments can substitute their own behaviour:

- :class:`PromptGateway` -- asks the user a question and returns free text,
  a masked secret, or a choice from a list.
- :class:`BrowserLauncher` -- opens a URL in the user's browser.

See Also:
    :mod:`idauth.interaction.console` for the terminal implementations.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Optional


class PromptGateway(ABC):
    """Asks the user for input.

    Implementations must honour the optional *cancel* event passed to
    :meth:`ask`: once it is set, the prompt must return ``""`` at its next
    polling point and leave the terminal in a usable state. An empty return
    value always means "no answer" (cancelled or left blank) and is never
    an error.
    """

    @abstractmethod
    def ask(
        self,
        label: str,
        masked: bool = False,
        cancel: Optional[threading.Event] = None,
    ) -> str:
        """Ask a free-text question.

        Args:
            label: The question to display.
            masked: Do not echo the input (passwords, PINs).
            cancel: Event that aborts the prompt when set.

        Returns:
            The stripped answer, or ``""`` when cancelled or left blank.
        """
        ...

    @abstractmethod
    def choose(self, label: str, options: list[str]) -> str:
        """Ask the user to pick one of *options* and return the chosen label."""
        ...


class BrowserLauncher(ABC):
    """Opens URLs in the user's browser."""

    @abstractmethod
    def open(self, url: str) -> bool:
        """Open *url*.

        Returns:
            ``True`` if a browser was launched. ``False`` means the user has
            to open the URL manually; callers treat it as non-fatal.
        """
        ...
