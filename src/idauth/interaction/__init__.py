"""User interaction collaborators: prompts and browser launching.

Exports:
    :class:`PromptGateway`, :class:`BrowserLauncher` -- the interfaces.
    :class:`ConsolePrompt`, :class:`SystemBrowser` -- terminal implementations.
"""

from idauth.interaction.base import BrowserLauncher, PromptGateway
from idauth.interaction.console import ConsolePrompt, SystemBrowser

__all__ = ["BrowserLauncher", "ConsolePrompt", "PromptGateway", "SystemBrowser"]
