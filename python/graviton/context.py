"""
graviton/context.py

The application context handed explicitly to plugins and loaders: settings,
console, input resolver and the coroutine used to run external commands.
"""

from __future__ import annotations

from typing import Optional

from graviton.models.settings import GravitonSettings
from graviton.utils.async_command_runner import CommandRunner, run_command
from graviton.utils.console import Console
from graviton.utils.prompt import InputResolver, TerminalInputResolver


class AppContext:
    def __init__(
        self,
        settings: Optional[GravitonSettings] = None,
        console: Optional[Console] = None,
        resolver: Optional[InputResolver] = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self.settings = settings or GravitonSettings()
        self.console = console or Console()
        self.resolver: InputResolver = resolver or TerminalInputResolver()
        self.runner = runner


__all__ = ["AppContext"]
