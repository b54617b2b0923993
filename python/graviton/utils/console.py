"""
graviton/utils/console.py

User-facing console output: leveled lines, colored status strings and a
minimal text spinner advanced once per unit of progress.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

_GREEN = "\033[32m"
_RED = "\033[31m"
_BOLD = "\033[1m"
_RESET = "\033[0m"


class Console:
    """Prints messages whose level is at or below the configured verbosity."""

    def __init__(
        self,
        verbose: int = 1,
        stream: Optional[TextIO] = None,
        color: Optional[bool] = None,
    ) -> None:
        self.verbose = verbose
        self.stream = stream or sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color

    def log(self, level: int, message: str) -> None:
        """Print `message` on its own line if `level` <= verbosity."""
        if level <= self.verbose:
            print(message, file=self.stream, flush=True)

    def write(self, level: int, text: str) -> None:
        """Write raw text with no newline (used for carriage-return updates)."""
        if level <= self.verbose:
            self.stream.write(text)
            self.stream.flush()

    def _paint(self, code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if self.color else text

    def success(self, text: str) -> str:
        return self._paint(_GREEN, text)

    def fail(self, text: str) -> str:
        return self._paint(_RED, text)

    def highlight(self, text: str) -> str:
        return self._paint(_BOLD, text)


class Spinner:
    """A one-line progress indicator: `echo_next()` draws the next frame."""

    _FRAMES = "|/-\\"

    def __init__(self, console: Console, level: int, message: str) -> None:
        self._console = console
        self._level = level
        self._message = message
        self._index = 0
        self.ticks = 0

    def echo_next(self) -> None:
        frame = self._FRAMES[self._index % len(self._FRAMES)]
        self._index += 1
        self.ticks += 1
        self._console.write(self._level, f"\r{frame} {self._message}")

    def close(self) -> None:
        if self.ticks:
            self._console.write(self._level, "\r\n")


__all__ = ["Console", "Spinner"]
