"""
graviton/utils/prompt.py

Input resolvers used to fill in missing mandatory values when a new
deployment is created. Construction code only sees the InputResolver
protocol, so tests can script the answers.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from graviton.errors import PreconditionError


class InputResolver(Protocol):
    def ask_string(self, prompt: str, default: str = "") -> str:
        """Return the answer to `prompt`, or `default` if none is given."""
        ...


class TerminalInputResolver:
    """Reads answers from the terminal; an empty answer yields the default."""

    def ask_string(self, prompt: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        try:
            answer = input(f"{prompt}{suffix}: ").strip()
        except EOFError as exc:
            raise PreconditionError(
                f"No answer for '{prompt}': standard input is closed"
            ) from exc
        return answer or default


class ScriptedInputResolver:
    """Answers prompts from a fixed mapping and records what was asked."""

    def __init__(self, answers: Optional[Dict[str, str]] = None) -> None:
        self.answers = dict(answers or {})
        self.asked: list[str] = []

    def ask_string(self, prompt: str, default: str = "") -> str:
        self.asked.append(prompt)
        return self.answers.get(prompt, default)


__all__ = ["InputResolver", "TerminalInputResolver", "ScriptedInputResolver"]
