"""
graviton/errors.py

Exception hierarchy for the deployment orchestrator. Every error surfaced to
the CLI derives from GravitonError, so the entry point can report it on a
single console line and exit non-zero.
"""

from __future__ import annotations

from typing import Optional


class GravitonError(Exception):
    """Base class for all errors raised by graviton."""


class PreconditionError(GravitonError):
    """A required environment variable, external tool or input is missing."""


class DeploymentLockedError(PreconditionError):
    """Another process holds the lock on a deployment directory."""


class StagingError(GravitonError):
    """Bundled IaC templates could not be materialized on disk."""


class CommandError(GravitonError):
    """Represents a failure when executing an external command.

    Attributes:
        return_code (Optional[int]): The exit code if the process ran at all.
        last_line (str): The last line the process wrote to stdout, if any.
    """

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        last_line: str = "",
    ) -> None:
        """
        Initialize a CommandError.

        Args:
            message (str): The error message describing the command failure.
            return_code (Optional[int]): The exit code if known.
            last_line (str): The final stdout line emitted before the failure.
        """
        super().__init__(message)
        self.return_code = return_code
        self.last_line = last_line


class OutputParseError(GravitonError):
    """The IaC engine's output document is missing a key or has the wrong shape."""


class StatePersistError(GravitonError):
    """A state file could not be written, read or validated."""


class UnknownPluginError(GravitonError):
    """No plugin is registered under the requested cloud name."""


class DeploymentNotFoundError(GravitonError):
    """The named deployment has no config.json under the config root."""


class DeploymentAlreadyExistsError(GravitonError):
    """A deployment with the requested name is already configured."""


class WaitTimeoutError(GravitonError):
    """The cluster did not become healthy before the wait deadline."""


class CanceledError(GravitonError):
    """The operator interrupted an in-flight lifecycle operation."""


__all__ = [
    "GravitonError",
    "PreconditionError",
    "DeploymentLockedError",
    "StagingError",
    "CommandError",
    "OutputParseError",
    "StatePersistError",
    "UnknownPluginError",
    "DeploymentNotFoundError",
    "DeploymentAlreadyExistsError",
    "WaitTimeoutError",
    "CanceledError",
]
