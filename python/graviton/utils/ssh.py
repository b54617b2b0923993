"""
graviton/utils/ssh.py

Builds the ssh command used to reach a deployment's bastion host, and runs
remote commands through it. Host keys are not pinned: bastions are
recreated with every instance launch, so known_hosts checking is disabled.
"""

from __future__ import annotations

import logging
import shutil
from typing import List, Optional, Sequence

from graviton.errors import PreconditionError
from graviton.models.terraform import CommandResult
from graviton.utils.async_command_runner import (
    CommandRunner,
    LineScanner,
    run_command,
    run_command_interactive,
)

logger = logging.getLogger(__name__)

SSH_USER = "ubuntu"


def ssh_base_command(
    private_key: str,
    host: str,
    *,
    ssh_binary: str = "ssh",
    user: str = SSH_USER,
) -> List[str]:
    """
    Build `ssh -t -t -i <key> -o StrictHostKeyChecking=no
    -o UserKnownHostsFile=/dev/null <user>@<host>`.

    Raises:
        PreconditionError: If the ssh binary is not on PATH or no host is known.
    """
    ssh_path = shutil.which(ssh_binary)
    if ssh_path is None:
        raise PreconditionError(f"The program {ssh_binary} must be in the path")
    if not host:
        raise PreconditionError("The deployment has no bastion host; is the instance up?")
    logger.debug("ssh to %s@%s", user, host)
    return [
        ssh_path,
        "-t",
        "-t",
        "-i",
        private_key,
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        "UserKnownHostsFile=/dev/null",
        f"{user}@{host}",
    ]


async def run_ssh_command(
    base_command: Sequence[str],
    remote_command: Sequence[str],
    *,
    runner: CommandRunner = run_command,
    scanner: Optional[LineScanner] = None,
) -> CommandResult:
    """Run `remote_command` on the host addressed by `base_command`."""
    return await runner([*base_command, *remote_command], scanner=scanner)


async def ssh_interactive_shell(base_command: Sequence[str]) -> int:
    """Open an interactive shell on the bastion, returning ssh's exit code."""
    return await run_command_interactive(list(base_command))


__all__ = ["SSH_USER", "ssh_base_command", "run_ssh_command", "ssh_interactive_shell"]
