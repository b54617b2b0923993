"""
graviton/utils/async_command_runner.py

Provides the asynchronous command runner used for every external tool.

Stdout is read line by line until end-of-stream. Each line is logged at DEBUG,
recorded in the returned CommandResult, handed to an optional line scanner
(whose ScanResult captures are collected by key) and advances an optional
spinner. Stderr and stdin are inherited from the calling process.

If the awaiting task is cancelled (e.g. Ctrl-C under asyncio.run), the child
is terminated, then killed after a grace period, and always reaped before
CancelledError propagates.

Usage example:
    from graviton.utils.async_command_runner import run_command, CommandError

    def scanner(line: str) -> Optional[ScanResult]:
        if line.startswith("load_balancer_ip = "):
            return ScanResult(key="load_balancer_ip", value=line.split(" = ", 1)[1])
        return None

    try:
        result = await run_command(["terraform", "apply"], cwd=work_dir, scanner=scanner)
        print(result.captures)
    except CommandError as err:
        print(f"Command failed: {err} (last line: {err.last_line})")
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from graviton.errors import CommandError
from graviton.models.terraform import CommandResult, ScanResult

logger = logging.getLogger(__name__)

LineScanner = Callable[[str], Optional[ScanResult]]


class ProgressTicker(Protocol):
    def echo_next(self) -> None: ...


CommandRunner = Callable[..., Awaitable[CommandResult]]


def _build_env(env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
    if env is None:
        return None
    proc_env = os.environ.copy()
    proc_env.update(env)
    return proc_env


async def _stop_process(
    proc: asyncio.subprocess.Process, terminate_timeout: float
) -> None:
    """Terminate `proc`, escalate to kill after `terminate_timeout`, and reap it."""
    if proc.returncode is not None:
        return
    logger.debug("Terminating pid %s", proc.pid)
    try:
        proc.terminate()
        await asyncio.wait_for(proc.wait(), timeout=terminate_timeout)
    except ProcessLookupError:
        pass
    except asyncio.TimeoutError:
        logger.warning("pid %s ignored SIGTERM, killing it", proc.pid)
        proc.kill()
        await proc.wait()


async def run_command(
    command: Sequence[str],
    *,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    scanner: Optional[LineScanner] = None,
    spinner: Optional[ProgressTicker] = None,
    successful_return_codes: Sequence[int] = (0,),
    terminate_timeout: float = 10.0,
) -> CommandResult:
    """
    Executes a local command in a subprocess, streaming its stdout.

    Args:
        command (Sequence[str]):
            The executable and its arguments.
        cwd (Optional[str]):
            Working directory for the command.
        env (Optional[Dict[str, str]]):
            Additional environment variables layered over os.environ.
        scanner (Optional[LineScanner]):
            Called once per stdout line; a returned ScanResult is stored in
            CommandResult.captures under its key.
        spinner (Optional[ProgressTicker]):
            Advanced once per stdout line.
        successful_return_codes (Sequence[int]):
            Which return codes won't be treated as errors. Defaults to (0,).
        terminate_timeout (float):
            Seconds to wait after SIGTERM before SIGKILL on cancellation.

    Returns:
        CommandResult: Return code, stdout lines and scanner captures.

    Raises:
        CommandError: If the command cannot be spawned or exits with a code
            not in `successful_return_codes`.
        asyncio.CancelledError: If the awaiting task is cancelled; the child
            has been stopped and reaped by then.
    """
    argv: List[str] = list(command)
    logger.debug("Running %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=_build_env(env),
        )
    except OSError as exc:
        raise CommandError(f"Could not start {argv[0]}: {exc}") from exc

    result = CommandResult()
    try:
        assert proc.stdout is not None
        async for raw in proc.stdout:
            line = raw.decode(errors="replace").rstrip("\r\n")
            logger.debug(line)
            result.lines.append(line)
            if scanner is not None:
                try:
                    scanned = scanner(line)
                except Exception as exc:
                    # the child keeps running; a bad line only loses its capture
                    logger.warning("Line scanner failed on %r: %s", line, exc)
                    scanned = None
                if scanned is not None:
                    result.captures[scanned.key] = scanned.value
            if spinner is not None:
                spinner.echo_next()
        return_code = await proc.wait()
    except asyncio.CancelledError:
        await _stop_process(proc, terminate_timeout)
        raise

    result.return_code = return_code
    if return_code not in successful_return_codes:
        raise CommandError(
            f"Command {argv[0]} {' '.join(argv[1:2])} failed with return code {return_code}.",
            return_code,
            result.last_line,
        )
    return result


async def run_command_interactive(command: Sequence[str]) -> int:
    """
    Launches the given command attached to the local stdin/stdout/stderr and
    returns its exit code. The user must be on a real TTY for it to work well.

    Raises:
        CommandError: If the command cannot be spawned.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *command, stdin=None, stdout=None, stderr=None
        )
    except OSError as exc:
        raise CommandError(f"Could not start {command[0]}: {exc}") from exc
    try:
        return await proc.wait()
    except asyncio.CancelledError:
        await _stop_process(proc, terminate_timeout=5.0)
        raise


__all__ = [
    "CommandError",
    "CommandRunner",
    "LineScanner",
    "ProgressTicker",
    "run_command",
    "run_command_interactive",
]
