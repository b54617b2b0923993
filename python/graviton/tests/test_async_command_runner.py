"""Tests for the subprocess runner, using real /bin/sh children."""

from __future__ import annotations

import asyncio
import time
from typing import Optional
from unittest.mock import Mock

import pytest

from graviton.errors import CommandError
from graviton.models.terraform import ScanResult
from graviton.utils.async_command_runner import run_command


@pytest.mark.asyncio
async def test_lines_are_collected_in_order(tmp_path) -> None:
    result = await run_command(
        ["sh", "-c", "echo one; echo two; pwd"], cwd=str(tmp_path)
    )
    assert result.return_code == 0
    assert result.lines == ["one", "two", str(tmp_path)]
    assert result.last_line == str(tmp_path)


@pytest.mark.asyncio
async def test_scanner_captures_and_spinner_ticks_once_per_line() -> None:
    def scanner(line: str) -> Optional[ScanResult]:
        if line.startswith("load_balancer_ip = "):
            return ScanResult(key="load_balancer_ip", value=line.split(" = ", 1)[1])
        return None

    spinner = Mock()
    result = await run_command(
        ["sh", "-c", "echo noise; echo 'load_balancer_ip = 10.0.0.1'; echo done"],
        scanner=scanner,
        spinner=spinner,
    )
    assert result.capture("load_balancer_ip") == "10.0.0.1"
    assert spinner.echo_next.call_count == 3


@pytest.mark.asyncio
async def test_failing_scanner_does_not_stop_the_command() -> None:
    def scanner(line: str) -> Optional[ScanResult]:
        raise RuntimeError("bad line")

    result = await run_command(["sh", "-c", "echo a; echo b"], scanner=scanner)
    assert result.lines == ["a", "b"]
    assert result.captures == {}


@pytest.mark.asyncio
async def test_non_zero_exit_raises_with_code_and_last_line() -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command(["sh", "-c", "echo first; echo last; exit 3"])
    assert excinfo.value.return_code == 3
    assert excinfo.value.last_line == "last"


@pytest.mark.asyncio
async def test_successful_return_codes_are_honoured() -> None:
    result = await run_command(["sh", "-c", "exit 2"], successful_return_codes=(0, 2))
    assert result.return_code == 2


@pytest.mark.asyncio
async def test_missing_executable_raises_command_error() -> None:
    with pytest.raises(CommandError) as excinfo:
        await run_command(["/nonexistent/graviton-test-binary"])
    assert excinfo.value.return_code is None


@pytest.mark.asyncio
async def test_env_is_layered_over_process_environment(monkeypatch) -> None:
    monkeypatch.setenv("GRAVITON_OUTER", "outer")
    result = await run_command(
        ["sh", "-c", 'echo "$GRAVITON_OUTER $GRAVITON_INNER"'],
        env={"GRAVITON_INNER": "inner"},
    )
    assert result.lines == ["outer inner"]


@pytest.mark.asyncio
async def test_cancellation_stops_the_child_and_propagates() -> None:
    started = asyncio.Event()

    def scanner(line: str) -> Optional[ScanResult]:
        if line == "started":
            started.set()
        return None

    task = asyncio.create_task(
        run_command(["sh", "-c", "echo started; exec sleep 30"], scanner=scanner)
    )
    await asyncio.wait_for(started.wait(), timeout=10)

    begin = time.monotonic()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert time.monotonic() - begin < 10
