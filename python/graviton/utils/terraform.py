"""
graviton/utils/terraform.py

Implements the Terraform commands graviton relies on (init, apply, destroy,
output), plus the parser for the `terraform output -json` document and a
helper that builds line scanners for `key = value` lines printed by apply.

Argv templates:
    <terraform> apply -var-file <variables-file>        (cwd = resource dir)
    <terraform> destroy -force -var-file <variables-file>
    <terraform> output -json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from graviton.errors import OutputParseError
from graviton.models.terraform import CommandResult, OutputValue, ScanResult
from graviton.utils.async_command_runner import (
    CommandRunner,
    LineScanner,
    ProgressTicker,
    run_command,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def parse_outputs(document: str) -> Dict[str, Any]:
    """Decode a `terraform output -json` document into its top-level mapping.

    Raises:
        OutputParseError: If the document is not a JSON object.
    """
    try:
        data = json.loads(document) if document.strip() else {}
    except json.JSONDecodeError as exc:
        raise OutputParseError(f"Terraform output is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise OutputParseError("Terraform output is not a JSON object.")
    return data


def get_output(outputs: Dict[str, Any], output_name: str, output_type: Type[T]) -> T:
    """Retrieve a typed output from a parsed `terraform output -json` mapping.

    Args:
        outputs: The mapping returned by parse_outputs.
        output_name: Which output to retrieve by name.
        output_type: The Python type the value must have (e.g. str, List[str]).

    Returns:
        The output value, validated strictly against output_type.

    Raises:
        OutputParseError: If the output is missing or its value has the wrong shape.
    """
    raw = outputs.get(output_name)
    if raw is None:
        raise OutputParseError(f"Output '{output_name}' not found in Terraform output.")
    try:
        entry = OutputValue.model_validate(raw)
    except ValidationError as exc:
        raise OutputParseError(f"Output '{output_name}' is malformed: {exc}") from exc
    try:
        return TypeAdapter(output_type).validate_python(entry.value, strict=True)
    except ValidationError as exc:
        raise OutputParseError(
            f"Output '{output_name}' does not have the expected type: {exc}"
        ) from exc


def key_value_scanner(keys: Iterable[str]) -> LineScanner:
    """Build a scanner capturing lines of the form `<key> = <value>`."""
    wanted = tuple(keys)

    def scan(line: str) -> Optional[ScanResult]:
        for key in wanted:
            if line.startswith(key) and " = " in line:
                name, value = line.split(" = ", 1)
                if name.strip() == key:
                    return ScanResult(key=key, value=value.strip().strip('"'))
        return None

    return scan


class Terraform:
    """Runs the Terraform binary in a resource working directory.

    Args:
        binary: Executable name or path of the IaC engine.
        env: Extra environment variables (e.g. cloud credentials).
        runner: Coroutine used to execute commands; run_command by default.
    """

    def __init__(
        self,
        binary: str = "terraform",
        env: Optional[Dict[str, str]] = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self.binary = binary
        self.env = env
        self.runner = runner

    def command(self, action: str, *args: str) -> List[str]:
        return [self.binary, action, *args]

    async def _run(
        self,
        argv: List[str],
        work_dir: Path,
        scanner: Optional[LineScanner] = None,
        spinner: Optional[ProgressTicker] = None,
    ) -> CommandResult:
        logger.info("Running %s in %s", " ".join(argv[:2]), work_dir)
        return await self.runner(
            argv, cwd=str(work_dir), env=self.env, scanner=scanner, spinner=spinner
        )

    async def init(
        self, work_dir: Path, spinner: Optional[ProgressTicker] = None
    ) -> None:
        """Run 'terraform init' unless the directory is already initialized."""
        if (work_dir / ".terraform").is_dir():
            return
        await self._run(self.command("init", "-input=false"), work_dir, spinner=spinner)

    async def apply(
        self,
        work_dir: Path,
        var_file: Path,
        scanner: Optional[LineScanner] = None,
        spinner: Optional[ProgressTicker] = None,
    ) -> CommandResult:
        argv = self.command("apply", "-var-file", str(var_file))
        return await self._run(argv, work_dir, scanner=scanner, spinner=spinner)

    async def destroy(
        self,
        work_dir: Path,
        var_file: Path,
        spinner: Optional[ProgressTicker] = None,
    ) -> CommandResult:
        argv = self.command("destroy", "-force", "-var-file", str(var_file))
        return await self._run(argv, work_dir, spinner=spinner)

    async def output(self, work_dir: Path) -> Dict[str, Any]:
        """Run 'terraform output -json' and return the decoded mapping."""
        result = await self._run(self.command("output", "-json"), work_dir)
        return parse_outputs(result.stdout)


__all__ = ["Terraform", "parse_outputs", "get_output", "key_value_scanner"]
