"""
graviton/models/terraform.py

Pydantic models for documents exchanged with Terraform:
 - OutputValue: one entry of the `terraform output -json` mapping.
 - TerraformVariables: base class for state persisted as a variables file.
 - ScanResult / CommandResult: what the subprocess runner hands back.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class OutputValue(BaseModel):
    """Represents a Terraform output value as printed by 'terraform output -json'.

    Attributes:
        sensitive: True if the output is marked sensitive.
        value: Arbitrary data from the Terraform output.
        type: Optional Terraform type hint (string, list, etc.).
    """

    sensitive: bool = False
    value: Any
    type: Union[str, List[Any], None] = None


class TerraformVariables(BaseModel):
    """Base class for state that is persisted as a Terraform variables file.

    Subclasses declare string fields whose aliases are the Terraform variable
    names. Empty values are left out of the file and read back as "".
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_variables(self) -> Dict[str, str]:
        """Flat mapping of Terraform variable name to string value."""
        return {
            name: value
            for name, value in self.model_dump(by_alias=True).items()
            if value != ""
        }


class ScanResult(BaseModel):
    """A key/value pair captured from one line of command output."""

    key: str
    value: str


class CommandResult(BaseModel):
    """The outcome of a completed command.

    Attributes:
        return_code: Process exit status.
        lines: Every stdout line, newline stripped, in order.
        captures: Values captured by the line scanner, keyed by ScanResult.key.
    """

    return_code: int = 0
    lines: List[str] = Field(default_factory=list)
    captures: Dict[str, str] = Field(default_factory=dict)

    @property
    def last_line(self) -> str:
        return self.lines[-1] if self.lines else ""

    @property
    def stdout(self) -> str:
        return "\n".join(self.lines)

    def capture(self, key: str) -> Optional[str]:
        return self.captures.get(key)


__all__ = ["OutputValue", "TerraformVariables", "ScanResult", "CommandResult"]
