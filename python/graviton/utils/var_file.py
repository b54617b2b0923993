"""
graviton/utils/var_file.py

Marshals sub-resource state to and from the flat JSON variables file that is
passed to Terraform with -var-file. Every value is a string; Terraform does
its own coercion. The file doubles as the existence marker of the resource.
"""

from __future__ import annotations

from pathlib import Path
from typing import Type, TypeVar

from graviton.models.terraform import TerraformVariables
from graviton.utils.json_file import load_model, write_json_atomic

V = TypeVar("V", bound=TerraformVariables)


async def write_var_file(path: Path, variables: TerraformVariables) -> None:
    """Write `variables` to `path` (mode 0600, atomic rename)."""
    await write_json_atomic(path, variables.to_variables(), mode=0o600)


async def read_var_file(path: Path, model_type: Type[V]) -> V:
    """Parse a variables file back into its model.

    Raises:
        StatePersistError: If the file is missing, unreadable or malformed.
    """
    return await load_model(path, model_type)


__all__ = ["write_var_file", "read_var_file"]
