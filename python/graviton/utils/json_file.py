"""
graviton/utils/json_file.py

Async JSON helpers for the on-disk state of a deployment. Writes go to a
temporary file in the target directory which is then renamed into place,
so readers never observe a half-written document.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Type, TypeVar

import aiofiles
from pydantic import BaseModel, ValidationError

from graviton.errors import StatePersistError

M = TypeVar("M", bound=BaseModel)


def dumps(data: Any) -> str:
    return json.dumps(data, indent=2) + "\n"


async def write_json_atomic(path: Path, data: Any, mode: int = 0o600) -> None:
    """Serialize `data` to `path` atomically with permissions `mode`.

    Raises:
        StatePersistError: If the file cannot be written or renamed.
    """
    text = dumps(data)
    try:
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
        os.close(fd)
    except OSError as exc:
        raise StatePersistError(f"Cannot create a file in {path.parent}: {exc}") from exc

    try:
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(text)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        raise StatePersistError(f"Failed to write {path}: {exc}") from exc
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


async def read_json(path: Path) -> Any:
    """Read and decode a JSON document.

    Raises:
        StatePersistError: If the file is unreadable or not valid JSON.
    """
    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            text = await f.read()
    except OSError as exc:
        raise StatePersistError(f"Failed to read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise StatePersistError(f"{path} is not valid JSON: {exc}") from exc


async def load_model(path: Path, model_type: Type[M]) -> M:
    """Read `path` and validate it as `model_type`."""
    data = await read_json(path)
    try:
        return model_type.model_validate(data)
    except ValidationError as exc:
        raise StatePersistError(f"{path} has unexpected content: {exc}") from exc


async def save_model(path: Path, model: BaseModel, mode: int = 0o600) -> None:
    await write_json_atomic(path, model.model_dump(mode="json"), mode=mode)


__all__ = ["dumps", "write_json_atomic", "read_json", "load_model", "save_model"]
