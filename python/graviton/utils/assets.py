"""
graviton/utils/assets.py

Materializes the IaC template trees bundled in graviton/assets into a
deployment directory.
"""

from __future__ import annotations

import logging
import os
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path

from graviton.errors import StagingError

logger = logging.getLogger(__name__)

ASSET_PACKAGE = "graviton"
ASSET_ROOT = "assets"


def _asset_node(asset_path: str) -> Traversable:
    node = resources.files(ASSET_PACKAGE).joinpath(ASSET_ROOT)
    for part in Path(asset_path).parts:
        node = node.joinpath(part)
    return node


def _copy_tree(node: Traversable, dest: Path, overwrite: bool) -> None:
    dest.mkdir(mode=0o755, parents=True, exist_ok=True)
    for child in node.iterdir():
        target = dest / child.name
        if child.is_dir():
            _copy_tree(child, target, overwrite)
        elif overwrite or not target.exists():
            target.write_bytes(child.read_bytes())
        else:
            logger.debug("Keeping existing %s", target)


def stage_assets(dest_dir: Path, asset_path: str, overwrite: bool = True) -> Path:
    """Copy the bundled tree `asset_path` to `dest_dir/asset_path`.

    Args:
        dest_dir: Directory to stage into; created with mode 0755 if absent.
        asset_path: Logical path under graviton/assets, e.g. "etc/iac".
        overwrite: If False, files already present at the destination are kept.

    Returns:
        The absolute path of the staged tree.

    Raises:
        StagingError: If `asset_path` is unknown or the copy fails.
    """
    node = _asset_node(asset_path)
    if not node.is_dir():
        raise StagingError(f"Unknown asset path: {asset_path}")

    target = (dest_dir / asset_path).absolute()
    try:
        os.makedirs(dest_dir, mode=0o755, exist_ok=True)
        _copy_tree(node, target, overwrite)
    except OSError as exc:
        raise StagingError(f"Failed to stage {asset_path} into {target}: {exc}") from exc
    logger.debug("Staged %s into %s", asset_path, target)
    return target


def restore_asset(dest: Path, asset_path: str) -> bool:
    """Copy the single bundled file `asset_path` to `dest` if `dest` is missing.

    Returns:
        True if the file was written, False if it was already present.

    Raises:
        StagingError: If `asset_path` is not a bundled file or the copy fails.
    """
    node = _asset_node(asset_path)
    if not node.is_file():
        raise StagingError(f"Unknown asset file: {asset_path}")
    if dest.exists():
        return False
    try:
        dest.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        dest.write_bytes(node.read_bytes())
    except OSError as exc:
        raise StagingError(f"Failed to restore {asset_path} to {dest}: {exc}") from exc
    logger.debug("Restored %s to %s", asset_path, dest)
    return True


__all__ = ["stage_assets", "restore_asset"]
