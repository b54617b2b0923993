"""
graviton/utils/lock.py

Exclusive advisory lock on a deployment directory, so two graviton processes
do not drive Terraform in the same working directories at once.
"""

from __future__ import annotations

import fcntl
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from graviton.errors import DeploymentLockedError

logger = logging.getLogger(__name__)

LOCK_FILE = ".lock"


@contextmanager
def deployment_lock(dep_dir: Path) -> Iterator[Path]:
    """Hold a non-blocking flock on <dep_dir>/.lock for the duration of the block.

    Raises:
        DeploymentLockedError: If another process already holds the lock.
    """
    lock_path = dep_dir / LOCK_FILE
    fd = os.open(lock_path, os.O_CREAT | os.O_RDWR, 0o600)
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise DeploymentLockedError(
                f"Another graviton process is working on {dep_dir}"
            ) from exc
        logger.debug("Locked %s", lock_path)
        yield lock_path
    finally:
        os.close(fd)


__all__ = ["deployment_lock"]
