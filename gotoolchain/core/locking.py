"""
Cross-process locking for shared toolchain directories.

Several build pipelines may share one cache root. The provisioning core
treats each check-then-write sequence (build marker of a platform, content
of a download destination) as a critical section guarded by a file lock, so
two processes never build the same platform or extract into the same
directory at the same time.

Usage:
    locks = LockManager(toolchain_root.parent / ".locks")
    with locks.build_lock(toolchain_root, platform):
        if not marker.exists():
            build()
"""

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as FileLockTimeout

from gotoolchain.core.exceptions import LockTimeout
from gotoolchain.core.platform import Platform

logger = logging.getLogger(__name__)

# Builds of a whole toolchain easily take several minutes
DEFAULT_LOCK_TIMEOUT = 30 * 60


def _safe_lock_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]", "-", name)


class LockManager:
    """
    Manages file locks for toolchain directories.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path, timeout: float = DEFAULT_LOCK_TIMEOUT):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (created on first lock)
            timeout: Default maximum wait time in seconds
        """
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout

    @classmethod
    def for_root(cls, root: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> "LockManager":
        """Lock manager storing its lock files next to the given root directory."""
        return cls(Path(root).parent / ".locks", timeout=timeout)

    @contextmanager
    def lock(self, name: str, timeout: Optional[float] = None):
        """
        Acquire the named lock.

        Args:
            name: Lock name (sanitized into a file name)
            timeout: Maximum wait time in seconds (default: manager timeout)

        Raises:
            LockTimeout: If lock can't be acquired within timeout
        """
        timeout = self.timeout if timeout is None else timeout
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.lock_dir / f"{_safe_lock_name(name)}.lock"

        try:
            with FileLock(str(lock_path), timeout=timeout):
                logger.debug(f"Acquired lock: {lock_path}")
                yield
            logger.debug(f"Released lock: {lock_path}")
        except FileLockTimeout as e:
            logger.debug(f"Timed out waiting for lock: {lock_path}")
            raise LockTimeout(lock_path, timeout) from e

    def build_lock(self, root: Path, platform: Platform, timeout: Optional[float] = None):
        """Lock guarding the build marker of one platform of one toolchain root."""
        return self.lock(f"build-{Path(root).name}-{platform.package_directory_name}", timeout)

    def download_lock(self, destination: Path, timeout: Optional[float] = None):
        """Lock guarding downloads into one destination directory."""
        return self.lock(f"download-{Path(destination).name}", timeout)


__all__ = ["LockManager", "LockTimeout", "DEFAULT_LOCK_TIMEOUT"]
