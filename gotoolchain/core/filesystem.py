"""
File system utilities for gotoolchain.

This module provides the platform-aware file operations the provisioning core
relies on:
- Archive extraction (tar.gz, tar.xz, tar.bz2, zip) with traversal checks
- Installing an extracted tree into an existing directory
- Atomic writes for marker and info files
- Safe deletion and temporary directories
"""

import os
import shutil
import stat
import sys
import tarfile
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

IS_WINDOWS = os.name == "nt"


# ============================================================================
# Errors
# ============================================================================


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check whether path is located below parent.

    Args:
        path: Path to check
        parent: Potential parent directory

    Returns:
        True if path is parent or inside it
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists (idempotent).

    Returns:
        Path object (resolved)
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path.resolve()


# ============================================================================
# Archive Extraction
# ============================================================================

# Longest suffixes first so '.tar.gz' wins over '.gz'
ARCHIVE_SUFFIXES = (".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tbz2", ".zip")


def archive_suffix(name: str) -> Optional[str]:
    """
    Return the supported archive suffix of a file name or URI path.

    Example:
        >>> archive_suffix("go1.22.5.linux-amd64.tar.gz")
        '.tar.gz'
        >>> archive_suffix("go1.22.5.windows-amd64.msi") is None
        True
    """
    lowered = name.lower()
    for suffix in ARCHIVE_SUFFIXES:
        if lowered.endswith(suffix):
            return suffix
    return None


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "Extraction has been blocked."
        )


def extract_archive(archive_path: Union[str, Path], destination: Union[str, Path]) -> None:
    """
    Extract an archive to a destination directory.

    The format is detected from the file name suffix. All member paths are
    validated before anything is written.

    Supported formats:
    - .zip
    - .tar.gz, .tgz
    - .tar.xz
    - .tar.bz2, .tbz2

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    suffix = archive_suffix(archive_path.name)
    if suffix is None:
        raise UnsupportedArchiveFormat(
            f"Unsupported archive format: {archive_path.name}. "
            f"Supported: {', '.join(ARCHIVE_SUFFIXES)}"
        )

    destination.mkdir(parents=True, exist_ok=True)

    try:
        if suffix == ".zip":
            _extract_zip(archive_path, destination)
        elif suffix in (".tar.gz", ".tgz"):
            _extract_tar(archive_path, destination, "r:gz")
        elif suffix == ".tar.xz":
            _extract_tar(archive_path, destination, "r:xz")
        else:
            _extract_tar(archive_path, destination, "r:bz2")
    except ArchiveExtractionError:
        raise
    except (OSError, tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(archive_path: Path, destination: Path) -> None:
    """Extract a ZIP archive, keeping the unix permission bits it records."""
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        for member in members:
            _validate_archive_path(member.filename, destination)

        for member in members:
            extracted = Path(zf.extract(member, destination))
            mode = (member.external_attr >> 16) & 0o777
            if mode and not member.is_dir() and not IS_WINDOWS:
                extracted.chmod(mode)


def _extract_tar(archive_path: Path, destination: Path, mode: str) -> None:
    """Extract a tar archive with specified compression."""
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()

        for member in members:
            _validate_archive_path(member.name, destination)

        # Paths were validated above for interpreters without extraction filters
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)


def normalize_root_directory(extract_dir: Path) -> Path:
    """
    Return the real root of an extracted archive.

    Go distributions wrap everything in a single 'go/' directory. When the
    extraction produced exactly one directory, that directory is the root.

    Args:
        extract_dir: Directory the archive was extracted into

    Returns:
        Path to the tree root
    """
    items = list(extract_dir.iterdir())

    if len(items) == 1 and items[0].is_dir():
        return items[0]

    return extract_dir


def install_tree(source: Path, destination: Path) -> None:
    """
    Move every entry of source into destination.

    Entries already present in destination under the same name are replaced,
    other entries in destination are left alone.

    Args:
        source: Directory whose entries are moved
        destination: Target directory (created if missing)
    """
    destination.mkdir(parents=True, exist_ok=True)

    for item in source.iterdir():
        target = destination / item.name
        if target.is_dir() and not target.is_symlink():
            safe_rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        shutil.move(str(item), str(target))


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    The file is never observable in a partially-written state. Parent
    directories are created as needed.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('pkg/linux_amd64/.built', b'')
        >>> atomic_write('bin/importsExtractor.info', 'importsExtractor:gotoolchain:0.3.0')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory, so the rename stays on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="") as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def safe_rmtree(path: Union[str, Path]) -> None:
    """
    Remove a directory tree.

    Args:
        path: Directory to remove

    Raises:
        FilesystemError: If deletion fails
    """
    path = Path(path).resolve()

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    def handle_remove_readonly(func, failed_path, exc):
        # Read-only files (Windows, Go module cache) must be made writable first
        os.chmod(failed_path, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
        func(failed_path)

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=handle_remove_readonly)
        else:
            shutil.rmtree(path, onerror=handle_remove_readonly)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


@contextmanager
def temporary_directory(prefix: str = "gotoolchain_"):
    """
    Context manager for temporary directory with automatic cleanup.

    Args:
        prefix: Prefix for temp directory name

    Yields:
        Path to temporary directory
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))

    try:
        yield temp_dir
    finally:
        if temp_dir.exists():
            safe_rmtree(temp_dir)


__all__ = [
    "FilesystemError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "ARCHIVE_SUFFIXES",
    "archive_suffix",
    "is_relative_to",
    "ensure_directory",
    "extract_archive",
    "normalize_root_directory",
    "install_tree",
    "atomic_write",
    "safe_rmtree",
    "temporary_directory",
]
