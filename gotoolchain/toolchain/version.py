"""
Version detection for Go installations.

Two sources of truth exist for an installation root:
- the VERSION file shipped with every Go source or binary distribution
- the version the go binary reports about itself ('go version')

Go spells versions with a 'go' prefix ('go1.22.5'); gotoolchain settings use
the bare form ('1.22.5'). Both forms are normalized to the bare form before
they are compared.
"""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Optional

from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

BINARY_NAME = "go"
VERSION_FILE = "VERSION"

# "go version go1.22.5 linux/amd64"
_GO_VERSION_OUTPUT = re.compile(r"\bgo version go(\S+)")

VERSION_QUERY_TIMEOUT = 30


def normalize_version(version: Optional[str]) -> Optional[str]:
    """
    Strip whitespace and a leading 'go' prefix from a version string.

    Example:
        >>> normalize_version("go1.22.5")
        '1.22.5'
        >>> normalize_version(" 1.20.3\\n")
        '1.20.3'
    """
    if version is None:
        return None
    version = version.strip()
    if version.startswith("go"):
        version = version[2:]
    return version or None


def is_at_least(actual: str, minimum: str) -> bool:
    """
    Check whether Go version actual is greater than or equal to minimum.

    Unparsable versions (e.g. development builds) never qualify.
    """
    try:
        return Version(actual) >= Version(minimum)
    except InvalidVersion:
        logger.debug(f"Cannot compare versions {actual!r} and {minimum!r}")
        return False


def read_version_from(root: Path) -> Optional[str]:
    """
    Read the installed source version from <root>/VERSION.

    Only the first line counts; newer releases append build metadata lines.

    Returns:
        Normalized version, or None if there is no readable VERSION file
    """
    version_file = Path(root) / VERSION_FILE
    if not version_file.is_file() or not os.access(version_file, os.R_OK):
        return None
    try:
        content = version_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Could not read {version_file}: {e}")
        return None
    lines = content.strip().splitlines()
    return normalize_version(lines[0]) if lines else None


def go_binary_of(root: Path, executable_suffix: str = "") -> Path:
    """Path of the go binary inside an installation root."""
    return Path(root) / "bin" / f"{BINARY_NAME}{executable_suffix}"


def parse_go_version_output(output: str) -> Optional[str]:
    """
    Extract the version from 'go version' output.

    Example:
        >>> parse_go_version_output("go version go1.22.5 linux/amd64")
        '1.22.5'
    """
    match = _GO_VERSION_OUTPUT.search(output)
    if not match:
        return None
    return normalize_version(match.group(1))


def go_binary_version_of(root: Path, executable_suffix: str = "") -> Optional[str]:
    """
    Ask the go binary of an installation root for its version.

    Args:
        root: Installation root (GOROOT)
        executable_suffix: '.exe' on Windows, '' elsewhere

    Returns:
        Normalized version, or None if the binary is missing, cannot be
        executed or prints something unexpected
    """
    binary = go_binary_of(root, executable_suffix)
    if not binary.is_file() or not os.access(binary, os.X_OK):
        logger.debug(f"No executable go binary at {binary}")
        return None

    env = dict(os.environ)
    env["GOROOT"] = str(root)
    env.pop("GOTOOLCHAIN", None)

    try:
        result = subprocess.run(
            [str(binary), "version"],
            capture_output=True,
            text=True,
            timeout=VERSION_QUERY_TIMEOUT,
            env=env,
            check=False,
        )
    except subprocess.TimeoutExpired:
        logger.debug(f"Timeout querying version of {binary}")
        return None
    except OSError as e:
        logger.debug(f"Failed to run {binary}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"{binary} version returned {result.returncode}")
        return None

    version = parse_go_version_output(result.stdout + result.stderr)
    if version is None:
        logger.debug(f"Could not parse version from output: {result.stdout[:200]}")
    return version


__all__ = [
    "BINARY_NAME",
    "VERSION_FILE",
    "normalize_version",
    "is_at_least",
    "read_version_from",
    "go_binary_of",
    "parse_go_version_output",
    "go_binary_version_of",
]
