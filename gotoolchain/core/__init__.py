"""
Core utilities for gotoolchain.

This module provides:
- Platform model (operating systems, architectures, host detection)
- Exception hierarchy
- Archive download and extraction
- External process execution with fail keyword detection
- Cross-process file locking
"""

from gotoolchain.core.exceptions import (
    AcquisitionError,
    BuildFailureError,
    ConfigurationError,
    GoToolchainError,
    LockTimeout,
    ProcessExecutionError,
    ResourceMissingError,
    VersionMismatchError,
)
from gotoolchain.core.platform import (
    Architecture,
    OperatingSystem,
    PackageFormat,
    Platform,
    current_platform,
    parse_platforms,
)

__all__ = [
    "AcquisitionError",
    "BuildFailureError",
    "ConfigurationError",
    "GoToolchainError",
    "LockTimeout",
    "ProcessExecutionError",
    "ResourceMissingError",
    "VersionMismatchError",
    "Architecture",
    "OperatingSystem",
    "PackageFormat",
    "Platform",
    "current_platform",
    "parse_platforms",
]
