"""
Go toolchain inspection for gotoolchain.

This module provides:
- Version detection from VERSION files and go binaries
- Access to bundled helper tool sources
"""

from gotoolchain.toolchain.resources import get_tools_directory, load_tool_source
from gotoolchain.toolchain.version import (
    BINARY_NAME,
    VERSION_FILE,
    go_binary_of,
    go_binary_version_of,
    is_at_least,
    normalize_version,
    parse_go_version_output,
    read_version_from,
)

__all__ = [
    "BINARY_NAME",
    "VERSION_FILE",
    "go_binary_of",
    "go_binary_version_of",
    "is_at_least",
    "normalize_version",
    "parse_go_version_output",
    "read_version_from",
    "get_tools_directory",
    "load_tool_source",
]
