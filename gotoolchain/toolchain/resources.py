"""Access to the Go sources of helper tools bundled with gotoolchain."""

import logging
from pathlib import Path
from typing import Optional

from gotoolchain.core.exceptions import ResourceMissingError

logger = logging.getLogger(__name__)


def get_tools_directory() -> Path:
    """Get path to the embedded helper tool sources."""
    # Path relative to this module: ./tools/<name>.go
    return Path(__file__).parent / "tools"


def load_tool_source(name: str, tools_directory: Optional[Path] = None) -> bytes:
    """
    Load the bundled Go source of a helper tool.

    Args:
        name: Tool name, e.g. 'importsExtractor'
        tools_directory: Directory holding the sources (default: embedded)

    Returns:
        Source code bytes

    Raises:
        ResourceMissingError: If no source is bundled for the tool
    """
    source_file = (tools_directory or get_tools_directory()) / f"{name}.go"
    if not source_file.is_file():
        raise ResourceMissingError(
            f"Could not find source code for tool {name} at {source_file}."
        )
    logger.debug(f"Loaded source of tool {name} from {source_file}")
    return source_file.read_bytes()


__all__ = ["get_tools_directory", "load_tool_source"]
