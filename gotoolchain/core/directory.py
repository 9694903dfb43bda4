"""
Default directory locations for gotoolchain.

Global Cache (~/.gotoolchain/ or %USERPROFILE%\\.gotoolchain\\):
    - sdk/<version>/  : Go toolchain sources and builds of one version
    - sdk/bootstrap/  : Bootstrap Go installation
    - sdk/.locks/     : Cross-process lock files
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from gotoolchain.core.exceptions import ConfigurationError

HOME_ENV_VAR = "GOTOOLCHAIN_HOME"


class DirectoryError(ConfigurationError):
    """Raised when a default directory cannot be determined."""

    pass


def get_global_cache_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the platform-specific global cache directory path.

    GOTOOLCHAIN_HOME overrides the default location.

    Returns:
        Path: The global cache directory path.
            - Windows: %USERPROFILE%\\.gotoolchain
            - Linux/macOS: ~/.gotoolchain/

    Raises:
        DirectoryError: If USERPROFILE is not set on Windows
    """
    environ = os.environ if environ is None else environ

    override = environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()

    if os.name == "nt":
        user_profile = environ.get("USERPROFILE")
        if not user_profile:
            raise DirectoryError(
                "USERPROFILE environment variable is not set. "
                "Cannot determine global cache directory."
            )
        return Path(user_profile) / ".gotoolchain"
    return Path.home() / ".gotoolchain"


__all__ = ["HOME_ENV_VAR", "DirectoryError", "get_global_cache_dir"]
