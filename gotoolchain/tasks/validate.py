"""
Validation step.

Checks the required settings and derives everything the provisioning core
needs (host platform, install roots, workspace) before any I/O happens.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from gotoolchain.config.settings import ProjectSettings
from gotoolchain.core.exceptions import ConfigurationError
from gotoolchain.core.platform import current_platform
from gotoolchain.toolchain.version import go_binary_of, normalize_version

logger = logging.getLogger(__name__)

GOROOT_ENV_VAR = "GOROOT"
WORKSPACE_DIRECTORY = "gopath"


class Validate:
    """
    Validates project settings and fills in derived values in place.

    Example:
        >>> settings = load_settings(Path("."))
        >>> Validate(settings).run()
        >>> settings.toolchain.toolchain_root
        PosixPath('/home/user/.gotoolchain/sdk/1.22.5')
    """

    def __init__(
        self, settings: ProjectSettings, environ: Optional[Mapping[str, str]] = None
    ):
        self.settings = settings
        self.environ = os.environ if environ is None else environ

    def run(self) -> ProjectSettings:
        """
        Validate and complete the settings.

        Returns:
            The same settings object, completed

        Raises:
            ConfigurationError: If a required setting is missing
        """
        build = self.settings.build
        toolchain = self.settings.toolchain

        if not build.package_name:
            raise ConfigurationError("There is no packageName configured.")
        if not build.platforms:
            raise ConfigurationError("There are no platforms configured.")
        go_version = normalize_version(toolchain.go_version)
        if not go_version:
            raise ConfigurationError("There is no go version configured.")
        if build.cache_root is None and (
            toolchain.toolchain_root is None or toolchain.bootstrap_root is None
        ):
            raise ConfigurationError("There is no cache root configured.")

        if go_version != toolchain.go_version:
            logger.debug(f"Go version {toolchain.go_version!r} normalized to {go_version}")
        toolchain.go_version = go_version

        host = current_platform()
        build.host_platform = host
        toolchain.executable_suffix = host.operating_system.executable_suffix

        if toolchain.toolchain_root is None:
            toolchain.toolchain_root = build.cache_root / "sdk" / toolchain.go_version
        toolchain.toolchain_root = Path(toolchain.toolchain_root).resolve()

        if toolchain.bootstrap_root is None:
            toolchain.bootstrap_root = self._default_bootstrap_root()
        toolchain.bootstrap_root = Path(toolchain.bootstrap_root).resolve()

        if build.cache_root is not None:
            build.cache_root = Path(build.cache_root).resolve()

        if build.use_temporary_workspace:
            build_dir = build.build_dir or Path.cwd() / "build"
            build.workspace = (Path(build_dir) / WORKSPACE_DIRECTORY).resolve()
        else:
            build.workspace = None

        logger.info(
            f"Package {build.package_name} for "
            f"{', '.join(str(p) for p in build.platforms)} (host: {host})"
        )
        logger.info(f"Go version:       {toolchain.go_version}")
        logger.info(f"GOROOT:           {toolchain.toolchain_root}")
        logger.info(f"GOROOT_BOOTSTRAP: {toolchain.bootstrap_root}")
        if build.workspace is not None:
            logger.info(f"Workspace:        {build.workspace}")

        return self.settings

    def _default_bootstrap_root(self) -> Path:
        # An existing Go installation is reused only if its binary is runnable
        goroot = self.environ.get(GOROOT_ENV_VAR)
        if goroot:
            binary = go_binary_of(Path(goroot), self.settings.toolchain.executable_suffix)
            if binary.is_file() and os.access(binary, os.X_OK):
                logger.debug(f"Using GOROOT {goroot} as bootstrap installation")
                return Path(goroot)
            logger.debug(f"GOROOT {goroot} has no executable go binary, ignoring it")
        return self.settings.build.cache_root / "sdk" / "bootstrap"


__all__ = ["Validate"]
