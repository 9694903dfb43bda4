"""
Shared utilities for CLI commands.

Provides common functionality used across CLI commands so that every
command loads settings the same way.
"""

import logging
from typing import Any, Dict

from gotoolchain.config.loader import load_settings
from gotoolchain.config.settings import ProjectSettings

logger = logging.getLogger(__name__)


def overrides_from_args(args) -> Dict[str, Any]:
    """
    Translate command line options into a configuration override layer.

    Options that were not given are left out, so they do not mask values
    from the configuration file or the environment.
    """
    overrides: Dict[str, Any] = {"toolchain": {}}
    if getattr(args, "platforms", None):
        overrides["platforms"] = args.platforms
    if getattr(args, "cache_root", None):
        overrides["cache_root"] = str(args.cache_root)
    if getattr(args, "go_version", None):
        overrides["toolchain"]["go_version"] = args.go_version
    if getattr(args, "force_rebuild", None) is not None:
        overrides["toolchain"]["force_rebuild"] = args.force_rebuild
    if getattr(args, "cgo_enabled", None) is not None:
        overrides["toolchain"]["cgo_enabled"] = args.cgo_enabled
    return overrides


def load_settings_from_args(args) -> ProjectSettings:
    """
    Load settings for the project selected on the command line.

    Args:
        args: Parsed arguments (project_root, config and override options)

    Returns:
        Unvalidated settings

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    project_root = args.project_root.resolve()
    logger.debug(f"Project root: {project_root}")
    return load_settings(
        project_root,
        config_file=args.config,
        overrides=overrides_from_args(args),
    )
