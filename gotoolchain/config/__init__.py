"""
Configuration for gotoolchain.

This module provides:
- Typed settings (ToolchainSettings, BuildSettings, ProjectSettings)
- Layered loading from defaults, gotoolchain.yaml, environment and overrides
"""

from gotoolchain.config.loader import (
    CONFIG_FILE_NAME,
    ENVIRONMENT_VARIABLES,
    load_settings,
    load_yaml_config,
    settings_from_dict,
)
from gotoolchain.config.settings import (
    BOOTSTRAP_POLICIES,
    BOOTSTRAP_POLICY_EXACT,
    BOOTSTRAP_POLICY_MINIMUM,
    DEFAULT_DOWNLOAD_BASE_URI,
    DEFAULT_GO_VERSION,
    BuildSettings,
    ProjectSettings,
    ToolchainSettings,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "ENVIRONMENT_VARIABLES",
    "load_settings",
    "load_yaml_config",
    "settings_from_dict",
    "BOOTSTRAP_POLICIES",
    "BOOTSTRAP_POLICY_EXACT",
    "BOOTSTRAP_POLICY_MINIMUM",
    "DEFAULT_DOWNLOAD_BASE_URI",
    "DEFAULT_GO_VERSION",
    "BuildSettings",
    "ProjectSettings",
    "ToolchainSettings",
]
