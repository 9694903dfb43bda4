"""Layered configuration loading for gotoolchain.

Settings are resolved from four layers, later layers winning:

1. Built-in defaults (the dataclass defaults in gotoolchain.config.settings)
2. The YAML configuration file (gotoolchain.yaml in the project root)
3. GOTOOLCHAIN_* environment variables
4. Explicit overrides (e.g. command line options)

Example gotoolchain.yaml:

    package_name: github.com/example/app
    platforms: [linux-amd64, windows-amd64]
    cache_root: ~/.gotoolchain
    build:
      use_temporary_workspace: true
    toolchain:
      go_version: '1.22.5'
      cgo_enabled: false
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from gotoolchain.config.settings import (
    BOOTSTRAP_POLICIES,
    BuildSettings,
    ProjectSettings,
    ToolchainSettings,
)
from gotoolchain.core.directory import get_global_cache_dir
from gotoolchain.core.exceptions import ConfigurationError
from gotoolchain.core.platform import current_platform, parse_platforms

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "gotoolchain.yaml"

# Environment variable -> (section, key); section None means top level
ENVIRONMENT_VARIABLES = {
    "GOTOOLCHAIN_PACKAGE_NAME": (None, "package_name"),
    "GOTOOLCHAIN_PLATFORMS": (None, "platforms"),
    "GOTOOLCHAIN_CACHE_ROOT": (None, "cache_root"),
    "GOTOOLCHAIN_GO_VERSION": ("toolchain", "go_version"),
    "GOTOOLCHAIN_TOOLCHAIN_ROOT": ("toolchain", "toolchain_root"),
    "GOTOOLCHAIN_BOOTSTRAP_ROOT": ("toolchain", "bootstrap_root"),
    "GOTOOLCHAIN_FORCE_REBUILD": ("toolchain", "force_rebuild"),
    "GOTOOLCHAIN_CGO_ENABLED": ("toolchain", "cgo_enabled"),
    "GOTOOLCHAIN_DOWNLOAD_BASE_URI": ("toolchain", "download_base_uri"),
    "GOTOOLCHAIN_BOOTSTRAP_VERSION_POLICY": ("toolchain", "bootstrap_version_policy"),
}

_TOP_LEVEL_KEYS = {"package_name", "platforms", "cache_root", "build", "toolchain"}
_BUILD_KEYS = {"use_temporary_workspace", "build_dir"}
_TOOLCHAIN_KEYS = {
    "go_version",
    "toolchain_root",
    "bootstrap_root",
    "force_rebuild",
    "cgo_enabled",
    "download_base_uri",
    "bootstrap_version_policy",
}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Args:
        config_file: Path to YAML configuration file
        required: If True, raise error if file doesn't exist

    Returns:
        Configuration dictionary (empty dict if file doesn't exist and not required)

    Raises:
        ConfigurationError: If the file is required but missing, or invalid
    """
    if not config_file.exists():
        if required:
            raise ConfigurationError(f"Configuration file not found: {config_file}")
        logger.debug(f"Config file not found (optional): {config_file}")
        return {}

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Invalid configuration in {config_file}: expected a mapping at top level"
        )
    return config


def environment_layer(environ: Mapping[str, str]) -> Dict[str, Any]:
    """Collect the configuration layer defined by GOTOOLCHAIN_* variables."""
    layer: Dict[str, Any] = {}
    for variable, (section, key) in ENVIRONMENT_VARIABLES.items():
        if variable not in environ:
            continue
        target = layer if section is None else layer.setdefault(section, {})
        target[key] = environ[variable]
        logger.debug(f"Configuration {key} taken from {variable}")
    return layer


def merge_layers(*layers: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge configuration layers, later layers winning.

    None values in a layer mean "not set" and never override.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        for key, value in layer.items():
            if value is None:
                continue
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key] = merge_layers(merged[key], value)
            elif isinstance(value, Mapping):
                merged[key] = merge_layers(value)
            else:
                merged[key] = value
    return merged


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{name}': {value!r}")


def _as_version(value: Any, name: str) -> str:
    # YAML reads an unquoted 1.20 as the float 1.2
    if not isinstance(value, str):
        raise ConfigurationError(
            f"Invalid version for '{name}': {value!r}. "
            "Quote the version in the configuration file, e.g. go_version: '1.20'"
        )
    return value.strip()


def _as_path(value: Any, base: Path) -> Path:
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base / path
    return path


def _warn_unknown_keys(section: str, data: Mapping[str, Any], known) -> None:
    for key in data:
        if key not in known:
            logger.warning(f"Ignoring unknown configuration key '{section}{key}'")


def settings_from_dict(
    data: Mapping[str, Any],
    project_root: Path,
    environ: Optional[Mapping[str, str]] = None,
) -> ProjectSettings:
    """
    Build typed settings from a merged configuration dictionary.

    Relative paths are resolved against the project root.

    Raises:
        ConfigurationError: If a value has the wrong type or format
    """
    project_root = Path(project_root).resolve()
    _warn_unknown_keys("", data, _TOP_LEVEL_KEYS)

    build_data = data.get("build") or {}
    toolchain_data = data.get("toolchain") or {}
    if not isinstance(build_data, Mapping) or not isinstance(toolchain_data, Mapping):
        raise ConfigurationError("'build' and 'toolchain' must be mappings")
    _warn_unknown_keys("build.", build_data, _BUILD_KEYS)
    _warn_unknown_keys("toolchain.", toolchain_data, _TOOLCHAIN_KEYS)

    if "platforms" in data:
        platforms = parse_platforms(data["platforms"])
    else:
        platforms = [current_platform()]

    if "cache_root" in data:
        cache_root = _as_path(data["cache_root"], project_root)
    else:
        cache_root = get_global_cache_dir(environ)

    build = BuildSettings(
        package_name=str(data.get("package_name") or "").strip(),
        platforms=platforms,
        cache_root=cache_root,
        use_temporary_workspace=_as_bool(
            build_data.get("use_temporary_workspace", False),
            "build.use_temporary_workspace",
        ),
        build_dir=_as_path(build_data.get("build_dir", "build"), project_root),
    )

    toolchain = ToolchainSettings()
    if "go_version" in toolchain_data:
        toolchain.go_version = _as_version(toolchain_data["go_version"], "toolchain.go_version")
    if "toolchain_root" in toolchain_data:
        toolchain.toolchain_root = _as_path(toolchain_data["toolchain_root"], project_root)
    if "bootstrap_root" in toolchain_data:
        toolchain.bootstrap_root = _as_path(toolchain_data["bootstrap_root"], project_root)
    if "force_rebuild" in toolchain_data:
        toolchain.force_rebuild = _as_bool(
            toolchain_data["force_rebuild"], "toolchain.force_rebuild"
        )
    if "cgo_enabled" in toolchain_data:
        toolchain.native_interop_enabled = _as_bool(
            toolchain_data["cgo_enabled"], "toolchain.cgo_enabled"
        )
    if "download_base_uri" in toolchain_data:
        toolchain.download_base_uri = str(toolchain_data["download_base_uri"]).strip()
    if "bootstrap_version_policy" in toolchain_data:
        policy = str(toolchain_data["bootstrap_version_policy"]).strip().lower()
        if policy not in BOOTSTRAP_POLICIES:
            raise ConfigurationError(
                f"Invalid bootstrap_version_policy '{policy}'. "
                f"Use one of: {', '.join(BOOTSTRAP_POLICIES)}"
            )
        toolchain.bootstrap_version_policy = policy

    return ProjectSettings(toolchain=toolchain, build=build)


def load_settings(
    project_root: Path,
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ProjectSettings:
    """
    Resolve settings from defaults, config file, environment and overrides.

    Args:
        project_root: Project root directory
        config_file: Configuration file (default: <project_root>/gotoolchain.yaml,
            optional); an explicitly given file must exist
        environ: Environment to read GOTOOLCHAIN_* variables from
            (default: os.environ)
        overrides: Explicit overrides, same layout as the YAML file

    Returns:
        Unvalidated ProjectSettings

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    environ = os.environ if environ is None else environ
    project_root = Path(project_root)

    if config_file is None:
        file_layer = load_yaml_config(project_root / CONFIG_FILE_NAME, required=False)
    else:
        file_layer = load_yaml_config(Path(config_file), required=True)

    merged = merge_layers(file_layer, environment_layer(environ), overrides or {})
    return settings_from_dict(merged, project_root, environ)


__all__ = [
    "CONFIG_FILE_NAME",
    "ENVIRONMENT_VARIABLES",
    "load_yaml_config",
    "environment_layer",
    "merge_layers",
    "settings_from_dict",
    "load_settings",
]
