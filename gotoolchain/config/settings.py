"""Typed settings for toolchain provisioning.

Settings are plain dataclasses passed explicitly to every step. The
validation step fills in the derived fields (host platform, install roots,
workspace) in place before any provisioning happens.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from gotoolchain.core.platform import Platform, current_platform
from gotoolchain.toolchain.version import go_binary_of

DEFAULT_GO_VERSION = "1.22.5"
DEFAULT_DOWNLOAD_BASE_URI = "https://dl.google.com/go/go"

BOOTSTRAP_POLICY_EXACT = "exact"
BOOTSTRAP_POLICY_MINIMUM = "minimum"
BOOTSTRAP_POLICIES = (BOOTSTRAP_POLICY_EXACT, BOOTSTRAP_POLICY_MINIMUM)


def _host_executable_suffix() -> str:
    return current_platform().operating_system.executable_suffix


@dataclass
class ToolchainSettings:
    """Settings of the Go toolchain to provision."""

    go_version: str = DEFAULT_GO_VERSION
    toolchain_root: Optional[Path] = None  # default: <cache_root>/sdk/<go_version>
    bootstrap_root: Optional[Path] = None  # default: $GOROOT or <cache_root>/sdk/bootstrap
    force_rebuild: bool = False
    native_interop_enabled: bool = False  # CGO_ENABLED
    download_base_uri: str = DEFAULT_DOWNLOAD_BASE_URI
    executable_suffix: str = field(default_factory=_host_executable_suffix)
    bootstrap_version_policy: str = BOOTSTRAP_POLICY_EXACT

    @property
    def go_binary(self) -> Path:
        return go_binary_of(self.toolchain_root, self.executable_suffix)

    @property
    def bootstrap_go_binary(self) -> Path:
        return go_binary_of(self.bootstrap_root, self.executable_suffix)

    @property
    def source_root(self) -> Path:
        """Directory containing the make scripts (GOROOT/src)."""
        return self.toolchain_root / "src"

    @property
    def tool_bin_directory(self) -> Path:
        return self.go_binary.parent


@dataclass
class BuildSettings:
    """Settings of the project being built."""

    package_name: str = ""
    platforms: List[Platform] = field(default_factory=list)
    cache_root: Optional[Path] = None
    use_temporary_workspace: bool = False
    build_dir: Optional[Path] = None

    # Derived by validation
    host_platform: Optional[Platform] = None
    workspace: Optional[Path] = None


@dataclass
class ProjectSettings:
    """Complete configuration handed to the validation and provisioning steps."""

    toolchain: ToolchainSettings = field(default_factory=ToolchainSettings)
    build: BuildSettings = field(default_factory=BuildSettings)
