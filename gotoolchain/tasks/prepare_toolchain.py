"""
Toolchain provisioning.

PrepareToolchain brings a Go installation into the state the later build
phases expect, in five ordered phases:

1. bootstrap - a working bootstrap go binary exists in GOROOT_BOOTSTRAP
2. sources   - the Go sources of the requested version are in GOROOT
3. host      - the toolchain is built and runnable on the host
4. targets   - the toolchain is built for every configured platform
5. tools     - helper tools are compiled for the running gotoolchain version

Every phase inspects on-disk state first and only acts if needed, so running
the task twice in a row does no work the second time. State between runs is
kept in marker files:

    <GOROOT>/VERSION                     installed source version
    <GOROOT>/pkg/<goos>_<goarch>/.built  toolchain built for a platform
    <GOROOT>/bin/<tool>.info             cache key of a built helper tool
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from gotoolchain import TOOL_GROUP, __version__
from gotoolchain.config.settings import BOOTSTRAP_POLICY_MINIMUM, ProjectSettings
from gotoolchain.core.archive import download
from gotoolchain.core.download import DownloadError, DownloadProgress, format_progress
from gotoolchain.core.exceptions import (
    AcquisitionError,
    BuildFailureError,
    ConfigurationError,
    VersionMismatchError,
)
from gotoolchain.core.filesystem import FilesystemError, atomic_write, ensure_directory
from gotoolchain.core.locking import LockManager
from gotoolchain.core.platform import Platform, current_platform
from gotoolchain.core.process import execute
from gotoolchain.toolchain.resources import load_tool_source
from gotoolchain.toolchain.version import (
    go_binary_version_of,
    is_at_least,
    read_version_from,
)

logger = logging.getLogger(__name__)

# Helper tools compiled with the host toolchain
TOOLS = ("importsExtractor",)

# make.bash sometimes exits with 0 although the build failed
BUILD_FAIL_KEYWORDS = ("ERROR: ", "($GOPATH not set)", "Access denied")

BUILD_MARKER = ".built"
TOOL_INFO_SUFFIX = ".info"


class TaskOutcome(Enum):
    """What the host scheduler is told after the task ran."""

    EXECUTED = "executed"
    UP_TO_DATE = "up-to-date"


@dataclass
class PhaseResult:
    name: str
    did_work: bool


@dataclass
class PrepareResult:
    """Ordered record of the phases of one PrepareToolchain run."""

    phases: List[PhaseResult] = field(default_factory=list)

    @property
    def did_work(self) -> bool:
        return any(phase.did_work for phase in self.phases)

    @property
    def outcome(self) -> TaskOutcome:
        return TaskOutcome.EXECUTED if self.did_work else TaskOutcome.UP_TO_DATE

    @property
    def work_done(self) -> List[bool]:
        """did_work flags in phase order."""
        return [phase.did_work for phase in self.phases]

    def __getitem__(self, name: str) -> bool:
        for phase in self.phases:
            if phase.name == name:
                return phase.did_work
        raise KeyError(name)


class PrepareToolchain:
    """
    Provisions the Go toolchain described by validated settings.

    Example:
        >>> Validate(settings).run()
        >>> result = PrepareToolchain(settings).run()
        >>> result.outcome
        <TaskOutcome.EXECUTED: 'executed'>
    """

    # Parts of the helper tool cache key
    tool_group = TOOL_GROUP
    tool_version = __version__

    def __init__(
        self,
        settings: ProjectSettings,
        progress_callback: Optional[Callable[[str], None]] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        """
        Initialize the task.

        Args:
            settings: Settings completed by the validation step
            progress_callback: Receives short progress messages
            lock_manager: Locks for shared directories
                (default: lock files next to the toolchain root)

        Raises:
            ConfigurationError: If the settings were not validated
        """
        toolchain = settings.toolchain
        if toolchain.toolchain_root is None or toolchain.bootstrap_root is None:
            raise ConfigurationError(
                "Toolchain and bootstrap roots are not set; run validation first."
            )
        self.settings = settings
        self.progress_callback = progress_callback
        self.locks = lock_manager or LockManager.for_root(toolchain.toolchain_root)

    @property
    def host_platform(self) -> Platform:
        return self.settings.build.host_platform or current_platform()

    def run(self) -> PrepareResult:
        """
        Run all phases in order.

        Any error aborts the remaining phases.

        Returns:
            PrepareResult with one entry per phase
        """
        phases = (
            ("bootstrap", self.download_bootstrap_if_required),
            ("sources", self.download_sources_if_required),
            ("host", self.build_host_if_required),
            ("targets", self.build_targets_if_required),
            ("tools", self.build_tools_if_required),
        )

        result = PrepareResult()
        for name, phase in phases:
            did_work = phase()
            logger.debug(f"Phase {name}: {'done' if did_work else 'up to date'}")
            result.phases.append(PhaseResult(name, did_work))

        logger.info(f"Go toolchain {self.settings.toolchain.go_version}: {result.outcome.value}")
        return result

    # ------------------------------------------------------------------
    # Download URIs
    # ------------------------------------------------------------------

    def source_download_uri(self) -> str:
        toolchain = self.settings.toolchain
        return f"{toolchain.download_base_uri}{toolchain.go_version}.src.tar.gz"

    def bootstrap_download_uri(self) -> str:
        toolchain = self.settings.toolchain
        host = self.host_platform
        return (
            f"{toolchain.download_base_uri}{toolchain.go_version}."
            f"{host.name_in_go}{host.operating_system.package_format.suffix}"
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def download_bootstrap_if_required(self) -> bool:
        """
        Ensure a working bootstrap go binary exists.

        Raises:
            AcquisitionError: If the download fails or yields no working binary
            VersionMismatchError: If the downloaded binary has a wrong version
        """
        toolchain = self.settings.toolchain
        root = toolchain.bootstrap_root

        with self.locks.download_lock(root):
            version = go_binary_version_of(root, toolchain.executable_suffix)
            if version is not None:
                logger.debug(f"Found bootstrap go {version} in {root}")
                return False

            self._progress("Download go bootstrap toolchain...")
            self._download(self.bootstrap_download_uri(), root)

            version = go_binary_version_of(root, toolchain.executable_suffix)
            if version is None:
                raise AcquisitionError(
                    f"Bootstrap go toolchain in {root} is not usable after download "
                    f"of {self.bootstrap_download_uri()}."
                )
            if not self._bootstrap_version_acceptable(version):
                raise VersionMismatchError(
                    "Bootstrap go toolchain", toolchain.go_version, version, root
                )

        logger.info(f"Bootstrap go toolchain {version} installed in {root}")
        return True

    def download_sources_if_required(self) -> bool:
        """
        Ensure the sources of the requested version are in the toolchain root.

        Raises:
            AcquisitionError: If the download fails or yields no source tree
            VersionMismatchError: If the downloaded sources have a wrong version
        """
        toolchain = self.settings.toolchain
        root = toolchain.toolchain_root

        with self.locks.download_lock(root):
            version = read_version_from(root)
            if version == toolchain.go_version:
                logger.debug(f"Found go sources {version} in {root}")
                return False

            self._progress("Download go toolchain...")
            self._download(self.source_download_uri(), root)

            version = read_version_from(root)
            if version is None:
                raise AcquisitionError(
                    f"There are no valid go sources in {root} after download "
                    f"of {self.source_download_uri()}."
                )
            if version != toolchain.go_version:
                raise VersionMismatchError("Go sources", toolchain.go_version, version, root)

        logger.info(f"Go sources {version} installed in {root}")
        return True

    def build_host_if_required(self) -> bool:
        """
        Ensure the toolchain is built and runnable on the host.

        Raises:
            BuildFailureError: If the build fails
            VersionMismatchError: If the built toolchain has a wrong version
        """
        toolchain = self.settings.toolchain
        root = toolchain.toolchain_root

        did_work = False
        version = go_binary_version_of(root, toolchain.executable_suffix)
        if version is None:
            did_work = self.build(self.host_platform, force=True)
            version = go_binary_version_of(root, toolchain.executable_suffix)

        if version != toolchain.go_version:
            raise VersionMismatchError("Go toolchain", toolchain.go_version, version, root)
        return did_work

    def build_targets_if_required(self) -> bool:
        """Ensure the toolchain is built for every configured platform."""
        force = self.settings.toolchain.force_rebuild
        did_work = False
        for platform in self.settings.build.platforms:
            if self.build(platform, force=force):
                did_work = True
        return did_work

    def build_tools_if_required(self) -> bool:
        """Ensure every helper tool is built for the running version."""
        did_work = False
        for name in TOOLS:
            if self.build_tool_if_required(name):
                did_work = True
        return did_work

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def build_marker_of(self, platform: Platform) -> Path:
        root = self.settings.toolchain.toolchain_root
        return root / "pkg" / platform.package_directory_name / BUILD_MARKER

    def build(self, platform: Platform, force: bool) -> bool:
        """
        Build the toolchain for a platform unless it is already built.

        Args:
            platform: Target platform (GOOS/GOARCH)
            force: Build even if the build marker exists

        Returns:
            True if a build ran

        Raises:
            ProcessExecutionError: If the build script fails
        """
        toolchain = self.settings.toolchain
        marker = self.build_marker_of(platform)

        with self.locks.build_lock(toolchain.toolchain_root, platform):
            if marker.exists() and not force:
                logger.debug(f"Go toolchain for {platform} already built ({marker})")
                return False

            self._progress(f"Building go toolchain for {platform}...")
            source_root = toolchain.source_root
            script = source_root / self.host_platform.operating_system.build_script
            output = execute(
                script,
                ["--no-clean"],
                working_directory=source_root,
                env={
                    "GOROOT": toolchain.toolchain_root,
                    "GOROOT_BOOTSTRAP": toolchain.bootstrap_root,
                    "GOOS": platform.operating_system.name_in_go,
                    "GOARCH": platform.architecture.name_in_go,
                    "CGO_ENABLED": "1" if toolchain.native_interop_enabled else "0",
                },
                remove_env=["GOPATH"],
                fail_keywords=BUILD_FAIL_KEYWORDS,
            )
            logger.debug(output)

            try:
                atomic_write(marker, b"")
            except OSError as e:
                raise BuildFailureError(f"Could not write build marker {marker}: {e}") from e

        logger.info(f"Go toolchain for {platform} built")
        return True

    def tool_info_key(self, name: str) -> str:
        return f"{name}:{self.tool_group}:{self.tool_version}"

    def build_tool_if_required(self, name: str) -> bool:
        """
        Compile a helper tool with the host toolchain unless it is current.

        The embedded source is written to a temporary file which is removed
        again whether the build succeeds or not.

        Returns:
            True if the tool was built

        Raises:
            ResourceMissingError: If no source is bundled for the tool
            ProcessExecutionError: If the compiler fails
        """
        toolchain = self.settings.toolchain
        bin_directory = toolchain.tool_bin_directory
        binary = bin_directory / f"{name}{toolchain.executable_suffix}"
        info_file = bin_directory / f"{name}{TOOL_INFO_SUFFIX}"
        expected = self.tool_info_key(name)

        if binary.is_file() and _read_info(info_file) == expected:
            logger.debug(f"Tool {name} is up to date ({expected})")
            return False

        self._progress(f"Building tool {name}...")
        try:
            fd, temp_name = tempfile.mkstemp(prefix=f"{name}-", suffix=".go")
        except OSError as e:
            raise BuildFailureError(f"Could not create source file for tool {name}: {e}") from e
        source_file = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(load_tool_source(name))

            ensure_directory(bin_directory)
            execute(
                toolchain.go_binary,
                ["build", "-o", binary, source_file],
                working_directory=source_file.parent,
                env={
                    "GOROOT": toolchain.toolchain_root,
                    "GOROOT_BOOTSTRAP": toolchain.bootstrap_root,
                },
                remove_env=["GOPATH"],
            )
            atomic_write(info_file, expected)
        except OSError as e:
            raise BuildFailureError(f"Could not build tool {name} in {bin_directory}: {e}") from e
        finally:
            source_file.unlink(missing_ok=True)

        logger.info(f"Tool {name} built at {binary}")
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _bootstrap_version_acceptable(self, version: str) -> bool:
        toolchain = self.settings.toolchain
        if toolchain.bootstrap_version_policy == BOOTSTRAP_POLICY_MINIMUM:
            return is_at_least(version, toolchain.go_version)
        return version == toolchain.go_version

    def _download(self, uri: str, destination: Path) -> None:
        logger.info(f"Downloading {uri} to {destination}")
        callback = self._on_download_progress if self.progress_callback else None
        try:
            download(uri, destination, progress_callback=callback)
        except (DownloadError, FilesystemError, OSError) as e:
            raise AcquisitionError(f"Could not download {uri} to {destination}: {e}") from e

    def _on_download_progress(self, progress: DownloadProgress) -> None:
        self.progress_callback(format_progress(progress))

    def _progress(self, message: str) -> None:
        logger.debug(message)
        if self.progress_callback:
            self.progress_callback(message)


def _read_info(info_file: Path) -> Optional[str]:
    try:
        return info_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


__all__ = [
    "TOOLS",
    "BUILD_FAIL_KEYWORDS",
    "TaskOutcome",
    "PhaseResult",
    "PrepareResult",
    "PrepareToolchain",
]
