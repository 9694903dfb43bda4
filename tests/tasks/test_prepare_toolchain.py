"""
Unit tests for toolchain provisioning.

Collaborators (archive download, process execution, version self-report)
are patched at the module under test; marker and info files live in
tmp_path.

Tests cover:
- Phase ordering and the up-to-date signal
- Bootstrap and source acquisition
- Host, per-target and forced builds with build markers
- Helper tool builds, their cache key and temporary source cleanup
"""

import sys
import tempfile
from unittest.mock import call, patch

import pytest
from filelock import FileLock

from gotoolchain import __version__
from gotoolchain.config.settings import BOOTSTRAP_POLICY_MINIMUM
from gotoolchain.core.download import DownloadError
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
from gotoolchain.core.filesystem import ArchiveExtractionError
from gotoolchain.core.locking import LockManager
from gotoolchain.core.platform import Architecture, OperatingSystem, Platform
from gotoolchain.tasks.prepare_toolchain import (
    BUILD_FAIL_KEYWORDS,
    PhaseResult,
    PrepareResult,
    PrepareToolchain,
    TaskOutcome,
)

MODULE = "gotoolchain.tasks.prepare_toolchain"

LINUX_ARM64 = Platform(OperatingSystem.LINUX, Architecture.ARM64)
WINDOWS_AMD64 = Platform(OperatingSystem.WINDOWS, Architecture.AMD64)


@pytest.fixture
def task(validated_settings):
    return PrepareToolchain(validated_settings)


@pytest.fixture
def toolchain(validated_settings):
    return validated_settings.toolchain


@pytest.fixture
def private_tempdir(tmp_path, monkeypatch):
    """Redirect tempfile to a private directory that tests can inspect."""
    directory = tmp_path / "tmp"
    directory.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(directory))
    return directory


def host_marker(task):
    return task.build_marker_of(task.host_platform)


class TestPrepareResult:
    """Tests for PrepareResult."""

    def test_up_to_date_when_no_phase_did_work(self):
        """Test the no-op signal."""
        result = PrepareResult()
        for name in ("bootstrap", "sources", "host", "targets", "tools"):
            result.phases.append(PhaseResult(name, False))

        assert result.outcome is TaskOutcome.UP_TO_DATE
        assert not result.did_work

    def test_executed_when_any_phase_did_work(self, task):
        """Test a single phase with work means executed."""
        with patch.object(task, "download_bootstrap_if_required", return_value=False), patch.object(
            task, "download_sources_if_required", return_value=False
        ), patch.object(task, "build_host_if_required", return_value=False), patch.object(
            task, "build_targets_if_required", return_value=False
        ), patch.object(
            task, "build_tools_if_required", return_value=True
        ):
            result = task.run()

        assert result.outcome is TaskOutcome.EXECUTED
        assert result["tools"] is True
        assert result["bootstrap"] is False


class TestRun:
    """Tests for run() orchestration."""

    def test_phase_order(self, task):
        """Test phases run strictly in order."""
        order = []
        names = [
            "download_bootstrap_if_required",
            "download_sources_if_required",
            "build_host_if_required",
            "build_targets_if_required",
            "build_tools_if_required",
        ]
        patches = [
            patch.object(task, name, side_effect=lambda n=name: order.append(n) or False)
            for name in names
        ]
        for p in patches:
            p.start()
        try:
            result = task.run()
        finally:
            for p in patches:
                p.stop()

        assert order == names
        assert [phase.name for phase in result.phases] == [
            "bootstrap",
            "sources",
            "host",
            "targets",
            "tools",
        ]
        assert result.outcome is TaskOutcome.UP_TO_DATE

    def test_error_aborts_remaining_phases(self, task):
        """Test a fatal error stops the run."""
        with patch.object(
            task,
            "download_sources_if_required",
            side_effect=VersionMismatchError("Go sources", "1.20.3", "1.19.0", "/sdk"),
        ), patch.object(task, "download_bootstrap_if_required", return_value=True), patch.object(
            task, "build_host_if_required"
        ) as host:
            with pytest.raises(VersionMismatchError):
                task.run()

        host.assert_not_called()

    def test_requires_validated_settings(self, validated_settings):
        """Test unvalidated settings are rejected."""
        validated_settings.toolchain.toolchain_root = None

        with pytest.raises(ConfigurationError, match="validation"):
            PrepareToolchain(validated_settings)


class TestDownloadUris:
    """Tests for download URI construction."""

    def test_source_uri(self, task):
        """Test the source archive URI."""
        assert task.source_download_uri() == "https://example.test/go/go1.20.3.src.tar.gz"

    def test_bootstrap_uri_posix(self, task, validated_settings):
        """Test the bootstrap URI on a POSIX host."""
        validated_settings.build.host_platform = LINUX_ARM64
        assert (
            task.bootstrap_download_uri()
            == "https://example.test/go/go1.20.3.linux-arm64.tar.gz"
        )

    def test_bootstrap_uri_windows(self, task, validated_settings):
        """Test the bootstrap URI on a Windows host."""
        validated_settings.build.host_platform = WINDOWS_AMD64
        assert (
            task.bootstrap_download_uri()
            == "https://example.test/go/go1.20.3.windows-amd64.zip"
        )


class TestDownloadBootstrap:
    """Tests for download_bootstrap_if_required()."""

    def test_present_is_noop(self, task):
        """Test an existing bootstrap binary is used as is."""
        with patch(f"{MODULE}.go_binary_version_of", return_value="1.19.0"), patch(
            f"{MODULE}.download"
        ) as download:
            assert task.download_bootstrap_if_required() is False

        download.assert_not_called()

    def test_download_when_absent(self, task, toolchain):
        """Test the bootstrap is downloaded into the bootstrap root."""
        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.20.3"]), patch(
            f"{MODULE}.download"
        ) as download:
            assert task.download_bootstrap_if_required() is True

        download.assert_called_once()
        uri, destination = download.call_args[0]
        assert uri == task.bootstrap_download_uri()
        assert destination == toolchain.bootstrap_root

    def test_still_unusable_after_download(self, task):
        """Test a download without working binary is fatal."""
        with patch(f"{MODULE}.go_binary_version_of", return_value=None), patch(
            f"{MODULE}.download"
        ):
            with pytest.raises(AcquisitionError, match="not usable"):
                task.download_bootstrap_if_required()

    def test_version_must_match_exactly(self, task, toolchain):
        """Test the default policy requires the exact version."""
        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.21.0"]), patch(
            f"{MODULE}.download"
        ):
            with pytest.raises(VersionMismatchError) as exc_info:
                task.download_bootstrap_if_required()

        assert exc_info.value.expected == "1.20.3"
        assert exc_info.value.actual == "1.21.0"
        assert exc_info.value.path == toolchain.bootstrap_root

    def test_minimum_policy_accepts_newer(self, task, toolchain):
        """Test the minimum policy accepts a newer bootstrap."""
        toolchain.bootstrap_version_policy = BOOTSTRAP_POLICY_MINIMUM

        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.21.0"]), patch(
            f"{MODULE}.download"
        ):
            assert task.download_bootstrap_if_required() is True

    def test_minimum_policy_rejects_older(self, task, toolchain):
        """Test the minimum policy rejects an older bootstrap."""
        toolchain.bootstrap_version_policy = BOOTSTRAP_POLICY_MINIMUM

        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.19.0"]), patch(
            f"{MODULE}.download"
        ):
            with pytest.raises(VersionMismatchError):
                task.download_bootstrap_if_required()

    @pytest.mark.parametrize(
        "error",
        [
            DownloadError("connection reset"),
            ArchiveExtractionError("truncated"),
            PermissionError("read-only"),
        ],
    )
    def test_io_failures_wrapped(self, task, error):
        """Test download and extraction failures become AcquisitionError."""
        with patch(f"{MODULE}.go_binary_version_of", return_value=None), patch(
            f"{MODULE}.download", side_effect=error
        ):
            with pytest.raises(AcquisitionError) as exc_info:
                task.download_bootstrap_if_required()

        assert exc_info.value.__cause__ is error
        assert task.bootstrap_download_uri() in str(exc_info.value)


class TestDownloadSources:
    """Tests for download_sources_if_required()."""

    def test_matching_version_is_noop(self, task, toolchain):
        """Test matching sources cause no network access."""
        toolchain.toolchain_root.mkdir(parents=True)
        (toolchain.toolchain_root / "VERSION").write_text("1.20.3\n")

        with patch(f"{MODULE}.download") as download:
            assert task.download_sources_if_required() is False

        download.assert_not_called()

    def test_release_format_is_noop(self, task, toolchain):
        """Test VERSION files in Go release format match."""
        toolchain.toolchain_root.mkdir(parents=True)
        (toolchain.toolchain_root / "VERSION").write_text("go1.20.3\ntime 2023-04-04T16:57:48Z\n")

        with patch(f"{MODULE}.download") as download:
            assert task.download_sources_if_required() is False

        download.assert_not_called()

    def test_stale_sources_downloaded_and_still_stale(self, task, toolchain):
        """Test a download that leaves the old version in place is fatal."""
        toolchain.toolchain_root.mkdir(parents=True)
        (toolchain.toolchain_root / "VERSION").write_text("1.19.0")

        with patch(f"{MODULE}.download") as download:
            with pytest.raises(VersionMismatchError) as exc_info:
                task.download_sources_if_required()

        assert download.call_args[0][0] == "https://example.test/go/go1.20.3.src.tar.gz"
        assert exc_info.value.actual == "1.19.0"
        assert exc_info.value.expected == "1.20.3"

    def test_download_replaces_sources(self, task, toolchain):
        """Test sources are downloaded into the toolchain root."""

        def fake_download(uri, destination, progress_callback=None):
            destination.mkdir(parents=True, exist_ok=True)
            (destination / "VERSION").write_text("go1.20.3")

        with patch(f"{MODULE}.download", side_effect=fake_download) as download:
            assert task.download_sources_if_required() is True

        assert download.call_args[0][1] == toolchain.toolchain_root

    def test_no_version_after_download(self, task):
        """Test a download without VERSION file is fatal."""
        with patch(f"{MODULE}.download"):
            with pytest.raises(AcquisitionError, match="no valid go sources"):
                task.download_sources_if_required()


class TestBuild:
    """Tests for the build primitive."""

    def test_existing_marker_skips(self, task):
        """Test an existing marker means no process invocation."""
        marker = host_marker(task)
        marker.parent.mkdir(parents=True)
        marker.touch()

        with patch(f"{MODULE}.execute") as execute:
            assert task.build(task.host_platform, force=False) is False

        execute.assert_not_called()

    def test_force_rebuilds(self, task):
        """Test force rebuilds even with an existing marker."""
        marker = host_marker(task)
        marker.parent.mkdir(parents=True)
        marker.write_bytes(b"stale")

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build(task.host_platform, force=True) is True

        execute.assert_called_once()
        assert marker.exists()
        assert marker.stat().st_size == 0

    def test_build_invocation(self, task, toolchain):
        """Test the build script, arguments and environment."""
        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build(LINUX_ARM64, force=False) is True

        args, kwargs = execute.call_args
        script = toolchain.source_root / task.host_platform.operating_system.build_script
        assert args == (script, ["--no-clean"])
        assert kwargs["working_directory"] == toolchain.source_root
        assert kwargs["remove_env"] == ["GOPATH"]
        assert kwargs["fail_keywords"] == BUILD_FAIL_KEYWORDS
        assert kwargs["env"] == {
            "GOROOT": toolchain.toolchain_root,
            "GOROOT_BOOTSTRAP": toolchain.bootstrap_root,
            "GOOS": "linux",
            "GOARCH": "arm64",
            "CGO_ENABLED": "0",
        }
        marker = toolchain.toolchain_root / "pkg" / "linux_arm64" / ".built"
        assert marker.exists()
        assert marker.stat().st_size == 0

    def test_cgo_enabled(self, task, toolchain):
        """Test CGO_ENABLED follows the native interop flag."""
        toolchain.native_interop_enabled = True

        with patch(f"{MODULE}.execute", return_value="") as execute:
            task.build(LINUX_ARM64, force=False)

        assert execute.call_args[1]["env"]["CGO_ENABLED"] == "1"

    def test_failed_build_writes_no_marker(self, task):
        """Test the marker is only written after success."""
        error = ProcessExecutionError(["make.bash"], 1, "boom")

        with patch(f"{MODULE}.execute", side_effect=error):
            with pytest.raises(ProcessExecutionError):
                task.build(LINUX_ARM64, force=False)

        assert not task.build_marker_of(LINUX_ARM64).exists()

    @pytest.mark.skipif(sys.platform == "win32", reason="uses shebang scripts")
    def test_error_output_with_zero_exit_fails(self, task, toolchain, make_script):
        """Test a build script exiting 0 but printing 'ERROR: ' fails."""
        make_script(
            toolchain.source_root / "make.bash",
            "print('Building Go cmd/dist using /bootstrap.')\n"
            "print('ERROR: Cannot find /bootstrap/bin/go.')\n",
        )

        with pytest.raises(ProcessExecutionError) as exc_info:
            task.build(LINUX_ARM64, force=False)

        assert exc_info.value.returncode == 0
        assert exc_info.value.matched_keyword == "ERROR: "
        assert not task.build_marker_of(LINUX_ARM64).exists()

    def test_unwritable_marker(self, task):
        """Test a marker that cannot be written is reported as a build failure."""
        with patch(f"{MODULE}.execute", return_value=""), patch(
            f"{MODULE}.atomic_write", side_effect=PermissionError("read-only file system")
        ):
            with pytest.raises(BuildFailureError, match="build marker"):
                task.build(LINUX_ARM64, force=False)

        assert not task.build_marker_of(LINUX_ARM64).exists()

    def test_build_lock_timeout(self, validated_settings):
        """Test a build lock held elsewhere times out with a provisioning error."""
        toolchain = validated_settings.toolchain
        locks = LockManager.for_root(toolchain.toolchain_root, timeout=0.1)
        task = PrepareToolchain(validated_settings, lock_manager=locks)
        locks.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_file = locks.lock_dir / f"build-{toolchain.toolchain_root.name}-linux_arm64.lock"

        with FileLock(str(lock_file)), patch(f"{MODULE}.execute") as execute:
            with pytest.raises(LockTimeout) as exc_info:
                task.build(LINUX_ARM64, force=False)

        assert isinstance(exc_info.value, GoToolchainError)
        execute.assert_not_called()


class TestBuildHost:
    """Tests for build_host_if_required()."""

    def test_runnable_matching_toolchain_is_noop(self, task):
        """Test a runnable toolchain of the right version is kept."""
        with patch(f"{MODULE}.go_binary_version_of", return_value="1.20.3"), patch.object(
            task, "build"
        ) as build:
            assert task.build_host_if_required() is False

        build.assert_not_called()

    def test_builds_when_not_runnable(self, task):
        """Test the host toolchain is built with force when not runnable."""
        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.20.3"]), patch.object(
            task, "build", return_value=True
        ) as build:
            assert task.build_host_if_required() is True

        build.assert_called_once_with(task.host_platform, force=True)

    def test_mismatch_after_build(self, task, toolchain):
        """Test a built toolchain of the wrong version is fatal."""
        with patch(f"{MODULE}.go_binary_version_of", side_effect=[None, "1.19.0"]), patch.object(
            task, "build", return_value=True
        ):
            with pytest.raises(VersionMismatchError) as exc_info:
                task.build_host_if_required()

        assert exc_info.value.path == toolchain.toolchain_root

    def test_still_not_runnable_after_build(self, task):
        """Test a build that yields no runnable binary is fatal."""
        with patch(f"{MODULE}.go_binary_version_of", return_value=None), patch.object(
            task, "build", return_value=True
        ):
            with pytest.raises(VersionMismatchError, match="but it is None"):
                task.build_host_if_required()

    def test_mismatch_of_existing_toolchain(self, task):
        """Test an installed toolchain of the wrong version is fatal."""
        with patch(f"{MODULE}.go_binary_version_of", return_value="1.19.0"), patch.object(
            task, "build"
        ) as build:
            with pytest.raises(VersionMismatchError):
                task.build_host_if_required()

        build.assert_not_called()


class TestBuildTargets:
    """Tests for build_targets_if_required()."""

    def test_builds_each_platform_in_order(self, task, validated_settings):
        """Test every configured platform is built once, in order."""
        validated_settings.build.platforms = [LINUX_ARM64, WINDOWS_AMD64]

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_targets_if_required() is True

        goos = [c[1]["env"]["GOOS"] for c in execute.call_args_list]
        assert goos == ["linux", "windows"]

    def test_built_platforms_skipped(self, task, validated_settings):
        """Test previously built platforms cause no process invocation."""
        validated_settings.build.platforms = [LINUX_ARM64, WINDOWS_AMD64]
        for platform in validated_settings.build.platforms:
            marker = task.build_marker_of(platform)
            marker.parent.mkdir(parents=True)
            marker.touch()

        with patch(f"{MODULE}.execute") as execute:
            assert task.build_targets_if_required() is False

        execute.assert_not_called()

    def test_force_rebuild(self, task, validated_settings):
        """Test force_rebuild rebuilds every platform."""
        validated_settings.build.platforms = [LINUX_ARM64, WINDOWS_AMD64]
        validated_settings.toolchain.force_rebuild = True
        for platform in validated_settings.build.platforms:
            marker = task.build_marker_of(platform)
            marker.parent.mkdir(parents=True)
            marker.touch()

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_targets_if_required() is True

        assert execute.call_count == 2

    def test_partial_rebuild(self, task, validated_settings):
        """Test only platforms without marker are built."""
        validated_settings.build.platforms = [LINUX_ARM64, WINDOWS_AMD64]
        marker = task.build_marker_of(LINUX_ARM64)
        marker.parent.mkdir(parents=True)
        marker.touch()

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_targets_if_required() is True

        execute.assert_called_once()
        assert execute.call_args[1]["env"]["GOOS"] == "windows"


class TestBuildTool:
    """Tests for build_tool_if_required()."""

    NAME = "importsExtractor"

    def paths(self, toolchain):
        binary = toolchain.tool_bin_directory / f"{self.NAME}{toolchain.executable_suffix}"
        info = toolchain.tool_bin_directory / f"{self.NAME}.info"
        return binary, info

    def install(self, toolchain, key):
        binary, info = self.paths(toolchain)
        binary.parent.mkdir(parents=True, exist_ok=True)
        binary.write_bytes(b"\x7fELF")
        info.write_text(key)

    def test_key(self, task):
        """Test the cache key format."""
        assert task.tool_info_key(self.NAME) == f"importsExtractor:gotoolchain:{__version__}"

    def test_current_tool_skipped(self, task, toolchain):
        """Test an identical key skips the build."""
        self.install(toolchain, task.tool_info_key(self.NAME))

        with patch(f"{MODULE}.execute") as execute:
            assert task.build_tool_if_required(self.NAME) is False

        execute.assert_not_called()

    @pytest.mark.parametrize(
        "key",
        [
            f"otherTool:gotoolchain:{__version__}",
            f"importsExtractor:othergroup:{__version__}",
            "importsExtractor:gotoolchain:0.0.1",
            f"importsExtractor:gotoolchain:{__version__}\n",
        ],
    )
    def test_changed_key_rebuilds(self, task, toolchain, key, private_tempdir):
        """Test changing any part of the key forces a rebuild."""
        self.install(toolchain, key)

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_tool_if_required(self.NAME) is True

        execute.assert_called_once()
        _, info = self.paths(toolchain)
        assert info.read_text() == task.tool_info_key(self.NAME)

    def test_plugin_version_bump_rebuilds(self, task, toolchain, private_tempdir):
        """Test a new gotoolchain version invalidates built tools."""
        self.install(toolchain, task.tool_info_key(self.NAME))
        task.tool_version = "99.0.0"

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_tool_if_required(self.NAME) is True

        execute.assert_called_once()

    def test_missing_binary_rebuilds(self, task, toolchain, private_tempdir):
        """Test a missing binary forces a rebuild even with a current info file."""
        self.install(toolchain, task.tool_info_key(self.NAME))
        binary, _ = self.paths(toolchain)
        binary.unlink()

        with patch(f"{MODULE}.execute", return_value="") as execute:
            assert task.build_tool_if_required(self.NAME) is True

        execute.assert_called_once()

    def test_build_invocation(self, task, toolchain, private_tempdir):
        """Test the compiler invocation and temporary source handling."""
        seen = {}

        def fake_execute(command, arguments, **kwargs):
            source = arguments[3]
            seen["source"] = source
            seen["content"] = source.read_bytes()
            return ""

        with patch(f"{MODULE}.execute", side_effect=fake_execute) as execute, patch(
            f"{MODULE}.load_tool_source", return_value=b"package main\n"
        ):
            assert task.build_tool_if_required(self.NAME) is True

        binary, info = self.paths(toolchain)
        args, kwargs = execute.call_args
        assert args[0] == toolchain.go_binary
        assert args[1][:3] == ["build", "-o", binary]
        assert kwargs["remove_env"] == ["GOPATH"]
        assert kwargs["env"] == {
            "GOROOT": toolchain.toolchain_root,
            "GOROOT_BOOTSTRAP": toolchain.bootstrap_root,
        }
        assert seen["content"] == b"package main\n"
        assert seen["source"].suffix == ".go"
        assert seen["source"].parent == private_tempdir
        assert not seen["source"].exists()
        assert toolchain.tool_bin_directory.is_dir()
        assert info.read_text() == task.tool_info_key(self.NAME)

    def test_temporary_source_removed_on_build_failure(self, task, toolchain, private_tempdir):
        """Test the temporary source is removed when the compiler fails."""
        error = ProcessExecutionError(["go", "build"], 1, "syntax error")

        with patch(f"{MODULE}.execute", side_effect=error):
            with pytest.raises(ProcessExecutionError):
                task.build_tool_if_required(self.NAME)

        assert list(private_tempdir.iterdir()) == []
        _, info = self.paths(toolchain)
        assert not info.exists()

    def test_temporary_source_removed_on_missing_resource(self, task, private_tempdir):
        """Test the temporary source is removed when the resource is missing."""
        with patch(
            f"{MODULE}.load_tool_source",
            side_effect=ResourceMissingError("no source"),
        ), patch(f"{MODULE}.execute") as execute:
            with pytest.raises(ResourceMissingError):
                task.build_tool_if_required(self.NAME)

        execute.assert_not_called()
        assert list(private_tempdir.iterdir()) == []

    def test_unwritable_info_file(self, task, toolchain, private_tempdir):
        """Test an info file that cannot be written is reported as a build failure."""
        with patch(f"{MODULE}.execute", return_value=""), patch(
            f"{MODULE}.atomic_write", side_effect=PermissionError("read-only file system")
        ):
            with pytest.raises(BuildFailureError, match=self.NAME):
                task.build_tool_if_required(self.NAME)

        assert list(private_tempdir.iterdir()) == []
        _, info = self.paths(toolchain)
        assert not info.exists()

    def test_build_tools_if_required(self, task):
        """Test all helper tools are visited."""
        with patch.object(task, "build_tool_if_required", return_value=False) as build_tool:
            assert task.build_tools_if_required() is False

        assert build_tool.call_args_list == [call("importsExtractor")]


class TestProgress:
    """Tests for progress reporting."""

    def test_progress_messages(self, validated_settings):
        """Test progress messages reach the callback."""
        messages = []
        task = PrepareToolchain(validated_settings, progress_callback=messages.append)

        with patch(f"{MODULE}.execute", return_value=""):
            task.build(LINUX_ARM64, force=False)

        assert messages == ["Building go toolchain for linux-arm64..."]
