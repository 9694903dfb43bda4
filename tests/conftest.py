"""
Pytest configuration and shared fixtures for gotoolchain tests.
"""

import os
import stat
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from gotoolchain.config.settings import BuildSettings, ProjectSettings, ToolchainSettings
from gotoolchain.core.platform import current_platform


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def isolated_home(temp_dir: Path, monkeypatch) -> Path:
    """Create isolated home directory for tests."""
    fake_home = temp_dir / "home"
    fake_home.mkdir()

    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.delenv("GOTOOLCHAIN_HOME", raising=False)

    return fake_home


@pytest.fixture
def clean_environment(monkeypatch):
    """Remove every GOTOOLCHAIN_* variable and GOROOT from the environment."""
    for name in list(os.environ):
        if name.startswith("GOTOOLCHAIN_") or name == "GOROOT":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def validated_settings(temp_dir: Path) -> ProjectSettings:
    """Settings as the validation step leaves them, rooted in a temp dir."""
    host = current_platform()
    cache_root = temp_dir / "cache"
    return ProjectSettings(
        toolchain=ToolchainSettings(
            go_version="1.20.3",
            toolchain_root=cache_root / "sdk" / "1.20.3",
            bootstrap_root=cache_root / "sdk" / "bootstrap",
            download_base_uri="https://example.test/go/go",
            executable_suffix=host.operating_system.executable_suffix,
        ),
        build=BuildSettings(
            package_name="github.com/example/app",
            platforms=[host],
            cache_root=cache_root,
            build_dir=temp_dir / "build",
            host_platform=host,
        ),
    )


@pytest.fixture
def make_script():
    """Factory writing Python scripts usable as executables on POSIX hosts."""

    def _make(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make
