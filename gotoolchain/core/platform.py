"""
Platform model for gotoolchain.

This module enumerates the operating systems and CPU architectures the Go
toolchain can be built for, maps each of them to the names Go uses
(GOOS/GOARCH) and to the packaging conventions of official Go downloads, and
detects the platform of the running host.

Usage:
    from gotoolchain.core.platform import Platform, current_platform

    host = current_platform()
    print(host.name_in_go)              # 'linux-amd64'
    print(host.operating_system.package_format.suffix)  # '.tar.gz'

    targets = parse_platforms("linux-amd64,windows-386")
"""

import functools
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Union

from gotoolchain.core.exceptions import ConfigurationError


class PackageFormat(Enum):
    """Archive format of prebuilt Go distributions."""

    TAR_GZ = ".tar.gz"
    ZIP = ".zip"

    @property
    def suffix(self) -> str:
        return self.value


class OperatingSystem(Enum):
    """Operating systems known to the Go toolchain (value is the GOOS name)."""

    LINUX = "linux"
    DARWIN = "darwin"
    WINDOWS = "windows"
    FREEBSD = "freebsd"
    NETBSD = "netbsd"
    OPENBSD = "openbsd"
    DRAGONFLY = "dragonfly"
    SOLARIS = "solaris"

    @property
    def name_in_go(self) -> str:
        return self.value

    @property
    def package_format(self) -> PackageFormat:
        return _PACKAGE_FORMATS[self]

    @property
    def executable_suffix(self) -> str:
        return _EXECUTABLE_SUFFIXES.get(self, "")

    @property
    def build_script(self) -> str:
        """Name of the toolchain build script runnable on this OS."""
        return _BUILD_SCRIPTS.get(self, "make.bash")

    def __str__(self) -> str:
        return self.value


class Architecture(Enum):
    """CPU architectures known to the Go toolchain (value is the GOARCH name)."""

    X86 = "386"
    AMD64 = "amd64"
    ARM = "arm"
    ARM64 = "arm64"
    PPC64 = "ppc64"
    PPC64LE = "ppc64le"
    MIPS = "mips"
    MIPSLE = "mipsle"
    MIPS64 = "mips64"
    MIPS64LE = "mips64le"
    S390X = "s390x"
    RISCV64 = "riscv64"
    LOONG64 = "loong64"

    @property
    def name_in_go(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


_PACKAGE_FORMATS = {
    OperatingSystem.LINUX: PackageFormat.TAR_GZ,
    OperatingSystem.DARWIN: PackageFormat.TAR_GZ,
    OperatingSystem.WINDOWS: PackageFormat.ZIP,
    OperatingSystem.FREEBSD: PackageFormat.TAR_GZ,
    OperatingSystem.NETBSD: PackageFormat.TAR_GZ,
    OperatingSystem.OPENBSD: PackageFormat.TAR_GZ,
    OperatingSystem.DRAGONFLY: PackageFormat.TAR_GZ,
    OperatingSystem.SOLARIS: PackageFormat.TAR_GZ,
}

_EXECUTABLE_SUFFIXES = {
    OperatingSystem.WINDOWS: ".exe",
}

_BUILD_SCRIPTS = {
    OperatingSystem.WINDOWS: "make.bat",
}

# platform.system() -> OperatingSystem
_SYSTEM_NAMES = {
    "linux": OperatingSystem.LINUX,
    "darwin": OperatingSystem.DARWIN,
    "windows": OperatingSystem.WINDOWS,
    "freebsd": OperatingSystem.FREEBSD,
    "netbsd": OperatingSystem.NETBSD,
    "openbsd": OperatingSystem.OPENBSD,
    "dragonfly": OperatingSystem.DRAGONFLY,
    "sunos": OperatingSystem.SOLARIS,
}

# platform.machine() -> Architecture
_MACHINE_NAMES = {
    "x86_64": Architecture.AMD64,
    "amd64": Architecture.AMD64,
    "x64": Architecture.AMD64,
    "aarch64": Architecture.ARM64,
    "arm64": Architecture.ARM64,
    "i386": Architecture.X86,
    "i686": Architecture.X86,
    "x86": Architecture.X86,
    "ppc64": Architecture.PPC64,
    "ppc64le": Architecture.PPC64LE,
    "s390x": Architecture.S390X,
    "riscv64": Architecture.RISCV64,
    "loongarch64": Architecture.LOONG64,
    "mips": Architecture.MIPS,
    "mips64": Architecture.MIPS64,
}


@dataclass(frozen=True)
class Platform:
    """
    A target platform: operating system plus CPU architecture.

    Platforms are immutable value objects compared by (os, arch).

    Attributes:
        operating_system: Target operating system
        architecture: Target CPU architecture
    """

    operating_system: OperatingSystem
    architecture: Architecture

    @property
    def name_in_go(self) -> str:
        """
        Canonical platform name as used in Go download file names.

        Example:
            >>> Platform(OperatingSystem.LINUX, Architecture.AMD64).name_in_go
            'linux-amd64'
        """
        return f"{self.operating_system.name_in_go}-{self.architecture.name_in_go}"

    @property
    def package_directory_name(self) -> str:
        """Name of the per-platform directory below GOROOT/pkg ('linux_amd64')."""
        return f"{self.operating_system.name_in_go}_{self.architecture.name_in_go}"

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """
        Parse a platform string such as 'linux-amd64' or 'windows/386'.

        Args:
            value: Platform string

        Returns:
            Parsed Platform

        Raises:
            ValueError: If the string is malformed or names an unknown OS/arch
        """
        text = value.strip().lower()
        separator = "/" if "/" in text else "-"
        parts = text.split(separator)
        if len(parts) != 2 or not all(parts):
            raise ValueError(
                f"Illegal platform '{value}'. Expected format: <os>-<arch> (e.g. linux-amd64)"
            )
        os_name, arch_name = parts
        try:
            operating_system = OperatingSystem(os_name)
        except ValueError:
            raise ValueError(
                f"Unknown operating system '{os_name}' in platform '{value}'"
            ) from None
        try:
            architecture = Architecture(arch_name)
        except ValueError:
            raise ValueError(
                f"Unknown architecture '{arch_name}' in platform '{value}'"
            ) from None
        return cls(operating_system, architecture)

    def __str__(self) -> str:
        return self.name_in_go


def parse_platforms(value: Union[str, Iterable[str], None]) -> List[Platform]:
    """
    Parse a comma separated platform list (or a list of platform strings).

    Blank entries are ignored and duplicates dropped, keeping the first
    occurrence so that the configured order is preserved.

    Args:
        value: 'linux-amd64,darwin-arm64' or ['linux-amd64', 'darwin-arm64']

    Returns:
        Ordered list of distinct platforms (possibly empty)

    Raises:
        ConfigurationError: If any entry cannot be parsed
    """
    if value is None:
        return []
    if isinstance(value, str):
        entries = value.split(",")
    else:
        entries = list(value)

    platforms: List[Platform] = []
    for entry in entries:
        if isinstance(entry, Platform):
            parsed = entry
        else:
            if not str(entry).strip():
                continue
            try:
                parsed = Platform.parse(str(entry))
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        if parsed not in platforms:
            platforms.append(parsed)
    return platforms


def _detect_operating_system() -> OperatingSystem:
    """
    Detect the operating system of the host.

    Raises:
        RuntimeError: If the OS is not supported
    """
    system = platform.system().lower()
    try:
        return _SYSTEM_NAMES[system]
    except KeyError:
        raise RuntimeError(f"Unsupported operating system: {system}") from None


def _detect_architecture() -> Architecture:
    """
    Detect the CPU architecture of the host.

    Raises:
        RuntimeError: If the architecture is not supported
    """
    machine = platform.machine().lower()
    if machine in _MACHINE_NAMES:
        return _MACHINE_NAMES[machine]
    if machine.startswith("arm"):
        return Architecture.ARM
    raise RuntimeError(f"Unsupported architecture: {machine}")


@functools.lru_cache(maxsize=1)
def current_platform() -> Platform:
    """
    Detect the platform of the running host.

    This function is cached - it only runs detection once per process.
    """
    return Platform(_detect_operating_system(), _detect_architecture())


def clear_platform_cache():
    """Clear the host platform detection cache."""
    current_platform.cache_clear()


__all__ = [
    "PackageFormat",
    "OperatingSystem",
    "Architecture",
    "Platform",
    "parse_platforms",
    "current_platform",
    "clear_platform_cache",
]
