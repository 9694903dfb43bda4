"""
Centralized exception hierarchy for gotoolchain.

Every fatal condition raised while validating settings or provisioning the
toolchain derives from GoToolchainError, so hosts can catch one type.
"""

from pathlib import Path
from typing import Optional, Sequence, Union


# ============================================================================
# Base Exceptions
# ============================================================================


class GoToolchainError(Exception):
    """Base exception for all gotoolchain errors."""

    pass


# ============================================================================
# Configuration
# ============================================================================


class ConfigurationError(GoToolchainError):
    """Raised when required settings are missing or invalid.

    Always detected before any I/O is performed.
    """

    pass


# ============================================================================
# Provisioning
# ============================================================================


class VersionMismatchError(GoToolchainError):
    """Raised when an installed artifact reports an unexpected version."""

    def __init__(
        self,
        what: str,
        expected: str,
        actual: Optional[str],
        path: Union[str, Path],
    ):
        self.what = what
        self.expected = expected
        self.actual = actual
        self.path = Path(path)
        super().__init__(
            f"{what} in {self.path} was expected to be of version {expected} "
            f"but it is {actual}."
        )


class AcquisitionError(GoToolchainError):
    """Raised when a download or extraction fails, or its result is unusable."""

    pass


class BuildFailureError(GoToolchainError):
    """Raised when an external build or compile invocation fails."""

    pass


class ProcessExecutionError(BuildFailureError):
    """Raised when an executed process fails.

    A process fails when it exits with a non-zero status, cannot be started,
    or its combined output contains one of the configured fail keywords.
    """

    # Lines of captured output quoted in the message
    OUTPUT_TAIL_LINES = 20

    def __init__(
        self,
        command: Sequence[str],
        returncode: Optional[int],
        output: str,
        matched_keyword: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.command = list(command)
        self.returncode = returncode
        self.output = output
        self.matched_keyword = matched_keyword

        if reason is None:
            if matched_keyword is not None:
                reason = f"output contains failure marker {matched_keyword!r}"
            else:
                reason = f"exit code {returncode}"

        message = f"Command failed ({reason}): {' '.join(self.command)}"
        tail = output.strip().splitlines()[-self.OUTPUT_TAIL_LINES :]
        if tail:
            message += "\n" + "\n".join(f"  {line}" for line in tail)
        super().__init__(message)


class LockTimeout(GoToolchainError):
    """Raised when a lock on a shared toolchain directory is not acquired in time."""

    def __init__(self, lock_path: Union[str, Path], timeout: float):
        self.lock_path = Path(lock_path)
        self.timeout = timeout
        super().__init__(
            f"Could not acquire lock {self.lock_path} after {timeout}s. "
            "Another process may be provisioning the same toolchain."
        )


class ResourceMissingError(GoToolchainError):
    """Raised when an embedded resource (helper tool source) is not bundled."""

    pass


__all__ = [
    "GoToolchainError",
    "ConfigurationError",
    "VersionMismatchError",
    "AcquisitionError",
    "BuildFailureError",
    "ProcessExecutionError",
    "LockTimeout",
    "ResourceMissingError",
]
