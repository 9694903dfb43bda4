"""
External process execution with environment control and output scanning.

Go's make scripts are known to exit with status 0 in some failure modes, so
a run is only considered successful if it exits with 0 *and* its combined
output contains none of the caller's fail keywords.

Example:
    >>> output = execute(
    ...     Path("/sdk/src/make.bash"),
    ...     ["--no-clean"],
    ...     working_directory=Path("/sdk/src"),
    ...     env={"GOOS": "linux", "GOARCH": "amd64"},
    ...     remove_env=["GOPATH"],
    ...     fail_keywords=["ERROR: "],
    ... )
"""

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from gotoolchain.core.exceptions import ProcessExecutionError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class ProcessResult:
    """Outcome of an executed process."""

    command: List[str]
    returncode: int
    output: str


def build_environment(
    env: Optional[Mapping[str, PathLike]] = None,
    remove_env: Iterable[str] = (),
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Build the environment for a child process.

    Removals are applied before overrides, so a variable named in both ends
    up with the override value.

    Args:
        env: Variables to set (values are converted with str())
        remove_env: Variables to remove
        base: Starting environment (default: os.environ)

    Returns:
        New environment mapping
    """
    result = dict(os.environ if base is None else base)
    for name in remove_env:
        result.pop(name, None)
    for name, value in (env or {}).items():
        result[name] = str(value)
    return result


def find_fail_keyword(output: str, fail_keywords: Iterable[str]) -> Optional[str]:
    """Return the first fail keyword contained in output (case-sensitive)."""
    for keyword in fail_keywords:
        if keyword and keyword in output:
            return keyword
    return None


def run_process(
    command: PathLike,
    arguments: Sequence[PathLike] = (),
    working_directory: Optional[PathLike] = None,
    env: Optional[Mapping[str, PathLike]] = None,
    remove_env: Iterable[str] = (),
    timeout: Optional[float] = None,
) -> ProcessResult:
    """
    Run a process and capture stdout and stderr combined.

    Raises:
        ProcessExecutionError: If the process cannot be started or times out
    """
    cmd = [str(command)] + [str(argument) for argument in arguments]
    logger.debug(f"Executing: {' '.join(cmd)} (cwd: {working_directory or os.getcwd()})")

    try:
        completed = subprocess.run(
            cmd,
            cwd=str(working_directory) if working_directory else None,
            env=build_environment(env, remove_env),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        output = e.output or ""
        if isinstance(output, bytes):
            output = output.decode(errors="replace")
        raise ProcessExecutionError(
            cmd, None, output, reason=f"timed out after {timeout}s"
        ) from e
    except OSError as e:
        raise ProcessExecutionError(cmd, None, "", reason=f"could not be started: {e}") from e

    return ProcessResult(
        command=cmd, returncode=completed.returncode, output=completed.stdout or ""
    )


def execute(
    command: PathLike,
    arguments: Sequence[PathLike] = (),
    working_directory: Optional[PathLike] = None,
    env: Optional[Mapping[str, PathLike]] = None,
    remove_env: Iterable[str] = (),
    fail_keywords: Iterable[str] = (),
    timeout: Optional[float] = None,
) -> str:
    """
    Execute a process and fail on non-zero exit or fail keywords.

    The whole output is captured before it is scanned; scanning is not
    streaming.

    Args:
        command: Executable to run
        arguments: Command line arguments
        working_directory: Working directory (default: current directory)
        env: Environment variables to set
        remove_env: Environment variables to remove
        fail_keywords: Case-sensitive substrings marking a failed run
        timeout: Optional timeout in seconds

    Returns:
        Combined stdout/stderr of the process

    Raises:
        ProcessExecutionError: If the process fails
    """
    fail_keywords = list(fail_keywords)
    result = run_process(command, arguments, working_directory, env, remove_env, timeout)

    if result.returncode != 0:
        raise ProcessExecutionError(result.command, result.returncode, result.output)

    matched = find_fail_keyword(result.output, fail_keywords)
    if matched is not None:
        raise ProcessExecutionError(
            result.command, result.returncode, result.output, matched_keyword=matched
        )

    return result.output


__all__ = [
    "ProcessResult",
    "build_environment",
    "find_fail_keyword",
    "run_process",
    "execute",
]
