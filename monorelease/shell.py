"""Shell, git and gh utilities.

Provides simple wrappers around subprocess calls for running git, the GitHub
CLI and build tools, plus output formatting helpers. Every external call is
bounded by a timeout; a timeout is reported as a failure of the collaborator
that was called.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from .errors import HostingError, ReleaseError, VersionControlError

# Local git operations (status, log, diff, checkout, add, commit)
GIT_TIMEOUT_SECONDS = 30.0

# Network-bound operations (push, gh)
NETWORK_TIMEOUT_SECONDS = 3 * 60.0


def git(
    *args: str,
    check: bool = True,
    cwd: Path | None = None,
    timeout: float = GIT_TIMEOUT_SECONDS,
) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
        cwd: Directory to run in; defaults to the current directory.
        timeout: Seconds to wait before giving up.

    Returns:
        Stripped stdout from the git command.

    Raises:
        VersionControlError: On non-zero exit (when check is True) or timeout.
    """
    command = " ".join(("git", *args))
    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, cwd=cwd, timeout=timeout
        )
    except subprocess.TimeoutExpired as exc:
        raise VersionControlError(command, f"timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise VersionControlError(command, str(exc)) from exc
    if check and result.returncode != 0:
        raise VersionControlError(command, result.stderr.strip())
    return result.stdout.strip()


def gh(
    *args: str,
    check: bool = True,
    cwd: Path | None = None,
    timeout: float = NETWORK_TIMEOUT_SECONDS,
) -> str:
    """Run a GitHub CLI command and return stdout.

    Raises:
        HostingError: On non-zero exit (when check is True), timeout, or
                      when gh is not installed.
    """
    try:
        result = subprocess.run(
            ["gh", *args], capture_output=True, text=True, cwd=cwd, timeout=timeout
        )
    except subprocess.TimeoutExpired as exc:
        raise HostingError(f"gh {args[0]} timed out after {timeout:g}s") from exc
    except OSError as exc:
        raise HostingError(f"gh is not available: {exc}") from exc
    if check and result.returncode != 0:
        raise HostingError(
            f"gh {' '.join(args[:2])} failed (exit {result.returncode}): "
            f"{result.stderr.strip()}"
        )
    return result.stdout.strip()


def run(
    *args: str,
    check: bool = True,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike git(), this doesn't capture output - it streams directly to
    the terminal so users can see build progress, etc.

    Args:
        *args: Command and arguments (e.g., "uv", "build", "pkg/").
        check: If True (default), raise on non-zero exit.
        cwd: Directory to run in.
        timeout: Seconds to wait, or None for no limit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    try:
        result = subprocess.run(args, cwd=cwd, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise ReleaseError(f"{args[0]} timed out after {timeout:g}s") from exc
    if check and result.returncode != 0:
        raise ReleaseError(f"{' '.join(args[:2])} failed (exit {result.returncode})")
    return result


def capture(
    *args: str, cwd: Path | None = None, timeout: float | None = None
) -> subprocess.CompletedProcess[str]:
    """Run a command, capturing stdout and stderr, without checking the exit code."""
    return subprocess.run(
        args, capture_output=True, text=True, cwd=cwd, timeout=timeout
    )


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    Progress goes to stderr so stdout stays free for machine-readable output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def info(msg: str) -> None:
    """Print an indented progress line under the current step."""
    print(f"  {msg}", file=sys.stderr)


def warn(msg: str) -> None:
    """Print a warning. Used for problems that don't halt the pipeline."""
    print(f"WARNING: {msg}", file=sys.stderr)
