"""API compatibility checks with griffe.

`griffe check` compares the public API of a package at a git ref with the
working tree and exits with status 1 when it finds breaking changes.
"""

from __future__ import annotations

import shutil
import subprocess
import threading
from pathlib import Path

from .errors import CompatibilityCheckError
from .models import Compatibility, CompatibilityReport, Package
from .shell import NETWORK_TIMEOUT_SECONDS, capture

TRACEBACK_MARKER = "Traceback (most recent call last)"

# `griffe check --against` adds a git worktree to the shared repository
_worktree_lock = threading.Lock()


class GriffeChecker:
    """Compatibility checker backed by the griffe CLI.

    Args:
        workspace_root: Absolute workspace root.
        timeout: Seconds allowed per check.
    """

    def __init__(
        self, workspace_root: Path, *, timeout: float = NETWORK_TIMEOUT_SECONDS
    ) -> None:
        self.workspace_root = workspace_root
        self.timeout = timeout

    @staticmethod
    def available() -> bool:
        return shutil.which("griffe") is not None

    def check(self, package: Package, marker: str) -> CompatibilityReport:
        """Compare the package's API at `marker` with the working tree.

        Raises:
            CompatibilityCheckError: If griffe fails or times out.
        """
        pkg_dir = self.workspace_root / package.path
        search = "src" if (pkg_dir / "src").is_dir() else "."
        module = package.name.replace("-", "_")
        try:
            with _worktree_lock:
                result = capture(
                    "griffe",
                    "check",
                    module,
                    "--against",
                    marker,
                    "--search",
                    search,
                    cwd=pkg_dir,
                    timeout=self.timeout,
                )
        except subprocess.TimeoutExpired as exc:
            raise CompatibilityCheckError(
                package.name, f"griffe timed out after {self.timeout:g}s"
            ) from exc
        except OSError as exc:
            raise CompatibilityCheckError(package.name, str(exc)) from exc

        output = (result.stdout + result.stderr).strip()
        if result.returncode == 0:
            return CompatibilityReport(status=Compatibility.COMPATIBLE)
        # griffe also exits with 1 when it crashes; only its report means breaking
        if result.returncode == 1 and output and TRACEBACK_MARKER not in output:
            return CompatibilityReport(status=Compatibility.BREAKING, diagnostics=output)
        if TRACEBACK_MARKER in output:
            output = output.splitlines()[-1]
        raise CompatibilityCheckError(
            package.name, output or f"griffe exited with status {result.returncode}"
        )
