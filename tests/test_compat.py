"""Tests for monorelease.compat."""

from __future__ import annotations

import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from monorelease.compat import GriffeChecker
from monorelease.errors import CompatibilityCheckError
from monorelease.models import Compatibility, Package


def _result(returncode: int, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["griffe"], returncode, stdout, stderr)


@pytest.fixture
def package(tmp_path: Path) -> Package:
    (tmp_path / "pkg-a" / "src").mkdir(parents=True)
    return Package(name="pkg-a", path="pkg-a", version="1.0.0")


class TestGriffeChecker:
    """Tests for GriffeChecker."""

    @patch("monorelease.compat.shutil.which", return_value=None)
    def test_unavailable(self, mock_which: MagicMock) -> None:
        assert not GriffeChecker.available()

    @patch("monorelease.compat.capture")
    def test_compatible(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        mock_capture.return_value = _result(0)

        report = GriffeChecker(tmp_path).check(package, "pkg-a/v1.0.0")

        assert report.status is Compatibility.COMPATIBLE
        args = mock_capture.call_args.args
        assert args == (
            "griffe", "check", "pkg_a", "--against", "pkg-a/v1.0.0", "--search", "src",
        )
        assert mock_capture.call_args.kwargs["cwd"] == tmp_path / "pkg-a"

    @patch("monorelease.compat.capture")
    def test_breaking(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        """Exit status 1 with output reports breaking changes."""
        mock_capture.return_value = _result(1, stderr="pkg_a.f: Public object was removed")

        report = GriffeChecker(tmp_path).check(package, "pkg-a/v1.0.0")

        assert report.status is Compatibility.BREAKING
        assert report.diagnostics == "pkg_a.f: Public object was removed"

    @patch("monorelease.compat.capture")
    def test_failure(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        mock_capture.return_value = _result(2, stderr="unknown ref")

        with pytest.raises(CompatibilityCheckError, match="pkg-a: unknown ref"):
            GriffeChecker(tmp_path).check(package, "pkg-a/v1.0.0")

    @patch("monorelease.compat.capture")
    def test_timeout(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        mock_capture.side_effect = subprocess.TimeoutExpired(["griffe"], 5)

        with pytest.raises(CompatibilityCheckError, match="timed out"):
            GriffeChecker(tmp_path, timeout=5).check(package, "pkg-a/v1.0.0")

    @patch("monorelease.compat.capture")
    def test_crash_is_not_breaking(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        """A griffe traceback exits with 1 too but is a failed check."""
        mock_capture.return_value = _result(
            1,
            stderr=(
                "Traceback (most recent call last):\n"
                '  File "griffe/_internal/cli.py", line 1, in check\n'
                "ModuleNotFoundError: No module named 'pkg_a'\n"
            ),
        )

        with pytest.raises(CompatibilityCheckError) as excinfo:
            GriffeChecker(tmp_path).check(package, "pkg-a/v1.0.0")
        assert str(excinfo.value) == (
            "API compatibility check failed for pkg-a: "
            "ModuleNotFoundError: No module named 'pkg_a'"
        )

    @patch("monorelease.compat.capture")
    def test_checks_do_not_overlap(
        self, mock_capture: MagicMock, tmp_path: Path, package: Package
    ) -> None:
        """Concurrent checks run griffe one at a time."""
        running = 0
        overlaps = []
        guard = threading.Lock()

        def fake_capture(*args, **kwargs) -> subprocess.CompletedProcess:
            nonlocal running
            with guard:
                running += 1
                overlaps.append(running)
            time.sleep(0.02)
            with guard:
                running -= 1
            return _result(0)

        mock_capture.side_effect = fake_capture
        checker = GriffeChecker(tmp_path)

        with ThreadPoolExecutor(max_workers=4) as pool:
            reports = list(pool.map(lambda _: checker.check(package, "pkg-a/v1.0.0"), range(4)))

        assert [r.status for r in reports] == [Compatibility.COMPATIBLE] * 4
        assert max(overlaps) == 1
