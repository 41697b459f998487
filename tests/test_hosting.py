"""Tests for monorelease.hosting."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from monorelease.errors import HostingError, LabelError
from monorelease.hosting import GitHubClient


def _pr(number: int, branch: str, labels: list[str] | None = None) -> dict:
    return {
        "number": number,
        "title": f"chore: release #{number}",
        "body": "body",
        "headRefName": branch,
        "baseRefName": "main",
        "labels": [{"name": n} for n in labels or []],
        "url": f"https://github.com/o/r/pull/{number}",
    }


@pytest.fixture
def client(tmp_path: Path) -> GitHubClient:
    return GitHubClient(tmp_path, timeout=10)


class TestFindOpenReleaseRequest:
    @patch("monorelease.hosting.gh")
    def test_filters_by_prefix(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = json.dumps(
            [_pr(3, "feature-x"), _pr(5, "release-2024", ["bug"]), _pr(4, "release-2023")]
        )

        request = client.find_open_release_request("release-")

        assert request is not None
        assert request.number == 5
        assert request.branch == "release-2024"
        assert request.labels == ["bug"]
        assert request.base_branch == "main"

    @patch("monorelease.hosting.gh")
    def test_none_open(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = "[]"
        assert client.find_open_release_request("release-") is None

    @patch("monorelease.hosting.gh")
    def test_bad_output(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = "not json"
        with pytest.raises(HostingError, match="unexpected output"):
            client.find_open_release_request("release-")


class TestCreateAndUpdate:
    @patch("monorelease.hosting.gh")
    def test_create(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = "https://github.com/o/r/pull/12"

        request = client.create_request("title", "body", "release-x", ["a", "b"], base="main")

        assert request.number == 12
        assert request.url == "https://github.com/o/r/pull/12"
        args = mock_gh.call_args.args
        assert args[:2] == ("pr", "create")
        assert ("--head", "release-x") == args[args.index("--head") : args.index("--head") + 2]
        assert args.count("--label") == 2

    @patch("monorelease.hosting.gh")
    def test_create_unexpected_output(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = "something odd"
        with pytest.raises(HostingError, match="pull request number"):
            client.create_request("t", "b", "release-x", [], base="main")

    @patch("monorelease.hosting.gh")
    def test_update_adds_labels(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        client.update_request(7, "title", "body", ["bug", "new"])

        assert mock_gh.call_args.args == (
            "pr", "edit", "7", "--title", "title", "--body", "body",
            "--add-label", "bug", "--add-label", "new",
        )


class TestEnsureLabelsExist:
    @patch("monorelease.hosting.gh")
    def test_creates_missing(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.side_effect = [json.dumps([{"name": "bug"}]), ""]

        client.ensure_labels_exist(["bug", "needs-testing"])

        assert mock_gh.call_args.args == ("label", "create", "needs-testing")
        assert mock_gh.call_count == 2

    @patch("monorelease.hosting.gh")
    def test_failure_names_label(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.side_effect = ["[]", HostingError("HTTP 422")]

        with pytest.raises(LabelError, match="Failed to add label `weird`: HTTP 422"):
            client.ensure_labels_exist(["weird"])

    @patch("monorelease.hosting.gh")
    def test_nothing_to_do(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        client.ensure_labels_exist([])
        mock_gh.assert_not_called()


class TestReleases:
    @patch("monorelease.hosting.gh")
    def test_release_assets(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        mock_gh.return_value = json.dumps(
            {"assets": [{"name": "pkg_a-1.0.0-py3-none-any.whl"}]}
        )
        assert client.release_assets("pkg-a/v1.0.0") == ["pkg_a-1.0.0-py3-none-any.whl"]

    @patch("monorelease.hosting.gh")
    def test_create_release(self, mock_gh: MagicMock, client: GitHubClient) -> None:
        client.create_release("v1.0.0", "pkg v1.0.0", "notes", ["dist/a.whl"])
        assert mock_gh.call_args.args == (
            "release", "create", "v1.0.0", "dist/a.whl",
            "--title", "pkg v1.0.0", "--notes", "notes",
        )
