"""GitHub access through the gh CLI.

GitHubClient is the hosting collaborator of the release pipeline: it finds
the release pull request left open by a previous run, creates and updates
it, makes sure its labels exist, and creates GitHub releases for tags.
"""

from __future__ import annotations

import json
from pathlib import Path

from .errors import HostingError, LabelError
from .models import OutgoingRequest
from .shell import NETWORK_TIMEOUT_SECONDS, gh

_PR_FIELDS = "number,title,body,headRefName,baseRefName,labels,url"


def _parse_json(output: str, what: str):
    try:
        return json.loads(output) if output else []
    except json.JSONDecodeError as exc:
        raise HostingError(f"unexpected output from gh while reading {what}: {exc}") from exc


def _to_request(data: dict) -> OutgoingRequest:
    return OutgoingRequest(
        number=data["number"],
        branch=data.get("headRefName", ""),
        title=data.get("title", ""),
        body=data.get("body", ""),
        labels=[label["name"] for label in data.get("labels", [])],
        url=data.get("url", ""),
        base_branch=data.get("baseRefName", ""),
    )


class GitHubClient:
    """Hosting client for the repository checked out at `root`.

    Args:
        root: Directory gh runs in; gh resolves the repository from its remote.
        timeout: Seconds allowed per gh call.
    """

    def __init__(self, root: Path, *, timeout: float = NETWORK_TIMEOUT_SECONDS) -> None:
        self.root = root
        self.timeout = timeout

    def gh(self, *args: str, check: bool = True) -> str:
        return gh(*args, check=check, cwd=self.root, timeout=self.timeout)

    def find_open_release_request(self, branch_prefix: str) -> OutgoingRequest | None:
        """Most recent open pull request whose head branch starts with branch_prefix."""
        output = self.gh(
            "pr", "list", "--state", "open", "--json", _PR_FIELDS, "--limit", "100"
        )
        candidates = [
            _to_request(pr)
            for pr in _parse_json(output, "pull requests")
            if pr.get("headRefName", "").startswith(branch_prefix)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda pr: pr.number)

    def create_request(
        self, title: str, body: str, branch: str, labels: list[str], base: str
    ) -> OutgoingRequest:
        args = [
            "pr", "create",
            "--title", title,
            "--body", body,
            "--head", branch,
            "--base", base,
        ]
        for label in labels:
            args.extend(["--label", label])
        # gh prints the URL of the new pull request
        url = self.gh(*args).splitlines()[-1].strip()
        number = url.rstrip("/").rsplit("/", 1)[-1]
        if not number.isdigit():
            raise HostingError(f"cannot read pull request number from gh output: {url}")
        return OutgoingRequest(
            number=int(number),
            branch=branch,
            title=title,
            body=body,
            labels=list(labels),
            url=url,
            base_branch=base,
        )

    def update_request(
        self, number: int, title: str, body: str, labels: list[str]
    ) -> None:
        args = ["pr", "edit", str(number), "--title", title, "--body", body]
        for label in labels:
            args.extend(["--add-label", label])
        self.gh(*args)

    def ensure_labels_exist(self, names: list[str]) -> None:
        """Create the labels the repository doesn't have yet.

        Raises:
            LabelError: If a label cannot be created.
        """
        if not names:
            return
        output = self.gh("label", "list", "--json", "name", "--limit", "1000")
        existing = {label["name"] for label in _parse_json(output, "labels")}
        for name in names:
            if name in existing:
                continue
            try:
                self.gh("label", "create", name)
            except HostingError as exc:
                raise LabelError(name, str(exc)) from exc

    def release_tags(self) -> list[str]:
        output = self.gh("release", "list", "--json", "tagName", "--limit", "100")
        return [r["tagName"] for r in _parse_json(output, "releases") if r.get("tagName")]

    def release_assets(self, tag: str) -> list[str]:
        """Names of the files attached to the release for `tag`."""
        output = self.gh("release", "view", tag, "--json", "assets")
        data = _parse_json(output, f"release {tag}") or {}
        return [asset["name"] for asset in data.get("assets", [])]

    def create_release(
        self, tag: str, title: str, notes: str, files: list[str]
    ) -> None:
        self.gh("release", "create", tag, *files, "--title", title, "--notes", notes)
