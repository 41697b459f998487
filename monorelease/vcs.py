"""Git access for the release pipeline.

GitRepo wraps the git() shell helper with the handful of operations the
pipeline needs: change listing, commit subjects, release markers, and the
branch/commit/push sequence that materializes a release pull request.
All state-mutating calls operate on one shared checkout and must be issued
sequentially.
"""

from __future__ import annotations

import re
from functools import cached_property
from pathlib import Path

from .shell import GIT_TIMEOUT_SECONDS, NETWORK_TIMEOUT_SECONDS, git

_SCP_REMOTE_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")


class GitRepo:
    """A git checkout rooted at the workspace root.

    Args:
        root: Workspace root; every command runs there.
        remote: Remote to push to.
        timeout: Seconds allowed for local git commands.
        network_timeout: Seconds allowed for push.
    """

    def __init__(
        self,
        root: Path,
        *,
        remote: str = "origin",
        timeout: float = GIT_TIMEOUT_SECONDS,
        network_timeout: float = NETWORK_TIMEOUT_SECONDS,
    ) -> None:
        self.root = root
        self.remote = remote
        self.timeout = timeout
        self.network_timeout = network_timeout

    def git(self, *args: str, check: bool = True) -> str:
        """Run a git command in the repository root."""
        return git(*args, check=check, cwd=self.root, timeout=self.timeout)

    @cached_property
    def original_branch(self) -> str:
        """Branch checked out before the pipeline touched anything."""
        return self.current_branch()

    def current_branch(self) -> str:
        return self.git("rev-parse", "--abbrev-ref", "HEAD")

    def changed_paths(self, since: str | None) -> list[str]:
        """Repository-relative paths changed between `since` and the working tree.

        With no `since`, every tracked file counts as changed.
        """
        if since is None:
            output = self.git("ls-files")
        else:
            output = self.git("diff", "--name-only", since)
        return [line for line in output.splitlines() if line]

    def commit_log(self, since: str | None, paths: list[str]) -> list[tuple[str, list[str]]]:
        """Commits touching `paths` after `since`, oldest first.

        Each commit is returned as (subject, files it touched under `paths`).
        """
        args = ["log", "--name-only", "--format=%x00%s"]
        if since is not None:
            args.append(f"{since}..HEAD")
        args.append("--")
        args.extend(paths)
        commits = []
        for record in self.git(*args).split("\0"):
            subject, _, files = record.partition("\n")
            if subject or files.strip():
                commits.append((subject, [f for f in files.splitlines() if f]))
        # git log lists newest first
        return list(reversed(commits))

    def commit_subjects(self, since: str | None, paths: list[str]) -> list[str]:
        """Subjects of commits touching `paths` after `since`, oldest first."""
        return [subject for subject, _ in self.commit_log(since, paths)]

    def last_release_marker(self, tag_prefix: str) -> str | None:
        """Most recent tag starting with tag_prefix (e.g. "pkg/v"), by version order."""
        tags = self.git(
            "tag", "--list", f"{tag_prefix}*", "--sort=-v:refname", check=False
        )
        for tag in tags.splitlines():
            # "v*" also matches tags of other formats; keep only version-like tails
            if tag[len(tag_prefix) :][:1].isdigit():
                return tag
        return None

    def changes(self) -> list[str]:
        """Uncommitted changes, ignoring type changes (e.g. file ↔ symlink)."""
        output = self.git("status", "--porcelain")
        return [
            line.rsplit(" ", 1)[-1]
            for line in output.splitlines()
            if line.strip() and line[:2].strip() != "T"
        ]

    def is_clean(self) -> bool:
        return not self.changes()

    def checkout(self, ref: str) -> None:
        self.git("checkout", ref)

    def discard_changes(self) -> None:
        """Drop uncommitted edits and untracked files (ignored files are kept)."""
        self.git("reset", "--hard")
        self.git("clean", "-fd")

    def create_branch(self, name: str) -> None:
        """Create (or reset) `name` at the current commit and check it out."""
        self.git("checkout", "-B", name)

    def commit_all(self, message: str) -> None:
        self.git("add", "--all")
        self.git("commit", "-m", message)

    def push(self, ref: str, *, force: bool = False) -> None:
        args = ["push", self.remote, ref]
        if force:
            # the release branch is regenerated from scratch on every run
            args.append("--force")
        git(*args, cwd=self.root, timeout=self.network_timeout)

    def tag(self, name: str, message: str) -> None:
        self.git("tag", "-a", name, "-m", message)

    def tag_exists(self, name: str) -> bool:
        return bool(self.git("tag", "--list", name))

    def remote_url(self) -> str | None:
        return self.git("config", "--get", f"remote.{self.remote}.url", check=False) or None


def web_url(remote_url: str) -> str:
    """Convert a git remote URL to the repository's web URL.

    Examples:
        "git@github.com:owner/repo.git" → "https://github.com/owner/repo"
        "https://github.com/owner/repo.git" → "https://github.com/owner/repo"
    """
    url = remote_url.strip()
    match = _SCP_REMOTE_RE.match(url)
    if match and "://" not in url:
        url = f"https://{match['host']}/{match['path']}"
    elif url.startswith(("ssh://", "git://")):
        rest = url.split("://", 1)[1]
        rest = rest.split("@", 1)[-1]
        host, _, path = rest.partition("/")
        url = f"https://{host.split(':', 1)[0]}/{path}"
    elif "@" in url.split("://", 1)[-1].split("/", 1)[0]:
        # strip credentials from https://token@host/...
        scheme, rest = url.split("://", 1)
        url = f"{scheme}://{rest.split('@', 1)[1]}"
    return url.removesuffix(".git").rstrip("/")
