"""Conventional commit parsing.

Commit subjects like "feat(parser)!: drop python 3.8" are split into type,
scope, breaking marker and description. Subjects that don't follow the
convention are still attributed to the package, they just carry no
significance beyond a patch release.
"""

from __future__ import annotations

import re

from pydantic import BaseModel

from .models import VersionBump

_SUBJECT_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^)]*)\))?(?P<breaking>!)?:\s*(?P<desc>.+)$"
)


class ConventionalCommit(BaseModel):
    type: str
    scope: str | None = None
    breaking: bool = False
    description: str


def parse_subject(subject: str) -> ConventionalCommit | None:
    """Parse a conventional commit subject, or return None if it isn't one."""
    match = _SUBJECT_RE.match(subject.strip())
    if match is None:
        return None
    return ConventionalCommit(
        type=match["type"].lower(),
        scope=match["scope"] or None,
        breaking=bool(match["breaking"]) or "BREAKING CHANGE" in subject,
        description=match["desc"].strip(),
    )


def commit_bump(subject: str) -> VersionBump:
    """Significance of a single commit subject.

    Breaking commits are Major, features Minor, everything else Patch.
    """
    commit = parse_subject(subject)
    if commit is None:
        return VersionBump.PATCH
    if commit.breaking:
        return VersionBump.MAJOR
    if commit.type == "feat":
        return VersionBump.MINOR
    return VersionBump.PATCH


def commits_bump(subjects: list[str]) -> VersionBump:
    """The most significant bump among the subjects (Patch when there are none)."""
    return max((commit_bump(s) for s in subjects), default=VersionBump.PATCH)
