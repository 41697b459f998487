"""Changelog generation.

Builds a dated release section per package from the commits attributable to
it and inserts it into the package's changelog file, newest section first.

Sections look like:

    ## [0.2.0](https://github.com/o/r/compare/v0.1.0...v0.2.0) - 2024-05-01

    ### Added

    - *(cli)* new --dry-run flag

    ### Other

    - refresh docs

A section is never written for a version the file already records, so
rerunning before the release is published leaves the changelog untouched.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path

from .commits import parse_subject
from .models import ChangelogSection, ReleaseDecision

CATEGORY_ORDER = ("Added", "Fixed", "Other")
_CATEGORY_BY_TYPE = {"feat": "Added", "fix": "Fixed"}

CHANGELOG_PREAMBLE = """\
# Changelog

All notable changes to this project will be documented in this file.

The format is based on [Keep a Changelog](https://keepachangelog.com/en/1.0.0/),
and this project adheres to [Semantic Versioning](https://semver.org/spec/v2.0.0.html).

## [Unreleased]
"""

# "## [1.2.3](...)", "## [1.2.3] - ...", "## 1.2.3 - ..."
_VERSION_HEADER_RE = re.compile(r"^## \[?(?P<version>\d+(?:\.\d+)*[^\]\s(]*)\]?", re.M)


def format_entry(subject: str) -> tuple[str, str]:
    """Map a commit subject to its changelog category and entry text.

    Examples:
        "feat: add x" → ("Added", "add x")
        "fix(io)!: close file" → ("Fixed", "*(io)* [**breaking**] close file")
        "Initial commit" → ("Other", "Initial commit")
    """
    commit = parse_subject(subject)
    if commit is None:
        return "Other", subject.strip()
    text = commit.description
    if commit.breaking:
        text = f"[**breaking**] {text}"
    if commit.scope:
        text = f"*({commit.scope})* {text}"
    return _CATEGORY_BY_TYPE.get(commit.type, "Other"), text


def categorize(subjects: list[str]) -> dict[str, list[str]]:
    """Group subjects into ordered categories, preserving commit order."""
    groups: dict[str, list[str]] = {name: [] for name in CATEGORY_ORDER}
    for subject in subjects:
        category, text = format_entry(subject)
        groups[category].append(text)
    return {name: entries for name, entries in groups.items() if entries}


def render_categories(categories: dict[str, list[str]]) -> str:
    blocks = []
    for name, entries in categories.items():
        bullets = "\n".join(f"- {entry}" for entry in entries)
        blocks.append(f"### {name}\n\n{bullets}\n")
    return "\n".join(blocks)


def has_version(changelog: str | None, version: str) -> bool:
    """Whether the changelog already contains a section header for version."""
    if not changelog:
        return False
    return any(m["version"] == version for m in _VERSION_HEADER_RE.finditer(changelog))


def section_title(
    decision: ReleaseDecision,
    *,
    repo_url: str | None,
    tag_prefix: str,
    today: str,
) -> str:
    """Header text linking the version to its tag or to the compare view."""
    version = decision.next_version
    if not repo_url:
        return f"[{version}] - {today}"
    next_tag = f"{tag_prefix}{version}"
    if decision.previous_version is None:
        link = f"{repo_url}/releases/tag/{next_tag}"
    else:
        link = f"{repo_url}/compare/{tag_prefix}{decision.previous_version}...{next_tag}"
    return f"[{version}]({link}) - {today}"


def build_section(
    decision: ReleaseDecision,
    commits: list[str],
    existing_changelog: str | None,
    *,
    repo_url: str | None = None,
    tag_prefix: str = "v",
    today: str | None = None,
) -> ChangelogSection | None:
    """Build the changelog section for a release decision.

    Args:
        decision: The version decision for the package.
        commits: Attributable commit subjects, oldest first.
        existing_changelog: Current content of the package changelog, or
                            None if the file doesn't exist.
        repo_url: Web URL of the repository for header links.
        tag_prefix: Prefix of the package's release tags.
        today: ISO date for the header; defaults to today.

    Returns:
        The section, or None if the changelog already records the version.
    """
    if has_version(existing_changelog, decision.next_version):
        return None

    today = today or date.today().isoformat()
    subjects = list(commits)
    if decision.updated_deps and not subjects:
        subjects = [
            "updated the following local packages: " + ", ".join(decision.updated_deps)
        ]
    elif decision.updated_deps:
        subjects.append(
            "updated the following local packages: " + ", ".join(decision.updated_deps)
        )

    categories = categorize(subjects)
    return ChangelogSection(
        package=decision.package,
        version=decision.next_version,
        date=today,
        title=section_title(
            decision, repo_url=repo_url, tag_prefix=tag_prefix, today=today
        ),
        categories=categories,
        body=render_categories(categories),
    )


def insert_section(changelog: str | None, section: ChangelogSection) -> str:
    """Insert a section above the newest existing version section.

    A missing or empty changelog gets the standard preamble first. Text
    before the first version header (title, [Unreleased]) stays on top.
    """
    if not changelog or not changelog.strip():
        changelog = CHANGELOG_PREAMBLE
    match = _VERSION_HEADER_RE.search(changelog)
    if match is None:
        return changelog.rstrip("\n") + "\n\n" + section.text
    head = changelog[: match.start()]
    tail = changelog[match.start() :]
    return head + section.text + "\n" + tail


def read_changelog(path: Path) -> str | None:
    """Current changelog content, or None when the file doesn't exist."""
    if not path.exists():
        return None
    return path.read_text()


def write_section(path: Path, section: ChangelogSection) -> bool:
    """Insert a section into a changelog file.

    The file is re-read right before writing so a section recorded since the
    plan was computed is never duplicated.

    Returns:
        True if the file was modified.
    """
    current = read_changelog(path)
    if has_version(current, section.version):
        return False
    path.write_text(insert_section(current, section))
    return True


def extract_section(changelog: str | None, version: str) -> str | None:
    """Body of the section for version (without its header), for release notes."""
    if not changelog:
        return None
    headers = list(_VERSION_HEADER_RE.finditer(changelog))
    for i, match in enumerate(headers):
        if match["version"] != version:
            continue
        line_end = changelog.find("\n", match.start())
        start = len(changelog) if line_end == -1 else line_end + 1
        end = headers[i + 1].start() if i + 1 < len(headers) else len(changelog)
        return changelog[start:end].strip()
    return None
