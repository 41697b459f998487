"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly release
commits.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError

TOOL_NAME = "monorelease"
PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ConfigError: If the file is missing or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc
    except TOMLKitError as exc:
        raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    """Save a TOMLDocument back to disk, preserving original formatting."""
    path.write_text(tomlkit.dumps(doc))


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Args:
        doc: Parsed pyproject.toml document.
        fallback: Value to return if name is not specified.
    """
    return canonicalize_name(doc.get("project", {}).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.1.0'."""
    return str(doc.get("project", {}).get("version", "0.1.0"))


def dependency_lists(doc: Mapping[str, Any]) -> Iterator[list]:
    """Yield every dependency array of a manifest.

    Covers [project].dependencies, each [project].optional-dependencies
    extra and each [dependency-groups] group (PEP 735). The arrays are the
    document's own, so edits made through them are saved with the document.
    """
    project = doc.get("project", {})
    candidates = [project.get("dependencies")]
    candidates.extend(project.get("optional-dependencies", {}).values())
    candidates.extend(doc.get("dependency-groups", {}).values())
    yield from (c for c in candidates if isinstance(c, list))


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Collect the raw PEP 508 strings of every dependency array.

    Include-group tables inside dependency groups are skipped.
    """
    return [str(d) for deps in dependency_lists(doc) for d in deps if isinstance(d, str)]


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages. A root pyproject.toml without a workspace
    table but with a [project] table is a single-package workspace.

    Raises:
        ConfigError: If neither workspace members nor a project are defined.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    if members:
        return [str(m) for m in members]
    if "project" in doc:
        return ["."]
    raise ConfigError("No [tool.uv.workspace] members defined in root pyproject.toml")


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.monorelease] table as plain Python values."""
    table = doc.get("tool", {}).get(TOOL_NAME, {})
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)


def get_readme(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract the documentation file from [project].readme.

    The field is either a path string or a table with a "file" key. A table
    with inline "text" has no file and yields None.
    """
    readme = doc.get("project", {}).get("readme")
    if isinstance(readme, str):
        return readme
    if isinstance(readme, dict) and "file" in readme:
        return str(readme["file"])
    return None


def is_publishable(doc: tomlkit.TOMLDocument) -> bool:
    """Whether a package should be published.

    Packages opt out with [tool.monorelease].publish = false or with the
    "Private :: Do Not Upload" trove classifier.
    """
    if get_tool_table(doc).get("publish") is False:
        return False
    classifiers = doc.get("project", {}).get("classifiers", [])
    return PRIVATE_CLASSIFIER not in classifiers
