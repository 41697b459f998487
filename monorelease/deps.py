"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings and rewriting
pyproject.toml files so a release bumps the package version and moves its
internal workspace dependencies to the versions being released alongside it.
"""

from __future__ import annotations

from pathlib import Path

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .toml import dependency_lists, load_pyproject, save_pyproject


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def update_dep_specifier(dep_str: str, version: str) -> str:
    """Move an internal dependency to a newly released version.

    An exact pin stays exact; any other specifier becomes a lower bound.
    Extras and environment markers are preserved.

    Examples:
        update_dep_specifier("pkg==1.0.0", "1.0.1") → "pkg==1.0.1"
        update_dep_specifier("pkg>=1.0", "1.1.0") → "pkg>=1.1.0"
        update_dep_specifier("pkg[cli]; python_version>'3.9'", "2.0.0")
            → 'pkg[cli]>=2.0.0; python_version > "3.9"'
    """
    req = Requirement(dep_str)
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    exact = any(spec.operator in ("==", "===") for spec in req.specifier)
    operator = "==" if exact else ">="
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{operator}{version}{marker}"


def rewrite_pyproject(
    pyproject_path: Path,
    new_version: str,
    internal_dep_versions: dict[str, str],
) -> None:
    """Set a package's version and move its released internal dependencies.

    The manifest is edited with tomlkit so comments and layout survive.

    Args:
        pyproject_path: Manifest to rewrite in place.
        new_version: Version written to [project].version.
        internal_dep_versions: Canonical name → version for the internal
                               dependencies released in the same plan.
    """
    doc = load_pyproject(pyproject_path)
    doc["project"]["version"] = new_version
    for deps in dependency_lists(doc):
        for i, dep_str in enumerate(deps):
            # include-group tables in dependency groups are not requirements
            if not isinstance(dep_str, str):
                continue
            name = dep_canonical_name(dep_str)
            if name in internal_dep_versions:
                deps[i] = update_dep_specifier(dep_str, internal_dep_versions[name])
    save_pyproject(pyproject_path, doc)
