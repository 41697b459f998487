"""Change detection.

Decides, per package, whether anything that ships with the package changed
since its last release marker, and collects the subjects of the commits that
touched at least one file belonging to it.

A changed path belongs to a package if:
1. It lies under the package directory and passes the package's
   include/exclude globs (default: every file is included), or
2. It is the target of a symlink that belongs to the package (one level of
   indirection, e.g. README.md ← README_SYMLINK.md), or
3. It is the package's declared documentation file ([project].readme),
   which may live outside the package directory.

An auxiliary path that cannot be resolved (e.g. a readme pointing outside
the repository) is reported and skipped; it never aborts detection.
"""

from __future__ import annotations

import os
from fnmatch import fnmatch
from pathlib import Path, PurePosixPath

from .errors import DetectionError
from .models import Package, PackageChanges
from .shell import info, warn
from .vcs import GitRepo


def _prefix(path: str) -> str:
    """Directory prefix for startswith checks; "" for the workspace root."""
    path = PurePosixPath(path).as_posix()
    return "" if path in ("", ".") else path.rstrip("/") + "/"


def matches_pattern(rel_path: str, pattern: str) -> bool:
    """Match a package-relative path against an include/exclude glob.

    A leading "/" anchors the pattern at the package root; otherwise it may
    match at any depth. A pattern naming a directory matches everything
    beneath it.

    Examples:
        matches_pattern("src/a.py", "/src") → True
        matches_pattern("docs/src/a.md", "/src") → False
        matches_pattern("pkg/tests/test_a.py", "tests") → True
        matches_pattern("a.pyc", "*.pyc") → True
    """
    anchored = pattern.startswith("/")
    pattern = pattern.strip("/")
    if not pattern:
        return True
    parts = PurePosixPath(rel_path).parts
    starts = [0] if anchored else range(len(parts))
    width = len(PurePosixPath(pattern).parts)
    for start in starts:
        # try the pattern against every directory (or file) at this depth
        for end in range(start + width, len(parts) + 1):
            candidate = "/".join(parts[start:end])
            if fnmatch(candidate, pattern):
                return True
    return False


def is_included(package: Package, rel_path: str) -> bool:
    """Whether a package-relative path is shipped with the package."""
    if package.include and not any(matches_pattern(rel_path, p) for p in package.include):
        return False
    return not any(matches_pattern(rel_path, p) for p in package.exclude)


def resolve_readme(package: Package, workspace_root: Path) -> str:
    """Repository-relative path of the package's documentation file.

    A symlinked readme resolves to its target (one level).

    Raises:
        DetectionError: If the file doesn't exist or lies outside the repository.
    """
    if package.readme is None:
        raise DetectionError(package.name, "no readme declared")
    declared = os.path.normpath(os.path.join(package.path, package.readme))
    full = workspace_root / declared
    if declared.startswith(".."):
        raise DetectionError(package.readme, "path is outside of the repository")
    if not full.exists() and not full.is_symlink():
        raise DetectionError(package.readme, "file does not exist")
    if full.is_symlink():
        declared = _link_target(declared, workspace_root)
        if declared.startswith(".."):
            raise DetectionError(package.readme, "symlink target is outside of the repository")
    return PurePosixPath(declared).as_posix()


def _link_target(rel_link: str, workspace_root: Path) -> str:
    """Repository-relative target of a symlink, following exactly one level."""
    target = os.readlink(workspace_root / rel_link)
    if os.path.isabs(target):
        target = os.path.relpath(target, workspace_root)
    else:
        target = os.path.join(os.path.dirname(rel_link), target)
    return PurePosixPath(os.path.normpath(target)).as_posix()


def symlink_targets(
    package: Package, workspace_root: Path, nested_roots: tuple[str, ...] = ()
) -> set[str]:
    """Targets of the symlinks shipped with the package, repository-relative."""
    targets: set[str] = set()
    skip = {_prefix(n) for n in nested_roots}
    base = workspace_root / package.path
    for dirpath, dirnames, filenames in os.walk(base):
        rel_dir = os.path.relpath(dirpath, workspace_root)
        dirnames[:] = [
            d
            for d in dirnames
            if d != ".git" and _prefix(os.path.join(rel_dir, d)) not in skip
        ]
        for name in filenames + dirnames:
            rel = PurePosixPath(os.path.normpath(os.path.join(rel_dir, name))).as_posix()
            if not (workspace_root / rel).is_symlink():
                continue
            if not is_included(package, rel[len(_prefix(package.path)) :]):
                continue
            target = _link_target(rel, workspace_root)
            if not target.startswith(".."):
                targets.add(target)
    return targets


def detect_changes(
    package: Package,
    marker: str | None,
    released_version: str | None,
    repo: GitRepo,
    workspace_root: Path,
    nested_roots: tuple[str, ...] = (),
) -> PackageChanges:
    """Determine whether a package changed since its last release marker.

    Args:
        package: The package to inspect.
        marker: Last release tag, or None to consider all history.
        released_version: Version recorded by the marker; None means the
                          package was never released.
        repo: Git access.
        workspace_root: Absolute workspace root.
        nested_roots: Directories of other workspace packages nested inside
                      this one; their files belong to them.

    Raises:
        VersionControlError: If git can't list the changes; the change set
                             can't be established without them.
    """
    prefix = _prefix(package.path)
    nested = tuple(_prefix(n) for n in nested_roots)

    extra: set[str] = set()
    if package.readme:
        try:
            extra.add(resolve_readme(package, workspace_root))
        except DetectionError as exc:
            warn(f"{package.name}: ignoring readme: {exc}")
    try:
        extra |= symlink_targets(package, workspace_root, nested_roots)
    except OSError as exc:
        warn(f"{package.name}: cannot inspect symlinks: {exc}")

    def belongs(path: str) -> bool:
        if path in extra:
            return True
        if not path.startswith(prefix) or any(path.startswith(n) for n in nested):
            return False
        return is_included(package, path[len(prefix) :])

    never_released = released_version is None
    changed = [] if never_released else [p for p in repo.changed_paths(marker) if belongs(p)]

    attributable = [package.path or "."] + sorted(extra)
    commits = [
        subject
        for subject, files in repo.commit_log(marker, attributable)
        if any(belongs(f) for f in files)
    ]

    if never_released:
        info(f"{package.name}: new package")
    elif changed:
        info(f"{package.name}: {len(changed)} file(s) changed since {marker or 'start'}")

    return PackageChanges(
        package=package.name,
        marker=marker,
        released_version=released_version,
        changed_directly=never_released or bool(changed),
        commits=commits,
    )
