"""Version decisions.

Walks the dependency graph in release order and decides, for every package,
whether it is released and with which version:

1. A package that changed directly gets Minor if any attributable commit is
   a feature, Patch otherwise; a breaking commit or a "breaking" API
   compatibility report makes it Major.
2. A package that depends on a package receiving any release gets at least
   Patch ("updated the following local packages: ...").
3. Packages left at VersionBump.NONE are not released.

Bumps only ever combine with max(), so a signal can raise a package's bump
but never lower it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from concurrent.futures import ThreadPoolExecutor

from pydantic import BaseModel

from .commits import commits_bump
from .errors import ReleaseError
from .graph import DependencyGraph
from .models import (
    Compatibility,
    CompatibilityReport,
    Package,
    PackageChanges,
    ReleaseDecision,
    VersionBump,
)
from .shell import info
from .versions import bump_version, is_newer

CompatibilityLookup = Callable[[Package, str], CompatibilityReport]


class DecisionOptions(BaseModel):
    features_always_increment_minor: bool = False
    max_workers: int = 1


def _check_all(
    graph: DependencyGraph,
    changes: Mapping[str, PackageChanges],
    lookup: CompatibilityLookup | None,
    max_workers: int,
) -> dict[str, CompatibilityReport | str]:
    """Run compatibility checks for directly-changed, previously-released packages.

    Checks are read-only and independent, so they run on a bounded thread
    pool. Each result is either a report or the error message of a failed
    check.
    """
    if lookup is None:
        return {}

    targets = [
        (pkg, ch.marker)
        for pkg in graph.packages
        if (ch := changes.get(pkg.name)) is not None
        and ch.changed_directly
        and ch.marker is not None
    ]

    def check(pkg: Package, marker: str) -> CompatibilityReport | str:
        try:
            return lookup(pkg, marker)
        except (ReleaseError, OSError) as exc:
            return str(exc)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {pkg.name: pool.submit(check, pkg, marker) for pkg, marker in targets}
        return {name: future.result() for name, future in futures.items()}


def decide(
    graph: DependencyGraph,
    changes: Mapping[str, PackageChanges],
    compatibility_lookup: CompatibilityLookup | None = None,
    options: DecisionOptions | None = None,
) -> list[ReleaseDecision]:
    """Decide the next version of every package that needs a release.

    Args:
        graph: Workspace dependency graph.
        changes: Change-set entry per package name. A package without an
                 entry is treated as unchanged and released at its on-disk
                 version.
        compatibility_lookup: Called with (package, last release tag) for
                              directly-changed packages. Failures degrade to
                              "not-checked" and are recorded as warnings.
        options: Version policy and parallelism.

    Returns:
        Decisions in dependency order, one per released package.
    """
    options = options or DecisionOptions()
    reports = _check_all(graph, changes, compatibility_lookup, options.max_workers)

    decisions: list[ReleaseDecision] = []
    released: set[str] = set()

    for pkg in graph.topological_order():
        ch = changes.get(pkg.name) or PackageChanges(
            package=pkg.name, released_version=pkg.version
        )
        warnings: list[str] = []
        report = CompatibilityReport()
        outcome = reports.get(pkg.name)
        if isinstance(outcome, CompatibilityReport):
            report = outcome
        elif isinstance(outcome, str):
            warnings.append(outcome)

        if ch.is_initial:
            decisions.append(
                ReleaseDecision(
                    package=pkg.name,
                    previous_version=None,
                    next_version=pkg.version,
                    warnings=warnings,
                )
            )
            released.add(pkg.name)
            info(f"{pkg.name}: initial release {pkg.version}")
            continue

        bump = VersionBump.NONE
        if ch.changed_directly:
            bump = commits_bump(ch.commits)
            if report.status is Compatibility.BREAKING:
                bump = max(bump, VersionBump.MAJOR)

        updated_deps = [d for d in graph.dependencies_of(pkg.name) if d in released]
        if updated_deps:
            bump = max(bump, VersionBump.PATCH)

        if bump is VersionBump.NONE:
            continue

        previous = ch.released_version or pkg.version
        if is_newer(pkg.version, previous):
            # manifest already carries an unreleased version
            next_version = pkg.version
        else:
            next_version = bump_version(
                previous,
                bump,
                features_always_increment_minor=options.features_always_increment_minor,
            )

        decisions.append(
            ReleaseDecision(
                package=pkg.name,
                previous_version=previous,
                next_version=next_version,
                bump=bump,
                compatibility=report,
                updated_deps=updated_deps,
                warnings=warnings,
            )
        )
        released.add(pkg.name)
        info(f"{pkg.name}: {previous} → {next_version} ({bump.name.lower()})")

    return decisions
