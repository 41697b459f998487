"""Release pipeline: discover → detect → decide → changelog → plan → reconcile.

This module orchestrates the two monorelease commands:

release-pr
    1. Discover the workspace packages
    2. Find each package's last release marker (tag)
    3. Detect which packages changed since their marker
    4. Decide next versions, propagating bumps to dependents
    5. Build changelog sections for the released packages
    6. Render the release request and reconcile it with the open one
    7. Materialize it: release branch, version bumps, changelogs, commit,
       push, create or update the pull request

release
    Once the release request is merged: build, tag and publish every
    package whose current version isn't tagged yet, in dependency order.
"""

from __future__ import annotations

import glob
from datetime import date
from pathlib import Path

from tomlkit import TOMLDocument

from .changelog import build_section, extract_section, read_changelog, write_section
from .changes import detect_changes
from .compat import GriffeChecker
from .config import Config, load_config
from .decider import DecisionOptions, decide
from .deps import dep_canonical_name, rewrite_pyproject
from .errors import ConfigError, RegistryError, ReleaseError
from .graph import DependencyGraph
from .hosting import GitHubClient
from .models import (
    ChangelogSection,
    Create,
    NoOp,
    OutgoingRequest,
    Package,
    PackageChanges,
    Reconciliation,
    ReleaseDecision,
    ReleasePlan,
    Update,
)
from .planner import plan, reconcile
from .registry import GitHubReleasesRegistry, wheel_prefix
from .shell import info, run, step, warn
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_readme,
    get_tool_table,
    get_workspace_member_globs,
    is_publishable,
    load_pyproject,
)
from .vcs import GitRepo, web_url
from .versions import tag_name, tag_prefix

Markers = dict[str, tuple[str | None, str | None]]


def member_directories(root: Path, patterns: list[str]) -> list[Path]:
    """Expand workspace member globs to package directories, in glob order."""
    found: dict[Path, None] = {}
    for pattern in patterns:
        for match in sorted(glob.glob(str(root / pattern))):
            candidate = Path(match)
            if (candidate / "pyproject.toml").is_file():
                found.setdefault(candidate)
    return list(found)


def _internal_deps(name: str, requirements: list[str], workspace: set[str]) -> tuple[str, ...]:
    names = dict.fromkeys(dep_canonical_name(r) for r in requirements)
    return tuple(n for n in names if n in workspace and n != name)


def discover_packages(root: Path) -> list[Package]:
    """Scan the workspace and discover all packages.

    Member directories come from [tool.uv.workspace].members in the root
    manifest (the root itself when it only has a [project] table). Each
    member's manifest provides its name, version, internal dependencies,
    documentation file and [tool.monorelease] settings.

    Raises:
        ConfigError: If no package is found or two packages share a name.
    """
    step("Discovering workspace packages")

    patterns = get_workspace_member_globs(load_pyproject(root / "pyproject.toml"))
    manifests: dict[str, tuple[Path, TOMLDocument]] = {}
    for directory in member_directories(root, patterns):
        doc = load_pyproject(directory / "pyproject.toml")
        name = get_project_name(doc, directory.name)
        if name in manifests:
            raise ConfigError(f"Package name {name} is used by more than one workspace member")
        manifests[name] = (directory, doc)
    if not manifests:
        raise ConfigError("No packages found matching workspace members")

    packages: list[Package] = []
    for name, (directory, doc) in manifests.items():
        tool = get_tool_table(doc)
        pkg = Package(
            name=name,
            path=directory.relative_to(root).as_posix(),
            version=get_project_version(doc),
            deps=_internal_deps(name, get_all_dependency_strings(doc), set(manifests)),
            include=tuple(tool.get("include", ())),
            exclude=tuple(tool.get("exclude", ())),
            readme=get_readme(doc),
            publish=is_publishable(doc),
        )
        arrow = f" → [{', '.join(pkg.deps)}]" if pkg.deps else ""
        info(f"{pkg.name} {pkg.version} ({pkg.path}){arrow}")
        packages.append(pkg)
    return packages


def nested_roots(graph: DependencyGraph) -> dict[str, tuple[str, ...]]:
    """Directories of the other packages located inside each package.

    A package at the workspace root contains every other package.
    """
    result: dict[str, tuple[str, ...]] = {}
    for pkg in graph.packages:
        base = "" if pkg.path in ("", ".") else pkg.path.rstrip("/") + "/"
        result[pkg.name] = tuple(
            other.path
            for other in graph.packages
            if other.name != pkg.name
            and other.path not in ("", ".")
            and other.path.startswith(base)
        )
    return result


def find_release_markers(
    graph: DependencyGraph,
    repo: GitRepo,
    registry: GitHubReleasesRegistry | None = None,
) -> Markers:
    """Find each package's last release tag and the version it released.

    Tags follow the pattern {package-name}/v{version}, or v{version} in a
    single-package workspace. A package without a tag whose current version
    is already published counts as released at that version.

    Returns:
        Map of package name → (tag or None, released version or None).
    """
    step("Finding release markers")

    single = len(graph) == 1
    markers: Markers = {}
    for pkg in graph.packages:
        prefix = tag_prefix(pkg.name, single_package=single)
        marker = repo.last_release_marker(prefix)
        released: str | None = marker[len(prefix) :] if marker else None
        if marker is None and registry is not None:
            try:
                if registry.is_published(pkg.name, pkg.version):
                    released = pkg.version
            except RegistryError as exc:
                warn(f"{pkg.name}: {exc}")
        markers[pkg.name] = (marker, released)
        info(f"{pkg.name}: {marker or released or '<none>'}")
    return markers


def detect_all(
    graph: DependencyGraph, markers: Markers, repo: GitRepo, root: Path
) -> dict[str, PackageChanges]:
    """Change-set entries for every package."""
    step("Detecting changes")

    nested = nested_roots(graph)
    changes: dict[str, PackageChanges] = {}
    for pkg in graph.topological_order():
        marker, released = markers.get(pkg.name, (None, None))
        changes[pkg.name] = detect_changes(
            pkg, marker, released, repo, root, nested[pkg.name]
        )
    return changes


def changelog_path(root: Path, package: Package, config: Config) -> Path:
    return root / package.path / config.changelog_file


def build_sections(
    decisions: list[ReleaseDecision],
    changes: dict[str, PackageChanges],
    graph: DependencyGraph,
    root: Path,
    config: Config,
    *,
    repo_url: str | None,
    today: str | None = None,
) -> tuple[list[ReleaseDecision], dict[str, ChangelogSection]]:
    """Build the changelog section of every decision.

    A decision whose version is already on disk and already recorded in the
    changelog has nothing left to do (its release request was merged but not
    published yet) and is dropped.

    Returns:
        The decisions still to be planned, and their sections by package name.
    """
    step("Building changelogs")

    today = today or date.today().isoformat()
    single = len(graph) == 1
    kept: list[ReleaseDecision] = []
    sections: dict[str, ChangelogSection] = {}
    for decision in decisions:
        pkg = graph.package(decision.package)
        path = changelog_path(root, pkg, config)
        try:
            existing = read_changelog(path)
        except OSError as exc:
            warn(f"{pkg.name}: cannot read {path.name}: {exc}")
            kept.append(
                decision.model_copy(
                    update={"warnings": [*decision.warnings, f"changelog not updated: {exc}"]}
                )
            )
            continue

        ch = changes.get(pkg.name)
        section = build_section(
            decision,
            ch.commits if ch and ch.changed_directly else [],
            existing,
            repo_url=repo_url,
            tag_prefix=tag_prefix(pkg.name, single_package=single),
            today=today,
        )
        if section is None:
            if decision.next_version == pkg.version:
                info(f"{pkg.name}: {decision.next_version} is already recorded, skipping")
                continue
            info(f"{pkg.name}: changelog already has {decision.next_version}")
        else:
            sections[pkg.name] = section
        kept.append(decision)
    return kept, sections


def apply_plan(
    release_plan: ReleasePlan, graph: DependencyGraph, root: Path, config: Config
) -> None:
    """Write version bumps and changelog sections to the working tree."""
    versions = {d.package: d.next_version for d in release_plan.decisions}
    for decision in release_plan.decisions:
        pkg = graph.package(decision.package)
        internal = {dep: versions[dep] for dep in pkg.deps if dep in versions}
        rewrite_pyproject(root / pkg.path / "pyproject.toml", decision.next_version, internal)
        section = release_plan.sections.get(pkg.name)
        if section is not None:
            write_section(changelog_path(root, pkg, config), section)
        info(f"{pkg.name}: {pkg.version} → {decision.next_version}")


def materialize(
    reconciliation: Create | Update,
    graph: DependencyGraph,
    root: Path,
    repo: GitRepo,
    client: GitHubClient,
    config: Config,
) -> OutgoingRequest:
    """Commit the plan on the release branch and create or update the request.

    The original branch is checked out again afterwards. On failure, edits
    not yet committed to the release branch are discarded first.
    """
    release_plan = reconciliation.plan
    original = repo.original_branch
    if isinstance(reconciliation, Create):
        branch = reconciliation.branch
    else:
        branch = reconciliation.request.branch

    step(f"Preparing release branch {branch}")
    repo.create_branch(branch)
    try:
        apply_plan(release_plan, graph, root, config)
        repo.commit_all(release_plan.title)
        repo.push(branch, force=not isinstance(reconciliation, Create))

        client.ensure_labels_exist(reconciliation.labels)
        if isinstance(reconciliation, Create):
            request = client.create_request(
                release_plan.title,
                release_plan.body,
                branch,
                reconciliation.labels,
                base=original,
            )
            info(f"Opened {request.url}")
        else:
            existing = reconciliation.request
            client.update_request(
                existing.number,
                release_plan.title,
                release_plan.body,
                reconciliation.labels,
            )
            request = existing.model_copy(
                update={
                    "title": release_plan.title,
                    "body": release_plan.body,
                    "labels": reconciliation.labels,
                }
            )
            info(f"Updated {request.url}")
    except Exception:
        # leave nothing half-written behind for the original branch
        repo.discard_changes()
        raise
    finally:
        repo.checkout(original)
    return request


def summarize(request: OutgoingRequest | None, release_plan: ReleasePlan | None) -> dict:
    """Machine-readable summary printed by `monorelease release-pr`."""
    if request is None or release_plan is None:
        return {"prs": []}
    return {
        "prs": [
            {
                "head_branch": request.branch,
                "base_branch": request.base_branch,
                "html_url": request.url,
                "number": request.number,
                "releases": [
                    {"package_name": d.package, "version": d.next_version}
                    for d in release_plan.decisions
                ],
            }
        ]
    }


def _repo_url(config: Config, repo: GitRepo) -> str | None:
    if config.repo_url:
        return config.repo_url.rstrip("/")
    remote = repo.remote_url()
    if remote is None:
        warn("no remote configured; changelog headers won't link to the repository")
        return None
    return web_url(remote)


def compute_plan(
    root: Path,
    config: Config,
    repo: GitRepo,
    client: GitHubClient,
) -> tuple[DependencyGraph, ReleasePlan]:
    """Run detection, decisions, changelogs and rendering."""
    graph = DependencyGraph.build(discover_packages(root))
    registry = GitHubReleasesRegistry(client)
    markers = find_release_markers(graph, repo, registry)
    changes = detect_all(graph, markers, repo, root)

    step("Deciding versions")
    lookup = None
    checker = GriffeChecker(root, timeout=config.network_timeout)
    if checker.available():
        lookup = checker.check
    else:
        warn("griffe not found on PATH; API compatibility is not checked")
    decisions = decide(
        graph,
        changes,
        lookup,
        DecisionOptions(
            features_always_increment_minor=config.features_always_increment_minor,
            max_workers=config.max_workers,
        ),
    )
    for decision in decisions:
        for warning in decision.warnings:
            warn(f"{decision.package}: {warning}")

    decisions, sections = build_sections(
        decisions, changes, graph, root, config, repo_url=_repo_url(config, repo)
    )

    step("Planning release request")
    release_plan = plan(decisions, sections, config, workspace_size=len(graph))
    info(release_plan.title)
    return graph, release_plan


def run_release_pr(root: Path, *, dry_run: bool = False) -> dict:
    """Open or update the release pull request.

    Args:
        root: Workspace root.
        dry_run: Compute and print the plan without changing git or GitHub.

    Returns:
        The summary of the created or updated request.
    """
    config = load_config(root)
    repo = GitRepo(root, timeout=config.git_timeout, network_timeout=config.network_timeout)
    client = GitHubClient(root, timeout=config.network_timeout)

    if not dry_run and not repo.is_clean():
        raise ReleaseError("Working tree has uncommitted changes; commit or stash them first")

    graph, release_plan = compute_plan(root, config, repo, client)

    if dry_run:
        step("Dry run: nothing pushed")
        info(release_plan.title)
        for decision in release_plan.decisions:
            info(f"{decision.package}: {decision.previous_version or '-'} → {decision.next_version}")
        return summarize(None, None)

    existing = client.find_open_release_request(config.branch_prefix)
    reconciliation: Reconciliation = reconcile(
        release_plan, existing, branch_prefix=config.branch_prefix
    )
    if isinstance(reconciliation, NoOp):
        step("Nothing to do")
        info(reconciliation.reason)
        return summarize(None, None)

    request = materialize(reconciliation, graph, root, repo, client, config)
    return summarize(request, release_plan)


def run_release(root: Path) -> list[str]:
    """Tag and publish every package whose current version isn't released.

    Packages are handled in dependency order. Already-tagged versions are
    skipped, so rerunning after a partial failure resumes where it stopped.

    Returns:
        The tags created.
    """
    config = load_config(root)
    repo = GitRepo(root, timeout=config.git_timeout, network_timeout=config.network_timeout)
    client = GitHubClient(root, timeout=config.network_timeout)
    graph = DependencyGraph.build(discover_packages(root))
    single = len(graph) == 1

    dist = root / "dist"
    dist.mkdir(parents=True, exist_ok=True)

    tags: list[str] = []
    for pkg in graph.topological_order():
        if not pkg.publish:
            continue
        tag = tag_name(pkg.name, pkg.version, single_package=single)
        if repo.tag_exists(tag):
            info(f"{pkg.name}: {tag} already exists, skipping")
            continue

        step(f"Releasing {pkg.name} {pkg.version}")
        run("uv", "build", pkg.path, "--out-dir", str(dist), cwd=root)
        wheels = sorted(
            str(p) for p in dist.glob(f"{wheel_prefix(pkg.name, pkg.version)}*.whl")
        )
        if not wheels:
            raise ReleaseError(f"No wheels found in dist/ for {pkg.name} {pkg.version}")

        repo.tag(tag, f"{pkg.name} {pkg.version}")
        repo.push(tag)
        notes = extract_section(
            read_changelog(changelog_path(root, pkg, config)), pkg.version
        )
        client.create_release(tag, f"{pkg.name} v{pkg.version}", notes or f"Release {tag}", wheels)
        info(f"{tag} with {len(wheels)} wheel(s)")
        tags.append(tag)

    if not tags:
        step("Nothing to release")
    return tags
