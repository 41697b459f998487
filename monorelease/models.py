"""Data models for monorelease.

These Pydantic models represent the core data structures that flow through
the release pipeline: discovered packages, per-package change sets, version
decisions, changelog sections and the release plan that becomes a pull
request.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Package(BaseModel):
    """Metadata for a single package in the monorepo workspace.

    Attributes:
        name: Canonical (PEP 503) package name, unique within the workspace.
        path: Relative path from workspace root to the package directory.
        version: Current version string from pyproject.toml.
        deps: Internal (workspace) dependency names. External deps are not
              tracked here since only internal packages take part in
              version propagation.
        include: Glob patterns of files that belong to the package. Empty
                 means every file under the package directory.
        exclude: Glob patterns of files to leave out.
        readme: Documentation file declared in [project].readme, relative
                to the package directory. May point outside of it.
        publish: Whether the package is released to the registry.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    version: str
    deps: tuple[str, ...] = ()
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    readme: str | None = None
    publish: bool = True


class VersionBump(IntEnum):
    """Significance of a release, ordered so that ``max()`` picks the larger."""

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3


class Compatibility(str, Enum):
    NOT_CHECKED = "not-checked"
    COMPATIBLE = "compatible"
    BREAKING = "breaking"


class CompatibilityReport(BaseModel):
    """Outcome of comparing a package's last release with the working tree.

    Attributes:
        status: Whether the public API was checked, and the verdict.
        diagnostics: Human-readable output of the checker, if any.
    """

    status: Compatibility = Compatibility.NOT_CHECKED
    diagnostics: str | None = None


class PackageChanges(BaseModel):
    """Change-set entry for one package.

    Attributes:
        package: Package name.
        marker: Last release tag, or None when the package was never tagged.
        released_version: Version recorded by the marker (or the published
                          on-disk version when there is no tag).
        changed_directly: True if files of the package changed since the
                          marker, or if it has never been released.
        commits: Subject lines of attributable commits, oldest first.
    """

    package: str
    marker: str | None = None
    released_version: str | None = None
    changed_directly: bool = False
    commits: list[str] = Field(default_factory=list)

    @property
    def is_initial(self) -> bool:
        return self.released_version is None


class ReleaseDecision(BaseModel):
    """The version decision for one package.

    Attributes:
        package: Package name.
        previous_version: Last released version; None for an initial release.
        next_version: Version the release will carry.
        bump: Significance applied to previous_version.
        compatibility: Report from the API compatibility checker.
        updated_deps: Direct dependencies whose bump propagated here.
        warnings: Non-fatal problems met while deciding.
    """

    package: str
    previous_version: str | None
    next_version: str
    bump: VersionBump = VersionBump.NONE
    compatibility: CompatibilityReport = Field(default_factory=CompatibilityReport)
    updated_deps: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ChangelogSection(BaseModel):
    """A dated release section for a package's changelog.

    Attributes:
        package: Package name.
        version: Version the section documents.
        date: ISO release date.
        title: Header text without the leading ``## ``.
        categories: Ordered category name → bullet entries.
        body: Rendered categories (everything below the header).
    """

    package: str
    version: str
    date: str
    title: str
    categories: dict[str, list[str]] = Field(default_factory=dict)
    body: str = ""

    @property
    def text(self) -> str:
        return f"## {self.title}\n\n{self.body}"


class ReleasePlan(BaseModel):
    """Workspace-wide release plan, computed fresh on every run."""

    decisions: list[ReleaseDecision]
    sections: dict[str, ChangelogSection] = Field(default_factory=dict)
    title: str
    body: str
    labels: list[str] = Field(default_factory=list)


class OutgoingRequest(BaseModel):
    """An open (or closed) release pull request on the hosting platform."""

    number: int
    branch: str
    title: str
    body: str = ""
    labels: list[str] = Field(default_factory=list)
    url: str = ""
    base_branch: str = ""
    open: bool = True


class Create(BaseModel):
    action: Literal["create"] = "create"
    branch: str
    plan: ReleasePlan
    labels: list[str]


class Update(BaseModel):
    action: Literal["update"] = "update"
    request: OutgoingRequest
    plan: ReleasePlan
    labels: list[str]


class NoOp(BaseModel):
    action: Literal["noop"] = "noop"
    reason: str = ""


Reconciliation = Union[Create, Update, NoOp]
