"""Release planning and request reconciliation.

plan() renders the aggregate title and body of the release request from the
version decisions and changelog sections. reconcile() compares the plan
with the release request left open by a previous run and decides whether
to create a new request, update the open one, or leave it alone.

Templates are Jinja2 and rendered with StrictUndefined, so a template that
references a variable missing from the context fails instead of rendering
an empty string.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime, timezone

import jinja2
from pydantic import BaseModel, Field

from .config import Config
from .errors import LabelError, TemplateError
from .models import (
    ChangelogSection,
    Compatibility,
    Create,
    NoOp,
    OutgoingRequest,
    Reconciliation,
    ReleaseDecision,
    ReleasePlan,
    Update,
)

MAX_LABEL_LENGTH = 50

_UNDEFINED_RE = re.compile(r"'(?P<name>\w+)' is undefined")

_env = jinja2.Environment(
    undefined=jinja2.StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,
)


class ReleaseContext(BaseModel):
    """Per-package template variables, exposed as items of `releases`."""

    package: str
    previous_version: str
    next_version: str
    initial: bool = False
    compatibility: str
    breaking_changes: str | None = None
    title: str | None = None
    changelog: str | None = None
    warnings: list[str] = Field(default_factory=list)


class SinglePackageContext(BaseModel):
    """Scalars available only in a single-package workspace."""

    package: str
    version: str


class TemplateContext(BaseModel):
    releases: list[ReleaseContext]
    packages_count: int
    package_names: list[str]
    common_version: str | None
    single: SinglePackageContext | None = None

    def variables(self) -> dict[str, object]:
        values: dict[str, object] = {
            "releases": self.releases,
            "packages_count": self.packages_count,
            "package_names": self.package_names,
            "common_version": self.common_version,
        }
        if self.single is not None:
            values["package"] = self.single.package
            values["version"] = self.single.version
        return values


SINGLE_PACKAGE_VARIABLES = frozenset(SinglePackageContext.model_fields)


def build_context(
    decisions: list[ReleaseDecision],
    sections: Mapping[str, ChangelogSection],
    *,
    workspace_size: int,
) -> TemplateContext:
    """Assemble the template context for a set of decisions.

    Args:
        decisions: Planned releases, in dependency order.
        sections: Changelog section per package name.
        workspace_size: Number of packages in the workspace; the single-package
                        scalars are exposed only when it is 1.
    """
    releases = []
    for decision in decisions:
        section = sections.get(decision.package)
        report = decision.compatibility
        releases.append(
            ReleaseContext(
                package=decision.package,
                # a first release is shown as on-disk version -> on-disk version
                previous_version=decision.previous_version or decision.next_version,
                initial=decision.previous_version is None,
                next_version=decision.next_version,
                compatibility=report.status.value,
                breaking_changes=(
                    report.diagnostics
                    if report.status is Compatibility.BREAKING
                    else None
                ),
                title=section.title if section else None,
                changelog=section.body.strip() if section else None,
                warnings=decision.warnings,
            )
        )

    versions = {d.next_version for d in decisions}
    single = None
    if workspace_size == 1 and len(decisions) == 1:
        single = SinglePackageContext(
            package=decisions[0].package, version=decisions[0].next_version
        )
    return TemplateContext(
        releases=releases,
        packages_count=len(decisions),
        package_names=[d.package for d in decisions],
        common_version=versions.pop() if len(versions) == 1 else None,
        single=single,
    )


def render(field: str, template: str, context: TemplateContext) -> str:
    """Render one template field.

    Raises:
        TemplateError: On syntax errors or undefined variables, naming the
                       field and, for undefined variables, the variable.
    """
    try:
        return _env.from_string(template).render(context.variables())
    except jinja2.UndefinedError as exc:
        match = _UNDEFINED_RE.search(str(exc))
        name = match["name"] if match else None
        if name in SINGLE_PACKAGE_VARIABLES and context.single is None:
            reason = f"the `{name}` variable is not available in a multi-package workspace"
        else:
            reason = str(exc)
        raise TemplateError(field, reason) from exc
    except jinja2.TemplateError as exc:
        raise TemplateError(field, str(exc)) from exc


def validate_labels(labels: list[str]) -> list[str]:
    """Check configured labels before asking the host to create them.

    Raises:
        LabelError: For the first label that is empty, has surrounding
                    whitespace, is too long, or repeats an earlier label.
    """
    seen: set[str] = set()
    for label in labels:
        if label != label.strip():
            raise LabelError(label, "leading or trailing whitespace is not allowed")
        if not label:
            raise LabelError(label, "empty labels are not allowed")
        if len(label) > MAX_LABEL_LENGTH:
            raise LabelError(
                label, f"it exceeds maximum length of {MAX_LABEL_LENGTH} characters"
            )
        if label in seen:
            raise LabelError(label, "duplicate labels are not allowed")
        seen.add(label)
    return list(labels)


def plan(
    decisions: list[ReleaseDecision],
    sections: Mapping[str, ChangelogSection],
    config: Config,
    *,
    workspace_size: int,
) -> ReleasePlan:
    """Render the release plan for a set of decisions.

    Raises:
        TemplateError: If the title or body template fails to render.
        LabelError: If a configured label is invalid.
    """
    labels = validate_labels(config.pr_labels)
    context = build_context(decisions, sections, workspace_size=workspace_size)
    title = render("pr_name", config.pr_name, context).strip()
    if "\n" in title:
        raise TemplateError("pr_name", "the title must be a single line")
    body = render("pr_body", config.pr_body, context)
    return ReleasePlan(
        decisions=decisions,
        sections=dict(sections),
        title=title,
        body=body,
        labels=labels,
    )


def merge_labels(applied: list[str], configured: list[str]) -> list[str]:
    """Union of labels, keeping the applied ones first. Labels are never removed."""
    return applied + [label for label in configured if label not in applied]


def reconcile(
    release_plan: ReleasePlan,
    existing: OutgoingRequest | None,
    *,
    branch_prefix: str = "release-",
    now: datetime | None = None,
) -> Reconciliation:
    """Decide how the plan reaches the hosting platform.

    Args:
        release_plan: Freshly computed plan.
        existing: Open release request from a previous run, re-read from the
                  host right before calling this.
        branch_prefix: Prefix for a new request's branch.
        now: Time used to name a new branch; defaults to the current UTC time.
    """
    if not release_plan.decisions:
        return NoOp(reason="no packages to release")

    if existing is not None and existing.open:
        labels = merge_labels(existing.labels, release_plan.labels)
        if (
            existing.title == release_plan.title
            and existing.body == release_plan.body
            and labels == existing.labels
        ):
            return NoOp(reason=f"release request #{existing.number} is up to date")
        return Update(request=existing, plan=release_plan, labels=labels)

    now = now or datetime.now(timezone.utc)
    branch = f"{branch_prefix}{now:%Y-%m-%dT%H-%M-%SZ}"
    return Create(branch=branch, plan=release_plan, labels=list(release_plan.labels))
