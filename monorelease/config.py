"""Workspace configuration.

Settings live in the root pyproject.toml under [tool.monorelease]:

    [tool.monorelease]
    pr_labels = ["release"]
    features_always_increment_minor = true
    branch_prefix = "release-"
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .toml import get_tool_table, load_pyproject

DEFAULT_PR_NAME = "chore: release{% if common_version %} v{{ common_version }}{% endif %}"

DEFAULT_PR_BODY = """\
## 🤖 New release

{% for release in releases %}
* `{{ release.package }}`: {% if not release.initial %}{{ release.previous_version }} -> {% endif %}{{ release.next_version }}{% if release.compatibility == "compatible" %} (✓ API compatible changes){% elif release.compatibility == "breaking" %} (⚠ API breaking changes){% endif %}

{% endfor %}
{% for release in releases if release.breaking_changes %}

### ⚠ `{{ release.package }}` breaking changes

```text
{{ release.breaking_changes }}
```
{% endfor %}
{% for release in releases if release.warnings %}

### `{{ release.package }}` warnings

{% for warning in release.warnings %}
- {{ warning }}
{% endfor %}
{% endfor %}

<details><summary><i><b>Changelog</b></i></summary><p>

{% for release in releases if release.title %}
{% if packages_count > 1 %}
## `{{ release.package }}`

{% endif %}
<blockquote>

## {{ release.title }}
{% if release.changelog %}

{{ release.changelog }}
{% endif %}
</blockquote>

{% endfor %}

</p></details>

---
This PR was generated with [monorelease](https://github.com/monorelease/monorelease).
"""


class Config(BaseModel):
    """Settings from [tool.monorelease] in the root pyproject.toml.

    Attributes:
        pr_name: Jinja template for the release request title.
        pr_body: Jinja template for the release request body.
        pr_labels: Labels applied to the release request.
        features_always_increment_minor: Let feature commits bump the minor
                                         component of 0.x versions.
        branch_prefix: Prefix of release branch names.
        changelog_file: Changelog file name, relative to each package root.
        repo_url: Web URL of the repository. Derived from the remote if unset.
        max_workers: Bound for parallel read-only checks.
        git_timeout: Seconds allowed for local git commands.
        network_timeout: Seconds allowed for push and gh calls.
    """

    model_config = ConfigDict(extra="forbid")

    pr_name: str = DEFAULT_PR_NAME
    pr_body: str = DEFAULT_PR_BODY
    pr_labels: list[str] = Field(default_factory=list)
    features_always_increment_minor: bool = False
    branch_prefix: str = "release-"
    changelog_file: str = "CHANGELOG.md"
    repo_url: str | None = None
    max_workers: int = Field(default=4, ge=1)
    git_timeout: float = Field(default=30.0, gt=0)
    network_timeout: float = Field(default=180.0, gt=0)


# Package-level keys, read by discovery rather than by Config
PACKAGE_KEYS = {"include", "exclude", "publish"}


def parse_config(table: dict) -> Config:
    """Validate a [tool.monorelease] table.

    Package-level keys are allowed in the root table too, since the root
    pyproject.toml is also the package manifest of a single-package workspace.

    Raises:
        ConfigError: Naming the offending key on unknown keys or bad values.
    """
    values = {k: v for k, v in table.items() if k not in PACKAGE_KEYS}
    try:
        return Config.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'tool.monorelease'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"invalid [tool.monorelease] configuration: {problems}") from exc


def load_config(root: Path) -> Config:
    """Load configuration from root/pyproject.toml."""
    return parse_config(get_tool_table(load_pyproject(root / "pyproject.toml")))
