"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from monorelease.graph import DependencyGraph
from monorelease.models import Package
from monorelease.shell import git


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal==0.5.0"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1", {include-group = "lint"}]
lint = ["ruff"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my_package"
version = "2.0.0"
readme = "README.md"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]

[tool.monorelease]
include = ["/src"]
exclude = ["*.pyc"]
"""
    return tomlkit.parse(content)


@pytest.fixture
def chain_graph() -> DependencyGraph:
    """binary → library2 → library1."""
    return DependencyGraph.build(
        [
            Package(name="binary", path="binary", version="0.1.0", deps=("library2",)),
            Package(name="library2", path="library2", version="0.1.0", deps=("library1",)),
            Package(name="library1", path="library1", version="0.1.0"),
        ]
    )


@pytest.fixture
def bare_remote(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A bare repository whose main branch holds a single-package workspace."""
    for var in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{var}_NAME", "Release Bot")
        monkeypatch.setenv(f"{var}_EMAIL", "bot@example.com")
    remote = tmp_path / "remote.git"
    git("init", "--bare", "--initial-branch=main", str(remote))
    seed = tmp_path / "seed"
    git("clone", str(remote), str(seed))
    (seed / "pyproject.toml").write_text('[project]\nname = "solo"\nversion = "0.1.0"\n')
    git("add", "--all", cwd=seed)
    git("commit", "-m", "Initial commit", cwd=seed)
    git("push", "origin", "HEAD:main", cwd=seed)
    return remote


@pytest.fixture
def git_workspace(bare_remote: Path, tmp_path: Path) -> Path:
    """A fresh clone of bare_remote with only main fetched, as in CI."""
    workspace = tmp_path / "workspace"
    git("clone", "--single-branch", "-b", "main", str(bare_remote), str(workspace))
    return workspace
