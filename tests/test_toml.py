"""Tests for monorelease.toml."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from monorelease.errors import ConfigError
from monorelease.toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_readme,
    get_tool_table,
    get_workspace_member_globs,
    is_publishable,
    load_pyproject,
    save_pyproject,
)


class TestLoadSavePyproject:
    def test_load(self, tmp_pyproject: Path) -> None:
        doc = load_pyproject(tmp_pyproject)
        assert get_project_name(doc, "") == "test-package"

    def test_save_preserves_content(self, tmp_pyproject: Path) -> None:
        doc = load_pyproject(tmp_pyproject)
        doc["project"]["version"] = "9.9.9"
        save_pyproject(tmp_pyproject, doc)

        reloaded = load_pyproject(tmp_pyproject)
        assert get_project_version(reloaded) == "9.9.9"
        assert get_project_name(reloaded, "") == "test-package"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="cannot read"):
            load_pyproject(tmp_path / "pyproject.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "pyproject.toml"
        path.write_text("[project\nname = ")
        with pytest.raises(ConfigError, match="invalid TOML"):
            load_pyproject(path)


class TestProjectFields:
    def test_name_is_normalized(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_project_name(sample_toml_doc, "fallback") == "my-package"

    def test_name_fallback(self) -> None:
        assert get_project_name(tomlkit.parse(""), "fallback") == "fallback"

    def test_version(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_project_version(sample_toml_doc) == "2.0.0"

    def test_version_default(self) -> None:
        assert get_project_version(tomlkit.parse("[project]")) == "0.1.0"


class TestGetAllDependencyStrings:
    def test_collects_all_locations(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_all_dependency_strings(sample_toml_doc) == [
            "click>=8.0",
            "pydantic>=2.0",
            "pytest>=8.0",
            "sphinx>=7.0",
            "hypothesis>=6.0",
        ]

    def test_skips_include_group_tables(self, tmp_pyproject: Path) -> None:
        deps = get_all_dependency_strings(load_pyproject(tmp_pyproject))
        assert "group-internal>=0.1" in deps
        assert all(isinstance(d, str) for d in deps)


class TestGetWorkspaceMemberGlobs:
    def test_returns_members(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_workspace_member_globs(sample_toml_doc) == ["packages/*", "libs/*"]

    def test_single_package_project(self) -> None:
        doc = tomlkit.parse('[project]\nname = "solo"')
        assert get_workspace_member_globs(doc) == ["."]

    def test_raises_without_workspace_or_project(self) -> None:
        with pytest.raises(ConfigError, match="No \\[tool.uv.workspace\\] members"):
            get_workspace_member_globs(tomlkit.parse("[tool.ruff]\nline-length = 88"))


class TestPackageSettings:
    def test_tool_table(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_tool_table(sample_toml_doc) == {
            "include": ["/src"],
            "exclude": ["*.pyc"],
        }

    def test_tool_table_missing(self) -> None:
        assert get_tool_table(tomlkit.parse("[project]")) == {}

    def test_readme_string(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert get_readme(sample_toml_doc) == "README.md"

    def test_readme_table(self) -> None:
        doc = tomlkit.parse('[project]\nreadme = {file = "docs/README.rst"}')
        assert get_readme(doc) == "docs/README.rst"

    def test_readme_inline_text(self) -> None:
        doc = tomlkit.parse('[project]\nreadme = {text = "hi", content-type = "text/plain"}')
        assert get_readme(doc) is None

    def test_publishable_by_default(self, sample_toml_doc: tomlkit.TOMLDocument) -> None:
        assert is_publishable(sample_toml_doc)

    def test_publish_false(self) -> None:
        doc = tomlkit.parse("[tool.monorelease]\npublish = false")
        assert not is_publishable(doc)

    def test_private_classifier(self) -> None:
        doc = tomlkit.parse(
            '[project]\nclassifiers = ["Private :: Do Not Upload"]'
        )
        assert not is_publishable(doc)
