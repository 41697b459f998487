"""Tests for monorelease.deps."""

from __future__ import annotations

from pathlib import Path

from monorelease.deps import dep_canonical_name, rewrite_pyproject, update_dep_specifier


class TestDepCanonicalName:
    def test_simple_name(self) -> None:
        assert dep_canonical_name("requests") == "requests"

    def test_with_version_bound(self) -> None:
        assert dep_canonical_name("requests>=2.0,<3.0") == "requests"

    def test_with_extras(self) -> None:
        assert dep_canonical_name("requests[security]>=2.0") == "requests"

    def test_normalizes_underscores_and_case(self) -> None:
        assert dep_canonical_name("My_Package>=1.0") == "my-package"


class TestUpdateDepSpecifier:
    def test_exact_pin_stays_exact(self) -> None:
        assert update_dep_specifier("pkg==1.0.0", "1.0.1") == "pkg==1.0.1"

    def test_range_becomes_lower_bound(self) -> None:
        assert update_dep_specifier("pkg>=1.0,<2", "1.1.0") == "pkg>=1.1.0"

    def test_bare_name_gets_lower_bound(self) -> None:
        assert update_dep_specifier("pkg", "0.2.0") == "pkg>=0.2.0"

    def test_preserves_extras_sorted(self) -> None:
        assert update_dep_specifier("pkg[z,a]~=1.0", "1.5.0") == "pkg[a,z]>=1.5.0"

    def test_preserves_marker(self) -> None:
        result = update_dep_specifier('pkg>=1.0; python_version >= "3.10"', "1.2.0")
        assert result == 'pkg>=1.2.0; python_version >= "3.10"'


class TestRewritePyproject:
    def test_updates_version(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {})
        assert 'version = "2.0.0"' in tmp_pyproject.read_text()

    def test_updates_internal_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {"internal-dep": "1.5.0"})
        content = tmp_pyproject.read_text()
        assert "internal-dep>=1.5.0" in content
        assert "requests>=2.0" in content

    def test_updates_optional_and_group_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(
            tmp_pyproject,
            "2.0.0",
            {"another-internal": "0.6.0", "group-internal": "0.2.0"},
        )
        content = tmp_pyproject.read_text()
        assert "another-internal==0.6.0" in content
        assert "group-internal>=0.2.0" in content
        # include-group tables are left alone
        assert "include-group" in content

    def test_preserves_formatting(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {"internal-dep": "1.5.0"})
        content = tmp_pyproject.read_text()
        assert "dependencies = [\n" in content
        assert "[dependency-groups]" in content
