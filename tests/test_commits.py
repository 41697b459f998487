"""Tests for monorelease.commits."""

from __future__ import annotations

from monorelease.commits import commit_bump, commits_bump, parse_subject
from monorelease.models import VersionBump


class TestParseSubject:
    def test_plain_type(self) -> None:
        commit = parse_subject("fix: handle empty input")
        assert commit is not None
        assert commit.type == "fix"
        assert commit.scope is None
        assert not commit.breaking
        assert commit.description == "handle empty input"

    def test_scope_and_breaking(self) -> None:
        commit = parse_subject("feat(cli)!: drop --legacy")
        assert commit is not None
        assert commit.type == "feat"
        assert commit.scope == "cli"
        assert commit.breaking

    def test_breaking_change_token(self) -> None:
        commit = parse_subject("refactor: BREAKING CHANGE rename Config")
        assert commit is not None
        assert commit.breaking

    def test_type_is_lowercased(self) -> None:
        commit = parse_subject("Feat: shout")
        assert commit is not None
        assert commit.type == "feat"

    def test_not_conventional(self) -> None:
        assert parse_subject("Initial commit") is None
        assert parse_subject("Merge branch 'main'") is None


class TestCommitBump:
    def test_feature_is_minor(self) -> None:
        assert commit_bump("feat: new flag") is VersionBump.MINOR

    def test_fix_is_patch(self) -> None:
        assert commit_bump("fix: typo") is VersionBump.PATCH

    def test_breaking_is_major(self) -> None:
        assert commit_bump("fix!: change return type") is VersionBump.MAJOR

    def test_other_is_patch(self) -> None:
        assert commit_bump("docs: update readme") is VersionBump.PATCH
        assert commit_bump("whatever") is VersionBump.PATCH


class TestCommitsBump:
    def test_most_significant_wins(self) -> None:
        assert commits_bump(["fix: a", "feat: b", "chore: c"]) is VersionBump.MINOR

    def test_empty_is_patch(self) -> None:
        assert commits_bump([]) is VersionBump.PATCH
