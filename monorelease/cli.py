"""CLI entry point for monorelease."""

from __future__ import annotations

import json
from pathlib import Path

import click

from monorelease.errors import ReleaseError
from monorelease.pipeline import run_release, run_release_pr


@click.group()
@click.version_option(package_name="monorelease")
def cli() -> None:
    """Release automation for Python monorepos, one pull request at a time."""


@cli.command("release-pr")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the plan without pushing or opening a pull request.",
)
def release_pr(dry_run: bool) -> None:
    """Open or update the release pull request."""
    try:
        summary = run_release_pr(Path.cwd(), dry_run=dry_run)
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(summary))


@cli.command()
def release() -> None:
    """Tag and publish unreleased package versions (usually called from CI)."""
    try:
        tags = run_release(Path.cwd())
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc
    for tag in tags:
        click.echo(tag)
