"""Published-version lookup.

Packages are published as wheels attached to GitHub releases, so a version
counts as published when a wheel for it is attached to any release.
"""

from __future__ import annotations

from functools import cached_property

from packaging.utils import canonicalize_name

from .errors import HostingError, RegistryError
from .hosting import GitHubClient


def wheel_prefix(package: str, version: str) -> str:
    """Filename prefix of the wheels for a package version.

    Wheel names use underscores, not hyphens:
        wheel_prefix("pkg-a", "1.0.0") → "pkg_a-1.0.0-"
    """
    return f"{canonicalize_name(package).replace('-', '_')}-{version}-"


class GitHubReleasesRegistry:
    """Registry client reading wheels attached to GitHub releases."""

    def __init__(self, client: GitHubClient) -> None:
        self.client = client

    @cached_property
    def wheels(self) -> set[str]:
        """Wheel filenames attached to any release.

        Raises:
            RegistryError: If the releases cannot be listed.
        """
        try:
            return {
                name
                for tag in self.client.release_tags()
                for name in self.client.release_assets(tag)
                if name.endswith(".whl")
            }
        except HostingError as exc:
            raise RegistryError(f"cannot list published wheels: {exc}") from exc

    def is_published(self, package: str, version: str) -> bool:
        prefix = wheel_prefix(package, version)
        return any(wheel.startswith(prefix) for wheel in self.wheels)
