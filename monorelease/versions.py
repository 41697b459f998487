"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0"),
and applies release bumps following semantic-versioning pre-1.0 rules.
"""

from __future__ import annotations

import semver

from .models import VersionBump


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3" → "1.2.3"

    Only the first 3 components are used (major.minor.patch).
    Prerelease/build metadata is not supported.
    """
    parts = version_str.split(".")
    # Pad with zeros to ensure we have at least 3 parts
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts[:3]))


def bump_version(
    version_str: str,
    bump: VersionBump,
    *,
    features_always_increment_minor: bool = False,
) -> str:
    """Apply a release bump to a version.

    For 1.0.0 and above, Major/Minor/Patch increment the matching component
    and reset the lower ones. Before 1.0.0 the API is considered unstable:
    a Major bump increments the minor component, and a Minor bump increments
    the patch component unless features_always_increment_minor is set.

    Examples:
        bump_version("1.2.3", VersionBump.MAJOR) → "2.0.0"
        bump_version("0.1.0", VersionBump.MAJOR) → "0.2.0"
        bump_version("0.1.0", VersionBump.MINOR) → "0.1.1"
        bump_version("0.1.0", VersionBump.MINOR,
                     features_always_increment_minor=True) → "0.2.0"

    Raises:
        ValueError: If bump is VersionBump.NONE.
    """
    version = parse_version(version_str)
    if bump is VersionBump.NONE:
        raise ValueError(f"no bump to apply to {version_str}")

    if version.major == 0:
        if bump is VersionBump.MAJOR:
            return str(version.bump_minor())
        if bump is VersionBump.MINOR and features_always_increment_minor:
            return str(version.bump_minor())
        return str(version.bump_patch())

    if bump is VersionBump.MAJOR:
        return str(version.bump_major())
    if bump is VersionBump.MINOR:
        return str(version.bump_minor())
    return str(version.bump_patch())


def tag_prefix(package: str, *, single_package: bool) -> str:
    """Release tag prefix: "v" in a single-package workspace, "{package}/v" otherwise."""
    return "v" if single_package else f"{package}/v"


def tag_name(package: str, version: str, *, single_package: bool) -> str:
    """Release tag for a package version, e.g. "pkg-a/v1.2.3" or "v1.2.3"."""
    return f"{tag_prefix(package, single_package=single_package)}{version}"


def is_newer(candidate: str, baseline: str) -> bool:
    """Whether candidate is strictly greater than baseline."""
    return parse_version(candidate) > parse_version(baseline)
