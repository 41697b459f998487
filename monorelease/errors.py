"""Exception hierarchy for monorelease.

Every failure the engine reports derives from ReleaseError so the CLI can
turn it into a single readable message. Messages always name the offending
package, label, template variable or command.
"""

from __future__ import annotations


class ReleaseError(Exception):
    """Base class for all monorelease errors."""


class ConfigError(ReleaseError):
    """Invalid configuration or workspace manifest."""


class DetectionError(ReleaseError):
    """A path needed for change detection could not be resolved."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot resolve {path}: {reason}")


class CycleError(ReleaseError):
    """The workspace dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")


class CompatibilityCheckError(ReleaseError):
    """The API compatibility checker failed for a package."""

    def __init__(self, package: str, reason: str) -> None:
        self.package = package
        self.reason = reason
        super().__init__(f"API compatibility check failed for {package}: {reason}")


class TemplateError(ReleaseError):
    """A pull request template could not be rendered."""

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"failed to render {field}: {reason}")


class LabelError(ReleaseError):
    """A configured pull request label is invalid or could not be created."""

    def __init__(self, label: str, reason: str) -> None:
        self.label = label
        self.reason = reason
        super().__init__(f"Failed to add label `{label}`: {reason}")


class VersionControlError(ReleaseError):
    """A git command failed or timed out."""

    def __init__(self, command: str, stderr: str) -> None:
        self.command = command
        self.stderr = stderr
        detail = f":\n- stderr: {stderr}" if stderr else ""
        super().__init__(f"error while running `{command}`{detail}")


class HostingError(ReleaseError):
    """A hosting platform (gh) call failed or timed out."""


class RegistryError(ReleaseError):
    """The package registry could not be queried or published to."""
