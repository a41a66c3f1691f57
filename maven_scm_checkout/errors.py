"""Error taxonomy for checkout runs.

Every failure raised by the checkout pipeline derives from ``CheckoutError`` so
the CLI and server surfaces can report it uniformly. Nothing here is retried;
errors are wrapped with the operation context and surfaced to the caller.
"""

from __future__ import annotations

from typing import Any, Optional


class CheckoutError(Exception):
    """Base class for all checkout failures.

    ``state`` is filled in by the orchestrator with the name of the state the
    run was in when the error occurred.
    """

    def __init__(self, message: str, *, state: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.state = state

    def __str__(self) -> str:
        return self.message


class MalformedCoordinate(CheckoutError, ValueError):
    """Artifact locator string is not ``groupId:artifactId[:version[:type[:classifier]]]``."""


class ResolutionError(CheckoutError):
    """Artifact could not be downloaded or located in any repository."""


class DescriptorParseError(CheckoutError):
    """A POM file could not be read or parsed."""


class ConfigurationError(CheckoutError):
    """Invalid or incomplete options."""


class MissingScmSection(ConfigurationError):
    """No usable SCM connection URL for the checkout."""


class DirectoryPrepError(CheckoutError):
    """Destination directory could not be removed or created."""


class TransportError(CheckoutError):
    """SCM provider reported a failure."""


class UnparsableVersion(CheckoutError, ValueError):
    """Version string has no numeric component to increment."""


class DependencyNotDeclared(CheckoutError):
    """The invoking project does not declare the requested dependency."""

    def __init__(self, group_id: str, artifact_id: str, **kwargs: Any) -> None:
        super().__init__(
            f"Dependency {group_id}:{artifact_id} is not declared in the project",
            **kwargs,
        )
        self.group_id = group_id
        self.artifact_id = artifact_id


class PatchApplicationError(CheckoutError):
    """A patched POM could not be read or written back."""


__all__ = [
    "CheckoutError",
    "MalformedCoordinate",
    "ResolutionError",
    "DescriptorParseError",
    "ConfigurationError",
    "MissingScmSection",
    "DirectoryPrepError",
    "TransportError",
    "UnparsableVersion",
    "DependencyNotDeclared",
    "PatchApplicationError",
]
