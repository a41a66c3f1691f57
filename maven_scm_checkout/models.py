"""Pydantic domain and result models.

These models are small and validation-focused. Descriptor models tolerate and
ignore unknown fields; coordinate and version-change models are immutable once
built.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel version meaning "latest release" when a coordinate omits it.
LATEST = "LATEST"

# Maven coordinate parts are short in practice; 200 is a generous cap.
_COORD_PART_MAX_LEN = 200

ConnectionType = Literal["connection", "developerConnection"]
ScmVersionType = Literal["branch", "tag", "revision"]


def _strip_non_empty(v: str) -> str:
    v_stripped = v.strip()
    if not v_stripped:
        raise ValueError("must not be empty")
    return v_stripped


class ArtifactCoordinate(BaseModel):
    """A Maven artifact locator (groupId:artifactId[:version[:extension[:classifier]]])."""

    model_config = ConfigDict(frozen=True)

    group_id: str = Field(..., min_length=1, max_length=_COORD_PART_MAX_LEN)
    artifact_id: str = Field(..., min_length=1, max_length=_COORD_PART_MAX_LEN)
    version: str = LATEST
    extension: Optional[str] = None
    classifier: Optional[str] = None

    @field_validator("group_id", "artifact_id")
    @classmethod
    def _strip_and_validate(cls, v: str) -> str:
        return _strip_non_empty(v)

    @property
    def is_latest(self) -> bool:
        return self.version == LATEST

    def with_version(self, version: str) -> "ArtifactCoordinate":
        return self.model_copy(update={"version": version})

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.version}"


class PomDependency(BaseModel):
    """A declared dependency entry from a POM.

    `unresolved_reason` documents why a version could not be resolved when
    reading the POM without full dependency management:
      - managed
      - property_unresolved
      - missing
    """

    model_config = ConfigDict(extra="ignore")

    group_id: str = Field(..., min_length=1, max_length=_COORD_PART_MAX_LEN)
    artifact_id: str = Field(..., min_length=1, max_length=_COORD_PART_MAX_LEN)
    version: Optional[str] = None
    scope: Optional[str] = None
    optional: bool = False
    unresolved_reason: Optional[Literal["managed", "property_unresolved", "missing"]] = None

    @field_validator("group_id", "artifact_id")
    @classmethod
    def _strip_and_validate(cls, v: str) -> str:
        return _strip_non_empty(v)

    def matches(self, group_id: str, artifact_id: str) -> bool:
        return self.group_id == group_id and self.artifact_id == artifact_id


class ScmSection(BaseModel):
    """The ``<scm>`` block of a POM."""

    model_config = ConfigDict(extra="ignore")

    connection: Optional[str] = None
    developer_connection: Optional[str] = None
    url: Optional[str] = None
    tag: Optional[str] = None


class ProjectDescriptor(BaseModel):
    """The parts of a POM the checkout flow needs."""

    model_config = ConfigDict(extra="ignore")

    group_id: Optional[str] = None
    artifact_id: str
    version: Optional[str] = None
    packaging: str = "jar"
    scm: Optional[ScmSection] = None
    build_directory: Path
    modules: list[str] = Field(default_factory=list)
    dependencies: list[PomDependency] = Field(default_factory=list)
    pom_file: Optional[Path] = None

    @property
    def basedir(self) -> Optional[Path]:
        return self.pom_file.parent if self.pom_file is not None else None

    def find_dependency(self, group_id: str, artifact_id: str) -> Optional[PomDependency]:
        """Return the first declared dependency matching groupId and artifactId.

        The declared version is ignored for matching.
        """
        for dep in self.dependencies:
            if dep.matches(group_id, artifact_id):
                return dep
        return None


class ScmConnection(BaseModel):
    """SCM connection URLs plus which one the run should prefer."""

    connection_type: ConnectionType = "connection"
    connection_url: Optional[str] = None
    developer_connection_url: Optional[str] = None

    def effective_url(self) -> Optional[str]:
        """Pick the URL to check out from.

        A plain connection is used only when asked for and present; otherwise
        the developer connection is the fallback.
        """
        if self.connection_type == "connection" and self.connection_url:
            return self.connection_url
        if self.developer_connection_url:
            return self.developer_connection_url
        return None


class ScmVersion(BaseModel):
    """Branch, tag or revision to check out."""

    model_config = ConfigDict(frozen=True)

    type: ScmVersionType
    value: str = Field(..., min_length=1)

    def __str__(self) -> str:
        return f"{self.type} {self.value}"


class VersionChange(BaseModel):
    """A single version substitution for one artifact."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    artifact_id: str
    old_version: str
    new_version: str


class ScmResult(BaseModel):
    """Outcome reported by an SCM client."""

    success: bool
    provider_message: Optional[str] = None
    command_output: Optional[str] = None
    checked_out_files: list[str] = Field(default_factory=list)


class CheckoutState(str, Enum):
    IDLE = "idle"
    COORDINATES_RESOLVED = "coordinates_resolved"
    CONNECTION_CONFIGURED = "connection_configured"
    DIRECTORY_PREPARED = "directory_prepared"
    CHECKED_OUT = "checked_out"
    PATCHED_MODULE = "patched_module"
    PATCHED_CONSUMER = "patched_consumer"
    DONE = "done"
    FAILED = "failed"


class CheckoutResult(BaseModel):
    """What a finished run reports back to its caller."""

    state: CheckoutState
    skipped: bool = False
    checkout_directory: Path
    connection_url: Optional[str] = None
    scm_result: Optional[ScmResult] = None
    version_change: Optional[VersionChange] = None
    module_patched: bool = False
    consumer_patched: bool = False
    history: list[CheckoutState] = Field(default_factory=list)


__all__ = [
    "LATEST",
    "ArtifactCoordinate",
    "PomDependency",
    "ScmSection",
    "ProjectDescriptor",
    "ScmConnection",
    "ScmVersion",
    "VersionChange",
    "ScmResult",
    "CheckoutState",
    "CheckoutResult",
]
