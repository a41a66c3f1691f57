"""Configuration.

Two layers:

- ``Settings``: process-wide defaults from environment variables
  (pydantic-settings). Repository locations, HTTP limits, SCM executables and
  logging live here.
- ``CheckoutOptions``: the explicit, per-invocation configuration passed to
  :class:`~maven_scm_checkout.orchestrator.CheckoutOrchestrator`. It lists
  every recognized option; unknown options are rejected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .models import ConnectionType, ScmVersionType

DEFAULT_REMOTE_REPOSITORY = "https://repo1.maven.org/maven2"


class Settings(BaseSettings):
    """Environment-driven defaults.

    All fields can be overridden via environment variables with the same
    names, e.g. ``HTTP_TIMEOUT_SECONDS=20``.
    """

    # Comma-separated list, searched in order
    MAVEN_REMOTE_REPOSITORIES: str = DEFAULT_REMOTE_REPOSITORY
    MAVEN_LOCAL_REPOSITORY: Path = Path.home() / ".m2" / "repository"

    HTTP_TIMEOUT_SECONDS: int = Field(default=30, ge=1)
    MAX_POM_BYTES: int = Field(default=2_000_000, ge=1)

    GIT_EXECUTABLE: str = "git"
    SVN_EXECUTABLE: str = "svn"

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_JSON: bool = False

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    @property
    def remote_repositories(self) -> list[str]:
        return [u.strip().rstrip("/") for u in self.MAVEN_REMOTE_REPOSITORIES.split(",") if u.strip()]


class CheckoutOptions(BaseModel):
    """Options for one checkout run.

    ``checkout_directory`` may contain ``${project.basedir}``; it is resolved
    against the enclosing project, or replaced by ``<basedir>/target/checkout``
    when there is none. ``as_snapshot`` needs both ``artifact_coords`` and
    ``project_file``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    use_export: bool = False
    checkout_directory: Optional[str] = None
    skip_checkout_if_exists: bool = False
    scm_version_type: Optional[ScmVersionType] = None
    scm_version: Optional[str] = None
    artifact_coords: Optional[str] = None
    as_snapshot: bool = False

    connection_url: Optional[str] = None
    developer_connection_url: Optional[str] = None
    connection_type: ConnectionType = "connection"

    # Comma-separated ant-style patterns applied after checkout
    includes: Optional[str] = None
    excludes: Optional[str] = None

    basedir: Path = Field(default_factory=Path.cwd)
    project_file: Optional[Path] = None

    remote_repositories: Optional[list[str]] = None
    local_repository: Optional[Path] = None

    @model_validator(mode="after")
    def _check_snapshot_requirements(self) -> "CheckoutOptions":
        if self.as_snapshot and not (self.artifact_coords or "").strip():
            raise ValueError("as_snapshot requires artifact_coords")
        if self.as_snapshot and self.project_file is None:
            raise ValueError("as_snapshot requires an enclosing project (project_file)")
        return self


def build_options(**values: object) -> CheckoutOptions:
    """Validate raw option values, reporting problems as ConfigurationError."""
    try:
        return CheckoutOptions(**values)  # type: ignore[arg-type]
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'options'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid checkout options: {problems}") from e


__all__ = ["Settings", "CheckoutOptions", "DEFAULT_REMOTE_REPOSITORY", "build_options"]
