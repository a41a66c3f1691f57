"""Checkout orchestration.

One run is a sequential walk through :class:`CheckoutState`::

    IDLE -> COORDINATES_RESOLVED -> CONNECTION_CONFIGURED -> DIRECTORY_PREPARED
         -> CHECKED_OUT [-> PATCHED_MODULE -> PATCHED_CONSUMER] -> DONE

``IDLE`` goes straight to ``CONNECTION_CONFIGURED`` when no artifact
coordinates are given, and ``CONNECTION_CONFIGURED`` goes straight to ``DONE``
when the destination already exists and skipping was requested.

Each transition returns either the next state or a :class:`Failure` naming the
state it failed in. There is no rollback: once the checkout has happened a
failed patch leaves the checked-out tree (and any POM already rewritten) in
place, and the run reports a single failure.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from .config import CheckoutOptions, Settings
from .coordinates import parse_coordinate
from .errors import (
    CheckoutError,
    ConfigurationError,
    DependencyNotDeclared,
    DirectoryPrepError,
    MissingScmSection,
    PatchApplicationError,
    UnparsableVersion,
)
from .models import (
    ArtifactCoordinate,
    CheckoutResult,
    CheckoutState,
    PomDependency,
    ProjectDescriptor,
    ScmConnection,
    ScmResult,
    ScmVersion,
    VersionChange,
)
from .pom import PomReader, ProjectDescriptorReader
from .repository import ArtifactResolver, MavenRepositoryResolver
from .scm import ScmClient, ScmRepository, check_result, client_for, filter_checkout, split_patterns
from .versioning import plan_snapshot_change
from .xml_patch import XmlScanError, apply_version_change, read_pom_text, write_pom_text

_logger = logging.getLogger(__name__)

BASEDIR_PLACEHOLDER = "${project.basedir}"
POM_FILE = "pom.xml"

ScmClientFactory = Callable[[ScmRepository], ScmClient]
_T = TypeVar("_T")


@dataclass(frozen=True)
class Failure:
    state: CheckoutState
    error: CheckoutError


Outcome = Union[CheckoutState, Failure]


@dataclass
class _RunContext:
    consumer: Optional[ProjectDescriptor] = None
    coordinate: Optional[ArtifactCoordinate] = None
    dependency: Optional[PomDependency] = None
    resolved: Optional[ProjectDescriptor] = None
    scm_version: Optional[ScmVersion] = None
    connection: Optional[ScmConnection] = None
    repository: Optional[ScmRepository] = None
    checkout_directory: Optional[Path] = None
    skipped: bool = False
    scm_result: Optional[ScmResult] = None
    version_change: Optional[VersionChange] = None
    module_patched: bool = False
    consumer_patched: bool = False


def _required(value: Optional[_T], name: str) -> _T:
    if value is None:
        raise CheckoutError(f"No {name} known at this point of the run")
    return value


class CheckoutOrchestrator:
    """Runs one checkout as configured by :class:`CheckoutOptions`.

    Collaborators default to the bundled implementations and can be swapped
    for anything satisfying the ``ArtifactResolver``,
    ``ProjectDescriptorReader`` and ``ScmClient`` protocols.
    """

    def __init__(
        self,
        options: CheckoutOptions,
        *,
        resolver: Optional[ArtifactResolver] = None,
        reader: Optional[ProjectDescriptorReader] = None,
        scm_client_factory: Optional[ScmClientFactory] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.options = options
        self._settings = settings or Settings()
        self._resolver = resolver
        self._reader = reader or PomReader()
        self._scm_client_factory = scm_client_factory or client_for
        self.history: list[CheckoutState] = []
        # last result reported by the SCM provider, for callers extending a run
        self.checkout_result: Optional[ScmResult] = None

    def run(self) -> CheckoutResult:
        """Drive the state machine to ``DONE`` or raise the first failure."""
        ctx = _RunContext()
        state = CheckoutState.IDLE
        self.history = [state]
        self.checkout_result = None

        while state is not CheckoutState.DONE:
            outcome = self.step(state, ctx)
            if isinstance(outcome, Failure):
                self.history.append(CheckoutState.FAILED)
                outcome.error.state = outcome.state.value
                _logger.error(
                    "checkout failed",
                    extra={"op": "checkout", "state": outcome.state.value, "error": str(outcome.error)},
                )
                raise outcome.error
            state = outcome
            self.history.append(state)

        self.checkout_result = ctx.scm_result
        return CheckoutResult(
            state=state,
            skipped=ctx.skipped,
            checkout_directory=_required(ctx.checkout_directory, "checkout directory"),
            connection_url=ctx.connection.effective_url() if ctx.connection else None,
            scm_result=ctx.scm_result,
            version_change=None if ctx.skipped else ctx.version_change,
            module_patched=ctx.module_patched,
            consumer_patched=ctx.consumer_patched,
            history=list(self.history),
        )

    def step(self, state: CheckoutState, ctx: _RunContext) -> Outcome:
        """Perform the transition out of ``state``."""
        transitions = {
            CheckoutState.IDLE: self._from_idle,
            CheckoutState.COORDINATES_RESOLVED: self._from_coordinates_resolved,
            CheckoutState.CONNECTION_CONFIGURED: self._from_connection_configured,
            CheckoutState.DIRECTORY_PREPARED: self._from_directory_prepared,
            CheckoutState.CHECKED_OUT: self._from_checked_out,
            CheckoutState.PATCHED_MODULE: self._from_patched_module,
            CheckoutState.PATCHED_CONSUMER: lambda _ctx: CheckoutState.DONE,
        }
        try:
            handler = transitions[state]
        except KeyError:
            raise ValueError(f"No transition out of {state.value}") from None
        try:
            return handler(ctx)
        except CheckoutError as e:
            return Failure(state, e)

    # --- transitions ---

    def _from_idle(self, ctx: _RunContext) -> CheckoutState:
        opts = self.options
        ctx.scm_version = self._scm_version()
        if opts.project_file is not None:
            ctx.consumer = self._reader.read_raw_model(opts.project_file)

        if not (opts.artifact_coords or "").strip():
            self._configure_connection(
                ctx,
                ScmConnection(
                    connection_type=opts.connection_type,
                    connection_url=opts.connection_url,
                    developer_connection_url=opts.developer_connection_url,
                ),
            )
            return CheckoutState.CONNECTION_CONFIGURED

        coordinate = parse_coordinate(opts.artifact_coords or "")
        if opts.as_snapshot:
            ctx.dependency = self._declared_dependency(ctx.consumer, coordinate)
            if coordinate.is_latest and ctx.dependency.version:
                coordinate = coordinate.with_version(ctx.dependency.version)
        ctx.coordinate = coordinate

        remote = opts.remote_repositories or self._settings.remote_repositories
        local = opts.local_repository or self._settings.MAVEN_LOCAL_REPOSITORY
        _logger.info(
            "resolving artifact",
            extra={"op": "resolve", "artifact": str(coordinate), "repositories": remote},
        )
        if self._resolver is not None:
            pom_file = self._resolver.resolve(coordinate, remote, local)
        else:
            with MavenRepositoryResolver() as resolver:
                pom_file = resolver.resolve(coordinate, remote, local)
        ctx.resolved = self._reader.read_raw_model(pom_file)
        return CheckoutState.COORDINATES_RESOLVED

    def _from_coordinates_resolved(self, ctx: _RunContext) -> CheckoutState:
        resolved = _required(ctx.resolved, "resolved descriptor")
        coordinate = _required(ctx.coordinate, "artifact coordinate")
        scm = resolved.scm
        if scm is None:
            raise MissingScmSection(f"Artifact {coordinate} has no <scm> section in its POM")
        self._configure_connection(
            ctx,
            ScmConnection(
                connection_type=self.options.connection_type,
                connection_url=scm.connection,
                developer_connection_url=scm.developer_connection,
            ),
        )
        repository = _required(ctx.repository, "scm repository")
        if ctx.scm_version is None and repository.provider == "git" and scm.tag and scm.tag != "HEAD":
            ctx.scm_version = ScmVersion(type="tag", value=scm.tag)
        if self.options.as_snapshot:
            ctx.version_change = self._plan_snapshot(ctx, coordinate, resolved)
        return CheckoutState.CONNECTION_CONFIGURED

    def _from_connection_configured(self, ctx: _RunContext) -> CheckoutState:
        destination = self._checkout_directory(ctx)
        ctx.checkout_directory = destination

        if destination.is_dir() and self.options.skip_checkout_if_exists:
            _logger.info(
                "checkout directory exists, skipping checkout",
                extra={"op": "checkout", "directory": str(destination)},
            )
            ctx.skipped = True
            return CheckoutState.DONE

        _logger.info("Removing %s", destination, extra={"op": "prepare_directory"})
        try:
            if destination.is_dir():
                shutil.rmtree(destination)
            elif destination.exists():
                destination.unlink()
        except OSError as e:
            raise DirectoryPrepError(f"Cannot remove {destination}: {e}") from e
        try:
            destination.mkdir(parents=True)
        except OSError as e:
            raise DirectoryPrepError(f"Cannot create {destination}: {e}") from e
        return CheckoutState.DIRECTORY_PREPARED

    def _from_directory_prepared(self, ctx: _RunContext) -> CheckoutState:
        repository = _required(ctx.repository, "scm repository")
        client = self._scm_client_factory(repository)
        destination = _required(ctx.checkout_directory, "checkout directory").absolute()
        operation = "export" if self.options.use_export else "checkout"
        _logger.info(
            "running scm %s",
            operation,
            extra={
                "op": operation,
                "url": repository.connection_url,
                "version": str(ctx.scm_version) if ctx.scm_version else None,
            },
        )
        if self.options.use_export:
            result = client.export(repository, destination, ctx.scm_version)
        else:
            result = client.checkout(repository, destination, ctx.scm_version)
        ctx.scm_result = result
        check_result(result, operation)

        try:
            filter_checkout(
                destination, split_patterns(self.options.includes), split_patterns(self.options.excludes)
            )
        except OSError as e:
            raise DirectoryPrepError(f"Cannot apply includes/excludes to {destination}: {e}") from e
        return CheckoutState.CHECKED_OUT

    def _from_checked_out(self, ctx: _RunContext) -> CheckoutState:
        if not self.options.as_snapshot:
            return CheckoutState.DONE
        change = _required(ctx.version_change, "version change")
        pom_file = _required(ctx.checkout_directory, "checkout directory") / POM_FILE
        ctx.module_patched = self._patch_file(pom_file, change, as_dependency=False)
        return CheckoutState.PATCHED_MODULE

    def _from_patched_module(self, ctx: _RunContext) -> CheckoutState:
        ctx.consumer_patched = self._patch_file(
            _required(self.options.project_file, "project file"),
            _required(ctx.version_change, "version change"),
            as_dependency=True,
        )
        return CheckoutState.PATCHED_CONSUMER

    # --- helpers ---

    def _scm_version(self) -> Optional[ScmVersion]:
        version_type = self.options.scm_version_type
        value = (self.options.scm_version or "").strip()
        if not value:
            return None
        if version_type is None:
            raise ConfigurationError("You must specify the version type (branch, tag or revision)")
        return ScmVersion(type=version_type, value=value)

    def _configure_connection(self, ctx: _RunContext, connection: ScmConnection) -> None:
        url = connection.effective_url()
        if not url:
            raise MissingScmSection(
                "You need to define a connectionUrl or developerConnectionUrl parameter"
            )
        ctx.connection = connection
        ctx.repository = ScmRepository.parse(url)
        _logger.info("using scm connection", extra={"op": "connect", "url": url})

    @staticmethod
    def _plan_snapshot(
        ctx: _RunContext, coordinate: ArtifactCoordinate, resolved: ProjectDescriptor
    ) -> VersionChange:
        """Released version: declared dependency, else coordinate, else the resolved POM."""
        released = (
            (ctx.dependency.version if ctx.dependency else None)
            or (None if coordinate.is_latest else coordinate.version)
            or resolved.version
        )
        if not released:
            raise UnparsableVersion(
                f"No released version known for {coordinate.group_id}:{coordinate.artifact_id}"
            )
        return plan_snapshot_change(coordinate.group_id, coordinate.artifact_id, released)

    @staticmethod
    def _declared_dependency(
        consumer: Optional[ProjectDescriptor], coordinate: ArtifactCoordinate
    ) -> PomDependency:
        if consumer is None:
            raise ConfigurationError("Checking out as snapshot requires an enclosing project")
        dep = consumer.find_dependency(coordinate.group_id, coordinate.artifact_id)
        if dep is None:
            raise DependencyNotDeclared(coordinate.group_id, coordinate.artifact_id)
        return dep

    def _checkout_directory(self, ctx: _RunContext) -> Path:
        """Explicit option, else ``<build>/checkout/<artifactId>``, else ``<build>/checkout``."""
        basedir = self.options.basedir
        consumer = ctx.consumer
        raw = self.options.checkout_directory

        if raw:
            if BASEDIR_PLACEHOLDER in raw:
                if consumer is None:
                    return basedir / "target" / "checkout"
                raw = raw.replace(BASEDIR_PLACEHOLDER, str(consumer.basedir or basedir))
            path = Path(raw)
            return path if path.is_absolute() else basedir / path

        build_dir = consumer.build_directory if consumer is not None else basedir / "target"
        if ctx.coordinate is not None:
            return build_dir / "checkout" / ctx.coordinate.artifact_id
        return build_dir / "checkout"

    def _patch_file(self, pom_file: Path, change: VersionChange, *, as_dependency: bool) -> bool:
        target = "dependency" if as_dependency else "module"
        try:
            text = read_pom_text(pom_file)
        except (OSError, XmlScanError) as e:
            raise PatchApplicationError(f"Cannot read {pom_file}: {e}") from e
        try:
            result = apply_version_change(text, change, as_dependency=as_dependency)
        except XmlScanError as e:
            raise PatchApplicationError(f"Cannot scan {pom_file}: {e}") from e

        if not result.changed:
            _logger.warning(
                "version not updated",
                extra={"op": "patch", "target": target, "pom": str(pom_file), "reason": result.reason},
            )
            return False
        try:
            write_pom_text(pom_file, result.text)
        except (OSError, XmlScanError) as e:
            raise PatchApplicationError(f"Cannot write {pom_file}: {e}") from e
        _logger.info(
            "updated version",
            extra={
                "op": "patch",
                "target": target,
                "pom": str(pom_file),
                "old": change.old_version,
                "new": change.new_version,
            },
        )
        return True


__all__ = ["CheckoutOrchestrator", "Failure"]
