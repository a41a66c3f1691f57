"""Resolving project POMs from Maven repositories.

- Local repository first (``~/.m2/repository`` layout); a hit needs no network.
- Remote repositories are tried in order over a synchronous httpx client.
  A 404 moves on to the next repository; any other failure is fatal.
- ``LATEST`` coordinates are pinned through ``maven-metadata.xml``: the
  ``<release>`` entry when present, else the highest stable listed version.
- Downloads are capped in size and written into the local repository.
- HTTPS-only guard on remote URLs (``file:`` is never fetched).

No retries: a failed download surfaces as :class:`ResolutionError`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Final, Optional, Protocol, Sequence

import httpx
from defusedxml import DefusedXmlException  # type: ignore[import-untyped]
from defusedxml import ElementTree as ET  # type: ignore[import-untyped]

from .config import Settings
from .errors import ResolutionError
from .models import ArtifactCoordinate
from .versioning import select_latest_release

_logger = logging.getLogger(__name__)

_METADATA_FILE: Final[str] = "maven-metadata.xml"


class ArtifactResolver(Protocol):
    def resolve(
        self,
        coordinate: ArtifactCoordinate,
        remote_repositories: Sequence[str],
        local_repository: Path,
    ) -> Path:
        ...


def _validate_coordinate_part(name: str, value: str) -> str:
    v = (value or "").strip()
    if not v:
        raise ResolutionError(f"{name} must be non-empty")
    if v.startswith("/") or ".." in v or "/" in v or "\\" in v:
        raise ResolutionError(f"{name} contains illegal path characters: {v!r}")
    return v


def _group_path(group_id: str) -> str:
    g = _validate_coordinate_part("groupId", group_id)
    if g.startswith(".") or g.endswith("."):
        raise ResolutionError(f"groupId contains illegal path characters: {g!r}")
    return g.replace(".", "/")


def pom_relative_path(group_id: str, artifact_id: str, version: str) -> str:
    """Repository-relative path of a project POM, e.g. ``org/x/demo/1.0/demo-1.0.pom``."""
    a = _validate_coordinate_part("artifactId", artifact_id)
    v = _validate_coordinate_part("version", version)
    return f"{_group_path(group_id)}/{a}/{v}/{a}-{v}.pom"


def metadata_relative_path(group_id: str, artifact_id: str) -> str:
    a = _validate_coordinate_part("artifactId", artifact_id)
    return f"{_group_path(group_id)}/{a}/{_METADATA_FILE}"


def parse_metadata_release(metadata_xml: str) -> Optional[str]:
    """Pick the release version from ``maven-metadata.xml`` text."""
    try:
        root = ET.fromstring(metadata_xml)
    except (ET.ParseError, DefusedXmlException) as e:
        raise ResolutionError(f"Invalid repository metadata: {e}") from e

    versioning = root.find("versioning")
    if versioning is None:
        return None
    release = (versioning.findtext("release") or "").strip()
    if release:
        return release
    versions = [(v.text or "").strip() for v in versioning.findall("versions/version")]
    return select_latest_release(v for v in versions if v)


class MavenRepositoryResolver:
    """Default :class:`ArtifactResolver` for project POMs.

    Parameters come from :class:`Settings` unless overridden; ``client`` can
    be injected for tests.
    """

    def __init__(
        self,
        *,
        timeout_seconds: Optional[int] = None,
        max_pom_bytes: Optional[int] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        s = Settings()
        self._max_bytes = int(max_pom_bytes or s.MAX_POM_BYTES)
        self._client = client or httpx.Client(
            timeout=int(timeout_seconds or s.HTTP_TIMEOUT_SECONDS), follow_redirects=True
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "MavenRepositoryResolver":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def resolve(
        self,
        coordinate: ArtifactCoordinate,
        remote_repositories: Sequence[str],
        local_repository: Path,
    ) -> Path:
        """Return a local path to the POM of ``coordinate``, downloading it if needed."""
        if coordinate.is_latest:
            coordinate = coordinate.with_version(
                self._resolve_latest(coordinate, remote_repositories)
            )

        rel = pom_relative_path(coordinate.group_id, coordinate.artifact_id, coordinate.version)
        local = Path(local_repository) / rel
        if local.is_file():
            _logger.info("using local repository copy", extra={"op": "resolve", "path": str(local)})
            return local

        for repo in remote_repositories:
            data = self._fetch(f"{repo.rstrip('/')}/{rel}")
            if data is None:
                continue
            try:
                local.parent.mkdir(parents=True, exist_ok=True)
                local.write_bytes(data)
            except OSError as e:
                raise ResolutionError(f"Cannot store {coordinate} in {local}: {e}") from e
            _logger.info(
                "downloaded artifact",
                extra={"op": "resolve", "artifact": str(coordinate), "repository": repo},
            )
            return local

        raise ResolutionError(
            f"Couldn't download artifact: {coordinate} not found in {list(remote_repositories)}"
        )

    def _resolve_latest(
        self, coordinate: ArtifactCoordinate, remote_repositories: Sequence[str]
    ) -> str:
        rel = metadata_relative_path(coordinate.group_id, coordinate.artifact_id)
        for repo in remote_repositories:
            data = self._fetch(f"{repo.rstrip('/')}/{rel}")
            if data is None:
                continue
            release = parse_metadata_release(data.decode("utf-8", errors="replace"))
            if release:
                _logger.info(
                    "resolved latest release",
                    extra={"op": "resolve_latest", "artifact": str(coordinate), "version": release},
                )
                return release
        raise ResolutionError(
            f"No release version found for {coordinate.group_id}:{coordinate.artifact_id}"
        )

    def _fetch(self, url: str) -> Optional[bytes]:
        """GET ``url``; None on 404, bytes on success, ResolutionError otherwise."""
        if not url.lower().startswith("https://"):
            raise ResolutionError(f"Repository URL must be HTTPS: {url}")

        _logger.debug("HTTP GET", extra={"op": "fetch", "url": url})
        try:
            with self._client.stream("GET", url) as resp:
                if resp.status_code == 404:
                    return None
                resp.raise_for_status()
                total = 0
                chunks: list[bytes] = []
                for chunk in resp.iter_bytes():
                    total += len(chunk)
                    if total > self._max_bytes:
                        raise ResolutionError(f"Response from {url} exceeds {self._max_bytes} bytes")
                    chunks.append(chunk)
        except httpx.HTTPStatusError as e:
            raise ResolutionError(
                f"Couldn't download artifact: {url} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"Couldn't download artifact: {url}: {e}") from e
        return b"".join(chunks)


__all__ = [
    "ArtifactResolver",
    "MavenRepositoryResolver",
    "pom_relative_path",
    "metadata_relative_path",
    "parse_metadata_release",
]
