from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import pytest
import respx

from maven_scm_checkout.models import ArtifactCoordinate, ScmResult, ScmVersion
from maven_scm_checkout.scm import ScmRepository, list_files

CONSUMER_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>com.acme</groupId>
  <artifactId>app</artifactId>
  <version>0.1.0</version>
  <dependencies>
    <!-- the plugin under test -->
    <dependency>
      <groupId>org.apache.maven.plugins</groupId>
      <artifactId>maven-clean-plugin</artifactId>
      <version>2.5</version>
    </dependency>
    <dependency>
      <artifactId>widget</artifactId>
      <version>1.2</version>
      <groupId>com.acme.libs</groupId>
    </dependency>
  </dependencies>
</project>
"""

RESOLVED_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <groupId>{group_id}</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
  <scm>
    <connection>{connection}</connection>
    <developerConnection>{developer_connection}</developerConnection>
    <tag>{tag}</tag>
  </scm>
</project>
"""

RESOLVED_POM_WITHOUT_SCM = """<project>
  <groupId>{group_id}</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
</project>
"""

MODULE_POM = """<project>
  <modelVersion>4.0.0</modelVersion>
  <parent>
    <groupId>com.acme</groupId>
    <artifactId>parent</artifactId>
    <version>7</version>
  </parent>
  <groupId>{group_id}</groupId>
  <artifactId>{artifact_id}</artifactId>
  <version>{version}</version>
</project>
"""


class FakeResolver:
    """Writes a canned POM for every coordinate and records what was asked."""

    def __init__(self, root: Path, template: str = RESOLVED_POM, **fields: str) -> None:
        self.root = root
        self.template = template
        self.fields = {
            "connection": "scm:svn:https://svn.example.org/repos/plugins/tags/release",
            "developer_connection": "scm:svn:https://svn.example.org/repos/plugins/trunk",
            "tag": "HEAD",
        }
        self.fields.update(fields)
        self.calls: list[ArtifactCoordinate] = []

    def resolve(
        self,
        coordinate: ArtifactCoordinate,
        remote_repositories: Sequence[str],
        local_repository: Path,
    ) -> Path:
        self.calls.append(coordinate)
        path = self.root / f"{coordinate.artifact_id}-{coordinate.version}.pom"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            self.template.format(
                **{
                    "group_id": coordinate.group_id,
                    "artifact_id": coordinate.artifact_id,
                    "version": coordinate.version,
                    **self.fields,
                }
            ),
            encoding="utf-8",
        )
        return path


class FakeScmClient:
    """Records calls and populates the destination with ``files``."""

    def __init__(self, files: Optional[dict[str, Union[str, bytes]]] = None, success: bool = True) -> None:
        self.files = files or {}
        self.success = success
        self.calls: list[tuple[str, ScmRepository, Path, Optional[ScmVersion]]] = []

    def _populate(
        self, op: str, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        self.calls.append((op, repository, destination, version))
        if not self.success:
            return ScmResult(success=False, provider_message="svn: E170013: Unable to connect")
        for rel, content in self.files.items():
            target = destination / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return ScmResult(success=True, checked_out_files=list_files(destination))

    def checkout(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        return self._populate("checkout", repository, destination, version)

    def export(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        return self._populate("export", repository, destination, version)


@pytest.fixture
def respx_router() -> Iterator[respx.Router]:
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def write_pom(tmp_path: Path) -> Callable[..., Path]:
    """Write POM text under tmp_path and return its path."""

    def _f(text: str, rel: str = "pom.xml") -> Path:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _f


@pytest.fixture
def consumer_pom(write_pom: Callable[..., Path]) -> Path:
    return write_pom(CONSUMER_POM)


@pytest.fixture
def resolver(tmp_path: Path) -> FakeResolver:
    return FakeResolver(tmp_path / "resolved")


@pytest.fixture
def resolver_without_scm(tmp_path: Path) -> FakeResolver:
    return FakeResolver(tmp_path / "resolved", template=RESOLVED_POM_WITHOUT_SCM)


@pytest.fixture
def scm_client() -> FakeScmClient:
    return FakeScmClient()


@pytest.fixture
def module_pom() -> Callable[[str, str, str], str]:
    def _f(group_id: str, artifact_id: str, version: str) -> str:
        return MODULE_POM.format(group_id=group_id, artifact_id=artifact_id, version=version)

    return _f


@pytest.fixture
def failing_scm_client() -> FakeScmClient:
    return FakeScmClient(success=False)


@pytest.fixture
def make_resolver(tmp_path: Path) -> Callable[..., FakeResolver]:
    """FakeResolver with overridden fields (connection, developer_connection, tag, version)."""

    def _f(**fields: str) -> FakeResolver:
        return FakeResolver(tmp_path / "resolved", **fields)

    return _f
