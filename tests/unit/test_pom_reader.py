from pathlib import Path

import pytest

from maven_scm_checkout.errors import DescriptorParseError
from maven_scm_checkout.pom import PomReader, extract_declared_dependencies, parse_project, read_module_names

POM = """<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <parent>
    <groupId>org.apache.maven.plugins</groupId>
    <artifactId>maven-plugins</artifactId>
    <version>22</version>
  </parent>
  <artifactId>maven-clean-plugin</artifactId>
  <version>2.5</version>
  <packaging>maven-plugin</packaging>
  <scm>
    <connection>scm:svn:http://svn.apache.org/repos/asf/maven/plugins/tags/maven-clean-plugin-2.5</connection>
    <developerConnection>scm:svn:https://svn.apache.org/repos/asf/maven/plugins/tags/maven-clean-plugin-2.5</developerConnection>
    <url>http://svn.apache.org/viewvc/maven/plugins/tags/maven-clean-plugin-2.5</url>
  </scm>
  <properties>
    <utils.version>3.0</utils.version>
  </properties>
  <dependencies>
    <dependency>
      <groupId>org.apache.maven.shared</groupId>
      <artifactId>maven-shared-utils</artifactId>
      <version>${utils.version}</version>
    </dependency>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>4.11</version>
      <scope>test</scope>
      <optional>true</optional>
    </dependency>
    <dependency>
      <groupId>org.codehaus.plexus</groupId>
      <artifactId>plexus-utils</artifactId>
    </dependency>
  </dependencies>
</project>
"""


def test_parse_project_identity_and_scm(tmp_path: Path):
    project = parse_project(POM, tmp_path / "pom.xml")

    # groupId inherited from <parent>
    assert project.group_id == "org.apache.maven.plugins"
    assert project.artifact_id == "maven-clean-plugin"
    assert project.version == "2.5"
    assert project.packaging == "maven-plugin"
    assert project.scm is not None
    assert project.scm.connection.startswith("scm:svn:http://svn.apache.org")
    assert project.scm.developer_connection.startswith("scm:svn:https://")
    assert project.scm.tag is None
    assert project.build_directory == tmp_path / "target"
    assert project.basedir == tmp_path


def test_declared_dependencies():
    deps = {d.artifact_id: d for d in extract_declared_dependencies(POM)}
    assert deps["maven-shared-utils"].version == "3.0"
    assert deps["junit"].scope == "test"
    assert deps["junit"].optional is True
    assert deps["plexus-utils"].version is None
    assert deps["plexus-utils"].unresolved_reason == "missing"


def test_build_directory_placeholder(tmp_path: Path):
    text = """<project><artifactId>a</artifactId>
      <build><directory>${project.basedir}/out</directory></build></project>"""
    assert parse_project(text, tmp_path / "pom.xml").build_directory == tmp_path / "out"


def test_modules():
    text = "<project><artifactId>agg</artifactId><modules><module>core</module><module> web </module></modules></project>"
    assert read_module_names(text) == ["core", "web"]
    assert parse_project(text).modules == ["core", "web"]


@pytest.mark.parametrize(
    "text",
    [
        "<project><artifactId>a</artifactId>",
        "<settings><artifactId>a</artifactId></settings>",
        "<project><groupId>g</groupId></project>",
        '<!DOCTYPE project [<!ENTITY x SYSTEM "file:///etc/passwd">]><project><artifactId>&x;</artifactId></project>',
    ],
)
def test_invalid_poms(text: str):
    with pytest.raises(DescriptorParseError):
        parse_project(text)


def test_reader_reports_missing_file(tmp_path: Path):
    with pytest.raises(DescriptorParseError, match="Could not load pom file="):
        PomReader().read_raw_model(tmp_path / "absent.xml")


def test_reader_reads_file(tmp_path: Path):
    pom = tmp_path / "pom.xml"
    pom.write_text(POM, encoding="utf-8")
    project = PomReader().read_raw_model(pom)
    assert project.pom_file == pom
    assert project.scm is not None


def test_reader_decodes_declared_encoding(tmp_path: Path):
    pom = tmp_path / "pom.xml"
    text = '<?xml version="1.0" encoding="ISO-8859-1"?>\n<project><name>Café</name><artifactId>cafe</artifactId></project>'
    pom.write_bytes(text.encode("iso-8859-1"))
    assert PomReader().read_raw_model(pom).artifact_id == "cafe"


def test_reader_reports_undecodable_file(tmp_path: Path):
    pom = tmp_path / "pom.xml"
    pom.write_bytes(b"<project><name>Caf\xe9</name><artifactId>cafe</artifactId></project>")
    with pytest.raises(DescriptorParseError, match="Could not load pom file="):
        PomReader().read_raw_model(pom)
