"""Reading POM files into :class:`ProjectDescriptor`.

Security:
    All parsing goes through defusedxml to block XXE and entity expansion.
    POM content, local or downloaded, is treated as untrusted.

Only what the checkout flow needs is read: identity, packaging, the ``<scm>``
section, the build directory, ``<modules>`` and project-level
``<dependencies>``. Nothing here writes POMs; see ``xml_patch`` for that.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Protocol

from defusedxml import DefusedXmlException  # type: ignore[import-untyped]
from defusedxml import ElementTree as ET  # type: ignore[import-untyped]

from .errors import DescriptorParseError
from .models import PomDependency, ProjectDescriptor, ScmSection
from .xml_patch import XmlScanError, read_pom_text

_BASEDIR_PLACEHOLDERS = ("${project.basedir}", "${basedir}")
_DEFAULT_BUILD_DIRECTORY = "target"


class ProjectDescriptorReader(Protocol):
    def read_raw_model(self, path: Path) -> ProjectDescriptor:
        ...


def _local_name(tag: str) -> str:
    """Return the local name of an XML tag, stripping any namespace."""
    if "}" in tag:
        return tag.split("}", 1)[1]
    return tag


def _child(elem: Any, name: str) -> Any:
    for child in elem:
        if isinstance(child.tag, str) and _local_name(child.tag) == name:
            return child
    return None


def _child_text(elem: Any, name: str) -> Optional[str]:
    child = _child(elem, name)
    if child is None:
        return None
    return (child.text or "").strip() or None


def _collect_properties(root: Any) -> dict[str, str]:
    props: dict[str, str] = {}
    properties = _child(root, "properties")
    if properties is None:
        return props
    for prop in properties:
        if not isinstance(prop.tag, str):
            continue
        key = _local_name(prop.tag)
        val = (prop.text or "").strip()
        if key and val:
            props[key] = val
    return props


def _collect_managed_coords(root: Any) -> set[tuple[str, str]]:
    managed: set[tuple[str, str]] = set()
    dm = _child(root, "dependencyManagement")
    deps_parent = _child(dm, "dependencies") if dm is not None else None
    if deps_parent is None:
        return managed
    for dep in deps_parent:
        if not isinstance(dep.tag, str) or _local_name(dep.tag) != "dependency":
            continue
        gid = _child_text(dep, "groupId")
        aid = _child_text(dep, "artifactId")
        if gid and aid:
            managed.add((gid, aid))
    return managed


def _resolve_property(
    version_value: str, properties: dict[str, str]
) -> tuple[Optional[str], Optional[str]]:
    """Resolve a whole-value ``${prop}`` against local properties.

    Returns (version, unresolved_reason).
    """
    v = version_value.strip()
    if v.startswith("${") and v.endswith("}"):
        key = v[2:-1]
        if properties.get(key):
            return properties[key], None
        return None, "property_unresolved"
    return v or None, None


def _parse_root(pom_xml: str) -> Any:
    try:
        return ET.fromstring(pom_xml)
    except (ET.ParseError, DefusedXmlException) as e:
        raise DescriptorParseError(f"Invalid POM XML: {e}") from e


def _dependencies_of(root: Any) -> list[PomDependency]:
    properties = _collect_properties(root)
    managed = _collect_managed_coords(root)
    deps_parent = _child(root, "dependencies")
    if deps_parent is None:
        return []

    results: list[PomDependency] = []
    for dep in deps_parent:
        if not isinstance(dep.tag, str) or _local_name(dep.tag) != "dependency":
            continue
        gid = _child_text(dep, "groupId")
        aid = _child_text(dep, "artifactId")
        if not gid or not aid:
            continue
        ver_raw = _child_text(dep, "version")
        optional = (_child_text(dep, "optional") or "").lower() in {"true", "1", "yes"}

        version: Optional[str] = None
        unresolved: Optional[str] = None
        if ver_raw:
            version, unresolved = _resolve_property(ver_raw, properties)
        elif (gid, aid) in managed:
            unresolved = "managed"
        else:
            unresolved = "missing"

        results.append(
            PomDependency(
                group_id=gid,
                artifact_id=aid,
                version=version,
                scope=_child_text(dep, "scope"),
                optional=optional,
                unresolved_reason=unresolved,  # type: ignore[arg-type]
            )
        )
    return results


def extract_declared_dependencies(pom_xml: str) -> list[PomDependency]:
    """Project-level dependencies of a POM.

    dependencyManagement is not applied: versionless entries are flagged
    ``managed`` or ``missing``; whole-value ``${...}`` versions are resolved from
    local ``<properties>`` or flagged ``property_unresolved``.
    """
    return _dependencies_of(_parse_root(pom_xml))


def read_module_names(pom_xml: str) -> list[str]:
    """The ``<module>`` entries of ``/project/modules`` in document order."""
    return _module_names(_parse_root(pom_xml))


def _module_names(root: Any) -> list[str]:
    modules = _child(root, "modules")
    if modules is None:
        return []
    names = []
    for m in modules:
        if isinstance(m.tag, str) and _local_name(m.tag) == "module" and (m.text or "").strip():
            names.append(m.text.strip())
    return names


def _build_directory(root: Any, basedir: Path) -> Path:
    build = _child(root, "build")
    raw = _child_text(build, "directory") if build is not None else None
    raw = raw or _DEFAULT_BUILD_DIRECTORY
    for placeholder in _BASEDIR_PLACEHOLDERS:
        raw = raw.replace(placeholder, str(basedir))
    path = Path(raw)
    return path if path.is_absolute() else basedir / path


def parse_project(pom_xml: str, pom_file: Optional[Path] = None) -> ProjectDescriptor:
    """Build a :class:`ProjectDescriptor` from POM text.

    groupId and version fall back to ``<parent>`` when the project omits them.
    """
    root = _parse_root(pom_xml)
    if _local_name(root.tag) != "project":
        raise DescriptorParseError(f"Not a POM: root element is <{_local_name(root.tag)}>")

    artifact_id = _child_text(root, "artifactId")
    if not artifact_id:
        raise DescriptorParseError("POM has no artifactId")

    parent = _child(root, "parent")
    group_id = _child_text(root, "groupId")
    version = _child_text(root, "version")
    if parent is not None:
        group_id = group_id or _child_text(parent, "groupId")
        version = version or _child_text(parent, "version")

    scm_elem = _child(root, "scm")
    scm = None
    if scm_elem is not None:
        scm = ScmSection(
            connection=_child_text(scm_elem, "connection"),
            developer_connection=_child_text(scm_elem, "developerConnection"),
            url=_child_text(scm_elem, "url"),
            tag=_child_text(scm_elem, "tag"),
        )

    basedir = pom_file.parent if pom_file is not None else Path(".")
    return ProjectDescriptor(
        group_id=group_id,
        artifact_id=artifact_id,
        version=version,
        packaging=_child_text(root, "packaging") or "jar",
        scm=scm,
        build_directory=_build_directory(root, basedir),
        modules=_module_names(root),
        dependencies=_dependencies_of(root),
        pom_file=pom_file,
    )


class PomReader:
    """Default :class:`ProjectDescriptorReader` over local files."""

    def read_raw_model(self, path: Path) -> ProjectDescriptor:
        try:
            text = read_pom_text(Path(path))
        except (OSError, XmlScanError) as e:
            raise DescriptorParseError(f"Could not load pom file={path}: {e}") from e
        try:
            return parse_project(text, Path(path))
        except DescriptorParseError as e:
            raise DescriptorParseError(f"Could not load pom file={path}: {e}") from e


__all__ = [
    "ProjectDescriptorReader",
    "PomReader",
    "parse_project",
    "extract_declared_dependencies",
    "read_module_names",
]
