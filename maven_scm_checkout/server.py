"""MCP STDIO server exposing checkout and module registration as tools.

Design notes:
- Transport adapter stays thin; the tools build :class:`CheckoutOptions` and
  hand off to the orchestrator, which is usable without the server.
- Checkout failures propagate as exceptions so FastMCP reports them as tool
  errors.
- Logging goes to stderr via the central logging config; stdout is the
  protocol channel.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastmcp import FastMCP

from .config import Settings, build_options
from .logging_config import configure_logging
from .modules import register_module
from .orchestrator import CheckoutOrchestrator

_logger = logging.getLogger(__name__)

_settings = Settings()
configure_logging(_settings.LOG_LEVEL, _settings.LOG_JSON)

_server = FastMCP("maven-scm-checkout")


def checkout_core(**options: object) -> dict:
    """Run one checkout from raw option values (transport-neutral)."""
    opts = build_options(**options)
    _logger.info(
        "checkout requested",
        extra={"op": "tool_checkout", "artifact": opts.artifact_coords, "as_snapshot": opts.as_snapshot},
    )
    result = CheckoutOrchestrator(opts).run()
    return result.model_dump(mode="json")


@_server.tool()
def checkout(
    artifact_coords: Optional[str] = None,
    connection_url: Optional[str] = None,
    developer_connection_url: Optional[str] = None,
    connection_type: str = "connection",
    checkout_directory: Optional[str] = None,
    use_export: bool = False,
    skip_checkout_if_exists: bool = False,
    scm_version_type: Optional[str] = None,
    scm_version: Optional[str] = None,
    as_snapshot: bool = False,
    includes: Optional[str] = None,
    excludes: Optional[str] = None,
    project_file: Optional[str] = None,
    basedir: Optional[str] = None,
) -> dict:
    """Check out the sources of a Maven artifact or an SCM URL.

    Either ``artifact_coords`` (``groupId:artifactId[:version]``) or a
    connection URL (``scm:git:...``) must be given. With ``as_snapshot`` the
    checked-out module and ``project_file`` are moved to the next -SNAPSHOT.
    """
    values: dict[str, object] = {
        "artifact_coords": artifact_coords,
        "connection_url": connection_url,
        "developer_connection_url": developer_connection_url,
        "connection_type": connection_type,
        "checkout_directory": checkout_directory,
        "use_export": use_export,
        "skip_checkout_if_exists": skip_checkout_if_exists,
        "scm_version_type": scm_version_type,
        "scm_version": scm_version,
        "as_snapshot": as_snapshot,
        "includes": includes,
        "excludes": excludes,
        "project_file": Path(project_file) if project_file else None,
    }
    if basedir:
        values["basedir"] = Path(basedir)
    return checkout_core(**values)


@_server.tool()
def add_module(pom_file: str, artifact_id: str) -> dict:
    """Add ``<module>artifact_id</module>`` to an aggregator POM unless already listed."""
    added = register_module(Path(pom_file), artifact_id)
    return {"pom_file": pom_file, "artifact_id": artifact_id, "added": added}


def run() -> None:  # pragma: no cover
    _server.run()


__all__ = ["checkout_core", "checkout", "add_module", "run"]
