"""Command line entry point.

``maven-scm-checkout checkout`` runs one checkout; ``maven-scm-checkout
add-module`` registers a module in an aggregator POM. Results go to stdout,
logs and error messages to stderr. Any checkout failure exits with status 1.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config import Settings, build_options
from .errors import CheckoutError
from .logging_config import configure_logging
from .models import CheckoutResult
from .modules import register_module
from .orchestrator import CheckoutOrchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maven-scm-checkout",
        description="Check out the SCM sources of a Maven artifact or SCM URL.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    co = sub.add_parser("checkout", help="Check out (or export) sources")
    co.add_argument("--use-export", action="store_true", help="Export instead of checkout")
    co.add_argument(
        "--checkout-directory",
        default=None,
        help="Destination directory; may contain ${project.basedir}",
    )
    co.add_argument(
        "--skip-checkout-if-exists",
        action="store_true",
        help="Do nothing when the destination already exists",
    )
    co.add_argument("--scm-version-type", choices=["branch", "tag", "revision"], default=None)
    co.add_argument("--scm-version", default=None, help="Branch, tag or revision to check out")
    co.add_argument(
        "--artifact-coords",
        default=None,
        help="groupId:artifactId[:version[:packaging[:classifier]]]",
    )
    co.add_argument(
        "--as-snapshot",
        action="store_true",
        help="Bump the checked-out module to the next -SNAPSHOT and point the project at it",
    )
    co.add_argument("--connection-url", default=None, help="scm:<provider>:<url>")
    co.add_argument("--developer-connection-url", default=None, help="scm:<provider>:<url>")
    co.add_argument(
        "--connection-type",
        choices=["connection", "developerConnection"],
        default="connection",
    )
    co.add_argument("--includes", default=None, help="Comma-separated patterns to keep")
    co.add_argument("--excludes", default=None, help="Comma-separated patterns to remove")
    co.add_argument("--project-file", type=Path, default=None, help="Enclosing project pom.xml")
    co.add_argument("--basedir", type=Path, default=None, help="Base directory (default: cwd)")

    am = sub.add_parser("add-module", help="Register a module in an aggregator POM")
    am.add_argument("pom_file", type=Path, help="Aggregator pom.xml")
    am.add_argument("artifact_id", help="Module directory / artifactId to add")
    return parser


def _summary(result: CheckoutResult) -> str:
    if result.skipped:
        return f"Checkout skipped, {result.checkout_directory} already exists"
    lines = [f"Checked out {result.connection_url} into {result.checkout_directory}"]
    if result.scm_result is not None:
        lines.append(f"  files: {len(result.scm_result.checked_out_files)}")
    if result.version_change is not None:
        change = result.version_change
        lines.append(
            f"  {change.group_id}:{change.artifact_id} "
            f"{change.old_version} -> {change.new_version} "
            f"(module patched: {result.module_patched}, project patched: {result.consumer_patched})"
        )
    return "\n".join(lines)


def _run_checkout(args: argparse.Namespace) -> int:
    values = {
        "use_export": args.use_export,
        "checkout_directory": args.checkout_directory,
        "skip_checkout_if_exists": args.skip_checkout_if_exists,
        "scm_version_type": args.scm_version_type,
        "scm_version": args.scm_version,
        "artifact_coords": args.artifact_coords,
        "as_snapshot": args.as_snapshot,
        "connection_url": args.connection_url,
        "developer_connection_url": args.developer_connection_url,
        "connection_type": args.connection_type,
        "includes": args.includes,
        "excludes": args.excludes,
        "project_file": args.project_file,
    }
    if args.basedir is not None:
        values["basedir"] = args.basedir
    result = CheckoutOrchestrator(build_options(**values)).run()
    print(_summary(result))
    return 0


def _run_add_module(args: argparse.Namespace) -> int:
    if register_module(args.pom_file, args.artifact_id):
        print(f"Added module {args.artifact_id} to {args.pom_file}")
    else:
        print(f"Module {args.artifact_id} not added to {args.pom_file}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = Settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    try:
        if args.command == "add-module":
            return _run_add_module(args)
        return _run_checkout(args)
    except CheckoutError as e:
        where = f" [{e.state}]" if e.state else ""
        print(f"ERROR{where}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
