"""SCM access: connection URL parsing, command-line providers, post-checkout filtering.

Connection URLs follow the Maven form ``scm:<provider>:<provider-url>``
(``scm|svn|...`` is accepted too). Providers run their command-line client
synchronously in the host; the first non-zero exit is reported back as an
unsuccessful :class:`ScmResult`, and :func:`check_result` turns that into a
:class:`TransportError`. Nothing is retried.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from .config import Settings
from .errors import ConfigurationError, TransportError
from .models import ScmResult, ScmVersion

_logger = logging.getLogger(__name__)

# SCM metadata directories are never listed nor filtered out
SCM_METADATA_DIRS = frozenset({".git", ".svn", ".hg", "CVS", ".bzr"})

Runner = Callable[[list[str]], subprocess.CompletedProcess]


@dataclass(frozen=True)
class ScmRepository:
    """A parsed SCM connection URL."""

    provider: str
    url: str
    connection_url: str

    @classmethod
    def parse(cls, connection_url: str) -> "ScmRepository":
        """Parse ``scm:git:https://host/repo.git`` style URLs.

        Raises:
            ConfigurationError: not an ``scm:`` URL or no provider part.
        """
        s = (connection_url or "").strip()
        if len(s) < 5 or not s.lower().startswith("scm"):
            raise ConfigurationError(f"Invalid SCM URL, expected scm:<provider>:<url>: {s!r}")
        delimiter = s[3]
        if delimiter not in ":|":
            raise ConfigurationError(f"Invalid SCM URL delimiter in {s!r}")
        parts = s[4:].split(delimiter, 1)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ConfigurationError(f"Invalid SCM URL, missing provider or location: {s!r}")
        return cls(provider=parts[0].lower(), url=parts[1], connection_url=s)


class ScmClient(Protocol):
    def checkout(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        ...

    def export(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        ...


def _default_runner(cmd: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, capture_output=True, text=True, check=False)  # noqa: S603


def list_files(directory: Path) -> list[str]:
    """Files under ``directory`` as sorted posix paths, SCM metadata excluded."""
    files: list[str] = []
    for root, dirs, names in os.walk(directory):
        dirs[:] = [d for d in dirs if d not in SCM_METADATA_DIRS]
        for name in names:
            files.append((Path(root) / name).relative_to(directory).as_posix())
    return sorted(files)


class _CommandLineClient:
    # Settings field naming the executable used when none is passed in
    executable_setting: str

    def __init__(self, executable: Optional[str] = None, runner: Optional[Runner] = None) -> None:
        self.executable: str = executable or getattr(Settings(), self.executable_setting)
        self._run = runner or _default_runner

    def _execute(self, *commands: list[str]) -> ScmResult:
        """Run commands in order, stopping at the first failure."""
        output: list[str] = []
        for cmd in commands:
            _logger.debug("running scm command", extra={"op": "scm", "cmd": " ".join(cmd)})
            try:
                proc = self._run(cmd)
            except OSError as e:
                return ScmResult(success=False, provider_message=f"Cannot execute {cmd[0]}: {e}")
            output.append(proc.stdout or "")
            if proc.returncode != 0:
                return ScmResult(
                    success=False,
                    provider_message=(proc.stderr or "").strip()
                    or f"{cmd[0]} exited with status {proc.returncode}",
                    command_output="".join(output),
                )
        return ScmResult(success=True, command_output="".join(output))

    @staticmethod
    def _with_files(result: ScmResult, destination: Path) -> ScmResult:
        if not result.success:
            return result
        return result.model_copy(update={"checked_out_files": list_files(destination)})


class GitScmClient(_CommandLineClient):
    """git provider: ``clone`` for checkout, shallow clone minus ``.git`` for export."""

    executable_setting = "GIT_EXECUTABLE"

    def _clone_commands(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion], shallow: bool
    ) -> list[list[str]]:
        git = self.executable
        dest = str(destination)
        if version is not None and version.type == "revision":
            return [
                [git, "clone", repository.url, dest],
                [git, "-C", dest, "checkout", "--quiet", version.value],
            ]
        cmd = [git, "clone"]
        if shallow:
            cmd += ["--depth", "1"]
        if version is not None:
            cmd += ["--branch", version.value]
        return [cmd + [repository.url, dest]]

    def checkout(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        result = self._execute(*self._clone_commands(repository, destination, version, shallow=False))
        return self._with_files(result, destination)

    def export(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        result = self._execute(*self._clone_commands(repository, destination, version, shallow=True))
        if result.success:
            shutil.rmtree(destination / ".git", ignore_errors=True)
        return self._with_files(result, destination)


class SvnScmClient(_CommandLineClient):
    """svn provider; branches and tags map onto the conventional layout."""

    _TRUNK = re.compile(r"/trunk(?:/.*)?$")

    executable_setting = "SVN_EXECUTABLE"

    def _location(self, repository: ScmRepository, version: Optional[ScmVersion]) -> list[str]:
        url = repository.url.rstrip("/")
        if version is None:
            return [url]
        if version.type == "revision":
            return ["-r", version.value, url]
        folder = "branches" if version.type == "branch" else "tags"
        base = self._TRUNK.sub("", url)
        return [f"{base}/{folder}/{version.value}"]

    def checkout(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        cmd = [self.executable, "checkout", "--non-interactive"]
        result = self._execute(cmd + self._location(repository, version) + [str(destination)])
        return self._with_files(result, destination)

    def export(
        self, repository: ScmRepository, destination: Path, version: Optional[ScmVersion]
    ) -> ScmResult:
        cmd = [self.executable, "export", "--non-interactive", "--force"]
        result = self._execute(cmd + self._location(repository, version) + [str(destination)])
        return self._with_files(result, destination)


_PROVIDERS: dict[str, type[_CommandLineClient]] = {
    "git": GitScmClient,
    "svn": SvnScmClient,
}


def client_for(repository: ScmRepository, runner: Optional[Runner] = None) -> ScmClient:
    """Command-line client for the repository's provider."""
    try:
        cls = _PROVIDERS[repository.provider]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported SCM provider {repository.provider!r}; known: {sorted(_PROVIDERS)}"
        ) from None
    return cls(runner=runner)


def check_result(result: ScmResult, operation: str) -> None:
    if not result.success:
        raise TransportError(
            f"Cannot run {operation} command: {result.provider_message or 'provider reported failure'}"
        )


def _pattern_regex(pattern: str) -> re.Pattern[str]:
    """Translate an ant-style pattern (``**``, ``*``, ``?``) to a regex."""
    p = pattern.strip().replace("\\", "/")
    if p.endswith("/"):
        p += "**"
    out = []
    i = 0
    while i < len(p):
        if p.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif p.startswith("**", i):
            out.append(".*")
            i += 2
        elif p[i] == "*":
            out.append("[^/]*")
            i += 1
        elif p[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(p[i]))
            i += 1
    return re.compile("".join(out))


def split_patterns(value: Optional[str]) -> list[str]:
    return [p.strip() for p in (value or "").split(",") if p.strip()]


def _matches(rel: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.fullmatch(rel) for p in patterns)


def filter_checkout(
    directory: Path, includes: Iterable[str] = (), excludes: Iterable[str] = ()
) -> list[str]:
    """Delete files that are not included or are excluded; return what was removed.

    Directories left empty by the filter are removed as well. With no
    patterns at all nothing is touched.
    """
    inc = [_pattern_regex(p) for p in includes]
    exc = [_pattern_regex(p) for p in excludes]
    if not inc and not exc:
        return []

    removed: list[str] = []
    for rel in list_files(directory):
        keep = (not inc or _matches(rel, inc)) and not _matches(rel, exc)
        if not keep:
            (directory / rel).unlink()
            removed.append(rel)

    for root, dirs, _names in os.walk(directory, topdown=False):
        if Path(root).name in SCM_METADATA_DIRS or any(
            part in SCM_METADATA_DIRS for part in Path(root).relative_to(directory).parts
        ):
            continue
        for d in dirs:
            path = Path(root) / d
            if d not in SCM_METADATA_DIRS and path.is_dir() and not any(path.iterdir()):
                path.rmdir()

    if removed:
        _logger.info(
            "filtered checkout", extra={"op": "filter", "removed": len(removed)}
        )
    return removed


__all__ = [
    "ScmRepository",
    "ScmClient",
    "GitScmClient",
    "SvnScmClient",
    "client_for",
    "check_result",
    "filter_checkout",
    "split_patterns",
    "list_files",
]
