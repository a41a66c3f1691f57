"""Version arithmetic and ordering.

Two concerns live here:

- Planning the snapshot downgrade: ``next_snapshot("2.5") == "2.6-SNAPSHOT"``.
  The leading run of dot-separated numbers is parsed, the last of them is
  incremented, any qualifier is dropped and ``-SNAPSHOT`` is appended.
- Picking the latest release when a coordinate says ``LATEST`` and the
  repository metadata has no ``<release>`` entry. Pre-releases (SNAPSHOT,
  alpha, beta, rc, cr, milestone, preview, ea, and ``-mN`` milestones) are
  skipped and the rest are ordered token by token.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Final, Iterable, List, Optional, Sequence, Union

from .errors import UnparsableVersion
from .models import VersionChange

SNAPSHOT_QUALIFIER: Final[str] = "SNAPSHOT"

# major[.minor[.incremental[...]]] followed by an optional qualifier
_RELEASE_PREFIX: Final[re.Pattern[str]] = re.compile(r"(?P<numbers>\d+(?:\.\d+)*)(?P<rest>.*)", re.S)

_SNAPSHOT: Final[re.Pattern[str]] = re.compile(r"snapshot", re.IGNORECASE)
_PRERELEASE_QUALIFIERS: Final[re.Pattern[str]] = re.compile(
    r"(?i)(?:^|[._-])(?:alpha|beta|rc|cr|milestone|preview|ea|m(?=\d))\d*(?=$|[._-])"
)

_SEP_PATTERN: Final[re.Pattern[str]] = re.compile(r"[._-]+")
_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"\d+|[A-Za-z]+")

# release/GA are the same thing as final; cr is an rc
_CANON_MAP: Final[dict[str, str]] = {"release": "final", "ga": "final", "cr": "rc"}
_STABLE_SYNONYMS: Final[frozenset[str]] = frozenset({"final"})
_PRERELEASE_QUALS: Final[frozenset[str]] = frozenset(
    {"snapshot", "alpha", "beta", "rc", "milestone", "m", "preview", "ea"}
)


def _validate_input(version: str) -> str:
    s = (version or "").strip()
    if not s:
        raise ValueError("version must be a non-empty string")
    return s


def next_snapshot(released_version: str) -> str:
    """Return the next development version for a released version.

    Raises:
        UnparsableVersion: the version does not start with a number.
    """
    s = (released_version or "").strip()
    m = _RELEASE_PREFIX.fullmatch(s)
    if m is None:
        raise UnparsableVersion(f"Cannot compute next version of {released_version!r}")

    numbers = [int(p) for p in m.group("numbers").split(".")]
    numbers[-1] += 1
    return ".".join(str(n) for n in numbers) + "-" + SNAPSHOT_QUALIFIER


def plan_snapshot_change(group_id: str, artifact_id: str, released_version: str) -> VersionChange:
    """Describe the downgrade of ``released_version`` to its next snapshot."""
    return VersionChange(
        group_id=group_id,
        artifact_id=artifact_id,
        old_version=released_version,
        new_version=next_snapshot(released_version),
    )


def is_prerelease(version: str) -> bool:
    s = _validate_input(version)
    return bool(_SNAPSHOT.search(s) or _PRERELEASE_QUALIFIERS.search(s))


def is_stable(version: str) -> bool:
    return not is_prerelease(version)


def _tokenize(version: str) -> List[Union[int, str]]:
    s = _validate_input(version)
    if len(s) > 1 and s[0] in "vV" and s[1].isdigit():
        s = s[1:]
    tokens: List[Union[int, str]] = []
    for part in _SEP_PATTERN.split(s):
        for tok in _TOKEN_PATTERN.findall(part):
            if tok.isdigit():
                tokens.append(int(tok))
            else:
                low = tok.lower()
                tokens.append(_CANON_MAP.get(low, low))
    return tokens


def _tail_significance(tokens: Sequence[Union[int, str]], start: int) -> str:
    """Classify leftover tokens as 'none', 'prerelease' or 'meaningful'."""
    for t in tokens[start:]:
        if isinstance(t, int):
            if t == 0:
                continue
            return "meaningful"
        if t in _STABLE_SYNONYMS:
            continue
        if t in _PRERELEASE_QUALS:
            return "prerelease"
        return "meaningful"
    return "none"


def compare_versions(a: str, b: str) -> int:
    """Compare two versions; returns -1, 0 or 1.

    Numbers compare numerically, words case-insensitively, and a number beats
    a word at the same position. When one side runs out, trailing zeros and
    final/release/GA are ignored, a pre-release tail sorts lower, anything
    else sorts higher.
    """
    ta = _tokenize(a)
    tb = _tokenize(b)

    for xa, xb in zip(ta, tb):
        if isinstance(xa, int) != isinstance(xb, int):
            return 1 if isinstance(xa, int) else -1
        if xa != xb:
            return -1 if xa < xb else 1  # type: ignore[operator]

    if len(ta) == len(tb):
        return 0
    longer, sign = (ta, 1) if len(ta) > len(tb) else (tb, -1)
    tail = _tail_significance(longer, min(len(ta), len(tb)))
    if tail == "none":
        return 0
    if tail == "prerelease":
        return -sign
    return sign


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return ``versions`` sorted lowest to highest."""
    items = list(versions)
    for v in items:
        _validate_input(v)
    return sorted(items, key=cmp_to_key(compare_versions))


def select_latest_release(versions: Iterable[str]) -> Optional[str]:
    """Highest stable version, or None when every candidate is a pre-release."""
    stable = [v for v in versions if v and v.strip() and is_stable(v)]
    if not stable:
        return None
    return sort_versions(stable)[-1]


__all__ = [
    "SNAPSHOT_QUALIFIER",
    "next_snapshot",
    "plan_snapshot_change",
    "is_prerelease",
    "is_stable",
    "compare_versions",
    "sort_versions",
    "select_latest_release",
]
