"""Minimal-diff XML patching for hand-maintained POM files.

The POM is never re-serialized. A forward scan over raw tokens tracks the
absolute element path (``/project/dependencies/dependency/version``), drops
named marks at byte offsets, and splices replacement text strictly between two
marks. Comments, indentation, attribute quoting and everything else outside
the spliced span are preserved byte for byte.

Only one element is patched per call: the first match wins. When no element
matches, the original text is returned unchanged together with a reason, so
callers can tell "nothing to do" apart from a real edit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Pattern, Tuple, Union
from xml.sax.saxutils import escape

from .models import VersionChange

START = "start"
END = "end"
EMPTY = "empty"
TEXT = "text"
COMMENT = "comment"
CDATA = "cdata"
PI = "pi"
DOCTYPE = "doctype"

# Reasons reported when a patch leaves the text unchanged
NOT_FOUND = "not_found"
VERSION_MISMATCH = "version_mismatch"
UNCHANGED = "unchanged"

_START_TAG = re.compile(
    r"<(?P<name>[^\s/>]+)"
    r"(?:\s+[^\s=/>]+\s*=\s*(?:\"[^\"]*\"|'[^']*'))*"
    r"\s*(?P<empty>/?)>"
)
_END_TAG = re.compile(r"</\s*(?P<name>[^\s>]+)\s*>")
_XML_ENCODING = re.compile(
    r"\A\s*<\?xml\b[^>]*?\bencoding\s*=\s*[\"'](?P<encoding>[A-Za-z][A-Za-z0-9._-]*)[\"']"
)
_DECLARATION_PROBE = 256

PROJECT_VERSION_PATH = "/project/version"
DEPENDENCY_PATH = "/project/dependencies/dependency"


class XmlScanError(ValueError):
    """Raised when the scanner meets markup it cannot tokenize."""


@dataclass(frozen=True)
class Token:
    kind: str
    start: int
    end: int
    qname: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        """Local element name with any namespace prefix removed."""
        if self.qname is None:
            return None
        return self.qname.rsplit(":", 1)[-1]


def _find_or_fail(text: str, needle: str, pos: int, what: str) -> int:
    idx = text.find(needle, pos)
    if idx == -1:
        raise XmlScanError(f"Unterminated {what} at offset {pos}")
    return idx + len(needle)


def _doctype_end(text: str, pos: int) -> int:
    depth = 0
    quote: Optional[str] = None
    i = pos + 2
    while i < len(text):
        c = text[i]
        if quote:
            if c == quote:
                quote = None
        elif c in "\"'":
            quote = c
        elif c == "[":
            depth += 1
        elif c == "]":
            depth -= 1
        elif c == ">" and depth <= 0:
            return i + 1
        i += 1
    raise XmlScanError(f"Unterminated declaration at offset {pos}")


def iter_tokens(text: str) -> Iterator[Token]:
    """Yield the markup and text tokens of ``text`` in document order."""
    pos = 0
    n = len(text)
    while pos < n:
        lt = text.find("<", pos)
        if lt == -1:
            yield Token(TEXT, pos, n)
            return
        if lt > pos:
            yield Token(TEXT, pos, lt)

        if text.startswith("<!--", lt):
            end = _find_or_fail(text, "-->", lt + 4, "comment")
            yield Token(COMMENT, lt, end)
        elif text.startswith("<![CDATA[", lt):
            end = _find_or_fail(text, "]]>", lt + 9, "CDATA section")
            yield Token(CDATA, lt, end)
        elif text.startswith("<?", lt):
            end = _find_or_fail(text, "?>", lt + 2, "processing instruction")
            yield Token(PI, lt, end)
        elif text.startswith("<!", lt):
            end = _doctype_end(text, lt)
            yield Token(DOCTYPE, lt, end)
        elif text.startswith("</", lt):
            m = _END_TAG.match(text, lt)
            if m is None:
                raise XmlScanError(f"Malformed end tag at offset {lt}")
            end = m.end()
            yield Token(END, lt, end, m.group("name"))
        else:
            m = _START_TAG.match(text, lt)
            if m is None:
                raise XmlScanError(f"Malformed start tag at offset {lt}")
            end = m.end()
            kind = EMPTY if m.group("empty") else START
            yield Token(kind, lt, end, m.group("name"))
        pos = end


class PathTracker:
    """Stack of open element names giving the current absolute path."""

    def __init__(self) -> None:
        self._stack: list[str] = []

    @property
    def path(self) -> str:
        return "/" + "/".join(self._stack) if self._stack else ""

    @property
    def depth(self) -> int:
        return len(self._stack)

    def enter(self, name: str) -> None:
        self._stack.append(name)

    def leave(self) -> str:
        if not self._stack:
            raise XmlScanError("End tag without matching start tag")
        return self._stack.pop()


def walk(tokens: Iterator[Token]) -> Iterator[Tuple[Token, str]]:
    """Pair each token with the element path it belongs to.

    Start, end and empty tags carry the path of their own element; text,
    comments and the like carry the path of the enclosing element.
    """
    tracker = PathTracker()
    for tok in tokens:
        if tok.kind in (START, EMPTY):
            tracker.enter(tok.name or "")
            yield tok, tracker.path
            if tok.kind == EMPTY:
                tracker.leave()
        elif tok.kind == END:
            yield tok, tracker.path
            tracker.leave()
        else:
            yield tok, tracker.path


class XmlEditBuffer:
    """Raw XML text plus named offset marks.

    ``replace_between`` splices text between two marks and drops every mark,
    since offsets after the splice are no longer valid. A second edit must
    start from :meth:`rewind`, which rescans the current text from offset 0.
    """

    def __init__(self, text: str) -> None:
        self._original = text
        self._text = text
        self._marks: dict[str, int] = {}

    @property
    def text(self) -> str:
        return self._text

    @property
    def changed(self) -> bool:
        return self._text != self._original

    def rewind(self) -> Iterator[Tuple[Token, str]]:
        self._marks.clear()
        return walk(iter_tokens(self._text))

    def mark(self, name: str, offset: int) -> None:
        if offset < 0 or offset > len(self._text):
            raise ValueError(f"offset {offset} out of range")
        self._marks[name] = offset

    def has_mark(self, name: str) -> bool:
        return name in self._marks

    def clear_mark(self, name: str) -> None:
        self._marks.pop(name, None)

    def between(self, first: str, second: str) -> str:
        return self._text[self._marks[first]:self._marks[second]]

    def replace_between(self, first: str, second: str, replacement: str) -> None:
        start, end = self._marks[first], self._marks[second]
        if end < start:
            raise ValueError(f"mark {second!r} precedes mark {first!r}")
        self._text = self._text[:start] + replacement + self._text[end:]
        self._marks.clear()


@dataclass(frozen=True)
class PatchResult:
    """Patched text and whether anything changed.

    ``reason`` is None for a real edit, otherwise one of ``not_found``,
    ``version_mismatch`` or ``unchanged``.
    """

    text: str
    changed: bool
    reason: Optional[str] = None


def _splice_value(
    buf: XmlEditBuffer,
    original: str,
    first: str,
    second: str,
    new_value: str,
    expected: Optional[str],
) -> PatchResult:
    content = buf.between(first, second)
    current = content.strip()
    if expected is not None and current != expected:
        return PatchResult(original, False, VERSION_MISMATCH)
    if current == new_value:
        return PatchResult(original, False, UNCHANGED)

    lead = content[: len(content) - len(content.lstrip())]
    trail = content[len(content.rstrip()):]
    buf.replace_between(first, second, lead + escape(new_value) + trail)
    return PatchResult(buf.text, True)


def replace_element_text(
    text: str,
    path: Union[str, Pattern[str]],
    new_value: str,
    expected: Optional[str] = None,
) -> PatchResult:
    """Replace the text content of the first element whose path matches.

    ``path`` is a regular expression matched against the whole absolute path.
    When ``expected`` is given, the element's current (stripped) text must
    equal it, otherwise nothing is changed.
    """
    pattern = re.compile(path) if isinstance(path, str) else path
    buf = XmlEditBuffer(text)
    target: Optional[str] = None

    for tok, tok_path in buf.rewind():
        if target is None:
            if tok.kind == EMPTY and pattern.fullmatch(tok_path):
                if expected:
                    return PatchResult(text, False, VERSION_MISMATCH)
                buf.mark("start", tok.start)
                buf.mark("end", tok.end)
                buf.replace_between(
                    "start", "end", f"<{tok.qname}>{escape(new_value)}</{tok.qname}>"
                )
                return PatchResult(buf.text, True)
            if tok.kind == START and pattern.fullmatch(tok_path):
                buf.mark("start", tok.end)
                target = tok_path
        elif tok.kind == END and tok_path == target:
            buf.mark("end", tok.start)
            return _splice_value(buf, text, "start", "end", new_value, expected)

    return PatchResult(text, False, NOT_FOUND)


def set_project_version(text: str, old_version: Optional[str], new_version: str) -> PatchResult:
    """Rewrite the project's own ``<version>``."""
    return replace_element_text(text, re.escape(PROJECT_VERSION_PATH), new_version, old_version)


def set_dependency_version(
    text: str,
    group_id: str,
    artifact_id: str,
    old_version: Optional[str],
    new_version: str,
) -> PatchResult:
    """Rewrite ``<version>`` of the first project dependency matching groupId/artifactId.

    ``groupId``, ``artifactId`` and ``version`` may appear in any order inside
    ``<dependency>``; the decision is made at the dependency's end tag.
    """
    buf = XmlEditBuffer(text)
    fields: dict[str, str] = {}
    child: Optional[str] = None
    child_start = 0
    in_dependency = False
    wanted = {f"{DEPENDENCY_PATH}/{n}": n for n in ("groupId", "artifactId", "version")}

    for tok, path in buf.rewind():
        if tok.kind == START and path == DEPENDENCY_PATH:
            in_dependency = True
            fields = {}
            buf.clear_mark("version.start")
            buf.clear_mark("version.end")
        elif not in_dependency:
            continue
        elif tok.kind == START and path in wanted:
            child = wanted[path]
            child_start = tok.end
            if child == "version":
                buf.mark("version.start", tok.end)
        elif tok.kind == END and child is not None and path in wanted:
            fields[child] = text[child_start:tok.start].strip()
            if child == "version":
                buf.mark("version.end", tok.start)
            child = None
        elif tok.kind == END and path == DEPENDENCY_PATH:
            in_dependency = False
            if fields.get("groupId") != group_id or fields.get("artifactId") != artifact_id:
                continue
            if not buf.has_mark("version.end"):
                return PatchResult(text, False, NOT_FOUND)
            return _splice_value(
                buf, text, "version.start", "version.end", new_version, old_version
            )

    return PatchResult(text, False, NOT_FOUND)


def _declared_encoding(head: str) -> str:
    m = _XML_ENCODING.match(head)
    return m.group("encoding") if m else "utf-8"


def read_pom_text(path: Path) -> str:
    """Read a POM in the encoding its XML declaration names, keeping line endings.

    Raises :class:`XmlScanError` when the bytes do not decode.
    """
    with open(path, "rb") as f:
        data = f.read()
    # the declaration is ASCII in every encoding a POM may use
    encoding = _declared_encoding(data[:_DECLARATION_PROBE].decode("latin-1"))
    try:
        return data.decode(encoding)
    except (LookupError, UnicodeDecodeError) as e:
        raise XmlScanError(f"Cannot decode {path} as {encoding}: {e}") from e


def write_pom_text(path: Path, text: str) -> None:
    """Write ``text`` back in the encoding its XML declaration names."""
    encoding = _declared_encoding(text)
    try:
        data = text.encode(encoding)
    except (LookupError, UnicodeEncodeError) as e:
        raise XmlScanError(f"Cannot encode {path} as {encoding}: {e}") from e
    with open(path, "wb") as f:
        f.write(data)


def apply_version_change(text: str, change: VersionChange, *, as_dependency: bool) -> PatchResult:
    """Apply ``change`` to a POM either as its own version or as a dependency version."""
    if as_dependency:
        return set_dependency_version(
            text, change.group_id, change.artifact_id, change.old_version, change.new_version
        )
    return set_project_version(text, change.old_version, change.new_version)


__all__ = [
    "Token",
    "PathTracker",
    "XmlEditBuffer",
    "XmlScanError",
    "PatchResult",
    "iter_tokens",
    "walk",
    "replace_element_text",
    "set_project_version",
    "set_dependency_version",
    "apply_version_change",
    "read_pom_text",
    "write_pom_text",
    "NOT_FOUND",
    "VERSION_MISMATCH",
    "UNCHANGED",
]
