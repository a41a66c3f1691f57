"""Aggregator ``<modules>`` registration.

:func:`add_module` always inserts; it does not look for an existing entry.
Callers that want at-most-once semantics check :func:`has_module` first, which
is what :func:`register_module` does.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Final
from xml.sax.saxutils import escape

from .errors import PatchApplicationError
from .pom import read_module_names
from .xml_patch import (
    EMPTY,
    END,
    NOT_FOUND,
    START,
    PatchResult,
    XmlEditBuffer,
    XmlScanError,
    read_pom_text,
    write_pom_text,
)

_logger = logging.getLogger(__name__)

_MODULES_PATH: Final[re.Pattern[str]] = re.compile(r"/project/modules")
_MODULE_PATH: Final[re.Pattern[str]] = re.compile(r"/project/modules/module")

_DEFAULT_INDENT = "    "


def _indent_of(whitespace: str) -> str:
    """Indentation of the last line in a run of whitespace."""
    if whitespace.strip() or "\n" not in whitespace:
        return _DEFAULT_INDENT
    return whitespace.rsplit("\n", 1)[1]


def add_module(pom_text: str, artifact_id: str) -> PatchResult:
    """Insert ``<module>artifact_id</module>`` as the first module entry.

    The new entry goes right before the first existing ``<module>``, reusing its
    indentation. An empty ``<modules></modules>`` or a self-closing
    ``<modules/>`` gets the entry as its only child. Without a ``<modules>``
    element the text is returned unchanged.
    """
    entry = f"<module>{escape(artifact_id)}</module>"
    buf = XmlEditBuffer(pom_text)

    for tok, path in buf.rewind():
        if tok.kind == EMPTY and _MODULES_PATH.fullmatch(path):
            buf.mark("modules", tok.start)
            buf.mark("module", tok.end)
            replacement = (
                f"<{tok.qname}>\n{_DEFAULT_INDENT}{_DEFAULT_INDENT}{entry}\n"
                f"{_DEFAULT_INDENT}</{tok.qname}>"
            )
            buf.replace_between("modules", "module", replacement)
            return PatchResult(buf.text, True)
        if tok.kind == START and _MODULES_PATH.fullmatch(path):
            buf.mark("modules", tok.end)
        elif tok.kind in (START, EMPTY) and _MODULE_PATH.fullmatch(path):
            buf.mark("module", tok.start)
            original = buf.between("modules", "module")
            indent = _indent_of(original)
            buf.replace_between("modules", "module", f"\n{indent}{entry}{original}")
            return PatchResult(buf.text, True)
        elif tok.kind == END and _MODULES_PATH.fullmatch(path) and buf.has_mark("modules"):
            # no <module> children yet
            buf.mark("module", tok.start)
            original = buf.between("modules", "module")
            if "\n" in original and not original.strip():
                closing_indent = original.rsplit("\n", 1)[1]
                replacement = f"\n{closing_indent}{_DEFAULT_INDENT}{entry}{original}"
            else:
                replacement = f"\n{_DEFAULT_INDENT}{entry}" + (original or "\n")
            buf.replace_between("modules", "module", replacement)
            return PatchResult(buf.text, True)

    return PatchResult(pom_text, False, NOT_FOUND)


def has_module(pom_text: str, artifact_id: str) -> bool:
    return artifact_id in read_module_names(pom_text)


def register_module(pom_file: Path, artifact_id: str) -> bool:
    """Add ``artifact_id`` to the aggregator POM at ``pom_file`` once.

    Returns True when the file was rewritten, False when the module was
    already listed or the POM has no ``<modules>`` element.
    """
    try:
        text = read_pom_text(pom_file)
    except (OSError, XmlScanError) as e:
        raise PatchApplicationError(f"Cannot read {pom_file}: {e}") from e

    if has_module(text, artifact_id):
        _logger.info(
            "module already registered",
            extra={"op": "register_module", "artifact_id": artifact_id},
        )
        return False

    result = add_module(text, artifact_id)
    if not result.changed:
        _logger.warning(
            "no <modules> element found",
            extra={"op": "register_module", "pom": str(pom_file)},
        )
        return False

    try:
        write_pom_text(pom_file, result.text)
    except (OSError, XmlScanError) as e:
        raise PatchApplicationError(f"Cannot write {pom_file}: {e}") from e
    _logger.info("adding module", extra={"op": "register_module", "artifact_id": artifact_id})
    return True


__all__ = ["add_module", "has_module", "register_module"]
