"""Logging setup shared by the CLI and the MCP server.

- Records go to stderr only; stdout carries command results (CLI) or the
  MCP STDIO protocol (server).
- Calling :func:`configure_logging` twice never adds a second handler.
- Human-readable lines by default, one JSON object per line on request.
- httpx/httpcore stay at WARNING unless the root level is DEBUG.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_STDERR_HANDLER_NAME = "scm_checkout_stderr_handler"
_NOISY_LOGGERS = ("httpx", "httpcore")

# LogRecord attributes that are not user extras
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Always carries ``timestamp`` (ISO8601 UTC), ``level``, ``logger`` and
    ``message``; fields passed through ``extra=`` (``op``, ``artifact``,
    ``state``...) are copied alongside them.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name or "root",
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _RECORD_ATTRIBUTES:
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = str(value)
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """``<time> <LEVEL> <logger> <message> [op=...]``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        op = getattr(record, "op", None)
        return f"{line} [op={op}]" if op else line


def _build_formatter(json_logs: bool) -> logging.Formatter:
    return _JsonFormatter() if json_logs else _TextFormatter()


def _stderr_handler(root: logging.Logger, json_logs: bool) -> logging.Handler:
    for h in root.handlers:
        if h.name == _STDERR_HANDLER_NAME:
            h.setFormatter(_build_formatter(json_logs))
            return h

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.name = _STDERR_HANDLER_NAME
    handler.setFormatter(_build_formatter(json_logs))
    return handler


def _is_stdout_handler(h: logging.Handler) -> bool:
    return isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout


def configure_logging(log_level: str = "INFO", json_logs: bool = False) -> None:
    """Configure the root logger.

    Parameters
    ----------
    log_level: str
        Root level name ("DEBUG", "INFO", ...). Unknown names fall back to INFO.
    json_logs: bool
        Emit one-line JSON per record instead of plain text.
    """
    level = logging.getLevelName((log_level or "").upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    handler = _stderr_handler(root, json_logs)
    if handler not in root.handlers:
        root.handlers = [h for h in root.handlers if not _is_stdout_handler(h)]
        root.addHandler(handler)
    root.setLevel(level)

    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


__all__ = ["configure_logging"]
