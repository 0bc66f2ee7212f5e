"""Structured JSON logging to stderr for plone-mcp.

The MCP stdio transport owns *stdout*, so log lines go to *stderr*, one JSON
object per line::

    {"ts": "2026-10-19T12:00:00.123456+00:00", "level": "INFO",
     "logger": "plone_mcp.assembly", "message": "Blocks staged",
     "op": "stage", "blocks": 3}

Every package logger is a child of ``plone_mcp``.  One stderr handler is
attached to that root logger the first time :func:`get_logger` runs, at the
level named by ``PLONE_MCP_LOG_LEVEL`` (``INFO`` when unset).  Call
:func:`configure_logging` to change the level or the stream later.

Usage::

    from plone_mcp.observability import get_logger

    log = get_logger("plone_mcp.transport")
    log.info("Request complete", extra={"extra_fields": {"status_code": 200}})
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from plone_mcp.errors import PloneConfigError

ROOT_LOGGER = "plone_mcp"
ENV_LOG_LEVEL = "PLONE_MCP_LOG_LEVEL"

_CORE_KEYS: frozenset[str] = frozenset({"ts", "level", "logger", "message"})


class StructuredFormatter(logging.Formatter):
    """Render a record as a single-line JSON object.

    ``ts`` is the record's creation time in UTC.  Fields from
    ``extra={"extra_fields": {...}}`` are merged at the top level but never
    replace ``ts``, ``level``, ``logger`` or ``message``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra_fields: dict[str, Any] = getattr(record, "extra_fields", None) or {}
        for key, value in extra_fields.items():
            if key not in _CORE_KEYS:
                entry[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


_handler: logging.Handler | None = None


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.environ.get(ENV_LOG_LEVEL) or logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise PloneConfigError(
            message=f"Unknown log level: {level!r}",
            context={"field": "log_level", "env_var": ENV_LOG_LEVEL},
        )
    return resolved


def configure_logging(
    level: int | str | None = None,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach (or replace) the JSON handler on the ``plone_mcp`` logger.

    Parameters
    ----------
    level:
        Minimum level as an ``int`` or a case-insensitive name.  Defaults to
        ``PLONE_MCP_LOG_LEVEL``, then ``INFO``.
    stream:
        Output stream.  Defaults to ``sys.stderr``.

    Raises
    ------
    PloneConfigError
        If *level* (or the environment variable) names no logging level.
    """
    global _handler
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(_resolve_level(level))

    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(StructuredFormatter())
    root.addHandler(_handler)
    root.propagate = False
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return the logger *name*, configuring the package root on first use.

    *name* should be ``plone_mcp`` or a dotted child of it; other names
    do not reach the JSON handler.
    """
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)
