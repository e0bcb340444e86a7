"""Process-wide logging setup for ``capital_ingest``.

Library modules only ever call ``get_logger("capital_ingest.<module>")``;
they never attach handlers. Entrypoints (the CLI, or a host application)
call :func:`configure_logging` once at startup to route the package's
records to a stream.

The level comes from the ``level`` argument, else ``CAPITAL_INGEST_LOG_LEVEL``,
else ``INFO``. Ingestion logs one INFO line per parsed file and per backup
restore; row-level detail is DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "capital_ingest"
LEVEL_ENV = "CAPITAL_INGEST_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    ``stream`` defaults to ``sys.stderr`` as it is at call time.
    """

    global _configured
    if _configured:
        return

    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # Records would otherwise print twice when the host also configures root.
    logger.propagate = False
    _configured = True


def reset_logging() -> None:
    """Drop handlers added by :func:`configure_logging` so it can run again."""

    global _configured
    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    _configured = False


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``, keeping a ``NullHandler`` on the package until set up."""

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "reset_logging", "get_logger"]
