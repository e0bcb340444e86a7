"""Runtime settings read from the environment.

Entrypoints load a local ``.env`` (via ``python-dotenv``) before calling
:meth:`IngestSettings.from_env`; library code receives a settings object and
never reads the environment itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logging_setup import get_logger

_logger = get_logger("capital_ingest.config")

_DEFAULT_MAX_DISPLAY_ERRORS = 10
_DEFAULT_STATEMENT_WINDOW = 9


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        _logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default
    if value <= 0:
        _logger.warning("Ignoring non-positive %s=%r", name, raw)
        return default
    return value


@dataclass(frozen=True, slots=True)
class IngestSettings:
    """Tunables for the ingestion engine.

    Attributes
    ----------
    max_display_errors:
        How many row/item errors an :class:`~capital_ingest.pipeline.IngestResult`
        exposes for display. The full count is always kept.
    statement_window:
        Number of lines scanned after a date line in statement text.
    default_bank:
        Bank format used for CSV files when the caller selects none and header
        detection is disabled. ``None`` means "detect from the header".
    """

    max_display_errors: int = _DEFAULT_MAX_DISPLAY_ERRORS
    statement_window: int = _DEFAULT_STATEMENT_WINDOW
    default_bank: str | None = None

    @classmethod
    def from_env(cls) -> IngestSettings:
        bank = (os.getenv("CAPITAL_INGEST_DEFAULT_BANK") or "").strip().lower() or None
        return cls(
            max_display_errors=_env_positive_int(
                "CAPITAL_INGEST_MAX_DISPLAY_ERRORS", _DEFAULT_MAX_DISPLAY_ERRORS
            ),
            statement_window=_env_positive_int(
                "CAPITAL_INGEST_STATEMENT_WINDOW", _DEFAULT_STATEMENT_WINDOW
            ),
            default_bank=bank,
        )


__all__ = ["IngestSettings"]
