"""Pytest configuration for test isolation.

Settings are read from ``CAPITAL_INGEST_*`` environment variables (and the CLI
loads a ``.env`` from the working directory). A developer's shell or ``.env``
must not leak into assertions about defaults, so every test starts with those
variables cleared and runs from its own temporary directory.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from capital_ingest.logging_setup import reset_logging

_ENV_PREFIX = "CAPITAL_INGEST_"


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear ``CAPITAL_INGEST_*`` variables and chdir into ``tmp_path``.

    Variables a test's ``.env`` loaded are dropped afterwards; ``monkeypatch``
    then restores whatever the shell had set.
    """

    for key in list(os.environ):
        if key.startswith(_ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    for key in list(os.environ):
        if key.startswith(_ENV_PREFIX):
            del os.environ[key]


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo ``configure_logging`` calls made by CLI tests.

    The CLI binds its handler to the ``sys.stderr`` current at invocation,
    which the test runner closes afterwards.
    """

    yield
    reset_logging()
