"""Shared test fixtures."""

from __future__ import annotations

import os

import pytest


@pytest.fixture(autouse=True)
def _clear_markupkit_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove MARKUPKIT_* variables before each test.

    Config loading reads the process environment, so values set by the
    shell or a local .env file would otherwise leak into assertions.
    """
    for name in list(os.environ):
        if name.startswith("MARKUPKIT_"):
            monkeypatch.delenv(name, raising=False)
