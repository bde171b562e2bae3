"""Fixtures for CLI tests."""

import pytest

from aurctl.utils.formatting import console, err_console


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep long paths and messages on one line in captured output."""
    monkeypatch.setattr(console, "width", 300)
    monkeypatch.setattr(err_console, "width", 300)
