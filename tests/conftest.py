"""Shared fixtures keeping tests away from the user's real configuration."""

import os
from pathlib import Path

import pytest

from aifiles.config import CONFIG_HOME_ENV


@pytest.fixture(autouse=True)
def aifiles_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "aifiles-home"
    monkeypatch.setenv(CONFIG_HOME_ENV, str(home))
    for key in list(os.environ):
        if key.startswith("AIFILES__"):
            monkeypatch.delenv(key, raising=False)
    return home
