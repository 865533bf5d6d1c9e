from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from session_monitor.config import get_settings


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep user config files, .env and MONITOR_* variables out of every test."""

    for name in list(os.environ):
        if name.startswith("MONITOR_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MONITOR_CONFIG_FILE", str(tmp_path / "missing-monitor.yaml"))
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
