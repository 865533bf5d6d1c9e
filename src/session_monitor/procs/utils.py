"""Utility helpers for process inspection commands."""

from __future__ import annotations

import os
from typing import Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}

# Placeholders `ps` prints for processes without a controlling terminal.
NO_TTY_MARKERS = frozenset({"", "?", "??", "-"})


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment with a fixed locale for parseable tool output."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env["LC_ALL"] = "C"
    if additional:
        env.update(additional)
    return env


def parse_tty(raw: str) -> str | None:
    value = raw.strip()
    if value in NO_TTY_MARKERS:
        return None
    return value
