from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from session_monitor.config import MonitorSettings


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    config_file = tmp_path / "monitor.yaml"
    monkeypatch.setenv("MONITOR_CONFIG_FILE", str(config_file))
    monkeypatch.chdir(tmp_path)
    return config_file


def test_defaults() -> None:
    settings = MonitorSettings()

    assert settings.reconcile_interval == 0.5
    assert settings.prune_interval == 5.0
    assert settings.program_name == "claude"
    assert settings.program_excludes == ("claude_monitor",)
    assert settings.window_session_ttl == 86400
    assert settings.log_level == "INFO"
    assert settings.sessions_dir == Path("~/.claude/monitor/sessions")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MONITOR_SESSIONS_DIR", str(tmp_path / "s"))
    monkeypatch.setenv("MONITOR_RECONCILE_INTERVAL", "0.25")
    monkeypatch.setenv("MONITOR_PROGRAM_EXCLUDES", "claude_monitor, claude-helper")
    monkeypatch.setenv("MONITOR_LOG_LEVEL", "debug")

    settings = MonitorSettings()

    assert settings.sessions_dir == tmp_path / "s"
    assert settings.reconcile_interval == 0.25
    assert settings.program_excludes == ("claude_monitor", "claude-helper")
    assert settings.log_level == "DEBUG"


def test_yaml_file_is_loaded(isolated_config: Path) -> None:
    isolated_config.write_text(
        "prune_interval: 12\nwindow_session_ttl: 0\nprogram_name: codex\n",
        encoding="utf-8",
    )

    settings = MonitorSettings()

    assert settings.prune_interval == 12
    assert settings.window_session_ttl == 0
    assert settings.program_name == "codex"


def test_environment_beats_yaml(isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    isolated_config.write_text("program_name: codex\n", encoding="utf-8")
    monkeypatch.setenv("MONITOR_PROGRAM_NAME", "claude")

    assert MonitorSettings().program_name == "claude"


@pytest.mark.parametrize(
    "overrides",
    [
        {"log_level": "verbose"},
        {"reconcile_interval": 0},
        {"reconcile_interval": 2.0, "prune_interval": 1.0},
        {"kill_grace_seconds": -1},
        {"program_name": "  "},
    ],
)
def test_invalid_settings(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        MonitorSettings(**overrides)


def test_window_ttl_documents_record_recreation() -> None:
    description = MonitorSettings.model_fields["window_session_ttl"].description
    assert description and "next hook write" in description
