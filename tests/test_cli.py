from __future__ import annotations

import argparse
import importlib.util
import json
from pathlib import Path

import pytest

from session_monitor.config import MonitorSettings
from session_monitor.monitor import SessionMonitor
from session_monitor.procs import FakeProcessInspector, ProcessInfo
from session_monitor.storage import SessionRecord, SessionStore


def load_diag(module_name: str):
    module_path = Path(__file__).resolve().parents[1] / "scripts" / "monitor_diag.py"
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    assert spec and spec.loader
    diag = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(diag)
    return diag


def patch_monitor(monkeypatch, diag, tmp_path: Path, inspector: FakeProcessInspector) -> None:
    settings = MonitorSettings(sessions_dir=tmp_path, kill_grace_seconds=0.0)

    def fake_load_monitor(_settings):
        return SessionMonitor(settings, inspector=inspector)

    monkeypatch.setattr(diag, "load_monitor", fake_load_monitor)


def test_sessions_json(monkeypatch, capsys, tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.write(SessionRecord(session_id="done-one", status="done"))
    store.write(SessionRecord(session_id="needs-me", status="attention", project="api"))
    diag = load_diag("monitor_diag_sessions_module")
    patch_monitor(monkeypatch, diag, tmp_path, FakeProcessInspector())

    diag.cmd_sessions(argparse.Namespace(json=True))

    payload = json.loads(capsys.readouterr().out)
    assert [item["session_id"] for item in payload["sessions"]] == ["needs-me", "done-one"]
    assert payload["status_counts"]["attention"] == 1


def test_sessions_text(monkeypatch, capsys, tmp_path: Path) -> None:
    SessionStore(tmp_path).write(
        SessionRecord(session_id="s1", status="working", project="web", terminal_session_id="/dev/ttys001")
    )
    diag = load_diag("monitor_diag_text_module")
    patch_monitor(monkeypatch, diag, tmp_path, FakeProcessInspector())

    diag.cmd_sessions(argparse.Namespace(json=False))

    assert capsys.readouterr().out.strip() == "s1 [working] web -> /dev/ttys001"


def test_prune_and_discover(monkeypatch, capsys, tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    store.write(SessionRecord(session_id="A", terminal="terminal", terminal_session_id="/dev/ttys001"))
    fake = FakeProcessInspector(
        dead={"ttys001"},
        processes=[ProcessInfo(pid=8, tty="ttys002", command="claude")],
        cwds={8: "/srv/site"},
    )
    diag = load_diag("monitor_diag_prune_module")
    patch_monitor(monkeypatch, diag, tmp_path, fake)

    diag.cmd_prune(argparse.Namespace())
    pruned = json.loads(capsys.readouterr().out)
    diag.cmd_discover(argparse.Namespace())
    discovered = json.loads(capsys.readouterr().out)

    assert pruned == [{"session_id": "A", "terminal": "/dev/ttys001", "reason": "terminal_gone"}]
    assert [item["session_id"] for item in discovered] == ["discovered-ttys002"]


def test_kill_missing_session_exits(monkeypatch, capsys, tmp_path: Path) -> None:
    diag = load_diag("monitor_diag_kill_module")
    patch_monitor(monkeypatch, diag, tmp_path, FakeProcessInspector())

    with pytest.raises(SystemExit) as exc_info:
        diag.cmd_kill(argparse.Namespace(session_id="ghost"))

    assert exc_info.value.code == 1
    assert json.loads(capsys.readouterr().out)["status"] == "not_found"


def test_parser_requires_command(capsys) -> None:
    diag = load_diag("monitor_diag_parser_module")
    diag.main([])
    assert "Session monitor diagnostics" in capsys.readouterr().out
