from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from session_monitor.config import MonitorSettings
from session_monitor.monitor import SessionMonitor
from session_monitor.procs import FakeProcessInspector
from session_monitor.server import configure_logging, create_server
from session_monitor.storage import SessionRecord, SessionStore


def test_create_server_wires_monitor(tmp_path: Path) -> None:
    settings = MonitorSettings(sessions_dir=tmp_path)
    inspector = FakeProcessInspector()

    server = create_server(settings, inspector=inspector)

    monitor = getattr(server, "monitor")
    assert isinstance(monitor, SessionMonitor)
    assert monitor.inspector is inspector
    assert monitor.store.directory == tmp_path
    assert not monitor.running
    handles = getattr(server, "tool_handles")
    assert handles.list_sessions is not None


def test_configure_logging_sets_level(monkeypatch) -> None:
    captured = {}

    def fake_basic_config(**kwargs):
        captured.update(kwargs)

    monkeypatch.setattr(logging, "basicConfig", fake_basic_config)
    configure_logging("DEBUG")

    assert captured["level"] == logging.DEBUG
    assert "%(name)s" in captured["format"]


class StubContext:
    request_id = "req-7"


def test_lifespan_runs_monitor_and_status_resource(tmp_path: Path) -> None:
    SessionStore(tmp_path).write(SessionRecord(session_id="s1", status="attention", project="api"))
    settings = MonitorSettings(sessions_dir=tmp_path, log_level="debug")
    server = create_server(settings, inspector=FakeProcessInspector())
    monitor = getattr(server, "monitor")
    lifespan = getattr(server, "monitor_lifespan")
    status_resource = getattr(server, "status_resource")

    async def _scenario():
        async with lifespan(server) as state:
            assert state == {}
            assert monitor.running
            payload = json.loads(status_resource(StubContext()))
        return payload

    payload = asyncio.run(_scenario())

    assert not monitor.running
    assert payload["monitor_running"] is True
    assert payload["log_level"] == "DEBUG"
    assert payload["request_id"] == "req-7"
    assert payload["count"] == 1
    assert payload["sessions"][0]["session_id"] == "s1"
    assert payload["status_counts"]["attention"] == 1
