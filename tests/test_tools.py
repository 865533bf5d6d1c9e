from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

from session_monitor.config import MonitorSettings
from session_monitor.monitor import SessionMonitor
from session_monitor.procs import FakeProcessInspector, ProcessInfo
from session_monitor.storage import SessionRecord, SessionStore
from session_monitor.tools import register_tools

NOW = datetime(2025, 6, 1, 9, 30, tzinfo=timezone.utc)


class StubTool:
    def __init__(self, fn, name):
        self.fn = fn
        self.name = name


class StubServer:
    def __init__(self) -> None:
        self._tools: dict[str, StubTool] = {}

    def tool(self, *args, **kwargs):
        provided_name = None
        if args and isinstance(args[0], str):
            provided_name = args[0]
        provided_name = kwargs.get("name", provided_name)

        def decorator(fn):
            tool_name = provided_name or fn.__name__
            tool = StubTool(fn, tool_name)
            self._tools[tool_name] = tool
            return tool

        return decorator


class StubContextLogger:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, dict]] = []

    def info(self, message, extra=None):
        self.messages.append(("info", message, extra or {}))

    def debug(self, message, extra=None):
        self.messages.append(("debug", message, extra or {}))


class StubContext:
    def __init__(self) -> None:
        self.logger = StubContextLogger()


def setup(tmp_path: Path, inspector: FakeProcessInspector, *records: SessionRecord):
    settings = MonitorSettings(sessions_dir=tmp_path, kill_grace_seconds=0.0)
    store = SessionStore(tmp_path)
    for record in records:
        store.write(record)
    monitor = SessionMonitor(settings, inspector=inspector, clock=lambda: NOW)
    server = StubServer()
    handles = register_tools(server, monitor=monitor)
    return server, handles, monitor, store


def test_register_tools_exposes_all_tools(tmp_path: Path) -> None:
    server, handles, _monitor, _store = setup(tmp_path, FakeProcessInspector())

    assert set(server._tools) == {
        "list_sessions",
        "refresh_sessions",
        "prune_sessions",
        "discover_sessions",
        "kill_session",
    }
    assert handles.kill_session is server._tools["kill_session"]


def test_list_sessions_filters_stale(tmp_path: Path) -> None:
    server, _handles, monitor, _store = setup(
        tmp_path,
        FakeProcessInspector(),
        SessionRecord(session_id="old", status="working", updated_at=NOW - timedelta(hours=2)),
        SessionRecord(session_id="new", status="done", updated_at=NOW),
    )
    refresh = asyncio.run(server._tools["refresh_sessions"].fn())
    assert refresh == {"generation": 1, "count": 2}

    context = StubContext()
    everything = server._tools["list_sessions"].fn(context=context)
    fresh_only = server._tools["list_sessions"].fn(include_stale=False)

    assert [item["session_id"] for item in everything["sessions"]] == ["old", "new"]
    assert [item["session_id"] for item in fresh_only["sessions"]] == ["new"]
    assert fresh_only["count"] == 1
    assert context.logger.messages[0][:2] == ("debug", "Listed sessions")


def test_prune_and_discover_tools(tmp_path: Path) -> None:
    fake = FakeProcessInspector(
        dead={"ttys001"},
        processes=[ProcessInfo(pid=3, tty="ttys009", command="claude")],
        cwds={3: "/srv/app"},
    )
    server, _handles, monitor, store = setup(
        tmp_path,
        fake,
        SessionRecord(session_id="A", terminal="terminal", terminal_session_id="/dev/ttys001"),
    )

    async def _scenario():
        await monitor.refresh()
        pruned = await server._tools["prune_sessions"].fn()
        discovered = await server._tools["discover_sessions"].fn()
        return pruned, discovered

    pruned, discovered = asyncio.run(_scenario())

    assert pruned == {"pruned": [{"session_id": "A", "terminal": "/dev/ttys001", "reason": "terminal_gone"}]}
    assert [item["session_id"] for item in discovered["discovered"]] == ["discovered-ttys009"]
    assert [record.session_id for record in store.list_all()] == ["discovered-ttys009"]


def test_kill_tool(tmp_path: Path) -> None:
    server, _handles, monitor, store = setup(
        tmp_path,
        FakeProcessInspector(),
        SessionRecord(session_id="k", terminal="terminal", terminal_session_id="/dev/ttys002"),
    )

    async def _scenario():
        result = await server._tools["kill_session"].fn("k")
        await monitor.wait_for_removals()
        return result

    result = asyncio.run(_scenario())

    assert result["status"] == "killing"
    assert store.load("k") is None
