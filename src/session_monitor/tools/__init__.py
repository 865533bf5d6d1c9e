"""Tool registration for the session monitor MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..monitor import SessionMonitor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolHandles:
    list_sessions: Any
    refresh_sessions: Any
    prune_sessions: Any
    discover_sessions: Any
    kill_session: Any


def register_tools(server: FastMCP, *, monitor: SessionMonitor) -> ToolHandles:
    """Register the monitor's MCP tools on the server."""

    def _list_sessions(
        include_stale: bool = True,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Return the ranked sessions from the latest reconciliation."""

        payload = monitor.status_payload()
        if not include_stale:
            payload["sessions"] = [item for item in payload["sessions"] if not item["stale"]]
            payload["count"] = len(payload["sessions"])
        _emit_log(
            context,
            "debug",
            "Listed sessions",
            extra={"count": payload["count"], "generation": payload["generation"]},
        )
        return payload

    async def _refresh_sessions(context: Context | None = None) -> dict[str, Any]:
        snapshot = await monitor.refresh()
        return {"generation": snapshot.generation, "count": len(snapshot)}

    async def _prune_sessions(context: Context | None = None) -> dict[str, Any]:
        """Run one pruning cycle immediately."""

        pruned = await monitor.prune()
        _emit_log(context, "info", "Pruned sessions", extra={"pruned": len(pruned)})
        return {
            "pruned": [
                {"session_id": item.session_id, "terminal": item.handle, "reason": item.reason}
                for item in pruned
            ]
        }

    async def _discover_sessions(context: Context | None = None) -> dict[str, Any]:
        """Register running agent processes that have no state file."""

        created = await monitor.discover()
        _emit_log(context, "info", "Discovered sessions", extra={"discovered": len(created)})
        return {"discovered": [record.to_payload() for record in created]}

    async def _kill_session(session_id: str, context: Context | None = None) -> dict[str, Any]:
        result = await monitor.kill(session_id)
        _emit_log(context, "info", "Kill requested", extra=result)
        return result

    tool_list = server.tool(
        name="list_sessions",
        description="List tracked agent sessions ordered attention, working, starting, done.",
    )(_list_sessions)
    tool_refresh = server.tool(
        name="refresh_sessions",
        description="Re-read the sessions directory now instead of waiting for the next poll.",
    )(_refresh_sessions)
    tool_prune = server.tool(
        name="prune_sessions",
        description="Remove sessions whose terminal has no running process left.",
    )(_prune_sessions)
    tool_discover = server.tool(
        name="discover_sessions",
        description="Create session records for running agents that never reported themselves.",
    )(_discover_sessions)
    tool_kill = server.tool(
        name="kill_session",
        description="Send SIGTERM to the agent attached to a session and drop its record shortly after.",
    )(_kill_session)

    return ToolHandles(
        list_sessions=tool_list,
        refresh_sessions=tool_refresh,
        prune_sessions=tool_prune,
        discover_sessions=tool_discover,
        kill_session=tool_kill,
    )


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)


__all__ = ["ToolHandles", "register_tools"]
