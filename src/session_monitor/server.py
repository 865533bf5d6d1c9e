"""FastMCP server bootstrap for the session monitor."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastmcp import Context, FastMCP

from . import __version__
from .config import MonitorSettings, get_settings
from .monitor import SessionMonitor
from .procs import ProcessInspector
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the monitor server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_server(
    settings: Optional[MonitorSettings] = None,
    inspector: ProcessInspector | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server around a session monitor."""

    settings = settings or get_settings()
    monitor = SessionMonitor(settings, inspector=inspector)

    @asynccontextmanager
    async def lifespan(_server):
        await monitor.start()
        try:
            yield {}
        finally:
            await monitor.stop()

    server = FastMCP(
        name="Session Monitor",
        version=__version__,
        instructions=(
            "Tracks agent sessions running in terminal tabs. Read the status resource "
            "for the ranked session list, and use the tools to refresh, prune dead "
            "sessions, discover untracked agents, or kill a session."
        ),
        lifespan=lifespan,
    )

    handles = register_tools(server, monitor=monitor)

    def status_resource(context: Context) -> str:
        """Return a JSON string summarizing the current session view."""

        payload = {
            "server_version": __version__,
            "log_level": settings.log_level,
            "monitor_running": monitor.running,
            **monitor.status_payload(),
            "request_id": getattr(context, "request_id", None),
        }
        return json.dumps(payload)

    server.resource(
        "resource://session-monitor/status",
        name="session_monitor_status",
        title="Session Monitor Status",
        description="Ranked list of tracked sessions with staleness hints.",
        mime_type="application/json",
        tags={"status", "sessions"},
    )(status_resource)

    setattr(server, "monitor", monitor)
    setattr(server, "monitor_lifespan", lifespan)
    setattr(server, "status_resource", status_resource)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the session monitor server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching session monitor server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "sessions_dir": str(settings.sessions_dir),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
