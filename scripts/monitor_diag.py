"""Session monitor diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json

from session_monitor.config import MonitorSettings
from session_monitor.monitor import SessionMonitor


def load_monitor(settings: MonitorSettings) -> SessionMonitor:
    return SessionMonitor(settings)


def cmd_sessions(args: argparse.Namespace) -> None:
    monitor = load_monitor(MonitorSettings())
    asyncio.run(monitor.refresh())
    payload = monitor.status_payload()
    if args.json:
        print(json.dumps(payload, indent=2))
        return
    for item in payload["sessions"]:
        stale = " (stale)" if item["stale"] else ""
        print(
            f"{item['session_id']} [{item['display_status']}]{stale} "
            f"{item['project'] or '-'} -> {item['terminal_session_id'] or '-'}"
        )


def cmd_prune(args: argparse.Namespace) -> None:
    monitor = load_monitor(MonitorSettings())

    async def _run():
        await monitor.refresh()
        return await monitor.prune()

    pruned = asyncio.run(_run())
    print(
        json.dumps(
            [
                {"session_id": item.session_id, "terminal": item.handle, "reason": item.reason}
                for item in pruned
            ],
            indent=2,
        )
    )


def cmd_discover(args: argparse.Namespace) -> None:
    monitor = load_monitor(MonitorSettings())
    created = asyncio.run(monitor.discover())
    print(json.dumps([record.to_payload() for record in created], indent=2))


def cmd_kill(args: argparse.Namespace) -> None:
    monitor = load_monitor(MonitorSettings())

    async def _run():
        await monitor.refresh()
        result = await monitor.kill(args.session_id)
        await monitor.wait_for_removals()
        return result

    result = asyncio.run(_run())
    print(json.dumps(result, indent=2))
    if result["status"] == "not_found":
        raise SystemExit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Session monitor diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_sessions = sub.add_parser("sessions", help="List ranked sessions")
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.set_defaults(func=cmd_sessions)

    p_prune = sub.add_parser("prune", help="Remove sessions whose terminal is gone")
    p_prune.set_defaults(func=cmd_prune)

    p_discover = sub.add_parser("discover", help="Register untracked agent processes")
    p_discover.set_defaults(func=cmd_discover)

    p_kill = sub.add_parser("kill", help="Terminate a session's agent and remove its record")
    p_kill.add_argument("session_id")
    p_kill.set_defaults(func=cmd_kill)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
