"""Session monitor wiring: store, view, loops, discovery and the kill action."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from .config import MonitorSettings
from .procs import ProcessInspectionError, ProcessInspector, PsProcessInspector
from .registry import (
    LivenessProber,
    PeriodicTask,
    PrunedSession,
    Pruner,
    Reconciler,
    SessionDiscovery,
    SessionSnapshot,
    SessionView,
    WindowExpiryPolicy,
)
from .storage import SessionRecord, SessionStatus, SessionStore

logger = logging.getLogger(__name__)


class SessionMonitor:
    """Keep a live, pruned view of the sessions directory."""

    def __init__(
        self,
        settings: MonitorSettings,
        *,
        inspector: ProcessInspector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.inspector: ProcessInspector = inspector or PsProcessInspector()
        self.store = SessionStore(settings.sessions_dir)
        self.view = SessionView(clock=self._clock)
        self.reconciler = Reconciler(self.store, self.view)
        self.pruner = Pruner(
            self.store,
            self.view,
            LivenessProber(self.inspector),
            window_policy=WindowExpiryPolicy(settings.window_session_ttl),
            clock=self._clock,
        )
        self.discovery = SessionDiscovery(
            self.store,
            self.inspector,
            program=settings.program_name,
            excludes=settings.program_excludes,
            clock=self._clock,
        )
        self._reconcile_task = PeriodicTask(
            "reconcile-sessions", settings.reconcile_interval, self.reconciler.run_once
        )
        self._prune_task = PeriodicTask("prune-sessions", settings.prune_interval, self.pruner.run_once)
        self._pending_removals: dict[str, asyncio.Task[None]] = {}

    @property
    def running(self) -> bool:
        return self._reconcile_task.running

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.view.current

    async def start(self) -> None:
        if self.running:
            return
        await self.reconciler.run_once()
        self._reconcile_task.start()
        self._prune_task.start()
        logger.info(
            "Session monitor started",
            extra={
                "sessions_dir": str(self.store.directory),
                "reconcile_interval": self.settings.reconcile_interval,
                "prune_interval": self.settings.prune_interval,
            },
        )

    async def stop(self) -> None:
        await self._reconcile_task.stop()
        await self._prune_task.stop()
        pending = list(self._pending_removals.values())
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._pending_removals.clear()

    async def refresh(self) -> SessionSnapshot:
        return await self.reconciler.run_once()

    async def prune(self) -> list[PrunedSession]:
        pruned = await self.pruner.run_once()
        if pruned:
            await self.refresh()
        return pruned

    async def discover(self) -> list[SessionRecord]:
        created = await self.discovery.run()
        await self.refresh()
        return created

    async def kill(self, session_id: str) -> dict[str, Any]:
        """Terminate the agent attached to a session and drop its record after a grace delay."""

        record = self.view.current.get(session_id)
        if record is None:
            try:
                record = self.store.load(session_id)
            except ValueError:
                record = None
        if record is None:
            return {"session_id": session_id, "status": "not_found", "signaled": False}

        signaled = False
        tty = record.tty_name
        if tty:
            try:
                signaled = await self.inspector.signal_terminal(tty, self.settings.program_name)
            except ProcessInspectionError as exc:
                logger.warning(
                    "Failed to signal session %s",
                    session_id,
                    extra={"session_id": session_id, "terminal": tty, "error": str(exc)},
                )

        if session_id not in self._pending_removals:
            task = asyncio.create_task(self._remove_later(session_id), name=f"kill-{session_id}")
            self._pending_removals[session_id] = task
            task.add_done_callback(lambda _: self._pending_removals.pop(session_id, None))

        logger.info(
            "Kill requested for session %s",
            session_id,
            extra={"session_id": session_id, "terminal": tty, "signaled": signaled},
        )
        return {"session_id": session_id, "status": "killing", "signaled": signaled}

    async def wait_for_removals(self) -> None:
        """Block until every scheduled kill removal has completed."""

        pending = list(self._pending_removals.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _remove_later(self, session_id: str) -> None:
        await asyncio.sleep(self.settings.kill_grace_seconds)
        try:
            removed = self.store.remove(session_id)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to remove killed session %s",
                session_id,
                extra={"session_id": session_id, "error": str(exc)},
            )
            return
        logger.debug(
            "Removed killed session file",
            extra={"session_id": session_id, "removed": removed},
        )

    def status_payload(self) -> dict[str, Any]:
        """Summarize the current snapshot in a JSON-ready shape."""

        now = self._clock()
        snapshot = self.view.current
        counts = {status.value: 0 for status in SessionStatus if status is not SessionStatus.UNKNOWN}
        sessions = []
        for record in snapshot.records:
            display = record.display_status
            counts[display.value] += 1
            elapsed = record.elapsed(now)
            sessions.append(
                {
                    **record.to_payload(),
                    "display_status": display.value,
                    "terminal_kind": record.terminal_kind.value,
                    "stale": record.is_stale(now, self.settings.stale_after_seconds),
                    "elapsed_seconds": int(elapsed.total_seconds()) if elapsed is not None else None,
                }
            )
        return {
            "timestamp": now.isoformat(),
            "generation": snapshot.generation,
            "sessions_dir": str(self.store.directory),
            "count": len(sessions),
            "status_counts": counts,
            "sessions": sessions,
        }


__all__ = ["SessionMonitor"]
