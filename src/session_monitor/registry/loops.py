"""Background reconciliation and pruning loops."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from ..procs import LivenessQueryError
from ..storage import SessionRecord, SessionStore
from .liveness import LivenessProber, WindowExpiryPolicy
from .ranking import rank_sessions
from .view import SessionSnapshot, SessionView

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run an async callback on a fixed interval until stopped.

    A failing cycle is logged and the next one still runs.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[Any]]) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            try:
                await self._callback()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
            await asyncio.sleep(self.interval)


class Reconciler:
    """Rebuild the published view from the session directory."""

    def __init__(self, store: SessionStore, view: SessionView) -> None:
        self._store = store
        self._view = view

    async def run_once(self) -> SessionSnapshot:
        records = await asyncio.to_thread(self._store.list_all)
        return self._view.publish(rank_sessions(records))


@dataclass(slots=True, frozen=True)
class PrunedSession:
    session_id: str
    handle: str
    reason: str


class Pruner:
    """Delete records whose terminal is confirmed dead."""

    def __init__(
        self,
        store: SessionStore,
        view: SessionView,
        prober: LivenessProber,
        *,
        window_policy: WindowExpiryPolicy | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._view = view
        self._prober = prober
        self._window_policy = window_policy or WindowExpiryPolicy(0)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_once(self) -> list[PrunedSession]:
        snapshot = self._view.current
        by_tty: dict[str, list[SessionRecord]] = defaultdict(list)
        for record in snapshot.records:
            tty = record.tty_name
            if tty:
                by_tty[tty].append(record)

        pruned: list[PrunedSession] = []
        if by_tty:
            try:
                dead = await self._prober.dead_handles(by_tty.keys())
            except LivenessQueryError as exc:
                logger.warning(
                    "Liveness query failed, skipping prune cycle",
                    extra={"terminals": sorted(by_tty), "error": str(exc)},
                )
                return []

            for tty in sorted(dead):
                for record in by_tty.get(tty, []):
                    if self._remove(record, reason="terminal_gone"):
                        logger.info(
                            "Pruned session %s: terminal %s gone",
                            record.session_id,
                            tty,
                            extra={"session_id": record.session_id, "terminal": tty},
                        )
                        pruned.append(
                            PrunedSession(record.session_id, record.terminal_session_id, "terminal_gone")
                        )

        if self._window_policy.enabled:
            now = self._clock()
            for record in snapshot.records:
                if not self._window_policy.expired(record, now):
                    continue
                if self._remove(record, reason="expired"):
                    logger.info(
                        "Pruned session %s: window %s not updated for %ss",
                        record.session_id,
                        record.terminal_session_id,
                        int(self._window_policy.ttl),
                        extra={
                            "session_id": record.session_id,
                            "terminal": record.terminal_session_id,
                        },
                    )
                    pruned.append(
                        PrunedSession(record.session_id, record.terminal_session_id, "expired")
                    )
        return pruned

    def _remove(self, record: SessionRecord, *, reason: str) -> bool:
        try:
            return self._store.remove_if_handle(record.session_id, record.terminal_session_id)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Failed to prune session %s",
                record.session_id,
                extra={"session_id": record.session_id, "reason": reason, "error": str(exc)},
            )
            return False


__all__ = ["PeriodicTask", "PrunedSession", "Pruner", "Reconciler"]
