"""Liveness checks for the terminals backing known sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..procs import ProcessInspector
from ..storage import SessionRecord, TerminalKind, normalize_tty


class LivenessProber:
    """Ask the process inspector which device terminals have no process left.

    Every call results in at most one inspector query, however many handles
    are passed in.
    """

    def __init__(self, inspector: ProcessInspector) -> None:
        self._inspector = inspector

    async def dead_handles(self, handles: Iterable[str]) -> set[str]:
        ttys = {normalize_tty(handle) for handle in handles if handle and handle.strip()}
        ttys.discard("")
        if not ttys:
            return set()
        return set(await self._inspector.dead_terminals(ttys))


class WindowExpiryPolicy:
    """Secondary liveness rule for window-addressable sessions.

    Window handles cannot be matched against a tty, so a record whose writer
    has stopped updating it for ``ttl`` seconds is treated as dead. A ttl of 0
    disables the rule; records without ``updated_at`` never expire.
    """

    def __init__(self, ttl: float) -> None:
        self.ttl = ttl

    @property
    def enabled(self) -> bool:
        return self.ttl > 0

    def expired(self, record: SessionRecord, now: datetime) -> bool:
        if not self.enabled or record.terminal_kind is not TerminalKind.WINDOW:
            return False
        if record.updated_at is None:
            return False
        return (now - record.updated_at).total_seconds() > self.ttl


__all__ = ["LivenessProber", "WindowExpiryPolicy"]
