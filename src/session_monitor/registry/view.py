"""Atomically swapped, subscribable view of the current sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..storage import SessionRecord

logger = logging.getLogger(__name__)

Subscriber = Callable[["SessionSnapshot"], None]


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Immutable, ordered set of sessions published by one reconciliation."""

    records: tuple[SessionRecord, ...] = ()
    generation: int = 0
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def get(self, session_id: str) -> SessionRecord | None:
        for record in self.records:
            if record.session_id == session_id:
                return record
        return None

    @property
    def session_ids(self) -> list[str]:
        return [record.session_id for record in self.records]


class SessionView:
    """Holds the latest snapshot; readers never observe a partial update."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot = SessionSnapshot(taken_at=self._clock())
        self._subscribers: list[Subscriber] = []

    @property
    def current(self) -> SessionSnapshot:
        return self._snapshot

    def publish(self, records: Iterable[SessionRecord]) -> SessionSnapshot:
        snapshot = SessionSnapshot(
            records=tuple(records),
            generation=self._snapshot.generation + 1,
            taken_at=self._clock(),
        )
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Session view subscriber failed")
        return snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for future snapshots; returns an unsubscribe function."""

        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe


__all__ = ["SessionSnapshot", "SessionView", "Subscriber"]
