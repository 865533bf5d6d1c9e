"""Presentation ordering for session records."""

from __future__ import annotations

from typing import Iterable

from ..storage import SessionRecord, SessionStatus

STATUS_ORDER: dict[SessionStatus, int] = {
    SessionStatus.ATTENTION: 0,
    SessionStatus.WORKING: 1,
    SessionStatus.STARTING: 2,
    SessionStatus.DONE: 3,
}
_UNRANKED = len(STATUS_ORDER)


def status_rank(status: SessionStatus) -> int:
    return STATUS_ORDER.get(status, _UNRANKED)


def rank_sessions(records: Iterable[SessionRecord]) -> list[SessionRecord]:
    """Order records attention, working, starting, done, then anything else.

    The sort is stable, so ties keep their enumeration order.
    """

    return sorted(records, key=lambda record: status_rank(record.status))


__all__ = ["STATUS_ORDER", "rank_sessions", "status_rank"]
