"""Register running agent processes that never wrote a state file."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Callable, Iterable

from ..procs import DiscoveryProcessError, LivenessQueryError, ProcessInfo, ProcessInspector
from ..storage import SessionRecord, SessionStatus, SessionStore, StoreIOError
from ..storage.models import DEVICE_PREFIX

logger = logging.getLogger(__name__)

DISCOVERED_PREFIX = "discovered-"


def discovered_session_id(tty: str) -> str:
    """Deterministic identifier for a session found on ``tty``."""

    return DISCOVERED_PREFIX + tty.replace("/", "-")


def _is_represented(tty: str, identities: Iterable[str]) -> bool:
    # Whole path components only: pts/1 must not match /dev/pts/12.
    pattern = re.compile(rf"(^|[/:]){re.escape(tty)}($|:)")
    for identity in identities:
        if not identity:
            continue
        if identity.startswith(DEVICE_PREFIX):
            identity = identity[len(DEVICE_PREFIX):]
        if identity == tty or pattern.search(identity):
            return True
    return False


class SessionDiscovery:
    """One-shot scan that synthesizes records for untracked agent processes."""

    def __init__(
        self,
        store: SessionStore,
        inspector: ProcessInspector,
        *,
        program: str = "claude",
        excludes: Iterable[str] = ("claude_monitor",),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._inspector = inspector
        self._program = program
        self._excludes = tuple(excludes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def matches(self, process: ProcessInfo) -> bool:
        command = process.command
        if self._program not in command:
            return False
        return not any(exclude and exclude in command for exclude in self._excludes)

    async def run(self) -> list[SessionRecord]:
        """Write a record for each matching process whose terminal is unknown.

        Returns the records created by this run.
        """

        try:
            processes = await self._inspector.list_processes()
        except LivenessQueryError as exc:
            logger.warning("Process listing failed, discovery skipped", extra={"error": str(exc)})
            return []

        existing = await asyncio.to_thread(self._store.list_all)
        identities = {record.terminal_session_id for record in existing}
        claimed: set[str] = set()
        created: list[SessionRecord] = []

        for process in processes:
            if process.tty is None or not self.matches(process):
                continue
            if process.tty in claimed or _is_represented(process.tty, identities):
                continue

            try:
                cwd = await self._inspector.resolve_cwd(process.pid)
            except DiscoveryProcessError as exc:
                logger.debug(
                    "Skipping uninspectable process",
                    extra={"pid": process.pid, "error": str(exc)},
                )
                continue
            if not cwd:
                continue

            now = self._clock()
            record = SessionRecord(
                session_id=discovered_session_id(process.tty),
                status=SessionStatus.WORKING,
                project=PurePath(cwd).name,
                cwd=cwd,
                terminal="terminal",
                terminal_session_id=DEVICE_PREFIX + process.tty,
                started_at=now,
                updated_at=now,
            )
            try:
                self._store.write(record)
            except StoreIOError as exc:
                logger.warning(
                    "Failed to write discovered session",
                    extra={"session_id": record.session_id, "error": str(exc)},
                )
                continue

            claimed.add(process.tty)
            created.append(record)
            logger.info(
                "Discovered session %s in %s",
                record.session_id,
                cwd,
                extra={"session_id": record.session_id, "pid": process.pid, "terminal": process.tty},
            )
        return created


__all__ = ["SessionDiscovery", "discovered_session_id"]
