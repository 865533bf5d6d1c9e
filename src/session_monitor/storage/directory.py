"""Directory-backed session store."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from .models import DecodeError, SessionRecord, decode_record, encode_record

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


class StoreIOError(RuntimeError):
    """Raised when the sessions directory cannot be read or written."""


class SessionStore:
    """Enumerate, load, write and delete session state files.

    One file per session, named ``<session_id>.json``. External writers own
    most files; the store only promises that its own writes are atomic.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, session_id: str) -> Path:
        if not session_id or session_id in {".", ".."} or "/" in session_id or os.sep in session_id:
            raise ValueError(f"Session id {session_id!r} is not a valid storage key")
        return self._directory / f"{session_id}{RECORD_SUFFIX}"

    def _read(self, path: Path) -> SessionRecord | None:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning(
                "Failed to read session file",
                extra={"path": str(path), "error": str(exc)},
            )
            return None
        try:
            return decode_record(data)
        except DecodeError as exc:
            logger.warning("Failed to decode %s: %s", path.name, exc, extra={"path": str(path)})
            return None

    def list_all(self) -> list[SessionRecord]:
        """Return every decodable record, in file name order.

        A missing or unreadable directory is reported as no sessions.
        """

        try:
            paths = sorted(
                entry for entry in self._directory.iterdir() if entry.name.endswith(RECORD_SUFFIX)
            )
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.warning(
                "Sessions directory unreadable",
                extra={"directory": str(self._directory), "error": str(exc)},
            )
            return []

        records: list[SessionRecord] = []
        for path in paths:
            record = self._read(path)
            if record is not None:
                records.append(record)
        return records

    def load(self, session_id: str) -> SessionRecord | None:
        return self._read(self.path_for(session_id))

    def write(self, record: SessionRecord) -> Path:
        """Atomically write ``record`` via a temporary file and rename."""

        target = self.path_for(record.session_id)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._directory, prefix=f".{record.session_id}.", suffix=".tmp"
            )
        except OSError as exc:
            raise StoreIOError(f"Cannot create temporary file in {self._directory}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(encode_record(record))
            os.replace(tmp_name, target)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StoreIOError(f"Failed to write {target.name}: {exc}") from exc
        return target

    def remove(self, session_id: str) -> bool:
        """Delete a record; returns False when it was already gone."""

        path = self.path_for(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def remove_if_handle(self, session_id: str, handle: str) -> bool:
        """Delete a record only if it still points at ``handle``.

        A record rewritten onto another terminal since it was observed is kept.
        """

        current = self.load(session_id)
        if current is None:
            return False
        if handle not in {current.terminal_session_id, current.tty_name}:
            return False
        return self.remove(session_id)


__all__ = ["SessionStore", "StoreIOError"]
