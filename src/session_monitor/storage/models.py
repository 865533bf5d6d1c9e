"""Session record model and the state file codec."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class DecodeError(ValueError):
    """Raised when a state file cannot be decoded into a session record."""


class SessionStatus(str, Enum):
    STARTING = "starting"
    WORKING = "working"
    DONE = "done"
    ATTENTION = "attention"
    UNKNOWN = "unknown"


class TerminalKind(str, Enum):
    UNKNOWN = "unknown"
    DEVICE = "device"
    WINDOW = "window"


# Raw `terminal` tags written by the session hooks.
DEVICE_TERMINALS = frozenset({"terminal"})
WINDOW_TERMINALS = frozenset({"iterm2"})
DEVICE_PREFIX = "/dev/"

_STRING_FIELDS = ("project", "cwd", "terminal", "terminal_session_id", "last_prompt")


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class SessionRecord(BaseModel):
    """One tracked agent session as persisted in `<session_id>.json`.

    Every field except ``session_id`` degrades to a default instead of failing,
    so partially written or newer-schema files still decode.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    session_id: str = Field(..., description="Stable identifier, doubles as the storage key.")
    status: SessionStatus = Field(default=SessionStatus.UNKNOWN)
    project: str = ""
    cwd: str = ""
    terminal: str = Field(default="", description="Raw terminal tag, e.g. 'terminal' or 'iterm2'.")
    terminal_session_id: str = Field(
        default="",
        description="Terminal handle: a tty device path or a window/tab/session token.",
    )
    started_at: datetime | None = None
    updated_at: datetime | None = None
    last_prompt: str = ""

    @field_validator("session_id", mode="before")
    @classmethod
    def _require_session_id(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("session_id must be a non-empty string")
        return value.strip()

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> SessionStatus:
        if isinstance(value, SessionStatus):
            return value
        try:
            return SessionStatus(value)
        except ValueError:
            return SessionStatus.UNKNOWN

    @field_validator(*_STRING_FIELDS, mode="before")
    @classmethod
    def _coerce_string(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("started_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        return _parse_timestamp(value)

    @property
    def terminal_kind(self) -> TerminalKind:
        if self.terminal in WINDOW_TERMINALS:
            return TerminalKind.WINDOW
        if self.terminal in DEVICE_TERMINALS or self.terminal_session_id.startswith(DEVICE_PREFIX):
            return TerminalKind.DEVICE
        return TerminalKind.UNKNOWN

    @property
    def tty_name(self) -> str | None:
        """Device handle without the `/dev/` prefix, or None for non-device handles."""

        if self.terminal_kind is not TerminalKind.DEVICE or not self.terminal_session_id:
            return None
        return normalize_tty(self.terminal_session_id)

    @property
    def display_status(self) -> SessionStatus:
        if self.status is SessionStatus.UNKNOWN:
            return SessionStatus.STARTING
        return self.status

    def is_stale(self, now: datetime, threshold: float) -> bool:
        if self.updated_at is None:
            return False
        return (now - self.updated_at).total_seconds() > threshold

    def elapsed(self, now: datetime) -> timedelta | None:
        if self.started_at is None:
            return None
        return now - self.started_at

    def to_payload(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "project": self.project,
            "cwd": self.cwd,
            "terminal": self.terminal,
            "terminal_session_id": self.terminal_session_id,
            "started_at": _format_timestamp(self.started_at),
            "updated_at": _format_timestamp(self.updated_at),
            "last_prompt": self.last_prompt,
        }


def normalize_tty(handle: str) -> str:
    handle = handle.strip()
    if handle.startswith(DEVICE_PREFIX):
        return handle[len(DEVICE_PREFIX):]
    return handle


def decode_record(data: bytes) -> SessionRecord:
    """Decode a state file body into a :class:`SessionRecord`."""

    try:
        document = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError(f"State file is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise DecodeError("State file must contain a JSON object")

    try:
        return SessionRecord.model_validate(document)
    except ValidationError as exc:
        raise DecodeError(f"State file is missing a usable session_id: {exc}") from exc


def encode_record(record: SessionRecord) -> bytes:
    """Serialize a record into the state file format."""

    return (json.dumps(record.to_payload(), indent=2, ensure_ascii=False) + "\n").encode("utf-8")


__all__ = [
    "DecodeError",
    "SessionRecord",
    "SessionStatus",
    "TerminalKind",
    "decode_record",
    "encode_record",
    "normalize_tty",
]
