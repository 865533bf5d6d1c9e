"""Storage abstractions for the session monitor."""

from .directory import SessionStore, StoreIOError
from .models import (
    DecodeError,
    SessionRecord,
    SessionStatus,
    TerminalKind,
    decode_record,
    encode_record,
    normalize_tty,
)

__all__ = [
    "DecodeError",
    "SessionRecord",
    "SessionStatus",
    "SessionStore",
    "StoreIOError",
    "TerminalKind",
    "decode_record",
    "encode_record",
    "normalize_tty",
]
