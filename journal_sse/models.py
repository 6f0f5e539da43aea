"""Unified event model shared by journal entries and adapter notices."""

import json
import os
import socket
import time
from dataclasses import dataclass

from journal_sse.errors import MalformedEntry

JOURNAL = "journal"
INTERNAL = "internal"

PLAYBACK_START = "playback_start"
PLAYBACK_END = "playback_end"

# journald severities, as strings the way journalctl -o json reports them
PRIORITY_ERROR = "3"
PRIORITY_WARNING = "4"
PRIORITY_INFO = "6"
PRIORITY_DEBUG = "7"


def now_micro() -> int:
    """Current wall-clock time in microseconds since the epoch."""
    return int(time.time() * 1_000_000)


@dataclass(frozen=True)
class UnifiedEvent:
    kind: str                      # JOURNAL or INTERNAL
    playback: bool
    message: str
    timestamp_us: int
    cursor: str | None = None      # journal events only
    priority: str | None = None    # "0".."7"
    syslog_identifier: str | None = None
    unit: str | None = None
    hostname: str | None = None
    pid: int | None = None
    uid: int | None = None
    gid: int | None = None
    name: str | None = None        # wire event name override, e.g. playback_start

    @property
    def event_type(self) -> str:
        return self.name or self.kind

    @property
    def resume_id(self) -> str | None:
        """Cursor usable as an SSE id, or None when the event must not carry one."""
        if self.kind == JOURNAL and self.cursor:
            return self.cursor
        return None

    def to_payload(self) -> dict:
        return {
            "type": self.kind,
            "playback": self.playback,
            "__CURSOR": self.cursor,
            "__REALTIME_TIMESTAMP": self.timestamp_us,
            "PRIORITY": self.priority,
            "SYSLOG_IDENTIFIER": self.syslog_identifier,
            "MESSAGE": self.message,
            "_SYSTEMD_UNIT": self.unit,
            "HOSTNAME": self.hostname,
            "PID": self.pid,
            "UID": self.uid,
            "GID": self.gid,
        }


def internal_event(
    message: str,
    priority: str,
    unit: str | None,
    playback: bool,
    source_tag: str,
    name: str | None = None,
) -> UnifiedEvent:
    """Build an adapter notice. Internal events never carry a cursor."""
    return UnifiedEvent(
        kind=INTERNAL,
        playback=playback,
        message=message,
        timestamp_us=now_micro(),
        priority=priority,
        syslog_identifier=source_tag,
        unit=unit,
        hostname=socket.gethostname() or None,
        pid=os.getpid(),
        uid=os.getuid() if hasattr(os, "getuid") else None,
        gid=os.getgid() if hasattr(os, "getgid") else None,
        name=name,
    )


def _clean(value: str) -> str:
    # JSON \u escapes can decode to lone surrogates, which UTF-8 cannot carry
    return value.encode("utf-8", "surrogatepass").decode("utf-8", errors="replace")


def _text(value) -> str | None:
    # journalctl emits binary fields as arrays of byte values and repeated
    # fields as arrays of strings
    if value is None:
        return None
    if isinstance(value, str):
        return _clean(value)
    if isinstance(value, list):
        if value and all(isinstance(b, int) and 0 <= b <= 255 for b in value):
            return bytes(value).decode("utf-8", errors="replace")
        for item in value:
            if isinstance(item, str):
                return _clean(item)
        return None
    return str(value)


def _integer(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def parse_journal_line(line: str, playback: bool) -> UnifiedEvent:
    """Parse one ``journalctl -o json`` line into a journal event.

    Raises MalformedEntry when the line is not a JSON object.
    """
    try:
        record = json.loads(line)
    except (ValueError, RecursionError):
        raise MalformedEntry(line) from None
    if not isinstance(record, dict):
        raise MalformedEntry(line)

    cursor = record.get("__CURSOR")
    timestamp = _integer(record.get("__REALTIME_TIMESTAMP"))

    return UnifiedEvent(
        kind=JOURNAL,
        playback=playback,
        message=_text(record.get("MESSAGE")) or "",
        timestamp_us=timestamp if timestamp is not None else now_micro(),
        cursor=_clean(cursor) if isinstance(cursor, str) and cursor else None,
        priority=_text(record.get("PRIORITY")),
        syslog_identifier=_text(record.get("SYSLOG_IDENTIFIER")),
        unit=_text(record.get("_SYSTEMD_UNIT")),
        hostname=_text(record.get("_HOSTNAME")),
        pid=_integer(record.get("_PID")),
        uid=_integer(record.get("_UID")),
        gid=_integer(record.get("_GID")),
    )
