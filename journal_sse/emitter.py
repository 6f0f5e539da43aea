"""Server-Sent Events framing for unified events."""

import json
import sys
from urllib.parse import quote

from journal_sse.models import UnifiedEvent


def encode_cursor(cursor: str) -> str:
    """Percent-encode a cursor so it survives as an SSE id line."""
    return quote(cursor, safe="")


def format_frame(event: UnifiedEvent) -> str:
    """One SSE frame: optional id, event name, JSON data, blank line."""
    lines = []
    if event.resume_id:
        lines.append(f"id: {encode_cursor(event.resume_id)}")
    if event.event_type:
        lines.append(f"event: {event.event_type}")
    payload = json.dumps(event.to_payload(), ensure_ascii=False, separators=(",", ":"))
    lines.append(f"data: {payload}")
    return "\n".join(lines) + "\n\n"


class EventEmitter:
    """Writes frames to a text stream, flushing after every event.

    emit() writes to *out*, or to stdout when none was given; stream() only
    yields frames. A write to a closed consumer raises (BrokenPipeError for
    a pipe); callers treat that as the end of the connection.
    """

    def __init__(self, out=None, on_event=None):
        self._out = out
        self._on_event = on_event

    def emit(self, event: UnifiedEvent):
        out = self._out if self._out is not None else sys.stdout
        out.write(format_frame(event))
        out.flush()
        if self._on_event:
            self._on_event(event)

    def stream(self, events):
        """Generator of frames for a streaming WSGI response."""
        for event in events:
            yield format_frame(event)
            if self._on_event:
                self._on_event(event)
