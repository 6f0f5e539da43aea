"""Timeout-bounded multiplexed read of the reader's stdout and stderr."""

import logging
import select
import time

from journal_sse.errors import MalformedEntry
from journal_sse.models import (
    PRIORITY_DEBUG,
    PRIORITY_WARNING,
    internal_event,
    parse_journal_line,
)
from journal_sse.supervisor import STDERR, STDOUT, ProcessHandle

logger = logging.getLogger(__name__)

HEARTBEAT_MESSAGE = "[HEARTBEAT]"


def split_lines(buffer: bytes) -> tuple[list[str], bytes]:
    """Split off complete lines; the trailing partial line is returned as-is."""
    *complete, rest = buffer.split(b"\n")
    return [line.decode("utf-8", errors="replace").strip() for line in complete], rest


class StreamMultiplexer:
    """Turns a reader process's output into unified events.

    drain() is a generator: it yields events as lines complete and returns
    the last non-empty journal cursor it saw.
    """

    def __init__(
        self,
        source_tag: str = "journal-sse",
        poll_timeout: float = 1.0,
        idle_sleep: float = 1.0,
        clock=time.monotonic,
        sleep=time.sleep,
    ):
        self._source_tag = source_tag
        self._poll_timeout = poll_timeout
        self._idle_sleep = idle_sleep
        self._clock = clock
        self._sleep = sleep

    def drain(
        self,
        handle: ProcessHandle,
        follow: bool,
        heartbeat_seconds: int,
        playback: bool = False,
        unit: str | None = None,
    ):
        buffers = {STDOUT: handle.take_prefetched(), STDERR: b""}
        last_cursor = None
        last_heartbeat = None

        while True:
            readable = handle.open_pipes()
            if not readable and not handle.running:
                break

            if not readable:
                if follow and self._heartbeat_due(last_heartbeat, heartbeat_seconds):
                    last_heartbeat = self._clock()
                    yield self._heartbeat(unit)
                self._sleep(self._idle_sleep)
                continue

            ready, _, _ = select.select(readable, [], [], self._poll_timeout)

            if not ready:
                if follow:
                    if self._heartbeat_due(last_heartbeat, heartbeat_seconds):
                        last_heartbeat = self._clock()
                        yield self._heartbeat(unit)
                    continue
                if handle.running:
                    continue
                # Replay reader exited: take whatever is left and close at EOF
                for stream in (STDOUT, STDERR):
                    if handle.is_open(stream):
                        data, _ = handle.read_available(stream)
                        buffers[stream] += data
            else:
                for pipe in ready:
                    stream = handle.stream_of(pipe)
                    data, eof = handle.read(stream)
                    buffers[stream] += data
                    if eof:
                        logger.debug("pid %d closed %s", handle.pid, stream)

            err_lines, buffers[STDERR] = split_lines(buffers[STDERR])
            yield from self._stderr_events(err_lines, playback, unit)

            out_lines, buffers[STDOUT] = split_lines(buffers[STDOUT])
            for event in self._stdout_events(out_lines, playback, unit):
                if event.resume_id:
                    last_cursor = event.resume_id
                yield event

        # A partial line left at exit is treated as complete
        yield from self._stderr_events(
            buffers[STDERR].decode("utf-8", errors="replace").split("\n"), playback, unit,
        )
        tail = buffers[STDOUT].decode("utf-8", errors="replace").split("\n")
        for event in self._stdout_events([line.strip() for line in tail], playback, unit):
            if event.resume_id:
                last_cursor = event.resume_id
            yield event

        handle.close()
        logger.info("pid %d finished (code %s), last cursor %s",
                    handle.pid, handle.poll(), "set" if last_cursor else "none")
        return last_cursor

    def _heartbeat_due(self, last_heartbeat: float | None, heartbeat_seconds: int) -> bool:
        if last_heartbeat is None:
            return True
        return self._clock() - last_heartbeat >= heartbeat_seconds

    def _heartbeat(self, unit):
        return internal_event(HEARTBEAT_MESSAGE, PRIORITY_DEBUG, unit, False, self._source_tag)

    def _stderr_events(self, lines, playback, unit):
        for line in lines:
            line = line.strip()
            if line:
                yield internal_event(
                    f"[journalctl stderr] {line}", PRIORITY_WARNING, unit, playback, self._source_tag,
                )

    def _stdout_events(self, lines, playback, unit):
        for line in lines:
            if not line:
                continue
            try:
                yield parse_journal_line(line, playback)
            except MalformedEntry:
                logger.debug("Non-JSON line from journalctl: %.200s", line)
                yield internal_event(
                    f"[journalctl non-json] {line}", PRIORITY_WARNING, unit, playback, self._source_tag,
                )
