"""Replay-then-follow state machine for one consumer connection."""

import logging
import time

from journal_sse.controls import StreamConfig
from journal_sse.errors import SourceToolMissing, SpawnError
from journal_sse.filters import follow_command, format_command, replay_command
from journal_sse.models import (
    PLAYBACK_END,
    PLAYBACK_START,
    PRIORITY_DEBUG,
    PRIORITY_ERROR,
    PRIORITY_INFO,
    PRIORITY_WARNING,
    internal_event,
)
from journal_sse.multiplexer import StreamMultiplexer
from journal_sse.supervisor import ProcessSupervisor

logger = logging.getLogger(__name__)


class PlaybackController:
    """Drives Idle -> Replay (optional) -> Follow (forever).

    run() is a generator of UnifiedEvents. It only returns when journalctl
    is missing or the bridge itself fails; closing the generator tears down
    whichever reader process is current.
    """

    def __init__(
        self,
        config: StreamConfig,
        supervisor: ProcessSupervisor | None = None,
        multiplexer: StreamMultiplexer | None = None,
        journalctl_path: str | None = None,
        source_tag: str = "journal-sse",
        restart_delay: float = 1.0,
        sleep=time.sleep,
        stats=None,
    ):
        self._config = config
        self._supervisor = supervisor or ProcessSupervisor()
        self._multiplexer = multiplexer or StreamMultiplexer(source_tag=source_tag)
        self._journalctl_path = journalctl_path
        self._source_tag = source_tag
        self._restart_delay = restart_delay
        self._sleep = sleep
        self._stats = stats

    def run(self):
        try:
            yield from self._run()
        except SourceToolMissing as e:
            logger.error("Stream ended: %s", e)
            yield self._notice(str(e), PRIORITY_ERROR)
        except Exception as e:
            logger.exception("Bridge fault, ending stream")
            yield self._notice(f"[bridge fault] {type(e).__name__}: {e}", PRIORITY_ERROR)

    def _run(self):
        journalctl = self._supervisor.locate(self._journalctl_path)
        yield self._notice(f"SSE connected. {self._config.describe()}", PRIORITY_INFO)

        # Resume after the consumer's last acknowledged entry. Replay is
        # scoped after it too, so nothing unseen is skipped.
        cursor = self._config.resume_cursor

        if self._config.playback_enabled and self._config.backlog > 0:
            cursor = yield from self._replay(journalctl, cursor)

        yield from self._follow(journalctl, cursor)

    def _replay(self, journalctl: str, cursor: str | None):
        argv = replay_command(journalctl, self._config, cursor)

        yield self._boundary(PLAYBACK_START, playback=True)
        yield self._notice("journalctl replay starting", PRIORITY_DEBUG, playback=True)
        yield self._notice(f"journalctl replay cmd: {format_command(argv)}", PRIORITY_DEBUG, playback=True)

        try:
            handle = self._spawn(argv, allow_empty=True)
        except SpawnError as e:
            logger.warning("Replay failed: %s", e.diagnostic)
            if self._stats:
                self._stats.record_spawn_failure()
            yield self._notice(f"journalctl replay failed: {e.diagnostic}", PRIORITY_WARNING)
            # the boundary is unconditional so the consumer always leaves catch-up
            yield self._boundary(PLAYBACK_END, playback=False)
            return cursor

        try:
            last_cursor = yield from self._multiplexer.drain(
                handle,
                follow=False,
                heartbeat_seconds=self._config.heartbeat_seconds,
                playback=True,
                unit=self._config.internal_unit,
            )
        finally:
            self._supervisor.terminate(handle)

        yield self._notice("journalctl replay complete", PRIORITY_DEBUG, playback=True)
        yield self._boundary(PLAYBACK_END, playback=False)
        return last_cursor or cursor

    def _follow(self, journalctl: str, cursor: str | None):
        yield self._notice("journalctl follow loop entering", PRIORITY_DEBUG)

        while True:
            argv = follow_command(journalctl, self._config, cursor)
            yield self._notice("journalctl follow starting", PRIORITY_DEBUG)
            yield self._notice(f"journalctl follow cmd: {format_command(argv)}", PRIORITY_DEBUG)

            try:
                handle = self._spawn(argv)
            except SpawnError as e:
                logger.warning("Follow spawn failed: %s", e.diagnostic)
                if self._stats:
                    self._stats.record_spawn_failure()
                yield self._notice(f"journalctl follow failed: {e.diagnostic}", PRIORITY_WARNING)
                self._sleep(self._restart_delay)
                continue

            try:
                last_cursor = yield from self._multiplexer.drain(
                    handle,
                    follow=True,
                    heartbeat_seconds=self._config.heartbeat_seconds,
                    playback=False,
                    unit=self._config.internal_unit,
                )
            finally:
                self._supervisor.terminate(handle)

            cursor = last_cursor or cursor
            logger.warning("journalctl follow exited, restarting")
            if self._stats:
                self._stats.record_restart()
            yield self._notice("journalctl follow restarted", PRIORITY_WARNING)

            if not self._config.playback_enabled:
                cursor = None

    def _spawn(self, argv: list[str], allow_empty: bool = False):
        handle = self._supervisor.spawn(argv, allow_empty=allow_empty)
        if self._stats:
            self._stats.record_spawn()
        return handle

    def _notice(self, message: str, priority: str, playback: bool = False):
        return internal_event(message, priority, self._config.internal_unit, playback, self._source_tag)

    def _boundary(self, name: str, playback: bool):
        return internal_event(name, PRIORITY_DEBUG, None, playback, self._source_tag, name=name)
