"""Shared test doubles for the bridge components."""

from journal_sse.errors import SourceToolMissing


class StopScript(BaseException):
    """Raised by the fakes when a scripted sequence runs out.

    Derives from BaseException so it escapes the controller's fault handler.
    """


def collect(gen):
    """Exhaust a generator, returning (items, return_value)."""
    items = []
    while True:
        try:
            items.append(next(gen))
        except StopIteration as stop:
            return items, stop.value


def collect_until_stop(gen):
    """Collect items until a fake raises StopScript."""
    items = []
    try:
        for item in gen:
            items.append(item)
    except StopScript:
        pass
    return items


class FakeHandle:
    def __init__(self, argv):
        self.argv = argv
        self.terminated = False


class FakeSupervisor:
    """Hands out FakeHandles, or raises scripted exceptions, per spawn."""

    def __init__(self, script=None, missing=False):
        self._script = list(script or [])
        self._missing = missing
        self.spawned: list[list[str]] = []
        self.allow_empty: list[bool] = []
        self.terminated: list[FakeHandle] = []

    def locate(self, configured_path=None):
        if self._missing:
            raise SourceToolMissing("journalctl not found in PATH")
        return configured_path or "/usr/bin/journalctl"

    def spawn(self, argv, allow_empty=False):
        self.spawned.append(argv)
        self.allow_empty.append(allow_empty)
        if not self._script:
            raise StopScript()
        outcome = self._script.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return FakeHandle(argv)

    def terminate(self, handle):
        handle.terminated = True
        self.terminated.append(handle)


class FakeMultiplexer:
    """Replays scripted (events, last_cursor) pairs, one per drain call."""

    def __init__(self, script=None):
        self._script = list(script or [])
        self.calls: list[dict] = []

    def drain(self, handle, follow, heartbeat_seconds, playback=False, unit=None):
        self.calls.append({
            "argv": handle.argv, "follow": follow, "heartbeat_seconds": heartbeat_seconds,
            "playback": playback, "unit": unit,
        })
        if not self._script:
            raise StopScript()
        events, last_cursor = self._script.pop(0)
        if isinstance(events, BaseException):
            raise events
        for event in events:
            yield event
        return last_cursor


def make_entry(n: int, priority: int = 6, unit: str = "app.service", message: str | None = None) -> dict:
    """A journalctl -o json record with cursor s=abc;i=<n>."""
    return {
        "__CURSOR": f"s=abc;i={n}",
        "__REALTIME_TIMESTAMP": str(1_700_000_000_000_000 + n),
        "PRIORITY": str(priority),
        "SYSLOG_IDENTIFIER": "app",
        "MESSAGE": message or f"entry {n}",
        "_SYSTEMD_UNIT": unit,
        "_HOSTNAME": "host1",
        "_PID": "1234",
        "_UID": "1000",
        "_GID": "1000",
    }
