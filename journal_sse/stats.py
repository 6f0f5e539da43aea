"""Thread-safe counters for the /stats endpoint."""

import threading
import time


class StreamStats:
    """Counters shared by all connections of one server."""

    def __init__(self):
        self._lock = threading.Lock()
        self._started = time.monotonic()
        self._active = 0
        self._connections = 0
        self._events: dict[str, int] = {}
        self._spawns = 0
        self._spawn_failures = 0
        self._restarts = 0

    def connection_opened(self):
        with self._lock:
            self._active += 1
            self._connections += 1

    def connection_closed(self):
        with self._lock:
            self._active = max(0, self._active - 1)

    def record_event(self, event):
        with self._lock:
            self._events[event.event_type] = self._events.get(event.event_type, 0) + 1

    def record_spawn(self):
        with self._lock:
            self._spawns += 1

    def record_spawn_failure(self):
        with self._lock:
            self._spawn_failures += 1

    def record_restart(self):
        with self._lock:
            self._restarts += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "active_connections": self._active,
                "total_connections": self._connections,
                "events": dict(self._events),
                "events_total": sum(self._events.values()),
                "reader_spawns": self._spawns,
                "spawn_failures": self._spawn_failures,
                "follow_restarts": self._restarts,
                "uptime_seconds": round(time.monotonic() - self._started, 1),
            }
