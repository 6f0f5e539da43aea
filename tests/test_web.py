import json

import pytest

from helpers import make_entry
from journal_sse.config import Config
from journal_sse.web import create_app

MISSING = "/nonexistent/journalctl"


@pytest.fixture
def missing_client():
    app = create_app(Config(journalctl_path=MISSING))
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture
def journal_client(fake_journal):
    config = Config(journalctl_path=fake_journal.path, default_unit="app.service", poll_timeout=0.2)
    app = create_app(config)
    app.config["TESTING"] = True
    return app.test_client()


def _frames(text):
    return [block for block in text.split("\n\n") if block]


def _field(frame, name):
    for line in frame.split("\n"):
        if line.startswith(f"{name}: "):
            return line[len(name) + 2:]
    return None


class TestHealthEndpoint:
    def test_reports_journalctl_path(self, journal_client, fake_journal):
        resp = journal_client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "journalctl": fake_journal.path}

    def test_missing_journalctl(self, missing_client):
        data = missing_client.get("/health").get_json()
        assert data["status"] == "ok"
        assert data["journalctl"] is None


class TestStreamEndpoint:
    def test_missing_tool_ends_with_one_event(self, missing_client):
        resp = missing_client.get("/stream")
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"
        assert resp.headers["Cache-Control"] == "no-cache, no-transform"
        assert resp.headers["X-Accel-Buffering"] == "no"

        frames = _frames(resp.get_data(as_text=True))
        assert len(frames) == 1
        assert _field(frames[0], "event") == "internal"
        assert _field(frames[0], "id") is None
        payload = json.loads(_field(frames[0], "data"))
        assert payload["type"] == "internal"
        assert payload["PRIORITY"] == "3"
        assert payload["MESSAGE"] == "journalctl not found in PATH"
        assert payload["__CURSOR"] is None

    def test_replay_frames(self, journal_client, fake_journal):
        fake_journal.append(*(make_entry(i) for i in range(1, 4)))
        resp = journal_client.get("/stream?backlog=2")
        received = ""
        try:
            for chunk in resp.response:
                received += chunk.decode("utf-8") if isinstance(chunk, bytes) else chunk
                if "event: playback_end" in received:
                    break
        finally:
            resp.close()

        frames = _frames(received)
        events = [_field(f, "event") for f in frames]
        assert events[0] == "internal"
        assert events[1] == "playback_start"
        assert events[-1] == "playback_end"

        journal = [f for f in frames if _field(f, "event") == "journal"]
        assert [_field(f, "id") for f in journal] == ["s%3Dabc%3Bi%3D2", "s%3Dabc%3Bi%3D3"]
        payload = json.loads(_field(journal[0], "data"))
        assert payload["playback"] is True
        assert payload["MESSAGE"] == "entry 2"
        assert payload["_SYSTEMD_UNIT"] == "app.service"

    def test_last_event_id_resumes(self, journal_client, fake_journal):
        fake_journal.append(*(make_entry(i) for i in range(1, 4)))
        resp = journal_client.get(
            "/stream?backlog=10", headers={"Last-Event-ID": "s%3Dabc%3Bi%3D2"},
        )
        received = ""
        try:
            for chunk in resp.response:
                received += chunk.decode("utf-8") if isinstance(chunk, bytes) else chunk
                if "event: playback_end" in received:
                    break
        finally:
            resp.close()

        ids = [_field(f, "id") for f in _frames(received) if _field(f, "event") == "journal"]
        assert ids == ["s%3Dabc%3Bi%3D3"]


class TestStatsEndpoint:
    def test_counts_after_stream(self, missing_client):
        missing_client.get("/stream").get_data()
        data = missing_client.get("/stats").get_json()
        assert data["total_connections"] == 1
        assert data["active_connections"] == 0
        assert data["events"] == {"internal": 1}
        assert data["events_total"] == 1
        assert data["reader_spawns"] == 0
