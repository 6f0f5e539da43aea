import json
import os
import sys
from pathlib import Path

import pytest

from journal_sse.models import JOURNAL, UnifiedEvent

FAKE_JOURNALCTL = Path(__file__).parent / "fake_journalctl.py"


class FakeJournal:
    """A journal fixture file plus an executable fake journalctl."""

    def __init__(self, tmp_path: Path):
        self.file = tmp_path / "journal.jsonl"
        self.file.write_text("")
        self.argv_log = tmp_path / "argv.jsonl"
        self.path = str(tmp_path / "journalctl")
        Path(self.path).write_text(
            f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_JOURNALCTL}" "$@"\n'
        )
        os.chmod(self.path, 0o755)

    def append(self, *entries):
        with open(self.file, "a", encoding="utf-8") as f:
            for entry in entries:
                line = entry if isinstance(entry, str) else json.dumps(entry)
                f.write(line + "\n")

    def calls(self) -> list[list[str]]:
        if not self.argv_log.exists():
            return []
        return [json.loads(line) for line in self.argv_log.read_text().splitlines() if line]


@pytest.fixture
def fake_journal(tmp_path, monkeypatch):
    journal = FakeJournal(tmp_path)
    monkeypatch.setenv("FAKE_JOURNAL", str(journal.file))
    monkeypatch.setenv("FAKE_ARGV_LOG", str(journal.argv_log))
    return journal


@pytest.fixture
def journal_event():
    def _make(cursor="s=abc;i=1", playback=False, message="hello"):
        return UnifiedEvent(
            kind=JOURNAL, playback=playback, message=message,
            timestamp_us=1_700_000_000_000_000, cursor=cursor, priority="6",
        )
    return _make
