"""Exceptions raised by the journal bridge."""


class BridgeError(Exception):
    """Base class for bridge failures."""


class SourceToolMissing(BridgeError):
    """journalctl could not be found; the stream cannot continue."""


class SpawnError(BridgeError):
    """The reader process died before producing any output."""

    def __init__(self, diagnostic: str):
        super().__init__(diagnostic)
        self.diagnostic = diagnostic


class MalformedEntry(BridgeError):
    """A line from the reader did not parse as a journal record."""

    def __init__(self, line: str):
        super().__init__(line)
        self.line = line
