"""Spawning, liveness checking and teardown of the journalctl reader."""

import logging
import os
import shutil
import subprocess
import time

from journal_sse.errors import SourceToolMissing, SpawnError

logger = logging.getLogger(__name__)

STDOUT = "stdout"
STDERR = "stderr"

READ_SIZE = 65536


class ProcessHandle:
    """A running reader process and its two readable, non-blocking pipes.

    The open flags are tracked per pipe, independently of process liveness:
    a pipe at EOF stays "readable" forever under select(), so it has to be
    closed and dropped from the read set once EOF is seen.
    """

    def __init__(self, process: subprocess.Popen, argv: list[str]):
        self.process = process
        self.argv = argv
        self._pipes = {STDOUT: process.stdout, STDERR: process.stderr}
        self._open = {STDOUT: True, STDERR: True}
        self._prefetched = b""
        self.closed = False

        for pipe in self._pipes.values():
            os.set_blocking(pipe.fileno(), False)

    @property
    def pid(self) -> int:
        return self.process.pid

    def poll(self) -> int | None:
        return self.process.poll()

    @property
    def running(self) -> bool:
        return self.process.poll() is None

    def is_open(self, stream: str) -> bool:
        return self._open[stream]

    def open_pipes(self) -> list:
        return [self._pipes[s] for s in (STDOUT, STDERR) if self._open[s]]

    def stream_of(self, pipe) -> str:
        return STDERR if pipe is self._pipes[STDERR] else STDOUT

    def read(self, stream: str) -> tuple[bytes, bool]:
        """Read what is available without blocking. Returns (data, reached_eof)."""
        if not self._open[stream]:
            return b"", True
        try:
            chunk = os.read(self._pipes[stream].fileno(), READ_SIZE)
        except BlockingIOError:
            return b"", False
        if not chunk:
            self.close_pipe(stream)
            return b"", True
        return chunk, False

    def read_available(self, stream: str) -> tuple[bytes, bool]:
        """Read repeatedly until the pipe would block or reaches EOF."""
        data = b""
        while True:
            chunk, eof = self.read(stream)
            data += chunk
            if eof or not chunk:
                return data, eof

    def close_pipe(self, stream: str):
        if self._open[stream]:
            self._open[stream] = False
            self._pipes[stream].close()

    def prefetch(self, data: bytes):
        self._prefetched += data

    def take_prefetched(self) -> bytes:
        data, self._prefetched = self._prefetched, b""
        return data

    def close(self):
        """Close all pipes and reap the (already exited) process."""
        if self.closed:
            return
        for stream in (STDOUT, STDERR):
            self.close_pipe(stream)
        if self.process.stdin:
            self.process.stdin.close()
        self.process.wait()
        self.closed = True


class ProcessSupervisor:
    """Owns the lifecycle of one reader process at a time."""

    def __init__(self, grace: float = 0.15, kill_timeout: float = 2.0, sleep=time.sleep):
        self._grace = grace
        self._kill_timeout = kill_timeout
        self._sleep = sleep

    @staticmethod
    def locate(configured_path: str | None = None) -> str:
        """Find the journalctl executable, or raise SourceToolMissing."""
        if configured_path:
            if os.path.isfile(configured_path) and os.access(configured_path, os.X_OK):
                return configured_path
            found = shutil.which(configured_path)
        else:
            found = shutil.which("journalctl")
        if not found:
            raise SourceToolMissing("journalctl not found in PATH")
        return found

    def spawn(self, argv: list[str], allow_empty: bool = False) -> ProcessHandle:
        """Start *argv* and make sure it survived the grace period.

        A process that already exited without writing anything to stdout is
        reported as a SpawnError carrying its stderr: bad arguments or missing
        permissions look exactly like that. A process that exited after
        producing output (a short replay) is handed back with that output
        prefetched.

        With *allow_empty*, a clean exit (status 0, nothing on stderr) is not a
        failure either: a bounded query with nothing to report ends that way.
        """
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                bufsize=0,
            )
        except FileNotFoundError:
            raise SourceToolMissing(f"{argv[0]} not found") from None
        except OSError as e:
            raise SpawnError(f"failed to start {argv[0]}: {e}") from e

        handle = ProcessHandle(process, argv)
        logger.info("Started %s (pid %d)", os.path.basename(argv[0]), handle.pid)

        self._sleep(self._grace)
        if handle.running:
            return handle

        output, _ = handle.read_available(STDOUT)
        if output:
            handle.prefetch(output)
            return handle

        err, _ = handle.read_available(STDERR)
        diagnostic = err.decode("utf-8", errors="replace").strip()
        if allow_empty and not diagnostic and handle.poll() == 0:
            logger.info("pid %d exited cleanly with no output", handle.pid)
            return handle

        if not diagnostic:
            diagnostic = "process exited immediately"
        returncode = handle.poll()
        self.terminate(handle)
        logger.warning("pid %d exited during startup (code %s): %s",
                       handle.pid, returncode, diagnostic)
        raise SpawnError(diagnostic)

    def terminate(self, handle: ProcessHandle):
        """Close pipes, stop the process if needed, and reap it. Idempotent."""
        if handle.closed:
            return
        if handle.running:
            handle.process.terminate()
            try:
                handle.process.wait(timeout=self._kill_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("pid %d ignored SIGTERM, killing", handle.pid)
                handle.process.kill()
                handle.process.wait()
        handle.close()
        logger.debug("Reaped pid %d (code %s)", handle.pid, handle.poll())
