"""Thread-backed capture of one output stream.

A ``LineLog`` owns the read end of a pipe. A daemon thread decodes it line by
line into ``TimestampedLine`` records and appends them to a lock-protected
buffer. Foreground callers can snapshot or drain the buffer, or block until a
line matches a pattern.

Key design points:
- Every access to the buffer and the eof flag goes through one lock
- The lock is never held while reading from the pipe or sleeping
- Read errors end the stream; the reader thread never raises
"""

from __future__ import annotations

import logging
import re
import sys
import threading
import time
from collections.abc import Iterable
from typing import BinaryIO

from ..config import get_config
from ..errors import OutputEOFError, OutputTimeoutError
from .timestamped_line import TimestampedLine

__all__ = ["LineLog"]

logger = logging.getLogger(__name__)


class LineLog:
    """Buffer of timestamped lines fed by a background reader thread.

    The reader starts as soon as the log is constructed.

    Example:
        log = LineLog(popen.stdout, name="out")
        log.wait_for_pattern(r"listening on \\d+", timeout=10)
        lines = log.drain()
    """

    def __init__(
        self,
        stream: BinaryIO,
        *,
        prefill: Iterable[TimestampedLine] = (),
        echo: bool | None = None,
        poll_interval: float | None = None,
        name: str = "out",
    ) -> None:
        """Start capturing ``stream``.

        Args:
            stream: Readable binary stream, usually a pipe read end
            prefill: Lines captured before this log existed
            echo: Write each line to sys.stdout as it arrives
                (default from config)
            poll_interval: Default poll interval for wait_for_pattern
                (default from config)
            name: Stream label used for the thread name and logging
        """
        config = get_config()
        self.name = name
        self.echo = echo if echo is not None else config.echo
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.poll_interval
        )

        self._stream = stream
        self._lines: list[TimestampedLine] = list(prefill)
        self._lock = threading.Lock()
        self._eof = False
        self._thread: threading.Thread | None = threading.Thread(
            target=self._read_lines,
            name=f"line-log-{name}",
            daemon=True,
        )
        self._thread.start()

    # ------------------------------------------------------------------
    # Reader
    # ------------------------------------------------------------------

    def _read_lines(self) -> None:
        count = 0
        try:
            for raw in iter(self._stream.readline, b""):
                line = TimestampedLine(raw.decode("utf-8", errors="replace"))
                if self.echo:
                    self._echo(line.text)
                with self._lock:
                    self._lines.append(line)
                count += 1
        except (OSError, ValueError) as e:
            logger.debug(f"Read error on {self.name} stream, treating as EOF: {e}")
        finally:
            with self._lock:
                self._eof = True
            try:
                self._stream.close()
            except OSError:
                pass
            logger.debug(f"Reader for {self.name} stream finished lines={count}")

    @staticmethod
    def _echo(text: str) -> None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
        sys.stdout.flush()

    # ------------------------------------------------------------------
    # Buffer access
    # ------------------------------------------------------------------

    @property
    def eof(self) -> bool:
        """True once the stream has ended."""
        with self._lock:
            return self._eof

    @property
    def is_running(self) -> bool:
        """True while the reader thread is alive."""
        thread = self._thread
        return thread is not None and thread.is_alive()

    def snapshot(self) -> list[TimestampedLine]:
        """Return a copy of the buffered lines."""
        with self._lock:
            return list(self._lines)

    def drain(self) -> list[TimestampedLine]:
        """Return the buffered lines and empty the buffer."""
        with self._lock:
            lines = self._lines
            self._lines = []
        return lines

    def text(self) -> str:
        """Return the buffered lines joined into one string."""
        with self._lock:
            return "".join(line.text for line in self._lines)

    def __str__(self) -> str:
        return self.text()

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)

    # ------------------------------------------------------------------
    # Waiting
    # ------------------------------------------------------------------

    def wait_for_completion(self, timeout: float | None = None) -> LineLog:
        """Block until the reader thread has finished.

        Calling this again after the reader has finished returns at once.
        Only one thread should own the join.

        Args:
            timeout: Optional join timeout in seconds

        Returns:
            self
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if not thread.is_alive():
                self._thread = None
        return self

    def wait_for_pattern(
        self,
        pattern: str | re.Pattern[str],
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> TimestampedLine:
        """Block until a buffered line matches ``pattern``.

        Each tick checks for a match, sleeps, then checks the timeout and
        finally whether the stream ended without a match. The match is
        re-checked before giving up on EOF so a line that arrived together
        with end-of-stream still counts.

        Args:
            pattern: Regex (string or compiled), searched in each line
            timeout: Seconds to wait (default from config, 30)
            poll_interval: Seconds between checks (default: this log's)

        Returns:
            The first matching line in the buffer

        Raises:
            OutputTimeoutError: The timeout elapsed without a match
            OutputEOFError: The stream ended without a match
        """
        if timeout is None:
            timeout = get_config().wait_timeout
        if poll_interval is None:
            poll_interval = self.poll_interval

        regex = re.compile(pattern)
        deadline = time.monotonic() + timeout

        match = self._first_match(regex)
        while match is None:
            time.sleep(poll_interval)
            if time.monotonic() > deadline:
                raise OutputTimeoutError(pattern, timeout)
            if self.eof:
                match = self._first_match(regex)
                if match is None:
                    raise OutputEOFError(pattern)
            else:
                match = self._first_match(regex)
        return match

    def _first_match(self, regex: re.Pattern[str]) -> TimestampedLine | None:
        for line in self.snapshot():
            if regex.search(line.text):
                return line
        return None
