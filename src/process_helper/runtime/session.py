"""Process session with line-by-line output capture.

process-helper runtime module

This module provides:
- Child process launch with stdout captured and stderr merged or separate
- Background capture of each stream into a ``LineLog``
- Blocking waits for a startup pattern, arbitrary output, or process exit
- Signal delivery to the child

Key design points:
- Readers are joined before the child is reaped so no output is lost
- Popen closes the parent's copies of the pipe write ends, so each reader
  sees EOF once the child (and anything it handed the pipe to) exits
- ``pid`` is cleared on reap; a reaped session cannot be waited on or killed
"""

from __future__ import annotations

import logging
import os
import re
import signal
import subprocess
import sys
from collections.abc import Mapping, Sequence
from enum import Enum
from types import TracebackType
from typing import BinaryIO, cast

from ..config import get_config
from ..errors import (
    NoLiveProcessError,
    OutputEOFError,
    SessionAlreadyRunningError,
    UnknownStreamError,
)
from .line_log import LineLog
from .timestamped_line import TimestampedLine

__all__ = [
    "ProcessSession",
    "Stream",
    "resolve_signal",
]

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"


class Stream(str, Enum):
    OUT = "out"
    ERR = "err"

    @classmethod
    def parse(cls, which: Stream | str) -> Stream:
        """Parse a stream name, raising UnknownStreamError for anything else."""
        if isinstance(which, cls):
            return which
        try:
            return cls(which)
        except ValueError:
            raise UnknownStreamError(which) from None


def _to_signal(signum: int) -> signal.Signals | int:
    # Realtime signals (SIGRTMIN+n) have no Signals member
    try:
        return signal.Signals(signum)
    except ValueError:
        return signum


def resolve_signal(sig: str | int | signal.Signals) -> signal.Signals | int:
    """Turn ``"TERM"``, ``"SIGTERM"``, ``15`` or ``signal.SIGTERM`` into a signal.

    Numbers without a Signals member (e.g. realtime signals) are returned
    as plain ints.

    Raises:
        ValueError: Unknown signal name, or a negative number
    """
    if isinstance(sig, signal.Signals):
        return sig
    if isinstance(sig, int):
        if sig < 0:
            raise ValueError(f"Unknown signal '{sig}'")
        return _to_signal(sig)
    name = sig.upper()
    if not name.startswith("SIG"):
        name = "SIG" + name
    try:
        return signal.Signals[name]
    except KeyError:
        raise ValueError(f"Unknown signal '{sig}'") from None


class ProcessSession:
    """Handle bundling a child process with its captured output.

    Example:
        session = ProcessSession()
        session.start(["my-server", "--port", "0"], r"listening", wait_timeout=10)
        ...
        session.kill()
        ok = session.wait_for_exit()
        print(session.get_log("out"))

    Attributes:
        pid: Process id while the child is live, None once reaped
        exit_status: Return code after reap (negative signal number when
            the child was killed by a signal)
    """

    def __init__(
        self,
        *,
        echo: bool | None = None,
        poll_interval: float | None = None,
    ) -> None:
        """Create an idle session.

        Args:
            echo: Echo captured lines to stdout (default from config)
            poll_interval: Default poll interval for output waits
                (default from config)
        """
        config = get_config()
        self.echo = echo if echo is not None else config.echo
        self.poll_interval = (
            poll_interval if poll_interval is not None else config.poll_interval
        )

        self.pid: int | None = None
        self.exit_status: int | None = None
        self._process: subprocess.Popen[bytes] | None = None
        self._out_log: LineLog | None = None
        self._err_log: LineLog | None = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """True between start and wait_for_exit."""
        return self.pid is not None

    @property
    def exit_code(self) -> int | None:
        """Exit code of a normally exited child, None otherwise."""
        if self.exit_status is None:
            return None
        if self.exit_status < 0 and not IS_WINDOWS:
            return None
        return self.exit_status

    @property
    def term_signal(self) -> signal.Signals | int | None:
        """Signal that terminated the child, None if it exited normally."""
        # Windows return codes never encode a signal
        if IS_WINDOWS or self.exit_status is None or self.exit_status >= 0:
            return None
        return _to_signal(-self.exit_status)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        command_and_args: Sequence[str] | str,
        output_to_wait_for: str | re.Pattern[str] | None = None,
        wait_timeout: float | None = None,
        env: Mapping[str, str] | None = None,
        *,
        separate_stderr: bool = False,
    ) -> None:
        """Launch the child and start capturing its output.

        Args:
            command_and_args: Executable followed by its arguments, or a
                single executable name
            output_to_wait_for: Block until a stdout line matches this regex
            wait_timeout: Timeout for output_to_wait_for (default from config)
            env: Extra environment variables, merged over os.environ
            separate_stderr: Capture stderr in its own log instead of merging
                it into stdout

        Raises:
            SessionAlreadyRunningError: A previous child has not been reaped
            OutputTimeoutError: The startup pattern did not appear in time
            OutputEOFError: stdout closed before the startup pattern appeared
            OSError: The executable could not be launched
            re.error: output_to_wait_for is not a valid regex
        """
        if self.pid is not None:
            raise SessionAlreadyRunningError(self.pid)

        # Compile before launching so a bad pattern leaves no child behind
        wait_regex = (
            re.compile(output_to_wait_for) if output_to_wait_for is not None else None
        )

        if isinstance(command_and_args, str):
            argv = [command_and_args]
        else:
            argv = list(command_and_args)

        spawn_env = os.environ.copy()
        if env:
            spawn_env.update(env)

        process = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE if separate_stderr else subprocess.STDOUT,
            env=spawn_env,
        )
        self._process = process
        self.pid = process.pid
        self.exit_status = None

        logger.debug(
            f"Started subprocess pid={process.pid} argv={argv[0]} "
            f"separate_stderr={separate_stderr}"
        )

        self._out_log = LineLog(
            cast(BinaryIO, process.stdout),
            echo=self.echo,
            poll_interval=self.poll_interval,
            name="out",
        )
        if separate_stderr:
            self._err_log = LineLog(
                cast(BinaryIO, process.stderr),
                echo=self.echo,
                poll_interval=self.poll_interval,
                name="err",
            )
        else:
            self._err_log = None

        if wait_regex is not None:
            self._out_log.wait_for_pattern(wait_regex, timeout=wait_timeout)

    def wait_for_exit(self) -> bool:
        """Wait for all output, then reap the child.

        Returns:
            True if the child exited with code 0

        Raises:
            NoLiveProcessError: Never started, or already reaped
        """
        process = self._require_process()

        for log in self._logs():
            log.wait_for_completion()

        self.exit_status = process.wait()
        logger.debug(
            f"Subprocess reaped pid={process.pid} returncode={self.exit_status}"
        )

        self.pid = None
        self._process = None
        return self.exit_status == 0

    def kill(self, sig: str | int | signal.Signals = "TERM") -> None:
        """Send ``sig`` to the child.

        This does not unblock a wait in progress; that wait fails with
        OutputEOFError once the child's output closes.

        Raises:
            NoLiveProcessError: Never started, or already reaped
            ValueError: Unknown signal name or negative number
        """
        process = self._require_process()
        signum = resolve_signal(sig)
        process.send_signal(signum)
        logger.debug(f"Sent signal {int(signum)} to pid={process.pid}")

    def _require_process(self) -> subprocess.Popen[bytes]:
        if self.pid is None or self._process is None:
            raise NoLiveProcessError("No live process in this session")
        return self._process

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def get_log(self, which: Stream | str) -> list[TimestampedLine]:
        """Return a copy of the lines captured on ``which`` ("out" or "err").

        "err" is empty when stderr is merged into stdout.
        """
        log = self._get_log(which)
        return log.snapshot() if log is not None else []

    def drain_log(self, which: Stream | str) -> list[TimestampedLine]:
        """Return the lines captured on ``which`` and clear them."""
        log = self._get_log(which)
        return log.drain() if log is not None else []

    def wait_for_output(
        self,
        which: Stream | str,
        pattern: str | re.Pattern[str],
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
    ) -> TimestampedLine:
        """Block until a line on ``which`` matches ``pattern``.

        Raises:
            UnknownStreamError: ``which`` is not "out" or "err"
            OutputTimeoutError: The timeout elapsed without a match
            OutputEOFError: The stream ended (or was never captured)
                without a match
        """
        log = self._get_log(which)
        if log is None:
            raise OutputEOFError(pattern)
        return log.wait_for_pattern(
            pattern, timeout=timeout, poll_interval=poll_interval
        )

    def _get_log(self, which: Stream | str) -> LineLog | None:
        stream = Stream.parse(which)
        if stream is Stream.OUT:
            return self._out_log
        return self._err_log

    def _logs(self) -> list[LineLog]:
        return [log for log in (self._out_log, self._err_log) if log is not None]

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> ProcessSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.pid is None:
            return
        try:
            self.kill()
        except ProcessLookupError:
            pass
        self.wait_for_exit()

    def __repr__(self) -> str:
        return (
            f"ProcessSession(pid={self.pid}, exit_status={self.exit_status}, "
            f"separate_stderr={self._err_log is not None})"
        )
