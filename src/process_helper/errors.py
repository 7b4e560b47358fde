"""Exceptions raised by process-helper.

All of these are raised synchronously to the caller of the operation that
detected them. The background readers never raise.
"""

from __future__ import annotations

import re

__all__ = [
    "ProcessHelperError",
    "OutputTimeoutError",
    "OutputEOFError",
    "UnknownStreamError",
    "NoLiveProcessError",
    "SessionAlreadyRunningError",
]


def _pattern_text(pattern: str | re.Pattern[str]) -> str:
    if isinstance(pattern, re.Pattern):
        return pattern.pattern
    return pattern


class ProcessHelperError(Exception):
    """Base class for process-helper errors."""
    pass


class OutputTimeoutError(ProcessHelperError, TimeoutError):
    """No line matched before the wait timed out.

    The process keeps running.

    Attributes:
        pattern: The pattern that was awaited
        timeout: The timeout in seconds
    """

    def __init__(self, pattern: str | re.Pattern[str], timeout: float) -> None:
        self.pattern = pattern
        self.timeout = timeout
        super().__init__(
            f"Timeout of {timeout} seconds exceeded while waiting for output "
            f"that matches '{_pattern_text(pattern)}'"
        )


class OutputEOFError(ProcessHelperError, EOFError):
    """The stream ended before any line matched.

    Attributes:
        pattern: The pattern that was awaited
    """

    def __init__(self, pattern: str | re.Pattern[str]) -> None:
        self.pattern = pattern
        super().__init__(
            f"EOF encountered while waiting for output that matches "
            f"'{_pattern_text(pattern)}'"
        )


class UnknownStreamError(ProcessHelperError, ValueError):
    """A stream name other than ``out`` or ``err`` was requested."""

    def __init__(self, which: object) -> None:
        self.which = which
        super().__init__(f"Unknown log '{which}'")


class NoLiveProcessError(ProcessHelperError, RuntimeError):
    """The session has no live process (never started, or already reaped)."""
    pass


class SessionAlreadyRunningError(ProcessHelperError, RuntimeError):
    """``start`` was called while the previous process is still live.

    Attributes:
        pid: Process id of the live process
    """

    def __init__(self, pid: int) -> None:
        self.pid = pid
        super().__init__(f"Session already has a live process pid={pid}")
