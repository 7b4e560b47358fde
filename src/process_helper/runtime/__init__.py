"""Runtime module for child processes and their captured output.

This module provides the thread-backed line capture (``LineLog``), the
caller-facing ``ProcessSession`` and its anyio facade.
"""

from __future__ import annotations

from .aio import AsyncProcessSession
from .line_log import LineLog
from .session import ProcessSession, Stream
from .timestamped_line import TimestampedLine

__all__ = [
    "AsyncProcessSession",
    "LineLog",
    "ProcessSession",
    "Stream",
    "TimestampedLine",
]
