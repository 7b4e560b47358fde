"""process-helper - run a child process and wait on its output.

Environment variables:
    PH_ECHO: echo captured lines to stdout (default false)
    PH_POLL_INTERVAL: default poll interval for output waits (default 0.25)
    PH_WAIT_TIMEOUT: default timeout for output waits (default 30)

Usage:
    process-helper --wait-for ready -- my-server --port 8080
"""

__version__ = "0.1.0"

from .errors import (
    NoLiveProcessError,
    OutputEOFError,
    OutputTimeoutError,
    ProcessHelperError,
    SessionAlreadyRunningError,
    UnknownStreamError,
)
from .runtime import (
    AsyncProcessSession,
    LineLog,
    ProcessSession,
    Stream,
    TimestampedLine,
)

__all__ = [
    "__version__",
    "AsyncProcessSession",
    "LineLog",
    "NoLiveProcessError",
    "OutputEOFError",
    "OutputTimeoutError",
    "ProcessHelperError",
    "ProcessSession",
    "SessionAlreadyRunningError",
    "Stream",
    "TimestampedLine",
    "UnknownStreamError",
]
