"""Environment variable configuration.

Environment variables:
    PH_ECHO: echo captured lines to this process's stdout
        - true/1/yes = echo
        - false/0/no = capture only (default)

    PH_POLL_INTERVAL: default poll interval (seconds) for pattern waits
        - default 0.25
        - clamped to 0.01-5.0, invalid values fall back to the default

    PH_WAIT_TIMEOUT: default timeout (seconds) for pattern waits
        - default 30
        - must be positive, invalid values fall back to the default

    PH_LOG_DEBUG: CLI debug logging
        - true/1/yes = DEBUG level, written to a temp file
        - false/0/no = INFO level on stderr (default)

Explicit arguments passed to ``ProcessSession``/``LineLog`` always take
precedence over these values.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "DEFAULT_POLL_INTERVAL",
    "DEFAULT_WAIT_TIMEOUT",
]

DEFAULT_POLL_INTERVAL = 0.25
DEFAULT_WAIT_TIMEOUT = 30.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_poll_interval(value: str | None) -> float:
    if not value:
        return DEFAULT_POLL_INTERVAL
    try:
        interval = float(value)
    except ValueError:
        return DEFAULT_POLL_INTERVAL
    return max(0.01, min(interval, 5.0))


def _parse_wait_timeout(value: str | None) -> float:
    if not value:
        return DEFAULT_WAIT_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        return DEFAULT_WAIT_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_WAIT_TIMEOUT


@dataclass
class Config:
    """process-helper configuration.

    Attributes:
        echo: Echo captured lines to stdout
        poll_interval: Default poll interval for pattern waits (seconds)
        wait_timeout: Default timeout for pattern waits (seconds)
        log_debug: CLI debug logging to a file
        log_file: Debug log path (set automatically when log_debug=True)
    """

    echo: bool = False
    poll_interval: float = DEFAULT_POLL_INTERVAL
    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(echo={self.echo}, "
            f"poll_interval={self.poll_interval}, "
            f"wait_timeout={self.wait_timeout}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "process-helper"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ph_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from the environment."""
    log_debug = _parse_bool(os.environ.get("PH_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        echo=_parse_bool(os.environ.get("PH_ECHO"), default=False),
        poll_interval=_parse_poll_interval(os.environ.get("PH_POLL_INTERVAL")),
        wait_timeout=_parse_wait_timeout(os.environ.get("PH_WAIT_TIMEOUT")),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global instance, loaded lazily
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
