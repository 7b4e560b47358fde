"""A captured line of output and the instant it was read."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

__all__ = ["TimestampedLine"]


@dataclass(frozen=True)
class TimestampedLine:
    """Immutable line of process output.

    Attributes:
        text: Line text, including the trailing newline when one was read
        observed_at: Wall-clock time the reader saw the line
    """

    text: str
    observed_at: datetime = field(default_factory=datetime.now)

    def matches(self, pattern: str | re.Pattern[str]) -> bool:
        """Return True if ``pattern`` is found anywhere in the text."""
        return re.search(pattern, self.text) is not None

    def __str__(self) -> str:
        return self.text
