"""Clock protocol - source of the monotonically increasing timestamp."""

from __future__ import annotations

from typing import Protocol


class Clock(Protocol):
    """Supplies the current time for time-locked operations."""

    def now(self) -> int:
        """Current unix time in seconds."""
        ...
