"""Wall-clock implementation of the Clock protocol."""

from __future__ import annotations

import time


class SystemClock:
    """Unix time in whole seconds."""

    def now(self) -> int:
        return int(time.time())
