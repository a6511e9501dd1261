"""Stopwatch used to time long-running workflow steps."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Callable


class Stopwatch:
    """Monotonic stopwatch; usable as a context manager."""

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._started: float | None = None
        self._stopped: float | None = None

    def start(self) -> Stopwatch:
        self._started = self._clock()
        self._stopped = None
        return self

    def stop(self) -> timedelta:
        if self._started is None:
            raise RuntimeError("Stopwatch was never started")
        self._stopped = self._clock()
        return self.elapsed

    @property
    def running(self) -> bool:
        return self._started is not None and self._stopped is None

    @property
    def elapsed(self) -> timedelta:
        if self._started is None:
            return timedelta(0)
        end = self._stopped if self._stopped is not None else self._clock()
        return timedelta(seconds=end - self._started)

    def __enter__(self) -> Stopwatch:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def format_duration(duration: timedelta) -> str:
    """Render a duration as ``1h 02m 03s`` / ``2m 03s`` / ``3.2s``."""

    total = duration.total_seconds()
    if total < 60:
        return f"{total:.1f}s"
    seconds = int(total)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {seconds:02d}s"
    return f"{minutes}m {seconds:02d}s"


__all__ = ["Stopwatch", "format_duration"]
