"""
Observability helpers: stage timers that report through loguru.
"""
from __future__ import annotations

import time
from dataclasses import dataclass

from loguru import logger


@dataclass
class Timer:
    """Context manager measuring a stage in milliseconds and logging it at debug level."""

    name: str
    start: float = 0.0
    duration_ms: float = 0.0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start) * 1000.0
        status = "failed" if exc_type is not None else "completed"
        logger.debug("{stage} {status} in {ms:.2f}ms", stage=self.name, status=status, ms=self.duration_ms)
