"""Timing helpers for per-stage decision latency."""

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import Callable, Dict


class StageTimer:
    """Accumulates wall-clock milliseconds per named pipeline stage."""

    def __init__(self) -> None:
        self._times: Dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        """
        Time a block and add the elapsed milliseconds to ``name``.

        Args:
            name: Stage name, e.g. ``"CLASSIFYING"``
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._times[name] = self._times.get(name, 0.0) + elapsed_ms

    def as_dict(self) -> Dict[str, float]:
        return {name: round(ms, 3) for name, ms in self._times.items()}

    @property
    def total_ms(self) -> float:
        return round(sum(self._times.values()), 3)


@contextmanager
def timer() -> Generator[Callable[[], float], None, None]:
    """A context manager yielding a function that returns elapsed milliseconds."""
    start_time = time.perf_counter()
    yield lambda: (time.perf_counter() - start_time) * 1000
