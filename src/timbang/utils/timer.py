"""Wall-clock timing of named run sections."""

import time
from contextlib import contextmanager
from typing import Dict


class Timer:
    """
    Accumulating section timer.

    Example:
        >>> timer = Timer()
        >>> with timer.time_section("mapping"):
        ...     mapper.interpolate(target, source)
        >>> timer.get_times()["mapping"]
    """

    def __init__(self):
        self.times: Dict[str, float] = {}
        self._starts: Dict[str, float] = {}

    def start(self, name: str):
        self._starts[name] = time.perf_counter()

    def stop(self, name: str) -> float:
        """Stop a section and return its elapsed time [s]."""
        if name not in self._starts:
            raise KeyError(f"Timer section '{name}' was never started")

        elapsed = time.perf_counter() - self._starts.pop(name)
        self.times[name] = self.times.get(name, 0.0) + elapsed
        return elapsed

    @contextmanager
    def time_section(self, name: str):
        self.start(name)
        try:
            yield
        finally:
            self.stop(name)

    def get_times(self) -> Dict[str, float]:
        return dict(self.times)
