"""
Kernel time accumulation.

Only the span between enqueue and queue drain of a launch is counted. Time
spent between launches (transfers, host work, sleeping) never reaches the
accumulator, and nothing resets it during a session's lifetime.
"""

import time
from contextlib import contextmanager
from typing import Callable, Iterator

_MSEC_PER_MIN = 60000
_MSEC_PER_SEC = 1000


def format_kernel_time(total_ms: float) -> str:
    """
    Format accumulated kernel time the way the report prints it.

    From one minute up: minutes, seconds and milliseconds. From one second up:
    seconds and milliseconds. Otherwise milliseconds only.
    """
    minutes = int(total_ms) // _MSEC_PER_MIN
    seconds = int(total_ms - minutes * _MSEC_PER_MIN) // _MSEC_PER_SEC
    msec = total_ms - minutes * _MSEC_PER_MIN - seconds * _MSEC_PER_SEC

    prefix = "total time spent in kernel executions:"
    if minutes:
        return f"{prefix} {minutes} min {seconds} sec {msec:f} msec"
    if seconds:
        return f"{prefix} {seconds} sec {msec:f} msec"
    return f"{prefix} {msec:f} msec"


class KernelTimer:
    """
    Monotonic accumulator of kernel execution time in milliseconds.

    Args:
        clock: Seconds-valued clock, time.perf_counter by default
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._total_ms = 0.0
        self._last_ms = 0.0
        self._launches = 0

    @property
    def total_ms(self) -> float:
        return self._total_ms

    @property
    def launches(self) -> int:
        return self._launches

    @property
    def last_ms(self) -> float:
        """Duration of the most recent measured block."""
        return self._last_ms

    @contextmanager
    def measure(self) -> Iterator[None]:
        """Add the wall time of the enclosed block, even if it raises."""
        start = self._clock()
        try:
            yield
        finally:
            elapsed_ms = (self._clock() - start) * 1000.0
            self._total_ms += elapsed_ms
            self._last_ms = elapsed_ms
            self._launches += 1

    def report(self) -> str:
        return format_kernel_time(self._total_ms)
