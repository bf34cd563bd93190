"""A STREAM memory bandwidth benchmark over numpy arrays."""

from __future__ import annotations

import itertools
import math
import time
from dataclasses import dataclass

import numpy as np

NTIMES = 10
OFFSET = 0
STREAM_NAMES = ("Copy", "Scale", "Add", "Triad")

_LABELS = ("Copy:      ", "Scale:     ", "Add:       ", "Triad:     ")
_HLINE = "-" * 61
_WORD = np.dtype(np.float64).itemsize
_TICK_SAMPLES = 20
_SCALAR = 3.0

_now = time.perf_counter


@dataclass(frozen=True)
class StreamResult:
    """Outcome of one STREAM kernel: best rate in MB/s and timings in seconds."""

    name: str
    rate: float
    rms_time: float
    min_time: float
    max_time: float


def check_tick() -> int:
    """Estimate the clock granularity in microseconds."""
    found = []
    for _ in range(_TICK_SAMPLES):
        start = _now()
        while (stamp := _now()) - start < 1.0e-6:
            pass
        found.append(stamp)
    deltas = (max(int(1.0e6 * (b - a)), 0) for a, b in itertools.pairwise(found))
    return min(1_000_000, min(deltas))


class StreamBenchmark:
    """Copy, Scale, Add and Triad kernels over three arrays filling ``size`` bytes."""

    def __init__(self, size: int, verbose: bool = True):
        n = (size - OFFSET) // (3 * _WORD)
        if n < 1:
            raise ValueError(f"{size} bytes cannot hold the benchmark arrays")
        self.n = n
        self.verbose = verbose
        self.a = np.empty(n + OFFSET, dtype=np.float64)
        self.b = np.empty(n + OFFSET, dtype=np.float64)
        self.c = np.empty(n + OFFSET, dtype=np.float64)
        self._bytes = (2 * _WORD * n, 2 * _WORD * n, 3 * _WORD * n, 3 * _WORD * n)
        self.check()

    def memsize(self) -> int:
        """Bytes used by the three arrays."""
        return 3 * _WORD * (self.n + OFFSET)

    def _say(self, text: str) -> None:
        if self.verbose:
            print(text)

    def check(self) -> int:
        """Initialise the arrays, report the timer granularity and return it."""
        self._say(_HLINE)
        self._say(f"This system uses {_WORD} bytes per DOUBLE PRECISION word.")
        self._say(_HLINE)
        self._say(f"Array size = {self.n}, Offset = {OFFSET}")
        self._say(f"Total memory required = {(3 * self.n * _WORD) / 1048576.0:.1f} MB.")
        self._say(f"Each test is run {NTIMES} times, but only")
        self._say("the *best* time for each is used.")

        self.a.fill(1.0)
        self.b.fill(2.0)
        self.c.fill(0.0)

        self._say(_HLINE)
        quantum = check_tick()
        if quantum >= 1:
            self._say(f"Your clock granularity/precision appears to be {quantum} microseconds.")
        else:
            self._say("Your clock granularity appears to be less than one microsecond.")

        start = _now()
        np.multiply(self.a, 2.0, out=self.a)
        elapsed = 1.0e6 * (_now() - start)

        self._say(f"Each test below will take on the order of {int(elapsed)} microseconds.")
        self._say(f"   (= {int(elapsed / quantum) if quantum else int(elapsed)} clock ticks)")
        self._say("Increase the size of the arrays if this shows that")
        self._say("you are not getting at least 20 clock ticks per test.")
        self._say(_HLINE)
        self._say("WARNING -- The above is only a rough guideline.")
        self._say("For best results, please be sure you know the")
        self._say("precision of your system timer.")
        self._say(_HLINE)
        return quantum

    def _kernels(self):
        a, b, c = self.a, self.b, self.c

        def copy():
            np.copyto(c, a)

        def scale():
            np.multiply(c, _SCALAR, out=b)

        def add():
            np.add(a, b, out=c)

        def triad():
            np.multiply(c, _SCALAR, out=a)
            np.add(a, b, out=a)

        return (copy, scale, add, triad)

    def run(self) -> list[StreamResult]:
        """Run every kernel ``NTIMES`` times and return one result per kernel."""
        kernels = self._kernels()
        times: list[list[float]] = [[] for _ in kernels]
        for _ in range(NTIMES):
            for kernel, samples in zip(kernels, times):
                start = _now()
                kernel()
                samples.append(_now() - start)

        self._say("Function      Rate (MB/s)   RMS time     Min time     Max time")
        results = []
        for name, label, nbytes, samples in zip(STREAM_NAMES, _LABELS, self._bytes, times):
            min_time = min(samples)
            max_time = max(samples)
            rms_time = math.sqrt(sum(t * t for t in samples) / NTIMES)
            rate = 1.0e-6 * nbytes / min_time if min_time > 0 else math.inf
            self._say(f"{label}{rate:11.4f}  {rms_time:11.4f}  {min_time:11.4f}  {max_time:11.4f}")
            results.append(StreamResult(name, rate, rms_time, min_time, max_time))
        return results