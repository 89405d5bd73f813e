"""Wall-clock profiling for the hourly SOFA pipeline.

Provides:
- StepTimer: Collects per-step timings via a context manager
- NoOpTimer: Drop-in replacement when profiling is off
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class StepTimer:
    """Collects per-step wall-clock timing measurements.

    Safe to share between batch worker threads.

    Usage:
        timer = StepTimer()
        with timer.step("score_batches"):
            frames = _run_batches(...)
        print(timer.report(n_stays=1000))
    """

    results: list[dict] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @contextmanager
    def step(self, name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self.results.append({'step': name, 'elapsed_s': elapsed})

    @property
    def total(self) -> float:
        return sum(r['elapsed_s'] for r in self.results)

    def summary(self) -> dict:
        """Elapsed seconds and call count per step name, in first-seen order."""
        with self._lock:
            results = list(self.results)
        steps = {}
        for r in results:
            entry = steps.setdefault(r['step'], {'elapsed_s': 0.0, 'calls': 0})
            entry['elapsed_s'] += r['elapsed_s']
            entry['calls'] += 1
        return steps

    def report(self, n_stays: int | None = None) -> str:
        steps = self.summary()
        total = sum(s['elapsed_s'] for s in steps.values())
        lines = [f"{'Step':<30} {'Calls':>6} {'Time (s)':>10} {'Share':>7}"]
        for name, s in steps.items():
            share = s['elapsed_s'] / total if total > 0 else 0.0
            lines.append(f"{name:<30} {s['calls']:>6} {s['elapsed_s']:>10.3f} {share:>7.1%}")
        lines.append(f"{'total':<30} {'':>6} {total:>10.3f}")
        if n_stays:
            lines.append(f"{total / n_stays * 1000:.2f} ms per stay ({n_stays} stays)")
        return "\n".join(lines)


class NoOpTimer:
    """No-op timer used when profiling is off."""

    def __init__(self):
        self.results = []

    @contextmanager
    def step(self, name: str):
        yield

    @property
    def total(self) -> float:
        return 0.0

    def summary(self) -> dict:
        return {}

    def report(self, n_stays: int | None = None) -> str:
        return ""
