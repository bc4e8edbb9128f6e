"""Per-phase timing for drift simulations.

Off by default; a disabled monitor's ``track`` is a bare yield.

Usage:
    perf = PerfMonitor(enabled=True)
    result = sim_drift(..., perf=perf)
    print(perf.report())
"""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict


@dataclass
class PhaseStats:
    """Accumulated wall-clock time of one simulation phase."""
    total_time: float = 0.0
    call_count: int = 0
    max_time: float = 0.0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0


class PerfMonitor:
    """Wall-clock accounting per named simulation phase."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, PhaseStats] = defaultdict(PhaseStats)

    @contextmanager
    def track(self, phase: str):
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - t0
            stats = self._stats[phase]
            stats.total_time += elapsed
            stats.call_count += 1
            stats.max_time = max(stats.max_time, elapsed)

    def summary(self) -> dict:
        """{phase: {'total_s', 'calls', 'mean_ms'}} for JSON output."""
        return {
            name: {
                'total_s': round(stats.total_time, 4),
                'calls': stats.call_count,
                'mean_ms': round(stats.mean_time * 1000, 3),
            }
            for name, stats in self._stats.items()
        }

    def report(self, title: str = "Phase timings") -> str:
        """Fixed-width table, slowest phase first."""
        total = sum(s.total_time for s in self._stats.values())
        lines = [
            title,
            f"{'Phase':<12} {'Total (s)':>10} {'Calls':>6} {'Mean (ms)':>10} {'%':>6}",
        ]
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            pct = (stats.total_time / total * 100) if total > 0 else 0.0
            lines.append(
                f"{name:<12} {stats.total_time:>10.4f} {stats.call_count:>6} "
                f"{stats.mean_time * 1000:>10.3f} {pct:>5.1f}%"
            )
        lines.append(f"{'TOTAL':<12} {total:>10.4f}")
        return '\n'.join(lines)
