"""
Client-side request metrics with Prometheus-compatible exposition.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

PREFIX = "acme_client_"


class MetricsCollector:
    """
    Counters plus request-latency summaries, exported in Prometheus text format.

    Counters: requests_total, retries_total, rate_limited_total,
    request_errors_total. Summaries: request_duration_seconds.
    """

    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._summaries: dict[str, list[float]] = defaultdict(lambda: [0, 0.0])
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1) -> None:
        self._counters[f"{PREFIX}{name}"] += value

    def observe(self, name: str, seconds: float) -> None:
        """Record one observation in a count/sum summary."""
        summary = self._summaries[f"{PREFIX}{name}"]
        summary[0] += 1
        summary[1] += seconds

    def get(self, name: str) -> int:
        return self._counters.get(f"{PREFIX}{name}", 0)

    def count(self, name: str) -> int:
        """Number of observations recorded for a summary."""
        summary = self._summaries.get(f"{PREFIX}{name}")
        return int(summary[0]) if summary else 0

    def to_prometheus(self) -> str:
        lines = []
        for name, value in sorted(self._counters.items()):
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
        for name, (count, total) in sorted(self._summaries.items()):
            lines.append(f"# TYPE {name} summary")
            lines.append(f"{name}_count {count}")
            lines.append(f"{name}_sum {total:.6f}")
        uptime = time.time() - self._start_time
        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": dict(self._counters),
            "summaries": {
                name: {"count": count, "sum": total}
                for name, (count, total) in self._summaries.items()
            },
            "uptime_seconds": time.time() - self._start_time,
        }
