"""In-process metrics facade for journal counters, gauges and timings."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import DefaultDict, Dict, List, Protocol

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient(Protocol):  # pragma: no cover - interface only
    def increment(self, metric: str, value: int = 1) -> None: ...

    def gauge(self, metric: str, value: float) -> None: ...

    def observe(self, metric: str, seconds: float) -> None: ...


@dataclass
class InMemoryMetricsClient:
    """Thread-safe metrics sink; the sweeper thread and request threads share it."""

    counters: DefaultDict[str, int] = field(default_factory=lambda: defaultdict(int))
    gauges: Dict[str, float] = field(default_factory=dict)
    timings: DefaultDict[str, List[float]] = field(
        default_factory=lambda: defaultdict(list)
    )
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def increment(self, metric: str, value: int = 1) -> None:
        if value == 0:
            return
        with self._lock:
            self.counters[metric] += value
        logger.debug("metrics_increment", extra={"metric": metric, "value": value})

    def gauge(self, metric: str, value: float) -> None:
        with self._lock:
            self.gauges[metric] = value

    def observe(self, metric: str, seconds: float) -> None:
        with self._lock:
            self.timings[metric].append(seconds)
        logger.debug(
            "metrics_observe", extra={"metric": metric, "seconds": round(seconds, 6)}
        )

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {
                "counters": dict(self.counters),
                "gauges": dict(self.gauges),
                "timings": {
                    name: sum(values) / len(values)
                    for name, values in self.timings.items()
                    if values
                },
            }


_metrics_singleton: InMemoryMetricsClient | None = None


def get_metrics_client() -> InMemoryMetricsClient:
    """Return the shared metrics client."""

    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = InMemoryMetricsClient()
    return _metrics_singleton
