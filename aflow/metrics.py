"""Prometheus-style labelled counters and histograms for aflow."""

from __future__ import annotations

import math
import threading
from bisect import bisect_left
from typing import Sequence

NAMESPACE = "aflow"

DEFAULT_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


class _LabelledMetric:
    """Shared label handling for metric vectors."""

    def __init__(self, name: str, help: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.help = help
        self.label_names = tuple(label_names)
        self._lock = threading.Lock()

    def _key(self, values: Sequence[str]) -> tuple[str, ...]:
        if len(values) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(values)}"
            )
        for value in values:
            if not isinstance(value, str):
                raise TypeError(f"{self.name}: label values must be strings, got {value!r}")
        return tuple(values)


class CounterVec(_LabelledMetric):
    """A monotonically increasing counter partitioned by label values."""

    def __init__(self, name: str, help: str, label_names: Sequence[str]) -> None:
        super().__init__(name, help, label_names)
        self._values: dict[tuple[str, ...], int] = {}

    def inc(self, *args: str) -> None:
        """Add one to the series named by the label values."""
        key = self._key(args)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + 1

    def value(self, *args: str) -> int:
        """Return the current count of the series (zero if never incremented)."""
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0)


class _Series:
    __slots__ = ("counts", "total", "count")

    def __init__(self, size: int) -> None:
        self.counts = [0] * size
        self.total = 0.0
        self.count = 0


class HistogramVec(_LabelledMetric):
    """A histogram of observations partitioned by label values.

    An observation falls into the first bucket whose upper bound is greater
    than or equal to it; an implicit ``+Inf`` bucket catches the rest.
    """

    def __init__(
        self,
        name: str,
        help: str,
        label_names: Sequence[str],
        buckets: Sequence[float] = DEFAULT_BUCKETS,
    ) -> None:
        super().__init__(name, help, label_names)
        bounds = tuple(float(bound) for bound in buckets if not math.isinf(bound))
        if any(lower >= upper for lower, upper in zip(bounds, bounds[1:])):
            raise ValueError(f"{name}: histogram buckets must be in strictly increasing order")
        self.buckets = bounds
        self._series: dict[tuple[str, ...], _Series] = {}

    def observe(self, labels: Sequence[str], value: float) -> None:
        """Record ``value`` in the series named by ``labels``."""
        if isinstance(labels, str):
            labels = (labels,)
        key = self._key(tuple(labels))
        slot = bisect_left(self.buckets, value)
        with self._lock:
            series = self._series.setdefault(key, _Series(len(self.buckets) + 1))
            series.counts[slot] += 1
            series.total += value
            series.count += 1

    def count(self, *args: str) -> int:
        """Return how many observations the series holds."""
        key = self._key(args)
        with self._lock:
            series = self._series.get(key)
            return 0 if series is None else series.count

    def bucket_counts(self, *args: str) -> tuple[tuple[float, int], ...]:
        """Return ``(upper_bound, cumulative_count)`` pairs, ending with ``+Inf``."""
        key = self._key(args)
        with self._lock:
            series = self._series.get(key)
            counts = list(series.counts) if series else [0] * (len(self.buckets) + 1)
        pairs = []
        running = 0
        for bound, hits in zip((*self.buckets, math.inf), counts):
            running += hits
            pairs.append((bound, running))
        return tuple(pairs)


HTTP_REQUESTS_TOTAL = CounterVec(
    f"{NAMESPACE}_http_requests_total",
    "Total HTTP requests partitioned by method, path template, and status code.",
    ("method", "path", "status"),
)

HTTP_REQUEST_DURATION = HistogramVec(
    f"{NAMESPACE}_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ("method", "path"),
    DEFAULT_BUCKETS,
)

EXECUTIONS_TOTAL = CounterVec(
    f"{NAMESPACE}_executions_total",
    "Total workflow executions partitioned by final status.",
    ("status",),
)

EXECUTION_DURATION = HistogramVec(
    f"{NAMESPACE}_execution_duration_seconds",
    "End-to-end workflow execution duration in seconds.",
    ("status",),
    (0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120),
)

NODE_EXECUTIONS_TOTAL = CounterVec(
    f"{NAMESPACE}_node_executions_total",
    "Total node executions partitioned by node type and status.",
    ("node_type", "status"),
)

NODE_EXECUTION_DURATION = HistogramVec(
    f"{NAMESPACE}_node_execution_duration_seconds",
    "Per-node execution duration in seconds.",
    ("node_type",),
    (0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

QUEUE_JOBS_ENQUEUED = CounterVec(
    f"{NAMESPACE}_queue_jobs_enqueued_total",
    "Total jobs enqueued by kind.",
    ("kind",),
)