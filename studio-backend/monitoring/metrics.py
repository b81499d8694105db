"""
Metrics Collection - Monitoring Layer

Prometheus-compatible in-process metrics:
- Counters (monotonically increasing)
- Gauges (can go up or down)
- Histograms (distribution of values)

Exposed in Prometheus text format at GET /v1/metrics.

@.architecture
Incoming: api/v1/endpoints/*.py, api/dependencies.py --- {str metric_name, float value, label keyword arguments}
Processing: inc(), set(), observe(), collect(), export_prometheus(), studio_metrics() --- {4 jobs: metric_creation, recording, aggregation, export}
Outgoing: api/v1/endpoints/metrics.py --- {Counter/Gauge/Histogram instances, str Prometheus format}
"""

import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple


class _LabelledMetric:
    """Name, help text and label validation shared by every metric type."""

    metric_type = "untyped"

    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        """
        Args:
            name: Metric name
            help_text: Description
            labels: Label names for metric dimensions
        """
        self.name = name
        self.help_text = help_text
        self.label_names = labels or []
        self._lock = threading.Lock()

    def _key(self, labels: Dict[str, str]) -> Tuple[str, ...]:
        if set(labels) != set(self.label_names):
            raise ValueError(f"Expected labels {self.label_names}, got {list(labels)}")
        return tuple(str(labels[name]) for name in self.label_names)

    def _labels(self, key: Tuple[str, ...]) -> Dict[str, str]:
        return dict(zip(self.label_names, key))


class Counter(_LabelledMetric):
    """Monotonically increasing value (loads, executions, chunks)."""

    metric_type = "counter"

    def __init__(self, name: str, help_text: str, labels: Optional[List[str]] = None):
        super().__init__(name, help_text, labels)
        self._values: Dict[Tuple[str, ...], float] = defaultdict(float)

    def inc(self, value: float = 1.0, **labels: str) -> None:
        if value < 0:
            raise ValueError("Counter can only be incremented by non-negative values")
        key = self._key(labels)
        with self._lock:
            self._values[key] += value

    def get(self, **labels: str) -> float:
        return self._values.get(self._key(labels), 0.0)

    def collect(self) -> List[Tuple[Dict[str, str], float]]:
        with self._lock:
            return [(self._labels(key), value) for key, value in self._values.items()]


class Gauge(Counter):
    """Value that can go up or down (cached runtimes)."""

    metric_type = "gauge"

    def set(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = value

    def inc(self, value: float = 1.0, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] += value

    def dec(self, value: float = 1.0, **labels: str) -> None:
        self.inc(-value, **labels)


class Histogram(_LabelledMetric):
    """Distribution of observed values into cumulative buckets."""

    metric_type = "histogram"

    # Seconds; execution and load times span milliseconds to tens of seconds
    DEFAULT_BUCKETS = [0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]

    def __init__(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[List[float]] = None
    ):
        super().__init__(name, help_text, labels)
        self.buckets = sorted(buckets or self.DEFAULT_BUCKETS)
        self._bucket_counts: Dict[Tuple[str, ...], List[int]] = defaultdict(
            lambda: [0] * (len(self.buckets) + 1)
        )
        self._sum: Dict[Tuple[str, ...], float] = defaultdict(float)
        self._count: Dict[Tuple[str, ...], int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            self._sum[key] += value
            self._count[key] += 1
            counts = self._bucket_counts[key]
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    counts[i] += 1
            counts[-1] += 1

    def get_stats(self, **labels: str) -> Dict[str, Any]:
        return self._stats(self._key(labels))

    def _stats(self, key: Tuple[str, ...]) -> Dict[str, Any]:
        count = self._count.get(key, 0)
        total = self._sum.get(key, 0.0)
        counts = self._bucket_counts.get(key, [0] * (len(self.buckets) + 1))
        return {
            'count': count,
            'sum': total,
            'average': total / count if count else 0.0,
            'buckets': dict(zip([*self.buckets, float('inf')], counts)),
        }

    def collect(self) -> List[Tuple[Dict[str, str], Dict[str, Any]]]:
        with self._lock:
            return [(self._labels(key), self._stats(key)) for key in list(self._count)]


class MetricsRegistry:
    """Get-or-create store for every metric, with Prometheus export."""

    def __init__(self):
        self._lock = threading.Lock()
        self._metrics: Dict[str, _LabelledMetric] = {}

    def _get_or_create(self, cls, name: str, *args) -> Any:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = cls(name, *args)
                self._metrics[name] = metric
            elif type(metric) is not cls:
                raise ValueError(f"Metric {name} already registered as {metric.metric_type}")
            return metric

    def counter(self, name: str, help_text: str, labels: Optional[List[str]] = None) -> Counter:
        return self._get_or_create(Counter, name, help_text, labels)

    def gauge(self, name: str, help_text: str, labels: Optional[List[str]] = None) -> Gauge:
        return self._get_or_create(Gauge, name, help_text, labels)

    def histogram(
        self,
        name: str,
        help_text: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[List[float]] = None
    ) -> Histogram:
        return self._get_or_create(Histogram, name, help_text, labels, buckets)

    def export_prometheus(self) -> str:
        """
        Export metrics in Prometheus text format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []
        for name, metric in list(self._metrics.items()):
            lines.append(f"# HELP {name} {metric.help_text}")
            lines.append(f"# TYPE {name} {metric.metric_type}")

            if isinstance(metric, Histogram):
                for labels, stats in metric.collect():
                    for bound, count in stats['buckets'].items():
                        le = "+Inf" if bound == float('inf') else str(bound)
                        lines.append(f"{name}_bucket{_format_labels(dict(labels, le=le))} {count}")
                    lines.append(f"{name}_sum{_format_labels(labels)} {stats['sum']}")
                    lines.append(f"{name}_count{_format_labels(labels)} {stats['count']}")
            else:
                for labels, value in metric.collect():
                    lines.append(f"{name}{_format_labels(labels)} {value}")

        return '\n'.join(lines) + '\n'


def _format_labels(labels: Dict[str, str]) -> str:
    if not labels:
        return ""
    pairs = [f'{k}="{v}"' for k, v in labels.items()]
    return "{" + ",".join(pairs) + "}"


# Global registry instance
_global_registry: Optional[MetricsRegistry] = None


def get_registry() -> MetricsRegistry:
    """Get global metrics registry."""
    global _global_registry
    if _global_registry is None:
        _global_registry = MetricsRegistry()
    return _global_registry


def counter(name: str, help_text: str, labels: Optional[List[str]] = None) -> Counter:
    """Get or create counter from global registry."""
    return get_registry().counter(name, help_text, labels)


def gauge(name: str, help_text: str, labels: Optional[List[str]] = None) -> Gauge:
    """Get or create gauge from global registry."""
    return get_registry().gauge(name, help_text, labels)


def histogram(
    name: str,
    help_text: str,
    labels: Optional[List[str]] = None,
    buckets: Optional[List[float]] = None
) -> Histogram:
    """Get or create histogram from global registry."""
    return get_registry().histogram(name, help_text, labels, buckets)


def studio_metrics() -> Dict[str, Any]:
    """
    Standard studio metrics, created on first use.

    Returns:
        Dict of metric objects keyed by short name
    """
    registry = get_registry()
    return {
        'runtime_loads_total': registry.counter(
            'studio_runtime_loads_total',
            'Runtime load attempts',
            labels=['runtime', 'status'],
        ),
        'executions_total': registry.counter(
            'studio_executions_total',
            'Code executions',
            labels=['runtime', 'status'],
        ),
        'execution_duration_seconds': registry.histogram(
            'studio_execution_duration_seconds',
            'Code execution duration in seconds',
            labels=['runtime'],
        ),
        'runtimes_cached': registry.gauge(
            'studio_runtimes_cached',
            'Runtime instances held by the registry',
        ),
        'model_loads_total': registry.counter(
            'studio_model_loads_total',
            'Model load attempts',
            labels=['backend', 'status'],
        ),
        'generations_total': registry.counter(
            'studio_generations_total',
            'Generation streams',
            labels=['backend', 'status'],
        ),
        'generated_chunks_total': registry.counter(
            'studio_generated_chunks_total',
            'Streamed generation chunks',
            labels=['backend'],
        ),
    }
