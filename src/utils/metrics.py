"""
Prometheus Metrics Collector

Lightweight metrics collection for observability without external dependencies.
Generates Prometheus text exposition format (text/plain; version=0.0.4).
"""
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field


@dataclass
class MetricValue:
    """Single metric value with optional labels."""
    value: float
    labels: Dict[str, str] = field(default_factory=dict)


class _LabeledMetric:
    """Shared storage for metrics keyed by label combination."""

    type_name = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._values: Dict[tuple, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _label_key(labels: Dict[str, str]) -> tuple:
        """Create hashable key from labels."""
        return tuple(sorted(labels.items()))

    def get(self, **labels: str) -> float:
        """Current value for one label combination (0 if never touched)."""
        with self._lock:
            return self._values.get(self._label_key(labels), 0.0)

    def collect(self) -> List[MetricValue]:
        """Collect all metric values."""
        with self._lock:
            return [
                MetricValue(value=v, labels=dict(k))
                for k, v in self._values.items()
            ]


class Counter(_LabeledMetric):
    """
    Prometheus Counter metric.

    A counter is a cumulative metric that only goes up.
    Used for: analyses started, upstream attempts, store errors, etc.
    """

    type_name = "counter"

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        """Increment counter by amount."""
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount


class Gauge(_LabeledMetric):
    """
    Prometheus Gauge metric.

    A gauge can go up and down.
    Used for: queue depth, jobs in flight.
    """

    type_name = "gauge"

    def set(self, value: float, **labels: str) -> None:
        """Set gauge to value."""
        with self._lock:
            self._values[self._label_key(labels)] = value

    def inc(self, amount: float = 1.0, **labels: str) -> None:
        """Increment gauge by amount."""
        key = self._label_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + amount

    def dec(self, amount: float = 1.0, **labels: str) -> None:
        """Decrement gauge by amount."""
        self.inc(-amount, **labels)


class Histogram:
    """
    Prometheus Histogram metric.

    Samples observations and counts them in cumulative buckets.
    Used for: pipeline duration, upstream latency.
    """

    type_name = "histogram"

    # Pipelines wait on slow upstreams and a model call, so buckets are in seconds up to minutes
    DEFAULT_BUCKETS = (0.5, 1.0, 2.5, 5.0, 10.0, 25.0, 60.0, 120.0, 250.0)

    def __init__(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self.buckets = tuple(sorted(buckets or self.DEFAULT_BUCKETS))
        self._series: Dict[tuple, Dict] = {}
        self._lock = threading.Lock()

    def observe(self, value: float, **labels: str) -> None:
        """Record an observation."""
        key = tuple(sorted(labels.items()))
        with self._lock:
            series = self._series.setdefault(
                key, {"buckets": [0] * len(self.buckets), "sum": 0.0, "count": 0}
            )
            series["sum"] += value
            series["count"] += 1
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    series["buckets"][index] += 1

    def collect(self) -> List[MetricValue]:
        """Collect bucket, sum and count samples."""
        samples = []
        with self._lock:
            for key, series in self._series.items():
                base = dict(key)
                for bound, count in zip(self.buckets, series["buckets"]):
                    samples.append(MetricValue(count, {**base, "le": str(bound)}))
                samples.append(MetricValue(series["count"], {**base, "le": "+Inf"}))
                samples.append(MetricValue(series["sum"], {**base, "_metric": "sum"}))
                samples.append(MetricValue(series["count"], {**base, "_metric": "count"}))
        return samples


class MetricsRegistry:
    """
    Every series the service exports, created once and reachable as
    attributes (metrics.analyses_total, metrics.queue_pending, ...).
    """

    def __init__(self):
        self._metrics: Dict[str, Counter | Gauge | Histogram] = {}
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        # Analyses
        self.analyses_total = self.counter(
            "pmf_analyses_total", "Analyses finished by kind and terminal status", ["kind", "status"]
        )
        self.pipeline_duration = self.histogram(
            "pmf_pipeline_duration_seconds", "End-to-end analysis pipeline duration", ["kind"]
        )
        self.model_fallbacks = self.counter(
            "pmf_model_fallbacks_total", "Neutral fallback analyses substituted for unusable model output"
        )

        # Upstreams
        self.source_results = self.counter(
            "pmf_source_results_total", "Adapter results by source and outcome", ["source", "outcome"]
        )
        self.upstream_attempts = self.counter(
            "pmf_upstream_attempts_total", "Outbound HTTP attempts by source and outcome", ["source", "outcome"]
        )

        # Persistence
        self.store_errors = self.counter(
            "pmf_store_errors_total", "Analysis store operations that raised", ["operation"]
        )

        # Job queue
        self.queue_pending = self.gauge("pmf_queue_pending", "Analysis jobs waiting for a worker")
        self.queue_processing = self.gauge("pmf_queue_processing", "Analysis jobs currently running")
        self.queue_failed = self.gauge("pmf_queue_failed", "Analysis jobs that ended in failure")

    def _register(self, metric):
        self._metrics[metric.name] = metric
        return metric

    def counter(self, name: str, description: str, labels: Optional[List[str]] = None) -> Counter:
        return self._register(Counter(name, description, labels))

    def gauge(self, name: str, description: str, labels: Optional[List[str]] = None) -> Gauge:
        return self._register(Gauge(name, description, labels))

    def histogram(
        self,
        name: str,
        description: str,
        labels: Optional[List[str]] = None,
        buckets: Optional[tuple] = None
    ) -> Histogram:
        return self._register(Histogram(name, description, labels, buckets))

    def export(self) -> str:
        """Text exposition format: HELP and TYPE headers, then one line per sample."""
        lines = []
        for name, metric in self._metrics.items():
            lines.append(f"# HELP {name} {metric.description}")
            lines.append(f"# TYPE {name} {metric.type_name}")

            for sample in metric.collect():
                labels = dict(sample.labels)
                sample_name = name
                if isinstance(metric, Histogram):
                    suffix = labels.pop("_metric", "bucket")
                    sample_name = f"{name}_{suffix}"
                lines.append(f"{sample_name}{self._format_labels(labels)} {sample.value}")

            lines.append("")

        return "\n".join(lines)

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        return "{" + ",".join(f'{k}="{v}"' for k, v in sorted(labels.items())) + "}"

    def reset(self) -> None:
        """Drop every recorded value. Tests call this between cases."""
        self._metrics.clear()
        self._setup_metrics()


metrics = MetricsRegistry()
