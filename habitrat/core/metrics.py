"""
In-process metrics registry rendered as Prometheus text on /metrics.

Jobs count their units and persistence failures here; the notification
engine counts deliveries by category; the request middleware counts API
traffic. Values live for the lifetime of the process (or worker).
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


def _format_value(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(value)


class _LabeledMetric:
    kind = "untyped"

    def __init__(self, name: str, help_text: str, label_names: Optional[Iterable[str]] = None):
        self.name = name
        self.help_text = help_text
        self.label_names = list(label_names or [])
        self._values: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown labels {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def reset(self) -> None:
        with self._lock:
            self._values.clear()

    def render(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} {self.kind}"]
        with self._lock:
            items = sorted(self._values.items())
        for key, value in items:
            label_part = ""
            if self.label_names:
                pairs = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key))
                label_part = "{" + pairs + "}"
            lines.append(f"{self.name}{label_part} {_format_value(value)}")
        return lines


class Counter(_LabeledMetric):
    kind = "counter"

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        if amount < 0:
            raise ValueError(f"{self.name}: counters only go up")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)


class Gauge(_LabeledMetric):
    kind = "gauge"

    def set(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = float(value)


class MetricsRegistry:
    def __init__(self):
        self._metrics: Dict[str, _LabeledMetric] = {}
        self._lock = threading.Lock()

    def _register(self, cls, name: str, help_text: str, label_names: Optional[Iterable[str]]):
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = cls(name, help_text, label_names)
                self._metrics[name] = metric
            elif not isinstance(metric, cls):
                raise ValueError(f"{name} already registered as {metric.kind}")
            return metric

    def counter(self, name: str, help_text: str, label_names: Optional[Iterable[str]] = None) -> Counter:
        return self._register(Counter, name, help_text, label_names)

    def gauge(self, name: str, help_text: str, label_names: Optional[Iterable[str]] = None) -> Gauge:
        return self._register(Gauge, name, help_text, label_names)

    def export_prometheus(self) -> str:
        with self._lock:
            metrics = [self._metrics[name] for name in sorted(self._metrics)]
        lines: List[str] = []
        for metric in metrics:
            lines.extend(metric.render())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """FOR TESTING ONLY."""
        with self._lock:
            metrics = list(self._metrics.values())
        for metric in metrics:
            metric.reset()


METRICS = MetricsRegistry()

job_units_total = METRICS.counter(
    "habitrat_job_units_total", "Users processed by a batch job, by outcome.", ["job", "status"]
)
persist_failures_total = METRICS.counter(
    "habitrat_persist_failures_total", "Writes that still failed after their retry.", ["job"]
)
notifications_sent_total = METRICS.counter(
    "habitrat_notifications_sent_total", "Push notifications accepted by the push service.", ["category"]
)
api_requests_total = METRICS.counter(
    "habitrat_api_requests_total", "HTTP requests served, by method and status.", ["method", "status"]
)

job_last_run_units = METRICS.gauge(
    "habitrat_job_last_run_units", "Users considered by the latest run of a job.", ["job"]
)
