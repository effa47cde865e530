"""
vision_defect_stream/utils/metrics.py

Prometheus-style metrics for the detection pipeline.
Counts every message outcome per session and tracks the size of the rolling state.
"""

import json
import threading
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, List, Optional


class MetricType(Enum):
    """Types of metrics supported."""

    COUNTER = "counter"
    GAUGE = "gauge"


class _LabelledMetric:
    def __init__(self, name: str, description: str = "", labels: Optional[List[str]] = None):
        self.name = name
        self.description = description
        self.label_names = labels or []
        self._values: Dict[tuple, float] = defaultdict(float)
        self._lock = threading.Lock()

    def _make_label_key(self, labels: Optional[Dict[str, str]]) -> tuple:
        """Create hashable key from labels."""
        if not labels:
            return ()
        return tuple(sorted(labels.items()))

    def get(self, labels: Optional[Dict[str, str]] = None) -> float:
        """Get current value."""
        label_key = self._make_label_key(labels)
        with self._lock:
            return self._values.get(label_key, 0.0)

    def total(self) -> float:
        """Sum over all label combinations."""
        with self._lock:
            return sum(self._values.values())

    def clear(self):
        with self._lock:
            self._values.clear()

    def _collect(self, metric_type: MetricType) -> Dict[str, Any]:
        with self._lock:
            samples = []
            for label_key, value in self._values.items():
                labels = dict(label_key) if label_key else {}
                samples.append({"labels": labels, "value": value, "timestamp": time.time()})

            return {"name": self.name, "type": metric_type.value, "description": self.description, "samples": samples}


class Counter(_LabelledMetric):
    """
    Prometheus-style Counter metric.
    Monotonically increasing counter for events.
    """

    def inc(self, amount: float = 1.0, labels: Optional[Dict[str, str]] = None):
        """Increment counter by amount."""
        if amount < 0:
            raise ValueError("Counter can only be incremented by non-negative amounts")
        label_key = self._make_label_key(labels)
        with self._lock:
            self._values[label_key] += amount

    def collect(self) -> Dict[str, Any]:
        """Collect metric data for export."""
        return self._collect(MetricType.COUNTER)


class Gauge(_LabelledMetric):
    """
    Prometheus-style Gauge metric.
    Value that can go up or down.
    """

    def set(self, value: float, labels: Optional[Dict[str, str]] = None):
        """Set gauge to specific value."""
        label_key = self._make_label_key(labels)
        with self._lock:
            self._values[label_key] = value

    def collect(self) -> Dict[str, Any]:
        """Collect metric data for export."""
        return self._collect(MetricType.GAUGE)


class PipelineMetrics:
    """
    Metrics of one streaming session.

    ``messages_total`` is labelled by outcome, ``rolling_state_size`` by stage
    (dedup, temporal, nms).
    """

    def __init__(self):
        self.messages_total = Counter(
            "detection_messages_total", "Detector messages processed, by pipeline outcome", labels=["outcome"]
        )
        self.confirmed_total = Counter(
            "confirmed_detections_total", "Detections emitted to consumers, by kind", labels=["kind"]
        )
        self.rolling_state_size = Gauge(
            "rolling_state_size", "Entries held in each rolling filter collection", labels=["stage"]
        )
        self.started_at = time.time()

    def record_outcome(self, outcome: str):
        self.messages_total.inc(labels={"outcome": outcome})

    def record_confirmed(self, kind: str):
        self.confirmed_total.inc(labels={"kind": kind})

    def update_state_sizes(self, dedup: int, temporal: int, nms: int):
        self.rolling_state_size.set(dedup, labels={"stage": "dedup"})
        self.rolling_state_size.set(temporal, labels={"stage": "temporal"})
        self.rolling_state_size.set(nms, labels={"stage": "nms"})

    def reset(self):
        """Forget all counts, used when a new session starts."""
        self.messages_total.clear()
        self.confirmed_total.clear()
        self.rolling_state_size.clear()
        self.started_at = time.time()

    def get_stats(self) -> Dict[str, Any]:
        """Summary statistics for logs and status panels."""
        outcomes = {}
        for sample in self.messages_total.collect()["samples"]:
            outcomes[sample["labels"]["outcome"]] = int(sample["value"])

        total = sum(outcomes.values())
        confirmed = int(self.confirmed_total.total())
        return {
            "messages": total,
            "confirmed": confirmed,
            "outcomes": outcomes,
            "acceptance_rate": confirmed / max(1, total),
            "state_sizes": {
                stage: int(self.rolling_state_size.get({"stage": stage})) for stage in ("dedup", "temporal", "nms")
            },
            "uptime_seconds": time.time() - self.started_at,
        }

    def collect_all(self) -> List[Dict[str, Any]]:
        return [self.messages_total.collect(), self.confirmed_total.collect(), self.rolling_state_size.collect()]

    def to_json(self) -> str:
        """Export all metrics as JSON."""
        return json.dumps({"timestamp": time.time(), "metrics": self.collect_all()}, indent=2)
