"""
Unit tests for utility functions and metrics.
"""

import json
import logging
import time
from unittest.mock import Mock

import pytest

from vision_defect_stream.core.geometry import NormalizedBox
from vision_defect_stream.core.interfaces import Detection
from vision_defect_stream.utils.metrics import Counter, Gauge, PipelineMetrics
from vision_defect_stream.utils.utils import (
    LOGGER_NAME,
    Timer,
    epoch_ms,
    format_box,
    format_detection_results,
    round_half_up,
    setup_logging,
)


class TestRoundHalfUp:
    """Tests for round_half_up."""

    @pytest.mark.parametrize("value,expected", [(2.5, 3), (-2.5, -2), (1.4, 1), (1.6, 2), (0.5, 1), (3.0, 3)])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected


class TestClockAndLogging:
    """Tests for epoch_ms and setup_logging."""

    def test_epoch_ms(self):
        assert abs(epoch_ms() - time.time() * 1000) < 1000

    def test_setup_logging_is_idempotent(self):
        logger = setup_logging()
        handlers = list(logger.handlers)
        assert setup_logging(verbose=True) is logger
        assert logger.handlers == handlers
        assert logger.name == LOGGER_NAME
        assert isinstance(logger, logging.Logger)


class TestTimer:
    """Tests for Timer context manager."""

    def test_timer_basic(self):
        """Test basic timer functionality."""
        with Timer("test operation") as timer:
            time.sleep(0.05)

        assert timer.elapsed() >= 0.05

    def test_timer_not_started(self):
        assert Timer("idle").elapsed() == 0.0

    def test_timer_logs_at_debug(self):
        logger = Mock()
        with Timer("Filter chain", logger):
            pass
        assert logger.debug.call_args[0][0].startswith("Filter chain took")


class TestFormatting:
    """Tests for formatting helpers."""

    def test_format_box(self):
        box = NormalizedBox(ymin=0.2, xmin=0.15, ymax=0.45, xmax=0.18)
        assert format_box(box) == "x=15%-18%, y=20%-45%"
        assert format_box(None) == "no box"

    def test_empty_detections(self):
        assert format_detection_results([]) == "No detections confirmed"

    def test_detections(self):
        detections = [
            Detection("crack", NormalizedBox(0.2, 0.15, 0.45, 0.18), 85, 0),
            Detection("mold", None, 72, 0),
        ]
        result = format_detection_results(detections)
        assert "Confirmed 2 detections" in result
        assert "crack (confidence: 85%)" in result
        assert "mold (confidence: 72%) at no box" in result

    def test_max_items_limit(self):
        detections = [Detection(f"gap{i}", None, 80, 0) for i in range(5)]
        result = format_detection_results(detections, max_items=2)
        assert "... and 3 more" in result


class TestMetrics:
    """Tests for Counter, Gauge and PipelineMetrics."""

    def test_counter(self):
        counter = Counter("test_total", labels=["outcome"])
        counter.inc(labels={"outcome": "confirmed"})
        counter.inc(2, labels={"outcome": "confirmed"})
        assert counter.get({"outcome": "confirmed"}) == 3
        assert counter.total() == 3

    def test_counter_rejects_negative(self):
        with pytest.raises(ValueError):
            Counter("test_total").inc(-1)

    def test_gauge(self):
        gauge = Gauge("size", labels=["stage"])
        gauge.set(4, labels={"stage": "nms"})
        gauge.set(1, labels={"stage": "nms"})
        assert gauge.get({"stage": "nms"}) == 1
        assert gauge.collect()["type"] == "gauge"

    def test_pipeline_stats(self):
        metrics = PipelineMetrics()
        metrics.record_outcome("confirmed")
        metrics.record_outcome("duplicate")
        metrics.record_confirmed("defect")
        metrics.update_state_sizes(2, 1, 1)

        stats = metrics.get_stats()
        assert stats["messages"] == 2
        assert stats["confirmed"] == 1
        assert stats["acceptance_rate"] == pytest.approx(0.5)
        assert stats["state_sizes"] == {"dedup": 2, "temporal": 1, "nms": 1}

    def test_reset(self):
        metrics = PipelineMetrics()
        metrics.record_outcome("malformed")
        metrics.reset()
        assert metrics.get_stats()["messages"] == 0

    def test_to_json(self):
        metrics = PipelineMetrics()
        metrics.record_outcome("clear")
        data = json.loads(metrics.to_json())
        names = {m["name"] for m in data["metrics"]}
        assert names == {"detection_messages_total", "confirmed_detections_total", "rolling_state_size"}
