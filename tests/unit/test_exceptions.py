"""
Unit tests for custom exceptions.
"""

import pytest

from vision_defect_stream.utils.exceptions import (
    AnnotationError,
    ConfigurationError,
    DetectionPipelineError,
    GeometryError,
    PayloadParseError,
    RedisConnectionError,
    SessionStateError,
    handle_redis_error,
)


class TestDetectionPipelineError:
    """Tests for base DetectionPipelineError class."""

    def test_basic_creation(self):
        """Test basic error creation."""
        error = DetectionPipelineError("Test error")
        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.details is None

    def test_with_details(self):
        """Test error creation with details."""
        details = {"key": "value", "number": 42}
        error = DetectionPipelineError("Test error", details=details)
        assert error.details == details
        assert "Details:" in str(error)


class TestPayloadParseError:
    """Tests for PayloadParseError class."""

    def test_reason_in_message(self):
        error = PayloadParseError("No JSON object found")
        assert error.reason == "No JSON object found"
        assert "Malformed detector payload: No JSON object found" in str(error)
        assert error.details is None

    def test_raw_text_truncated(self):
        error = PayloadParseError("Invalid JSON", "x" * 500)
        assert len(error.details["raw_text"]) == 200


class TestGeometryAndConfigErrors:
    """Tests for GeometryError and ConfigurationError."""

    def test_geometry_error(self):
        error = GeometryError("display_rect", (0, 1, 1, 1), "All dimensions must be positive numbers")
        assert error.operation == "display_rect"
        assert "display_rect" in str(error)

    def test_configuration_error(self):
        error = ConfigurationError("iou_threshold", 1.5, "Must be between 0.0 and 1.0")
        assert error.parameter == "iou_threshold"
        assert error.value == 1.5
        assert "Invalid configuration for 'iou_threshold'" in str(error)


class TestSessionStateError:
    """Tests for SessionStateError class."""

    def test_message(self):
        error = SessionStateError("active", "connect")
        assert error.current_state == "active"
        assert error.requested == "connect"
        assert "Cannot connect a session in state 'active'" in str(error)


class TestRedisConnectionError:
    """Tests for RedisConnectionError class."""

    def test_basic_creation(self):
        error = RedisConnectionError("xadd", "localhost", 6379)
        assert error.operation == "xadd"
        assert error.host == "localhost"
        assert error.port == 6379
        assert "Redis xadd failed on localhost:6379" in str(error)

    def test_with_original_error(self):
        original = ConnectionError("Connection refused")
        error = RedisConnectionError("ping", "localhost", 6379, original)
        assert error.original_error is original
        assert "Connection refused" in str(error)

    def test_handle_redis_error(self):
        error = handle_redis_error("publish", "redis.local", 6380, TimeoutError("timed out"))
        assert isinstance(error, RedisConnectionError)
        assert error.details["host"] == "redis.local"
        assert error.details["original_error"] == "timed out"


class TestAnnotationError:
    """Tests for AnnotationError class."""

    def test_basic_creation(self):
        error = AnnotationError("box", 3)
        assert error.annotation_type == "box"
        assert error.detection_count == 3
        assert "Failed to create box annotations for 3 detections" in str(error)

    def test_inheritance(self):
        for error in (AnnotationError("label", 1), SessionStateError("idle", "activate")):
            assert isinstance(error, DetectionPipelineError)
            with pytest.raises(DetectionPipelineError):
                raise error
