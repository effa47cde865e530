"""
Custom exceptions for the vision_defect_stream package.
Provides specific error types for better error handling and debugging.
"""

from typing import Optional, Any


class DetectionPipelineError(Exception):
    """
    Base exception class for all detection pipeline errors.

    All other custom exceptions in this package should inherit from this class.
    """

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class PayloadParseError(DetectionPipelineError):
    """
    Exception raised when a raw detector message cannot be turned into a typed payload.

    This can happen due to:
    - No JSON object in the model text
    - Invalid JSON syntax
    - Unknown or missing message type
    - Fields with the wrong shape for their message type
    """

    def __init__(self, reason: str, raw_text: Optional[str] = None):
        self.reason = reason
        self.raw_text = raw_text

        details = None
        if raw_text:
            details = {"raw_text": raw_text[:200]}

        super().__init__(f"Malformed detector payload: {reason}", details)


class GeometryError(DetectionPipelineError):
    """
    Exception raised when a coordinate transform receives unusable dimensions.
    """

    def __init__(self, operation: str, value: Any, reason: str):
        self.operation = operation
        self.value = value
        self.reason = reason

        message = f"Geometry operation '{operation}' failed: {reason}"
        super().__init__(message, {"operation": operation, "value": value})


class ConfigurationError(DetectionPipelineError):
    """
    Exception raised when there are configuration-related errors.

    This can happen due to:
    - Invalid profile parameters
    - Unknown profile names
    - Incompatible configuration combinations
    """

    def __init__(self, parameter: str, value: Any, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason

        message = f"Invalid configuration for '{parameter}': {reason}"
        details = {"parameter": parameter, "value": value, "reason": reason}

        super().__init__(message, details)


class SessionStateError(DetectionPipelineError):
    """
    Exception raised when a stream session is asked for an illegal state transition.
    """

    def __init__(self, current_state: str, requested: str):
        self.current_state = current_state
        self.requested = requested

        message = f"Cannot {requested} a session in state '{current_state}'"
        super().__init__(message, {"current_state": current_state, "requested": requested})


class RedisConnectionError(DetectionPipelineError):
    """
    Exception raised when Redis connection or operations fail.

    This can happen due to:
    - Redis server not running
    - Network connectivity issues
    - Authentication failures
    """

    def __init__(self, operation: str, host: str, port: int, original_error: Optional[Exception] = None):
        self.operation = operation
        self.host = host
        self.port = port
        self.original_error = original_error

        message = f"Redis {operation} failed on {host}:{port}"
        if original_error:
            message += f" - {str(original_error)}"

        details = {
            "operation": operation,
            "host": host,
            "port": port,
            "original_error": str(original_error) if original_error else None,
        }

        super().__init__(message, details)


class AnnotationError(DetectionPipelineError):
    """
    Exception raised when screenshot annotation fails.

    This can happen due to:
    - Invalid frame data
    - Annotation library errors
    - Image encoding failures
    """

    def __init__(self, annotation_type: str, detection_count: int, original_error: Optional[Exception] = None):
        self.annotation_type = annotation_type
        self.detection_count = detection_count
        self.original_error = original_error

        message = f"Failed to create {annotation_type} annotations for {detection_count} detections"
        if original_error:
            message += f": {str(original_error)}"

        details = {
            "annotation_type": annotation_type,
            "detection_count": detection_count,
            "original_error": str(original_error) if original_error else None,
        }

        super().__init__(message, details)


def handle_redis_error(operation: str, host: str, port: int, error: Exception) -> RedisConnectionError:
    """
    Convert a generic exception to a RedisConnectionError with useful context.

    Args:
        operation: The Redis operation that failed
        host: Redis host
        port: Redis port
        error: The original exception

    Returns:
        RedisConnectionError: Wrapped exception with additional context
    """
    return RedisConnectionError(operation, host, port, error)
