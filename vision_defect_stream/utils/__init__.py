from .config import (
    DetectionProfile, StreamConfig, RedisConfig, AnnotationConfig, PROFILE_CONFIGS,
    available_profiles, get_profile, get_default_config, create_test_config
)
from .exceptions import (
    DetectionPipelineError, PayloadParseError, GeometryError, ConfigurationError,
    SessionStateError, RedisConnectionError, AnnotationError, handle_redis_error
)
from .metrics import Counter, Gauge, PipelineMetrics
from .utils import (
    setup_logging, epoch_ms, round_half_up, Timer, format_box, format_detection_results
)

__all__ = [
    # Config
    "DetectionProfile", "StreamConfig", "RedisConfig", "AnnotationConfig", "PROFILE_CONFIGS",
    "available_profiles", "get_profile", "get_default_config", "create_test_config",
    # Exceptions
    "DetectionPipelineError", "PayloadParseError", "GeometryError", "ConfigurationError",
    "SessionStateError", "RedisConnectionError", "AnnotationError", "handle_redis_error",
    # Metrics
    "Counter", "Gauge", "PipelineMetrics",
    # Utils
    "setup_logging", "epoch_ms", "round_half_up", "Timer", "format_box", "format_detection_results",
]
