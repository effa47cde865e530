"""
Configuration module for vision_defect_stream package.
Contains all configurable parameters and default values.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Tuple

from .exceptions import ConfigurationError


@dataclass
class DetectionProfile:
    """Thresholds and windows for one investigation mode.

    All windows are in milliseconds, confidences on the 0-100 scale and
    spatial values in normalized frame coordinates.
    """

    name: str
    dedup_window_ms: float = 30000.0
    spatial_tolerance: float = 0.15
    min_confidence: float = 60.0
    temporal_window_ms: float = 3000.0
    temporal_threshold: int = 1
    iou_threshold: float = 0.25
    nms_window_ms: float = 5000.0
    nms_iou_threshold: float = 0.5

    # Validator defaults
    default_confidence: float = 70.0
    min_box_area: float = 0.001
    max_box_area: float = 0.70
    max_aspect_ratio: float = 15.0

    def __post_init__(self):
        for name in ("dedup_window_ms", "temporal_window_ms", "nms_window_ms"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(name, value, "Window must be positive")

        for name in ("iou_threshold", "nms_iou_threshold", "spatial_tolerance"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(name, value, "Must be between 0.0 and 1.0")

        for name in ("min_confidence", "default_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 100.0:
                raise ConfigurationError(name, value, "Must be between 0 and 100")

        if not isinstance(self.temporal_threshold, int) or self.temporal_threshold < 1:
            raise ConfigurationError("temporal_threshold", self.temporal_threshold, "Must be an integer >= 1")

        if not 0.0 <= self.min_box_area < self.max_box_area <= 1.0:
            raise ConfigurationError(
                "box_area", (self.min_box_area, self.max_box_area), "Need 0 <= min_box_area < max_box_area <= 1"
            )

        if self.max_aspect_ratio < 1.0:
            raise ConfigurationError("max_aspect_ratio", self.max_aspect_ratio, "Must be >= 1")

    def with_overrides(self, **overrides) -> "DetectionProfile":
        """Return a copy with some fields replaced (validated again)."""
        return replace(self, **overrides)


@dataclass
class RedisConfig:
    """Configuration for publishing confirmed detections to Redis."""

    host: str = "localhost"
    port: int = 6379
    detection_stream: str = "confirmed_detections"
    max_stream_length: int = 1000
    connection_timeout: int = 5


@dataclass
class AnnotationConfig:
    """Configuration for screenshot annotation."""

    text_scale: float = 0.5
    text_padding: int = 3
    box_thickness: int = 2
    show_confidence: bool = True
    show_labels: bool = True
    jpeg_quality: int = 85

    # Hex colors, keyed by severity
    severity_colors: Dict[str, str] = field(
        default_factory=lambda: {"minor": "#22c55e", "medium": "#f59e0b", "critical": "#ef4444"}
    )


@dataclass
class StreamConfig:
    """Main configuration class for a detection streaming session."""

    profile: DetectionProfile = field(default_factory=lambda: get_profile("property_defect"))
    annotation: AnnotationConfig = field(default_factory=AnnotationConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)

    verbose: bool = False

    # Frame cadence of the two transport modes, used by the transport only
    live_frame_interval_ms: int = 250
    request_frame_interval_ms: int = 1500


# Predefined profiles
PROFILE_CONFIGS: Dict[str, DetectionProfile] = {
    "property_defect": DetectionProfile(
        name="property_defect",
        dedup_window_ms=30000.0,
        spatial_tolerance=0.15,
        min_confidence=60.0,
    ),
    "forensic": DetectionProfile(
        name="forensic",
        dedup_window_ms=45000.0,
        spatial_tolerance=0.12,
        min_confidence=70.0,
    ),
}


def available_profiles() -> Tuple[str, ...]:
    """Names of the predefined profiles."""
    return tuple(PROFILE_CONFIGS.keys())


def get_profile(profile_name: str) -> DetectionProfile:
    """
    Get a copy of a predefined detection profile.

    Args:
        profile_name: Name of the profile ("property_defect" or "forensic")

    Returns:
        DetectionProfile: Profile instance safe to modify

    Raises:
        ConfigurationError: If profile_name is not known
    """
    if profile_name not in PROFILE_CONFIGS:
        raise ConfigurationError(
            "profile_name", profile_name, f"Unknown profile. Available: {list(PROFILE_CONFIGS.keys())}"
        )
    return replace(PROFILE_CONFIGS[profile_name])


def get_default_config(profile_name: str = "property_defect") -> StreamConfig:
    """
    Get a default configuration for the specified profile.

    Args:
        profile_name: Name of the detection profile to use

    Returns:
        StreamConfig: Default configuration instance
    """
    return StreamConfig(profile=get_profile(profile_name))


def create_test_config() -> StreamConfig:
    """
    Create a configuration for testing multi-frame confirmation.

    Returns:
        StreamConfig: Property-defect config requiring two sightings per detection
    """
    config = get_default_config("property_defect")
    config.verbose = True
    config.profile = config.profile.with_overrides(name="test", temporal_threshold=2)
    return config
