# vision_defect_stream/__init__.py
"""
Streaming filter pipeline for property defect and forensic evidence detections.
"""

from .core.stream_session import StreamSession, SessionState, FilterOutcome
from .core.interfaces import Detection
from .core.damage_scoring import InspectionRecord
from .core.forensic_log import ForensicCase
from .utils.config import StreamConfig, DetectionProfile, get_default_config

__all__ = [
    "StreamSession", "SessionState", "FilterOutcome", "Detection",
    "InspectionRecord", "ForensicCase",
    "StreamConfig", "DetectionProfile", "get_default_config",
]

try:
    from .core.annotation import DetectionAnnotator
    from .core.detection_publisher import DetectionPublisher

    __all__ += ["DetectionAnnotator", "DetectionPublisher"]
except ImportError as e:
    # Filter chain stays usable without the imaging and Redis stack
    import warnings

    warnings.warn(f"Could not import annotation/publishing components: {e}")

__version__ = "0.1.0"
