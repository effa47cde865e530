# vision_defect_stream/core/__init__.py
"""
Core filter chain, session orchestration and detection consumers.
"""

from .geometry import NormalizedBox, FitMode, intersection_over_union, center_distance, auto_scale_and_clamp
from .payload import parse_message, parse_payload, extract_json_object
from .interfaces import Detection, DetectionKind, Rejected, RejectionReason
from .validator import DetectionValidator
from .deduplication import DeduplicationFilter
from .temporal import TemporalConsistencyTracker
from .nms import NMSTracker
from .stream_session import StreamSession, SessionState, FilterOutcome, PipelineResult
from .damage_scoring import InspectionRecord, analyze_inspection, prioritize_defects, calculate_utility_score
from .forensic_log import ForensicCase

__all__ = [
    "NormalizedBox", "FitMode", "intersection_over_union", "center_distance", "auto_scale_and_clamp",
    "parse_message", "parse_payload", "extract_json_object",
    "Detection", "DetectionKind", "Rejected", "RejectionReason",
    "DetectionValidator", "DeduplicationFilter", "TemporalConsistencyTracker", "NMSTracker",
    "StreamSession", "SessionState", "FilterOutcome", "PipelineResult",
    "InspectionRecord", "analyze_inspection", "prioritize_defects", "calculate_utility_score",
    "ForensicCase",
]
