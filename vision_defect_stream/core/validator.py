"""
Detection normalizer and validator.

First stage of the filter chain: turns a typed detector message into a
:class:`Detection` or a :class:`Rejected` outcome. Downstream stages never
re-check geometry, so every box leaving this stage is normalized and sane.
"""

import logging
import math
from typing import Optional, Union

from ..utils.config import DetectionProfile
from ..utils.utils import epoch_ms, format_box
from .classification import (
    derive_evidence_priority,
    estimated_cost_for,
    infer_evidence_category,
    recommendation_for,
    resolve_defect_category,
    resolve_severity,
    severity_for_priority,
)
from .geometry import NormalizedBox, auto_scale_and_clamp
from .interfaces import Detection, DetectionKind, Rejected, RejectionReason
from .payload import DetectionMessage, EvidenceMessage


class DetectionValidator:
    """
    Validates raw detections against a :class:`DetectionProfile`.

    Rules:
    - the type label must be a non-empty string
    - missing or non-numeric confidence defaults to ``profile.default_confidence``,
      then is clamped to [0, 100] and compared to ``profile.min_confidence``
    - boxes are auto-scaled and clamped; boxes that are degenerate, noise-sized,
      near whole-frame or sliver-shaped are dropped and the detection continues
      type-only
    """

    def __init__(self, profile: DetectionProfile, logger: Optional[logging.Logger] = None):
        self.profile = profile
        self._logger = logger or logging.getLogger(__name__)

    def validate(self, message: DetectionMessage, now: Optional[float] = None) -> Union[Detection, Rejected]:
        """
        Validate one defect or evidence message.

        Args:
            message: Parsed detector message
            now: Detection timestamp in epoch ms (defaults to the wall clock)

        Returns:
            Detection on success, Rejected with the reason otherwise
        """
        type_label = message.type_label
        if not isinstance(type_label, str) or not type_label.strip():
            return Rejected(RejectionReason.MISSING_TYPE, f"type label {type_label!r}")
        type_label = type_label.strip()

        confidence = self.normalize_confidence(message.confidence)
        if confidence < self.profile.min_confidence:
            self._logger.info(
                f"Filtered: {type_label} (confidence {confidence:.0f}% < {self.profile.min_confidence:.0f}% threshold)"
            )
            return Rejected(RejectionReason.LOW_CONFIDENCE, f"{confidence:.0f} < {self.profile.min_confidence:.0f}")

        box = self.normalize_box(message.box_2d)
        timestamp = epoch_ms() if now is None else now

        if isinstance(message, EvidenceMessage):
            category = infer_evidence_category(type_label)
            priority = derive_evidence_priority(category, message.priority)
            return Detection(
                type_label=type_label,
                box=box,
                confidence=confidence,
                timestamp=timestamp,
                kind=DetectionKind.EVIDENCE,
                severity=severity_for_priority(priority),
                category=category,
                priority=priority,
                description=message.description,
                location=message.location,
                clock_position=message.clock_position,
                suggested_actions=list(message.suggested_actions),
            )

        severity = resolve_severity(message.severity)
        return Detection(
            type_label=type_label,
            box=box,
            confidence=confidence,
            timestamp=timestamp,
            kind=DetectionKind.DEFECT,
            severity=severity,
            category=resolve_defect_category(type_label, message.category),
            description=message.description,
            location=message.location,
            recommendation=recommendation_for(type_label, severity),
            estimated_cost=estimated_cost_for(type_label, severity),
        )

    def normalize_confidence(self, raw) -> float:
        """Default non-numeric values, then clamp to [0, 100]."""
        if isinstance(raw, bool) or not isinstance(raw, (int, float)) or math.isnan(raw):
            self._logger.debug(f"No usable confidence ({raw!r}), using default {self.profile.default_confidence:.0f}%")
            confidence = self.profile.default_confidence
        else:
            confidence = float(raw)
        return max(0.0, min(100.0, confidence))

    def normalize_box(self, raw) -> Optional[NormalizedBox]:
        """Auto-scale a raw box and apply the sanity filters; None means type-only."""
        if raw is None:
            return None

        box = auto_scale_and_clamp(raw)
        if box is None:
            self._logger.debug(f"Invalid bbox {raw!r}, discarding")
            return None

        area = box.area
        if area < self.profile.min_box_area:
            self._logger.debug(f"Bbox too small ({format_box(box)}, area={area:.4f}), likely noise - discarding")
            return None
        if area > self.profile.max_box_area:
            self._logger.debug(f"Bbox too large ({format_box(box)}, area={area:.2f}), likely false positive - discarding")
            return None
        if box.aspect_ratio > self.profile.max_aspect_ratio:
            self._logger.debug(f"Bbox extreme aspect ratio ({box.aspect_ratio:.1f}:1), likely noise - discarding")
            return None

        return box
