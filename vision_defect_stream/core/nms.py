"""
Non-Maximum Suppression over a trailing window of surfaced detections.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..utils.config import DetectionProfile
from ..utils.utils import Clock, epoch_ms
from .geometry import NormalizedBox, intersection_over_union


@dataclass
class ConfirmedDetectionRecord:
    type_label: str
    box: NormalizedBox
    confidence: float
    timestamp: float


class NMSTracker:
    """
    Keeps the most confident of overlapping detections.

    Call :meth:`should_suppress` first and :meth:`track` only for detections
    that are actually surfaced, so the state reflects what the user sees.
    Overlap is judged by IoU alone, regardless of type.
    """

    def __init__(self, profile: DetectionProfile, clock: Clock = epoch_ms, logger: Optional[logging.Logger] = None):
        self.profile = profile
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._records: List[ConfirmedDetectionRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def prune(self, now: Optional[float] = None):
        now = self._clock() if now is None else now
        window = self.profile.nms_window_ms
        self._records = [r for r in self._records if now - r.timestamp < window]

    def should_suppress(
        self, type_label: str, box: NormalizedBox, confidence: float, now: Optional[float] = None
    ) -> bool:
        """True if an overlapping retained detection is at least as confident."""
        self.prune(now)

        for record in self._records:
            iou = intersection_over_union(record.box, box)
            if iou >= self.profile.nms_iou_threshold and confidence <= record.confidence:
                self._logger.debug(
                    f"Suppressing {type_label} (conf={confidence:.0f}%) - overlaps with {record.type_label} "
                    f"(conf={record.confidence:.0f}%, IoU={iou * 100:.1f}%)"
                )
                return True

        return False

    def track(self, type_label: str, box: NormalizedBox, confidence: float, now: Optional[float] = None):
        """Register a surfaced detection, evicting weaker overlapping ones."""
        now = self._clock() if now is None else now
        threshold = self.profile.nms_iou_threshold

        self._records = [
            r
            for r in self._records
            if not (intersection_over_union(r.box, box) >= threshold and r.confidence < confidence)
        ]
        self._records.append(ConfirmedDetectionRecord(type_label=type_label, box=box, confidence=confidence, timestamp=now))

    def clear(self):
        self._records.clear()

    @property
    def records(self) -> List[ConfirmedDetectionRecord]:
        return list(self._records)
