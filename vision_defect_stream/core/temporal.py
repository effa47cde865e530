"""
Temporal consistency tracker with multi-frame confirmation.

A boxed detection is only trusted once the same (type, location) pair has been
seen ``temporal_threshold`` times, each sighting within ``temporal_window_ms``
of the previous one. With a threshold of 1 every first sighting confirms
immediately; higher thresholds filter single-frame hallucinations at the cost
of up to one window of latency.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from ..utils.config import DetectionProfile
from ..utils.utils import Clock, epoch_ms
from .geometry import NormalizedBox, intersection_over_union, spatial_key


@dataclass
class TemporalCandidate:
    type_label: str
    box: NormalizedBox
    confidence: float  # max seen
    frame_count: int
    first_seen: float
    last_seen: float


@dataclass(frozen=True)
class TemporalResult:
    confirmed: bool
    frame_count: int


class TemporalConsistencyTracker:
    """
    Candidates keyed by :func:`spatial_key`, matched by type and IoU.
    """

    def __init__(self, profile: DetectionProfile, clock: Clock = epoch_ms, logger: Optional[logging.Logger] = None):
        self.profile = profile
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._candidates: Dict[str, TemporalCandidate] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def prune(self, now: Optional[float] = None):
        """Evict candidates not seen within the temporal window."""
        now = self._clock() if now is None else now
        window = self.profile.temporal_window_ms
        expired = [key for key, c in self._candidates.items() if now - c.last_seen > window]
        for key in expired:
            del self._candidates[key]

    def check_consistency(
        self, type_label: str, box: NormalizedBox, confidence: float, now: Optional[float] = None
    ) -> TemporalResult:
        """
        Register a sighting and report whether it is now confirmed.

        Args:
            type_label: Detection type
            box: Normalized box of the sighting
            confidence: Confidence 0-100
            now: Sighting time in epoch ms

        Returns:
            TemporalResult with the confirmation flag and the candidate's frame count
        """
        now = self._clock() if now is None else now
        self.prune(now)
        threshold = self.profile.temporal_threshold
        label = type_label.lower()

        for candidate in self._candidates.values():
            if candidate.type_label.lower() != label:
                continue
            if intersection_over_union(candidate.box, box) >= self.profile.iou_threshold:
                candidate.frame_count += 1
                candidate.last_seen = now
                candidate.confidence = max(candidate.confidence, confidence)
                self._logger.debug(f"Temporal match {type_label}: frame {candidate.frame_count}/{threshold}")
                return TemporalResult(confirmed=candidate.frame_count >= threshold, frame_count=candidate.frame_count)

        self._candidates[spatial_key(type_label, box)] = TemporalCandidate(
            type_label=type_label,
            box=box,
            confidence=confidence,
            frame_count=1,
            first_seen=now,
            last_seen=now,
        )
        return TemporalResult(confirmed=threshold <= 1, frame_count=1)

    def get_candidate(self, key: str) -> Optional[TemporalCandidate]:
        return self._candidates.get(key)

    def clear(self):
        self._candidates.clear()
