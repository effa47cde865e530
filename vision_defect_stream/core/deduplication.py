"""
Cheap first-pass filter that suppresses repeated reports of the same defect.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from ..utils.config import DetectionProfile
from ..utils.utils import Clock, epoch_ms
from .geometry import NormalizedBox, center_distance


@dataclass
class RecentDetectionRecord:
    type_label: str
    box: Optional[NormalizedBox]
    timestamp: float


class DeduplicationFilter:
    """
    Sliding-window duplicate detection by type and center proximity.

    A candidate is a duplicate of a retained record with the same type
    (case-insensitive) when both boxes' centers are closer than
    ``profile.spatial_tolerance``, or when either side has no box. Records older
    than ``profile.dedup_window_ms`` are pruned on every check. Only the caller
    decides what gets recorded.
    """

    def __init__(self, profile: DetectionProfile, clock: Clock = epoch_ms, logger: Optional[logging.Logger] = None):
        self.profile = profile
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._records: List[RecentDetectionRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def prune(self, now: Optional[float] = None):
        """Drop records that fell out of the dedup window."""
        now = self._clock() if now is None else now
        window = self.profile.dedup_window_ms
        self._records = [r for r in self._records if now - r.timestamp < window]

    def is_duplicate(self, type_label: str, box: Optional[NormalizedBox] = None, now: Optional[float] = None) -> bool:
        """Check a candidate against the retained records."""
        self.prune(now)
        label = type_label.lower()

        for record in self._records:
            if record.type_label.lower() != label:
                continue

            if box is not None and record.box is not None:
                distance = center_distance(box, record.box)
                if distance < self.profile.spatial_tolerance:
                    self._logger.debug(f"Duplicate {type_label}: center distance {distance:.3f}")
                    return True
            else:
                # No comparable geometry, type match is enough
                self._logger.debug(f"Duplicate {type_label}: same type without spatial data")
                return True

        return False

    def record(self, type_label: str, box: Optional[NormalizedBox] = None, now: Optional[float] = None):
        """Register an accepted detection so repeats within the window are caught."""
        now = self._clock() if now is None else now
        self._records.append(RecentDetectionRecord(type_label=type_label, box=box, timestamp=now))

    def clear(self):
        self._records.clear()

    @property
    def records(self) -> List[RecentDetectionRecord]:
        return list(self._records)
