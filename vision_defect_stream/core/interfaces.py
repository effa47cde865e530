import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .classification import DefectCategory, EvidenceCategory, EvidencePriority, Severity
from .geometry import NormalizedBox


class DetectionKind(Enum):
    DEFECT = "defect"
    EVIDENCE = "evidence"


class RejectionReason(Enum):
    MISSING_TYPE = "missing_type"
    LOW_CONFIDENCE = "low_confidence"


@dataclass
class Detection:
    """A validated detection travelling through the filter chain."""

    type_label: str
    box: Optional[NormalizedBox]
    confidence: float  # 0-100
    timestamp: float  # epoch ms
    kind: DetectionKind = DetectionKind.DEFECT
    severity: Severity = Severity.MINOR
    category: Optional[Union[DefectCategory, EvidenceCategory]] = None
    priority: Optional[EvidencePriority] = None
    description: str = ""
    location: str = ""
    clock_position: Optional[float] = None
    suggested_actions: List[str] = field(default_factory=list)
    recommendation: str = ""
    estimated_cost: str = ""
    detection_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def has_box(self) -> bool:
        return self.box is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation for consumers and publishers."""
        return {
            "id": self.detection_id,
            "kind": self.kind.value,
            "type": self.type_label,
            "box": self.box.to_dict() if self.box else None,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "severity": self.severity.value,
            "category": self.category.value if self.category else None,
            "priority": self.priority.value if self.priority else None,
            "description": self.description,
            "location": self.location,
            "clock_position": self.clock_position,
            "suggested_actions": list(self.suggested_actions),
            "recommendation": self.recommendation,
            "estimated_cost": self.estimated_cost,
        }


@dataclass(frozen=True)
class Rejected:
    """Outcome of a validator rejection; logged, never raised."""

    reason: RejectionReason
    detail: str = ""


DetectionConsumer = Callable[[Detection], None]
