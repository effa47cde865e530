"""
vision_defect_stream/core/damage_scoring.py

Utility scoring and prioritization of confirmed property defects.

Every defect gets a utility score from its damage category:

    U = (safety * 40 + impact * 20 + spread * 25 + 100 / urgency_days) * severity_mult + C

where ``severity_mult`` is 3 / 2 / 1 for critical / medium / minor and ``C`` is a
flat bonus of 100 for categorically critical damage (structural, mold, gas...),
which is always escalated to critical regardless of size.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..utils.utils import round_half_up
from .classification import Severity
from .interfaces import Detection, DetectionKind

CATEGORICAL_CRITICAL: Tuple[str, ...] = (
    "structural crack",
    "foundation damage",
    "load-bearing",
    "water infiltration",
    "mold",
    "electrical hazard",
    "gas leak",
    "asbestos",
    "fire damage",
    "roof breach",
    "sewage",
    "collapse risk",
)

CATEGORICAL_BONUS = 100.0

SEVERITY_MULTIPLIERS: Dict[Severity, float] = {
    Severity.CRITICAL: 3.0,
    Severity.MEDIUM: 2.0,
    Severity.MINOR: 1.0,
}


@dataclass(frozen=True)
class DamageCategory:
    """Row of the damage classification matrix."""

    name: str
    keywords: Tuple[str, ...]
    base_severity: Severity
    impact_multiplier: float  # effect on property value
    safety_risk: float  # 0-1
    spread_risk: float  # 0-1
    repair_urgency_days: int  # days before the damage worsens
    cost_per_unit: Tuple[int, int]
    specialist: str = "general contractor"

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ")


# First keyword match wins
DAMAGE_CATEGORIES: Tuple[DamageCategory, ...] = (
    DamageCategory(
        "structural_crack",
        ("structural", "foundation", "load-bearing", "beam", "column", "support"),
        Severity.CRITICAL, 3.0, 0.9, 0.8, 1, (500, 5000), "structural engineer",
    ),
    DamageCategory(
        "water_damage",
        ("water", "leak", "moisture", "damp", "wet", "stain", "seepage"),
        Severity.CRITICAL, 2.5, 0.6, 0.95, 2, (200, 2000), "water damage restoration",
    ),
    DamageCategory(
        "mold",
        ("mold", "mildew", "fungus", "black spot", "growth"),
        Severity.CRITICAL, 2.0, 0.85, 0.9, 3, (300, 3000), "mold remediation specialist",
    ),
    DamageCategory(
        "crack",
        ("crack", "fracture", "split", "fissure", "hairline"),
        Severity.MEDIUM, 1.5, 0.3, 0.5, 14, (100, 500), "general contractor",
    ),
    DamageCategory(
        "paint",
        ("paint", "peel", "bubble", "flake", "chip", "discolor"),
        Severity.MINOR, 0.8, 0.1, 0.3, 30, (50, 200), "painter",
    ),
    DamageCategory(
        "tile",
        ("tile", "grout", "chip", "loose", "broken tile", "misaligned"),
        Severity.MINOR, 1.0, 0.2, 0.2, 30, (75, 300), "tile contractor",
    ),
    DamageCategory(
        "gap",
        ("gap", "seal", "caulk", "joint", "separation", "opening"),
        Severity.MEDIUM, 1.2, 0.2, 0.6, 14, (50, 200), "handyman or contractor",
    ),
    DamageCategory(
        "fixture",
        ("fixture", "handle", "knob", "hinge", "door", "window", "cabinet"),
        Severity.MINOR, 0.7, 0.15, 0.1, 60, (30, 150), "handyman",
    ),
)

UNKNOWN_CATEGORY = DamageCategory("unknown", (), Severity.MEDIUM, 1.0, 0.3, 0.3, 14, (100, 500))


@dataclass
class RiskAssessment:
    safety_risk: str
    spread_risk: str
    value_impact: str


@dataclass
class DamageScore:
    """Scored defect, ranked by :func:`prioritize_defects`."""

    detection_id: str
    type_label: str
    utility_score: float
    category: DamageCategory
    adjusted_severity: Severity
    is_categorical: bool
    estimated_cost: Tuple[int, int]
    repair_deadline: datetime
    risk: RiskAssessment
    recommendation: str
    priority_rank: int = 0

    @property
    def days_to_action(self) -> int:
        return math.ceil(self.category.repair_urgency_days / SEVERITY_MULTIPLIERS[self.adjusted_severity])


@dataclass
class InspectionAnalysis:
    total_defects: int
    critical_count: int
    medium_count: int
    minor_count: int
    prioritized: List[DamageScore]
    total_estimated_cost: Tuple[int, int]
    overall_risk: str
    urgent_actions: List[str]
    time_to_action: str
    property_value_impact: str


def find_damage_category(type_label: str, description: str = "") -> DamageCategory:
    search_text = f"{type_label} {description}".lower()
    for category in DAMAGE_CATEGORIES:
        if any(keyword in search_text for keyword in category.keywords):
            return category
    return UNKNOWN_CATEGORY


def is_categorical_critical(type_label: str, description: str = "") -> bool:
    """Damage that is always critical regardless of size or reported severity."""
    label = type_label.lower()
    text = description.lower()
    return any(term in label or term in text for term in CATEGORICAL_CRITICAL)


def _risk_label(value: float) -> str:
    if value > 0.7:
        return "HIGH"
    if value > 0.3:
        return "MEDIUM"
    return "LOW"


def _value_impact_label(multiplier: float) -> str:
    if multiplier > 2:
        return "SEVERE"
    if multiplier > 1:
        return "MODERATE"
    return "MINOR"


def _recommendation(category: DamageCategory, severity: Severity, categorical: bool) -> str:
    days = category.repair_urgency_days
    if categorical:
        return (
            "IMMEDIATE ACTION REQUIRED: This is a categorical safety concern. "
            f"Contact a licensed {category.display_name} specialist immediately. "
            "Do not delay - this type of damage poses significant risk."
        )
    if severity is Severity.CRITICAL:
        return (
            f"URGENT: Schedule professional inspection within {days} days. "
            "This damage has high spread risk and may worsen significantly if untreated. "
            f"Recommended specialist: {category.specialist}"
        )
    if severity is Severity.MEDIUM:
        return (
            f"ATTENTION NEEDED: Address within {days} days to prevent escalation. "
            f"Consider getting 2-3 quotes from {category.specialist} professionals."
        )
    return (
        "MONITOR: Low priority cosmetic issue. Can be addressed during routine maintenance. "
        f"Estimated repair window: {days} days."
    )


def calculate_utility_score(detection: Detection, reference_time: Optional[datetime] = None) -> DamageScore:
    """
    Score one defect.

    Args:
        detection: Confirmed defect detection
        reference_time: Start of the repair deadline (defaults to now)

    Returns:
        DamageScore with priority_rank 0; ranks are assigned by prioritize_defects
    """
    category = find_damage_category(detection.type_label, detection.description)
    categorical = is_categorical_critical(detection.type_label, detection.description)

    severity = category.base_severity
    if categorical or detection.severity is Severity.CRITICAL:
        severity = Severity.CRITICAL
    multiplier = SEVERITY_MULTIPLIERS[severity]

    score = (
        category.safety_risk * 40
        + category.impact_multiplier * 20
        + category.spread_risk * 25
        + (1 / category.repair_urgency_days) * 100
    ) * multiplier
    if categorical:
        score += CATEGORICAL_BONUS

    # Boxes are normalized, so area * 10 only exceeds 1 for defects over 10% of the frame
    size_factor = detection.box.area * 10 if detection.box is not None else 1.0
    size_factor = max(1.0, size_factor)
    low, high = category.cost_per_unit
    estimated_cost = (round_half_up(low * multiplier * size_factor), round_half_up(high * multiplier * size_factor))

    reference_time = reference_time or datetime.now()
    deadline = reference_time + timedelta(days=math.ceil(category.repair_urgency_days / multiplier))

    return DamageScore(
        detection_id=detection.detection_id,
        type_label=detection.type_label,
        utility_score=round(score, 2),
        category=category,
        adjusted_severity=severity,
        is_categorical=categorical,
        estimated_cost=estimated_cost,
        repair_deadline=deadline,
        risk=RiskAssessment(
            safety_risk=_risk_label(category.safety_risk),
            spread_risk=_risk_label(category.spread_risk),
            value_impact=_value_impact_label(category.impact_multiplier),
        ),
        recommendation=_recommendation(category, severity, categorical),
    )


def prioritize_defects(detections: Sequence[Detection], reference_time: Optional[datetime] = None) -> List[DamageScore]:
    """Score all defects and rank them, most urgent first (rank 1)."""
    scores = [calculate_utility_score(d, reference_time) for d in detections]
    scores.sort(key=lambda s: s.utility_score, reverse=True)
    for rank, score in enumerate(scores, start=1):
        score.priority_rank = rank
    return scores


def analyze_inspection(detections: Sequence[Detection], reference_time: Optional[datetime] = None) -> InspectionAnalysis:
    """
    Summarize an inspection.

    Any critical defect makes the overall risk CRITICAL; more than two medium
    defects make it HIGH, one or two MEDIUM, otherwise LOW.
    """
    prioritized = prioritize_defects(detections, reference_time)

    counts = {severity: 0 for severity in Severity}
    for score in prioritized:
        counts[score.adjusted_severity] += 1

    if counts[Severity.CRITICAL] > 0:
        overall_risk = "CRITICAL"
    elif counts[Severity.MEDIUM] > 2:
        overall_risk = "HIGH"
    elif counts[Severity.MEDIUM] > 0:
        overall_risk = "MEDIUM"
    else:
        overall_risk = "LOW"

    urgent_actions = [
        f"{i}. {s.category.display_name.upper()}: {s.recommendation.split('.')[0]}"
        for i, s in enumerate(prioritized[:3], start=1)
    ]

    if prioritized:
        time_to_action = f"Immediate action needed within {prioritized[0].days_to_action} days"
    else:
        time_to_action = "No urgent actions required"

    avg_impact = sum(s.category.impact_multiplier for s in prioritized) / max(1, len(prioritized))
    if avg_impact > 2:
        value_impact = "SEVERE: Could reduce property value by 10-20%"
    elif avg_impact > 1.5:
        value_impact = "MODERATE: May affect property value by 5-10%"
    elif avg_impact > 1:
        value_impact = "MINOR: Minimal impact on property value"
    else:
        value_impact = "COSMETIC: No significant impact on property value"

    return InspectionAnalysis(
        total_defects=len(detections),
        critical_count=counts[Severity.CRITICAL],
        medium_count=counts[Severity.MEDIUM],
        minor_count=counts[Severity.MINOR],
        prioritized=prioritized,
        total_estimated_cost=(
            sum(s.estimated_cost[0] for s in prioritized),
            sum(s.estimated_cost[1] for s in prioritized),
        ),
        overall_risk=overall_risk,
        urgent_actions=urgent_actions,
        time_to_action=time_to_action,
        property_value_impact=value_impact,
    )


@dataclass
class InspectionRecord:
    """
    Session consumer collecting confirmed defects for the inspection report.

    Register with ``session.add_consumer(record)``; evidence detections are ignored.
    """

    property_address: str = ""
    defects: List[Detection] = field(default_factory=list)
    logger: Optional[logging.Logger] = None

    def __call__(self, detection: Detection):
        if detection.kind is not DetectionKind.DEFECT:
            return
        self.defects.append(detection)
        if self.logger:
            self.logger.debug(f"Inspection record: {len(self.defects)} defects")

    def __len__(self) -> int:
        return len(self.defects)

    def clear(self):
        self.defects.clear()

    def analyze(self, reference_time: Optional[datetime] = None) -> InspectionAnalysis:
        return analyze_inspection(self.defects, reference_time)
