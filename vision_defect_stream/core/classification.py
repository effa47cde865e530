"""
Category, severity and priority classification for detection labels.

Categories are inferred from free-text labels through ordered keyword tables:
the first row with a keyword contained in the lowercased label wins.
"""

from enum import Enum
from typing import Any, Optional, Sequence, Tuple, Type, TypeVar


class Severity(Enum):
    MINOR = "minor"
    MEDIUM = "medium"
    CRITICAL = "critical"


class DefectCategory(Enum):
    STRUCTURAL = "structural"
    WATER = "water"
    FINISH = "finish"
    MECHANICAL = "mechanical"
    FURNITURE = "furniture"


class EvidenceCategory(Enum):
    WEAPON = "weapon"
    BIOLOGICAL = "biological"
    TRACE = "trace"
    DOCUMENT = "document"
    SCENE_INDICATOR = "scene_indicator"
    FRAUD_INDICATOR = "fraud_indicator"
    UNCLASSIFIED = "unclassified"


class EvidencePriority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


DEFECT_CATEGORY_TABLE: Tuple[Tuple[Tuple[str, ...], DefectCategory], ...] = (
    (("water", "leak", "mold", "damp", "efflorescence", "mildew"), DefectCategory.WATER),
    (("crack", "spall", "settlement", "foundation", "hole", "structural"), DefectCategory.STRUCTURAL),
    (("furniture", "scratch", "dent", "upholstery", "torn", "rip", "wood damage"), DefectCategory.FURNITURE),
    (("fixture", "fitting", "sealant", "broken"), DefectCategory.MECHANICAL),
    (("paint", "tile", "grout", "carpet", "floor", "ceiling", "wall", "drywall"), DefectCategory.FINISH),
)

EVIDENCE_CATEGORY_TABLE: Tuple[Tuple[Tuple[str, ...], EvidenceCategory], ...] = (
    (("weapon", "firearm", "knife", "tool"), EvidenceCategory.WEAPON),
    (("blood", "biological", "dna", "hair"), EvidenceCategory.BIOLOGICAL),
    (("fingerprint", "footprint", "fiber", "trace"), EvidenceCategory.TRACE),
    (("document", "electronic", "phone"), EvidenceCategory.DOCUMENT),
    (("entry", "exit", "struggle"), EvidenceCategory.SCENE_INDICATOR),
    (("fraud", "staging", "inconsistent"), EvidenceCategory.FRAUD_INDICATOR),
)

E = TypeVar("E", bound=Enum)


def _lookup(text: str, table: Sequence[Tuple[Tuple[str, ...], E]], default: E) -> E:
    lowered = text.lower()
    for keywords, category in table:
        if any(keyword in lowered for keyword in keywords):
            return category
    return default


def parse_enum(enum_type: Type[E], value: Any) -> Optional[E]:
    """Case-insensitive enum lookup by value; None for anything unknown."""
    if isinstance(value, enum_type):
        return value
    if not isinstance(value, str):
        return None
    try:
        return enum_type(value.strip().lower())
    except ValueError:
        return None


def infer_defect_category(type_label: str) -> DefectCategory:
    """Category of a defect label; finish when nothing matches."""
    return _lookup(type_label, DEFECT_CATEGORY_TABLE, DefectCategory.FINISH)


def infer_evidence_category(type_label: str) -> EvidenceCategory:
    """Category of an evidence label; unclassified when nothing matches."""
    return _lookup(type_label, EVIDENCE_CATEGORY_TABLE, EvidenceCategory.UNCLASSIFIED)


def resolve_defect_category(type_label: str, reported: Any = None) -> DefectCategory:
    """Use the model's category when it is a known one, otherwise infer it."""
    return parse_enum(DefectCategory, reported) or infer_defect_category(type_label)


def resolve_severity(reported: Any) -> Severity:
    """Known severities pass through; anything else is treated as minor."""
    return parse_enum(Severity, reported) or Severity.MINOR


def derive_evidence_priority(category: EvidenceCategory, reported: Any = None) -> EvidencePriority:
    """
    Priority reported by the model, or one derived from the evidence category:
    biological and weapon evidence is critical, trace and fraud indicators high.
    """
    priority = parse_enum(EvidencePriority, reported)
    if priority is not None:
        return priority
    if category in (EvidenceCategory.BIOLOGICAL, EvidenceCategory.WEAPON):
        return EvidencePriority.CRITICAL
    if category in (EvidenceCategory.TRACE, EvidenceCategory.FRAUD_INDICATOR):
        return EvidencePriority.HIGH
    return EvidencePriority.MEDIUM


def severity_for_priority(priority: EvidencePriority) -> Severity:
    """Map evidence priority onto the defect severity scale used for display."""
    if priority is EvidencePriority.CRITICAL:
        return Severity.CRITICAL
    if priority is EvidencePriority.HIGH:
        return Severity.MEDIUM
    return Severity.MINOR


def recommendation_for(type_label: str, severity: Severity) -> str:
    """Short remediation advice for a defect."""
    label = type_label.lower()
    if severity is Severity.CRITICAL:
        if "crack" in label or "structural" in label:
            return "URGENT: Structural engineer assessment required. Do not ignore."
        if "mold" in label:
            return "HEALTH RISK: Professional mold remediation required. Improve ventilation."
        if "water" in label or "leak" in label:
            return "Immediate waterproofing inspection required. Check external sealing."
    if "paint" in label:
        return "Strip loose paint, prime properly, and repaint."
    if "tile" in label:
        return "Replace affected tile. Check for substrate issues."
    if "sealant" in label:
        return "Remove old sealant, clean substrate, apply new silicone."
    return "Professional inspection recommended. Monitor for changes."


def estimated_cost_for(type_label: str, severity: Severity) -> str:
    """Rough repair cost range for a defect, as display text."""
    label = type_label.lower()
    if severity is Severity.CRITICAL:
        if any(term in label for term in ("crack", "structural", "foundation")):
            return "$2,000-10,000+"
        if "mold" in label:
            return "$500-5,000"
        if "water" in label:
            return "$500-2,000"
    if severity is Severity.MEDIUM:
        if "crack" in label:
            return "$200-1,000"
        if "water" in label or "stain" in label:
            return "$200-800"
        return "$100-500"
    return "$50-200"
