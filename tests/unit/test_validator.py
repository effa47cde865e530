"""
Unit tests for DetectionValidator.
"""

import math

import pytest

from vision_defect_stream.core.classification import (
    DefectCategory,
    EvidenceCategory,
    EvidencePriority,
    Severity,
)
from vision_defect_stream.core.geometry import NormalizedBox
from vision_defect_stream.core.interfaces import Detection, DetectionKind, Rejected, RejectionReason
from vision_defect_stream.core.payload import parse_payload
from vision_defect_stream.core.validator import DetectionValidator


def defect(**fields):
    return parse_payload({"type": "defect", "defectType": "crack", "confidence": 85, **fields})


@pytest.fixture
def validator(property_profile):
    return DetectionValidator(property_profile)


class TestTypeAndConfidence:
    """Tests for label and confidence rules."""

    def test_valid_defect(self, validator):
        result = validator.validate(defect(box_2d=[200, 150, 450, 180]), now=1000)
        assert isinstance(result, Detection)
        assert result.type_label == "crack"
        assert result.confidence == 85
        assert result.timestamp == 1000
        assert result.box == NormalizedBox(0.2, 0.15, 0.45, 0.18)

    @pytest.mark.parametrize("label", [None, "", "   ", 42])
    def test_missing_type(self, validator, label):
        result = validator.validate(defect(defectType=label))
        assert isinstance(result, Rejected)
        assert result.reason is RejectionReason.MISSING_TYPE

    def test_label_is_stripped(self, validator):
        assert validator.validate(defect(defectType="  gap ")).type_label == "gap"

    def test_low_confidence_rejected(self, validator):
        result = validator.validate(defect(confidence=59))
        assert isinstance(result, Rejected)
        assert result.reason is RejectionReason.LOW_CONFIDENCE

    def test_threshold_confidence_accepted(self, validator):
        assert isinstance(validator.validate(defect(confidence=60)), Detection)

    def test_forensic_threshold(self, forensic_profile):
        validator = DetectionValidator(forensic_profile)
        result = validator.validate(parse_payload({"type": "evidence", "evidenceType": "knife", "confidence": 65}))
        assert isinstance(result, Rejected)

    @pytest.mark.parametrize("raw", [None, "high", True, math.nan])
    def test_non_numeric_confidence_defaults(self, validator, raw):
        result = validator.validate(defect(confidence=raw))
        assert result.confidence == 70

    def test_confidence_clamped(self, validator):
        assert validator.validate(defect(confidence=150)).confidence == 100


class TestBoxSanity:
    """Tests for box normalization and sanity filters."""

    def test_missing_box_is_type_only(self, validator):
        assert validator.validate(defect()).box is None

    def test_degenerate_box_is_type_only(self, validator):
        result = validator.validate(defect(box_2d=[0.5, 0.1, 0.5, 0.3]))
        assert isinstance(result, Detection)
        assert result.box is None

    @pytest.mark.parametrize(
        "side_x,kept",
        [
            (0.0009, False),
            (0.0011, True),
        ],
    )
    def test_min_area_boundary(self, validator, side_x, kept):
        # 0.1 tall box, so the width sets the area
        box = [0.1, 0.1, 0.2, 0.1 + side_x / 0.1]
        result = validator.validate(defect(box_2d=box))
        assert (result.box is not None) == kept

    def test_max_area(self, validator):
        assert validator.validate(defect(box_2d=[0.0, 0.0, 0.9, 0.9])).box is None
        assert validator.validate(defect(box_2d=[0.0, 0.0, 0.8, 0.8])).box is not None

    @pytest.mark.parametrize("ratio,kept", [(16, False), (14, True)])
    def test_aspect_ratio_boundary(self, validator, ratio, kept):
        box = [0.1, 0.1, 0.15, 0.1 + 0.05 * ratio]
        result = validator.validate(defect(box_2d=box))
        assert (result.box is not None) == kept


class TestClassification:
    """Tests for severity, category and evidence priority."""

    def test_defect_fields(self, validator):
        result = validator.validate(
            defect(defectType="water stain", severity="CRITICAL", description="ceiling", location="kitchen")
        )
        assert result.kind is DetectionKind.DEFECT
        assert result.severity is Severity.CRITICAL
        assert result.category is DefectCategory.WATER
        assert result.description == "ceiling"
        assert result.location == "kitchen"

    def test_defect_advice(self, validator):
        result = validator.validate(defect(defectType="hairline crack", severity="medium"))
        assert result.recommendation == "Professional inspection recommended. Monitor for changes."
        assert result.estimated_cost == "$200-1,000"

    def test_evidence_has_no_advice(self, forensic_profile):
        result = DetectionValidator(forensic_profile).validate(
            parse_payload({"type": "evidence", "evidenceType": "knife", "confidence": 90})
        )
        assert result.recommendation == ""
        assert result.estimated_cost == ""

    def test_invalid_severity_is_minor(self, validator):
        assert validator.validate(defect(severity="catastrophic")).severity is Severity.MINOR

    def test_evidence_priority_derived(self, forensic_profile):
        validator = DetectionValidator(forensic_profile)
        message = parse_payload(
            {
                "type": "evidence",
                "evidenceType": "blood_stain",
                "confidence": 89,
                "clockPosition": 10,
                "suggestedActions": ["photograph", "DNA swab"],
            }
        )
        result = validator.validate(message)
        assert result.kind is DetectionKind.EVIDENCE
        assert result.category is EvidenceCategory.BIOLOGICAL
        assert result.priority is EvidencePriority.CRITICAL
        assert result.severity is Severity.CRITICAL
        assert result.clock_position == 10
        assert result.suggested_actions == ["photograph", "DNA swab"]

    def test_evidence_reported_priority_wins(self, forensic_profile):
        validator = DetectionValidator(forensic_profile)
        message = parse_payload({"type": "evidence", "evidenceType": "knife", "confidence": 90, "priority": "low"})
        result = validator.validate(message)
        assert result.priority is EvidencePriority.LOW
        assert result.severity is Severity.MINOR
