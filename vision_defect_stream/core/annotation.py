"""
vision_defect_stream/core/annotation.py

Draws confirmed detections on captured frames and encodes screenshots.
"""

import base64
import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np
import supervision as sv

from ..utils.config import AnnotationConfig
from ..utils.exceptions import AnnotationError
from .classification import Severity
from .interfaces import Detection

# Palette index per severity; used as the supervision class id
SEVERITY_ORDER = (Severity.MINOR, Severity.MEDIUM, Severity.CRITICAL)


class DetectionAnnotator:
    """
    Renders detections onto BGR frames with supervision annotators, colored by
    severity. Detections without a box are not drawn.
    """

    def __init__(self, config: Optional[AnnotationConfig] = None, logger: Optional[logging.Logger] = None):
        self._config = config or AnnotationConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._setup_annotators()

    def _setup_annotators(self):
        """Initialize supervision library annotators."""
        cfg = self._config
        palette = sv.ColorPalette.from_hex([cfg.severity_colors[s.value] for s in SEVERITY_ORDER])

        self._box_annotator = sv.BoxAnnotator(
            color=palette,
            thickness=cfg.box_thickness,
            color_lookup=sv.ColorLookup.CLASS,
        )
        self._label_annotator = sv.LabelAnnotator(
            color=palette,
            text_position=sv.Position.TOP_LEFT,
            text_scale=cfg.text_scale,
            text_padding=cfg.text_padding,
            color_lookup=sv.ColorLookup.CLASS,
        )

    def to_supervision(self, detections: Sequence[Detection], frame_width: int, frame_height: int) -> sv.Detections:
        """Convert boxed detections to pixel-space supervision detections."""
        boxed = [d for d in detections if d.has_box]
        if not boxed:
            return sv.Detections.empty()

        xyxy = np.array([d.box.to_xyxy(frame_width, frame_height) for d in boxed], dtype=np.float32)
        confidence = np.array([d.confidence / 100.0 for d in boxed], dtype=np.float32)
        class_id = np.array([SEVERITY_ORDER.index(d.severity) for d in boxed], dtype=int)
        return sv.Detections(xyxy=xyxy, confidence=confidence, class_id=class_id)

    def _labels(self, detections: Sequence[Detection]) -> List[str]:
        labels = []
        for det in detections:
            if not det.has_box:
                continue
            label = det.type_label if self._config.show_labels else ""
            if self._config.show_confidence:
                label = f"{label} {det.confidence:.0f}%".strip()
            labels.append(label)
        return labels

    def annotate(self, frame: np.ndarray, detections: Sequence[Detection]) -> np.ndarray:
        """
        Draw detections on a copy of the frame.

        Args:
            frame: BGR image, HxWx3
            detections: Confirmed detections

        Returns:
            np.ndarray: Annotated copy

        Raises:
            AnnotationError: If the frame is invalid or drawing fails
        """
        if not isinstance(frame, np.ndarray) or frame.ndim != 3 or frame.shape[2] != 3:
            shape = getattr(frame, "shape", None)
            raise AnnotationError("box", len(detections), ValueError(f"Expected HxWx3 image, got shape {shape}"))

        annotated = frame.copy()
        height, width = frame.shape[:2]
        sv_detections = self.to_supervision(detections, width, height)
        if len(sv_detections) == 0:
            return annotated

        try:
            annotated = self._box_annotator.annotate(scene=annotated, detections=sv_detections)
            if self._config.show_labels or self._config.show_confidence:
                annotated = self._label_annotator.annotate(
                    scene=annotated, detections=sv_detections, labels=self._labels(detections)
                )
        except Exception as e:
            raise AnnotationError("box", len(sv_detections), e) from e

        return annotated

    def encode_jpeg(self, frame: np.ndarray) -> bytes:
        """Encode a BGR frame as JPEG bytes."""
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self._config.jpeg_quality])
        if not ok:
            raise AnnotationError("jpeg", 0, RuntimeError("cv2.imencode failed"))
        return buffer.tobytes()

    def screenshot(self, frame: np.ndarray, detections: Sequence[Detection] = ()) -> str:
        """Annotated frame as a ``data:image/jpeg;base64,...`` URL."""
        annotated = self.annotate(frame, detections) if detections else frame
        encoded = base64.b64encode(self.encode_jpeg(annotated)).decode("utf-8")
        self._logger.debug(f"Screenshot encoded: {len(encoded)} chars, {len(detections)} detections")
        return f"data:image/jpeg;base64,{encoded}"
