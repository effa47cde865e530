"""
vision_defect_stream/core/forensic_log.py

Forensic case record with chain of custody.

A :class:`ForensicCase` is registered on a forensic-profile session as both a
detection consumer and an alert consumer. Every evidence item, authenticity
alert and manual capture is appended to the case together with a chain of
custody entry and a SHA-256 hash of the frame it came from.
"""

import hashlib
import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..utils.utils import Clock, epoch_ms
from .classification import EvidenceCategory, EvidencePriority
from .interfaces import Detection, DetectionKind
from .payload import AuthenticityAlertMessage


def frame_hash(frame_data: Union[bytes, str]) -> str:
    """SHA-256 hex digest of encoded frame data."""
    if isinstance(frame_data, str):
        frame_data = frame_data.encode("utf-8")
    return hashlib.sha256(frame_data).hexdigest()


@dataclass
class EvidenceRecord:
    evidence_id: str
    case_id: str
    evidence_type: str
    category: EvidenceCategory
    priority: EvidencePriority
    description: str
    location: str
    confidence: float
    frame_hash: str
    timestamp: float
    captured_by: str
    clock_position: Optional[float] = None
    box: Optional[Dict[str, float]] = None
    suggested_actions: List[str] = field(default_factory=list)
    custody_notes: List[str] = field(default_factory=list)
    is_manual_capture: bool = False


@dataclass
class AuthenticityAlert:
    alert_id: str
    concern: str
    severity: str
    description: str
    location: str
    recommendation: str
    frame_hash: str
    timestamp: float


@dataclass
class ChainOfCustodyEntry:
    entry_id: str
    timestamp: float
    action: str
    evidence_id: Optional[str]
    officer_id: str
    session_id: str
    notes: Optional[str] = None


class ForensicCase:
    """
    Evidence log for one forensic scene session.

    Example:
        >>> case = ForensicCase(officer_id="INV-7", scene_type="burglary")
        >>> session.add_consumer(case.record_evidence)
        >>> session.add_alert_consumer(case.record_alert)
        >>> summary = case.end_session()
    """

    def __init__(
        self,
        case_id: Optional[str] = None,
        officer_id: str = "INVESTIGATOR-01",
        scene_type: str = "crime_scene",
        location: str = "Unknown Location",
        clock: Clock = epoch_ms,
        logger: Optional[logging.Logger] = None,
    ):
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

        self.session_id = str(uuid.uuid4())
        self.start_time = clock()
        self.end_time: Optional[float] = None
        self.case_id = case_id or f"CASE-{int(self.start_time)}"
        self.officer_id = officer_id
        self.scene_type = scene_type
        self.location = location
        self.frame_count = 0

        self.evidence: List[EvidenceRecord] = []
        self.authenticity_alerts: List[AuthenticityAlert] = []
        self.chain_of_custody: List[ChainOfCustodyEntry] = []

        self.log_custody("session_started", notes=f"Scene: {scene_type}, Location: {location}")
        self._logger.info(f"Forensic session started: {self.case_id} (officer {officer_id})")

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def log_custody(self, action: str, evidence_id: Optional[str] = None, notes: Optional[str] = None) -> ChainOfCustodyEntry:
        entry = ChainOfCustodyEntry(
            entry_id=str(uuid.uuid4()),
            timestamp=self._clock(),
            action=action,
            evidence_id=evidence_id,
            officer_id=self.officer_id,
            session_id=self.session_id,
            notes=notes,
        )
        self.chain_of_custody.append(entry)
        self._logger.debug(f"[CUSTODY] {action}{': ' + notes if notes else ''}")
        return entry

    def record_frame(self):
        """Count a frame sent for analysis."""
        self.frame_count += 1

    def _frame_hash_or_timestamp(self, frame_data: Optional[Union[bytes, str]], timestamp: float) -> str:
        # Streamed detections carry no frame bytes; hash the receive time instead
        return frame_hash(frame_data if frame_data is not None else repr(timestamp))

    def record_evidence(self, detection: Detection, frame_data: Optional[Union[bytes, str]] = None) -> Optional[EvidenceRecord]:
        """
        Log a confirmed evidence detection. Defect detections and closed cases are ignored.

        Usable directly as a session consumer.
        """
        if not self.is_open or detection.kind is not DetectionKind.EVIDENCE:
            return None

        record = EvidenceRecord(
            evidence_id=detection.detection_id,
            case_id=self.case_id,
            evidence_type=detection.type_label,
            category=detection.category or EvidenceCategory.UNCLASSIFIED,
            priority=detection.priority or EvidencePriority.MEDIUM,
            description=detection.description,
            location=detection.location,
            confidence=detection.confidence,
            frame_hash=self._frame_hash_or_timestamp(frame_data, detection.timestamp),
            timestamp=detection.timestamp,
            captured_by=self.officer_id,
            clock_position=detection.clock_position,
            box=detection.box.to_dict() if detection.box else None,
            suggested_actions=list(detection.suggested_actions),
        )
        self.evidence.append(record)
        self.log_custody("evidence_detected", record.evidence_id, f"{record.category.value}: {record.evidence_type}")
        self._logger.info(
            f"EVIDENCE: {record.evidence_type.upper()} | Category: {record.category.value} | "
            f"Priority: {record.priority.value} | Confidence: {record.confidence:.0f}%"
        )
        return record

    def record_alert(self, message: AuthenticityAlertMessage, frame_data: Optional[Union[bytes, str]] = None) -> Optional[AuthenticityAlert]:
        """Log an authenticity concern. Usable directly as a session alert consumer."""
        if not self.is_open:
            return None

        now = self._clock()
        alert = AuthenticityAlert(
            alert_id=str(uuid.uuid4()),
            concern=message.concern,
            severity=message.severity,
            description=message.description,
            location=message.location,
            recommendation=message.recommendation,
            frame_hash=self._frame_hash_or_timestamp(frame_data, now),
            timestamp=now,
        )
        self.authenticity_alerts.append(alert)
        self.log_custody("authenticity_concern", alert.alert_id, alert.description)
        self._logger.warning(f"AUTHENTICITY ALERT: {alert.concern.upper()} - {alert.recommendation}")
        return alert

    def capture_evidence(
        self,
        frame_data: Union[bytes, str],
        category: Optional[EvidenceCategory] = None,
        notes: Optional[str] = None,
    ) -> Optional[EvidenceRecord]:
        """
        Manually capture a frame as evidence.

        Args:
            frame_data: Encoded frame (JPEG bytes or base64 text)
            category: Investigator's classification, unclassified by default
            notes: Free-form notes

        Returns:
            The new record, or None if the case is closed
        """
        if not self.is_open:
            return None

        category = category or EvidenceCategory.UNCLASSIFIED
        record = EvidenceRecord(
            evidence_id=str(uuid.uuid4()),
            case_id=self.case_id,
            evidence_type="manual_capture",
            category=category,
            priority=EvidencePriority.HIGH,
            description=notes or "Manual evidence capture",
            location="User specified",
            confidence=100.0,
            frame_hash=frame_hash(frame_data),
            timestamp=self._clock(),
            captured_by=self.officer_id,
            suggested_actions=["Review", "Classify", "Document"],
            custody_notes=[notes or "Manual capture by investigator"],
            is_manual_capture=True,
        )
        self.evidence.append(record)
        self.log_custody("evidence_captured", record.evidence_id, f"Manual: {category.value}")
        self._logger.info(f"MANUAL CAPTURE: Evidence logged with hash {record.frame_hash}")
        return record

    def end_session(self) -> Dict[str, Any]:
        """
        Close the case and return its summary. Calling it again returns the
        same summary without adding custody entries.
        """
        if self.is_open:
            self.end_time = self._clock()
            duration_s = round((self.end_time - self.start_time) / 1000)
            self.log_custody("session_ended", notes=f"Duration: {duration_s}s, Evidence: {len(self.evidence)}")
            self._logger.info(
                f"Forensic session complete: {len(self.evidence)} evidence items, "
                f"{len(self.authenticity_alerts)} authenticity alerts, "
                f"{len(self.chain_of_custody)} custody entries"
            )
        return self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        def _record(record) -> Dict[str, Any]:
            data = asdict(record)
            for key in ("category", "priority"):
                if key in data and hasattr(data[key], "value"):
                    data[key] = data[key].value
            return data

        return {
            "session_id": self.session_id,
            "case_id": self.case_id,
            "officer_id": self.officer_id,
            "scene_type": self.scene_type,
            "location": self.location,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "frame_count": self.frame_count,
            "evidence": [_record(r) for r in self.evidence],
            "authenticity_alerts": [asdict(a) for a in self.authenticity_alerts],
            "chain_of_custody": [asdict(e) for e in self.chain_of_custody],
        }
