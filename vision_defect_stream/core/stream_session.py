"""
vision_defect_stream/core/stream_session.py

Per-session orchestration of the detection filter chain.

Each raw detector message runs synchronously through

    parse -> validate -> deduplicate -> temporal confirmation -> NMS

and the first stage that filters a detection short-circuits the rest.
Detections without a box skip the temporal and NMS stages, which need spatial
state. All rolling state lives on the session and is cleared when it stops.
"""

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from ..utils.config import DetectionProfile, StreamConfig, get_default_config
from ..utils.exceptions import SessionStateError
from ..utils.metrics import PipelineMetrics
from ..utils.utils import Clock, Timer, epoch_ms, format_box, setup_logging
from .deduplication import DeduplicationFilter
from .interfaces import Detection, DetectionConsumer, Rejected
from .nms import NMSTracker
from .payload import (
    AuthenticityAlertMessage,
    ClearMessage,
    DefectMessage,
    EvidenceMessage,
    MalformedMessage,
    ParsedMessage,
    ScanningMessage,
    parse_message,
)
from .temporal import TemporalConsistencyTracker
from .validator import DetectionValidator

AlertConsumer = Callable[[AuthenticityAlertMessage], None]


class SessionState(Enum):
    """Streaming session states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    STOPPED = "stopped"


class FilterOutcome(Enum):
    """What happened to one detector message."""

    CONFIRMED = "confirmed"
    CLEAR = "clear"
    SCANNING = "scanning"
    AUTHENTICITY_ALERT = "authenticity_alert"
    MALFORMED = "malformed"
    MISSING_TYPE = "missing_type"
    LOW_CONFIDENCE = "low_confidence"
    DUPLICATE = "duplicate"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SUPPRESSED = "suppressed"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class PipelineResult:
    """Result of running one message through the session."""

    outcome: FilterOutcome
    detection: Optional[Detection] = None
    message: Optional[ParsedMessage] = None
    frame_count: Optional[int] = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.outcome is FilterOutcome.CONFIRMED


_TRANSITIONS = {
    SessionState.IDLE: {SessionState.CONNECTING, SessionState.STOPPED},
    SessionState.CONNECTING: {SessionState.ACTIVE, SessionState.STOPPED},
    SessionState.ACTIVE: {SessionState.STOPPED},
    SessionState.STOPPED: {SessionState.CONNECTING},
}


class StreamSession:
    """
    Detection stream session: IDLE -> CONNECTING -> ACTIVE -> STOPPED.

    The transport (WebSocket or periodic requests) calls :meth:`connect` when it
    starts dialling, :meth:`activate` once frames flow, feeds every model reply
    to :meth:`handle_message`, and watches :attr:`cancel_event` to abort
    in-flight requests after :meth:`stop`. A stopped session can be connected
    again and starts from empty state.

    Not thread-safe: messages must be handled from a single execution context.
    """

    def __init__(
        self,
        config: Optional[StreamConfig] = None,
        profile: Optional[DetectionProfile] = None,
        clock: Clock = epoch_ms,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        """
        Args:
            config: Stream configuration (defaults to the property-defect profile)
            profile: Overrides ``config.profile`` when given
            clock: Returns the current time in epoch ms
            logger: Logger to use; defaults to the package logger
            metrics: Metrics sink; a fresh one is created per session object
        """
        self._config = config or get_default_config()
        self.profile = profile or self._config.profile
        self.verbose = self._config.verbose
        self._clock = clock
        self._logger = logger or setup_logging(self.verbose)

        self._validator = DetectionValidator(self.profile, self._logger)
        self._dedup = DeduplicationFilter(self.profile, clock, self._logger)
        self._temporal = TemporalConsistencyTracker(self.profile, clock, self._logger)
        self._nms = NMSTracker(self.profile, clock, self._logger)

        self._consumers: List[DetectionConsumer] = []
        self._alert_consumers: List[AlertConsumer] = []
        self._confirmed: List[Detection] = []

        self._state = SessionState.IDLE
        self.session_id: Optional[str] = None
        self.cancel_event = threading.Event()
        self.metrics = metrics or PipelineMetrics()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SessionState.ACTIVE

    def _transition(self, target: SessionState, action: str):
        if target not in _TRANSITIONS[self._state]:
            raise SessionStateError(self._state.value, action)
        self._logger.debug(f"Session {self.session_id}: {self._state.value} -> {target.value}")
        self._state = target

    def connect(self) -> str:
        """
        Begin a new session while the transport connects.

        Returns:
            str: The new session id
        """
        self._transition(SessionState.CONNECTING, "connect")
        self.session_id = str(uuid.uuid4())
        self.cancel_event.clear()
        self._confirmed.clear()
        self.metrics.reset()
        self._logger.info(f"Session {self.session_id} connecting (profile: {self.profile.name})")
        return self.session_id

    def activate(self):
        """Mark the transport as connected; messages are processed from now on."""
        self._transition(SessionState.ACTIVE, "activate")
        self._logger.info(f"Session {self.session_id} active")

    def start(self) -> str:
        """Connect and activate in one step, for transports without a handshake."""
        session_id = self.connect()
        self.activate()
        return session_id

    def stop(self):
        """
        Stop the session: signal cancellation and clear all rolling state.
        Stopping a stopped session does nothing.
        """
        if self._state is SessionState.STOPPED:
            return

        self.cancel_event.set()
        self._transition(SessionState.STOPPED, "stop")
        self.reset_filters()
        self._logger.info(f"Session {self.session_id} stopped after {len(self._confirmed)} confirmed detections")

    def reset_filters(self):
        """Clear dedup, temporal and NMS state."""
        self._dedup.clear()
        self._temporal.clear()
        self._nms.clear()
        self._update_state_sizes()

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------
    def add_consumer(self, consumer: DetectionConsumer):
        """Register a callable receiving every confirmed detection, in order."""
        self._consumers.append(consumer)

    def remove_consumer(self, consumer: DetectionConsumer):
        if consumer in self._consumers:
            self._consumers.remove(consumer)

    def add_alert_consumer(self, consumer: AlertConsumer):
        """Register a callable receiving authenticity alerts."""
        self._alert_consumers.append(consumer)

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------
    def handle_message(self, text: str, now: Optional[float] = None) -> PipelineResult:
        """
        Parse and process one raw detector message.

        Args:
            text: Raw model output for one frame
            now: Receive time in epoch ms (defaults to the session clock)

        Returns:
            PipelineResult describing the outcome
        """
        if not self.is_active:
            return self._finish(PipelineResult(FilterOutcome.INACTIVE, reason=f"session {self._state.value}"))

        return self.process(parse_message(text), now)

    def process(self, message: ParsedMessage, now: Optional[float] = None) -> PipelineResult:
        """Process an already parsed message."""
        if not self.is_active:
            return self._finish(PipelineResult(FilterOutcome.INACTIVE, message=message, reason=f"session {self._state.value}"))

        if isinstance(message, MalformedMessage):
            self._logger.warning(f"Ignoring malformed detector payload: {message.reason}")
            return self._finish(PipelineResult(FilterOutcome.MALFORMED, message=message, reason=message.reason))

        if isinstance(message, ClearMessage):
            self._logger.debug("Clear frame - no defects")
            return self._finish(PipelineResult(FilterOutcome.CLEAR, message=message))

        if isinstance(message, ScanningMessage):
            return self._finish(PipelineResult(FilterOutcome.SCANNING, message=message))

        if isinstance(message, AuthenticityAlertMessage):
            self._logger.warning(f"AUTHENTICITY ALERT: {message.concern} - {message.description}")
            self._notify(self._alert_consumers, message)
            return self._finish(PipelineResult(FilterOutcome.AUTHENTICITY_ALERT, message=message))

        if isinstance(message, (DefectMessage, EvidenceMessage)):
            now = self._clock() if now is None else now
            with Timer("Filter chain", self._logger if self.verbose else None):
                return self._finish(self._run_filters(message, now))

        raise TypeError(f"Unsupported message type: {type(message).__name__}")

    def _run_filters(self, message, now: float) -> PipelineResult:
        validated = self._validator.validate(message, now)
        if isinstance(validated, Rejected):
            outcome = FilterOutcome(validated.reason.value)
            return PipelineResult(outcome, message=message, reason=validated.detail)

        detection = validated
        label = detection.type_label

        if self._dedup.is_duplicate(label, detection.box, now):
            self._logger.info(f"Filtered duplicate: {label}")
            return PipelineResult(FilterOutcome.DUPLICATE, detection=detection, message=message)

        frame_count = None
        if detection.box is not None:
            temporal = self._temporal.check_consistency(label, detection.box, detection.confidence, now)
            frame_count = temporal.frame_count
            if not temporal.confirmed:
                self._logger.info(
                    f"Awaiting confirmation: {label} (frame {temporal.frame_count}/{self.profile.temporal_threshold})"
                )
                return PipelineResult(
                    FilterOutcome.AWAITING_CONFIRMATION, detection=detection, message=message, frame_count=frame_count
                )

            if self._nms.should_suppress(label, detection.box, detection.confidence, now):
                self._logger.info(f"NMS: Suppressed {label} (lower confidence overlap)")
                return PipelineResult(
                    FilterOutcome.SUPPRESSED, detection=detection, message=message, frame_count=frame_count
                )
            self._nms.track(label, detection.box, detection.confidence, now)

        self._dedup.record(label, detection.box, now)
        self._confirmed.append(detection)

        self._logger.info(
            f"DETECTED: {label.upper()} ({detection.severity.value}, {detection.confidence:.0f}%) "
            f"at {format_box(detection.box)}"
        )
        self.metrics.record_confirmed(detection.kind.value)
        self._notify(self._consumers, detection)

        return PipelineResult(FilterOutcome.CONFIRMED, detection=detection, message=message, frame_count=frame_count)

    def _notify(self, consumers, item):
        for consumer in list(consumers):
            try:
                consumer(item)
            except Exception as e:
                self._logger.error(f"Consumer {getattr(consumer, '__name__', consumer)!r} failed: {e}")

    def _finish(self, result: PipelineResult) -> PipelineResult:
        self.metrics.record_outcome(result.outcome.value)
        self._update_state_sizes()
        return result

    def _update_state_sizes(self):
        self.metrics.update_state_sizes(len(self._dedup), len(self._temporal), len(self._nms))

    def consume(self, messages: Iterable[str]) -> List[Detection]:
        """
        Drive the session from an iterable of raw messages until it is
        exhausted or the session is cancelled.

        Returns:
            Detections confirmed during this call
        """
        confirmed = []
        for text in messages:
            if self.cancel_event.is_set() or not self.is_active:
                break
            result = self.handle_message(text)
            if result.accepted:
                confirmed.append(result.detection)
        return confirmed

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get_confirmed_detections(self) -> List[Detection]:
        """Detections confirmed in the current (or last) session, as copies."""
        return copy.deepcopy(self._confirmed)

    def get_stats(self):
        stats = self.metrics.get_stats()
        stats["session_id"] = self.session_id
        stats["state"] = self._state.value
        stats["profile"] = self.profile.name
        return stats
