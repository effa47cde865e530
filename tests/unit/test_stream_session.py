"""
Unit tests for StreamSession orchestration.
"""

import json
from unittest.mock import Mock

import pytest

from vision_defect_stream.core.geometry import NormalizedBox
from vision_defect_stream.core.stream_session import FilterOutcome, SessionState, StreamSession
from vision_defect_stream.utils.config import create_test_config, get_default_config
from vision_defect_stream.utils.exceptions import SessionStateError

CRACK = '{"type":"defect","defectType":"crack","confidence":85,"box_2d":[200,150,450,180]}'


def message(**fields):
    payload = {"type": "defect", "defectType": "crack", "confidence": 85}
    payload.update(fields)
    return json.dumps(payload)


@pytest.fixture
def session(clock, quiet_logger):
    session = StreamSession(config=get_default_config("property_defect"), clock=clock, logger=quiet_logger)
    session.start()
    return session


class TestStateMachine:
    """Tests for session state transitions."""

    def test_initial_state(self, clock):
        session = StreamSession(clock=clock)
        assert session.state is SessionState.IDLE
        assert session.session_id is None

    def test_lifecycle(self, clock):
        session = StreamSession(clock=clock)
        session_id = session.connect()
        assert session.state is SessionState.CONNECTING
        assert session.session_id == session_id

        session.activate()
        assert session.is_active

        session.stop()
        assert session.state is SessionState.STOPPED
        assert session.cancel_event.is_set()

    def test_activate_requires_connecting(self, clock):
        session = StreamSession(clock=clock)
        with pytest.raises(SessionStateError):
            session.activate()

    def test_connect_twice_fails(self, clock):
        session = StreamSession(clock=clock)
        session.connect()
        with pytest.raises(SessionStateError, match="Cannot connect"):
            session.connect()

    def test_stop_is_idempotent(self, session):
        session.stop()
        session.stop()
        assert session.state is SessionState.STOPPED

    def test_stop_from_idle(self, clock):
        session = StreamSession(clock=clock)
        session.stop()
        assert session.state is SessionState.STOPPED

    def test_restart_gets_new_session(self, session):
        first_id = session.session_id
        session.stop()
        second_id = session.start()
        assert second_id != first_id
        assert not session.cancel_event.is_set()


class TestMessageHandling:
    """Tests for the filter chain as driven by the session."""

    def test_end_to_end_crack(self, session):
        consumer = Mock()
        session.add_consumer(consumer)

        result = session.handle_message(CRACK)

        assert result.outcome is FilterOutcome.CONFIRMED
        assert result.frame_count == 1
        detection = result.detection
        assert detection.type_label == "crack"
        assert detection.box == NormalizedBox(ymin=0.2, xmin=0.15, ymax=0.45, xmax=0.18)
        consumer.assert_called_once_with(detection)
        assert len(session.get_confirmed_detections()) == 1

    def test_repeat_is_duplicate(self, session, clock):
        session.handle_message(CRACK)
        clock.advance(250)
        assert session.handle_message(CRACK).outcome is FilterOutcome.DUPLICATE

    def test_inactive_session_ignores_messages(self, clock):
        session = StreamSession(clock=clock)
        assert session.handle_message(CRACK).outcome is FilterOutcome.INACTIVE

        session.connect()
        assert session.handle_message(CRACK).outcome is FilterOutcome.INACTIVE

    def test_malformed_is_non_fatal(self, session):
        assert session.handle_message("not json at all").outcome is FilterOutcome.MALFORMED
        assert session.handle_message(CRACK).outcome is FilterOutcome.CONFIRMED

    def test_deeply_nested_payload_is_malformed(self, session):
        text = '{"type":"defect","x":' + "[" * 100000 + "]" * 100000 + "}"
        result = session.handle_message(text)
        assert result.outcome is FilterOutcome.MALFORMED
        assert session.is_active

    def test_untagged_defect_is_processed(self, session):
        result = session.handle_message('{"defectType":"crack","confidence":85}')
        assert result.outcome is FilterOutcome.CONFIRMED

    def test_confirmed_defect_carries_advice(self, session):
        result = session.handle_message(message(defectType="structural crack", severity="critical"))
        assert result.detection.recommendation.startswith("URGENT: Structural engineer")
        assert result.detection.estimated_cost == "$2,000-10,000+"
        assert session.get_confirmed_detections()[0].to_dict()["estimated_cost"] == "$2,000-10,000+"

    def test_control_messages(self, session):
        assert session.handle_message('{"type":"clear"}').outcome is FilterOutcome.CLEAR
        assert session.handle_message('{"type":"scanning"}').outcome is FilterOutcome.SCANNING

    def test_rejections(self, session):
        assert session.handle_message(message(confidence=30)).outcome is FilterOutcome.LOW_CONFIDENCE
        assert session.handle_message(message(defectType="")).outcome is FilterOutcome.MISSING_TYPE

    def test_rejected_detection_is_not_recorded(self, session):
        session.handle_message(message(confidence=30, box_2d=[200, 150, 450, 180]))
        assert session.handle_message(CRACK).outcome is FilterOutcome.CONFIRMED

    def test_type_only_detection_skips_spatial_stages(self, session):
        result = session.handle_message(message(defectType="mold"))
        assert result.outcome is FilterOutcome.CONFIRMED
        assert result.frame_count is None
        assert session.get_stats()["state_sizes"]["nms"] == 0

    def test_overlapping_weaker_detection_suppressed(self, session):
        session.handle_message(message(defectType="crack", confidence=90, box_2d=[0.1, 0.1, 0.5, 0.5]))
        # Different type passes dedup, but NMS ignores type
        result = session.handle_message(message(defectType="stain", confidence=70, box_2d=[0.12, 0.12, 0.52, 0.52]))
        assert result.outcome is FilterOutcome.SUPPRESSED

    def test_suppressed_detection_is_not_deduplicated(self, session):
        session.handle_message(message(defectType="crack", confidence=90, box_2d=[0.1, 0.1, 0.5, 0.5]))
        session.handle_message(message(defectType="stain", confidence=70, box_2d=[0.12, 0.12, 0.52, 0.52]))
        assert session._dedup.is_duplicate("stain", NormalizedBox(0.12, 0.12, 0.52, 0.52)) is False

    def test_consumer_failure_does_not_break_pipeline(self, session):
        session.add_consumer(Mock(side_effect=RuntimeError("store down")))
        healthy = Mock()
        session.add_consumer(healthy)

        assert session.handle_message(CRACK).accepted
        healthy.assert_called_once()

    def test_removed_consumer_not_called(self, session):
        consumer = Mock()
        session.add_consumer(consumer)
        session.remove_consumer(consumer)
        session.remove_consumer(consumer)

        session.handle_message(CRACK)
        consumer.assert_not_called()

    def test_alert_consumer(self, clock, quiet_logger):
        session = StreamSession(config=get_default_config("forensic"), clock=clock, logger=quiet_logger)
        session.start()
        alerts = Mock()
        session.add_alert_consumer(alerts)

        result = session.handle_message('{"type":"authenticity_alert","concern":"cloning_artifact","severity":"high"}')
        assert result.outcome is FilterOutcome.AUTHENTICITY_ALERT
        assert alerts.call_args[0][0].concern == "cloning_artifact"


class TestMultiFrameConfirmation:
    """Tests for sessions requiring two sightings."""

    def test_second_sighting_confirms(self, clock, quiet_logger):
        session = StreamSession(config=create_test_config(), clock=clock, logger=quiet_logger)
        session.start()

        assert session.handle_message(CRACK).outcome is FilterOutcome.AWAITING_CONFIRMATION
        clock.advance(250)
        result = session.handle_message(CRACK)
        assert result.outcome is FilterOutcome.CONFIRMED
        assert result.frame_count == 2


class TestStop:
    """Tests for state clearing on stop."""

    def test_stop_clears_rolling_state(self, session):
        session.handle_message(CRACK)
        assert session.get_stats()["state_sizes"] == {"dedup": 1, "temporal": 1, "nms": 1}

        session.stop()
        assert session.get_stats()["state_sizes"] == {"dedup": 0, "temporal": 0, "nms": 0}

    def test_no_carryover_between_sessions(self, session):
        session.handle_message(CRACK)
        session.stop()
        session.start()
        assert session.handle_message(CRACK).outcome is FilterOutcome.CONFIRMED

    def test_consume_stops_when_cancelled(self, session):
        messages = iter([CRACK, message(defectType="mold"), message(defectType="gap")])

        def stop_after_first(_detection):
            session.stop()

        session.add_consumer(stop_after_first)
        confirmed = session.consume(messages)
        assert [d.type_label for d in confirmed] == ["crack"]

    def test_consume_collects_confirmed(self, session):
        confirmed = session.consume([CRACK, "junk", message(defectType="mold"), CRACK])
        assert [d.type_label for d in confirmed] == ["crack", "mold"]


class TestStats:
    """Tests for session statistics."""

    def test_outcomes_counted(self, session):
        session.handle_message(CRACK)
        session.handle_message(CRACK)
        session.handle_message("junk")

        stats = session.get_stats()
        assert stats["messages"] == 3
        assert stats["confirmed"] == 1
        assert stats["outcomes"]["duplicate"] == 1
        assert stats["outcomes"]["malformed"] == 1
        assert stats["state"] == "active"
        assert stats["profile"] == "property_defect"
