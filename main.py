"""
Replay recorded detector output through a detection session.

Each non-empty line of the input file is one raw model reply. Messages are
timestamped on a simulated clock advancing by the frame interval of the chosen
transport, so windows behave as they would on a live stream.
"""

import json
import sys
from pathlib import Path

from vision_defect_stream.core.damage_scoring import InspectionRecord
from vision_defect_stream.core.forensic_log import ForensicCase
from vision_defect_stream.core.stream_session import StreamSession
from vision_defect_stream.utils.config import available_profiles, get_default_config
from vision_defect_stream.utils.exceptions import DetectionPipelineError
from vision_defect_stream.utils.utils import Timer, epoch_ms, format_detection_results, setup_logging


class SimulatedClock:
    """Millisecond clock advanced manually, one frame interval per message."""

    def __init__(self, start_ms: float, step_ms: float):
        self.now = start_ms
        self.step_ms = step_ms

    def __call__(self) -> float:
        return self.now

    def tick(self):
        self.now += self.step_ms


def replay(path: Path, profile_name: str, live: bool, verbose: bool, publish: bool, log_file=None) -> int:
    logger = setup_logging(verbose=verbose, log_file=log_file)
    config = get_default_config(profile_name)
    config.verbose = verbose

    interval = config.live_frame_interval_ms if live else config.request_frame_interval_ms
    clock = SimulatedClock(epoch_ms(), interval)
    session = StreamSession(config=config, clock=clock, logger=logger)

    forensic = profile_name == "forensic"
    if forensic:
        case = ForensicCase(clock=clock, logger=logger)
        session.add_consumer(case.record_evidence)
        session.add_alert_consumer(case.record_alert)
    else:
        inspection = InspectionRecord(logger=logger)
        session.add_consumer(inspection)

    publisher = None
    if publish:
        from vision_defect_stream.core.detection_publisher import DetectionPublisher

        publisher = DetectionPublisher(config.redis, logger=logger)
        session.add_consumer(publisher)

    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    logger.info(f"Replaying {len(lines)} messages from {path} ({profile_name}, {interval} ms/frame)")

    session.start()
    with Timer("Replay", logger):
        for line in lines:
            if forensic:
                case.record_frame()
            session.handle_message(line)
            clock.tick()

    confirmed = session.get_confirmed_detections()
    session.stop()

    logger.info(format_detection_results(confirmed))
    logger.info(f"Session stats: {json.dumps(session.get_stats(), default=str)}")

    if forensic:
        summary = case.end_session()
        logger.info(
            f"Case {summary['case_id']}: {len(summary['evidence'])} evidence items, "
            f"{len(summary['authenticity_alerts'])} authenticity alerts"
        )
    else:
        analysis = inspection.analyze()
        logger.info(f"Overall risk: {analysis.overall_risk} - {analysis.time_to_action}")
        logger.info(f"Estimated cost: ${analysis.total_estimated_cost[0]}-{analysis.total_estimated_cost[1]}")
        for action in analysis.urgent_actions:
            logger.info(f"  {action}")

    if publisher is not None:
        logger.info(f"Published {publisher.published_count} detections ({publisher.failed_count} failed)")
        publisher.close()

    return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Replay detector messages through the filter pipeline")
    parser.add_argument("messages", type=Path, help="File with one raw detector message per line")
    parser.add_argument("--profile", default="property_defect", choices=available_profiles(), help="Detection profile")
    parser.add_argument("--request-mode", action="store_true", help="Use the periodic request frame interval")
    parser.add_argument("--publish", action="store_true", help="Publish confirmed detections to Redis")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", default=None, help="Also log to this file")

    args = parser.parse_args()
    logger = setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        return replay(args.messages, args.profile, not args.request_mode, args.verbose, args.publish, args.log_file)
    except KeyboardInterrupt:
        logger.info("Replay interrupted by user")
        return 130
    except (OSError, DetectionPipelineError) as e:
        logger.error(f"Replay failed: {e}")
        if getattr(e, "details", None):
            logger.error(f"Details: {e.details}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
