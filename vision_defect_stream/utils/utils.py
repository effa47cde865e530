"""
Utility functions for the vision_defect_stream package.
Contains helpers for logging, timing, clocks and result formatting.
"""

import logging
import math
import time
from typing import Callable, Optional, Sequence

LOGGER_NAME = "vision_defect_stream"

Clock = Callable[[], float]


# Logging setup
def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up logging configuration for the detection pipeline.
    Handles Unicode output gracefully on Windows consoles.
    """
    import sys

    logger = logging.getLogger(LOGGER_NAME)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # ---- Handle console encoding problems (Windows cp1252 etc.) ----
    try:
        stream = sys.stdout
        encoding = getattr(stream, "encoding", None)

        if encoding is None or encoding.lower() in ["cp1252", "ansi_x3.4-1968"]:
            import io

            stream = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")

        console_handler = logging.StreamHandler(stream)
    except Exception:
        console_handler = logging.StreamHandler()

    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    # ---- Optional file logging ----
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8", mode="a")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except Exception as e:
            logger.warning(f"Could not create log file {log_file}: {e}")

    return logger


def epoch_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


# Performance utilities
class Timer:
    """Simple context manager for timing operations."""

    def __init__(self, name: str = "Operation", logger: Optional[logging.Logger] = None):
        self._name = name
        self._logger = logger
        self._start_time = None

    def __enter__(self):
        self._start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self._start_time
        if self._logger:
            self._logger.debug(f"{self._name} took {duration * 1000:.3f} ms")

    def elapsed(self) -> float:
        """Get elapsed time since start in seconds."""
        if self._start_time is None:
            return 0.0
        return time.perf_counter() - self._start_time


def format_box(box) -> str:
    """Render a normalized box as percentages of the frame."""
    if box is None:
        return "no box"
    return (
        f"x={box.xmin * 100:.0f}%-{box.xmax * 100:.0f}%, "
        f"y={box.ymin * 100:.0f}%-{box.ymax * 100:.0f}%"
    )


def format_detection_results(detections: Sequence, max_items: int = 10) -> str:
    """
    Format confirmed detections for human-readable output.

    Args:
        detections: Sequence of Detection objects
        max_items: Maximum number of items to include

    Returns:
        str: Formatted detection summary
    """
    if not detections:
        return "No detections confirmed"

    lines = [f"Confirmed {len(detections)} detections:"]

    for i, det in enumerate(detections[:max_items]):
        lines.append(f"  {i+1}. {det.type_label} (confidence: {det.confidence:.0f}%) at {format_box(det.box)}")

    if len(detections) > max_items:
        lines.append(f"  ... and {len(detections) - max_items} more")

    return "\n".join(lines)
