"""
Geometry helpers for normalized bounding boxes.

Boxes are expressed as fractions of the source frame, ordered
``(ymin, xmin, ymax, xmax)`` like the model's ``box_2d`` field. Boxes built
through :func:`auto_scale_and_clamp` always satisfy ``0 <= min < max <= 1`` on
both axes; every other helper accepts any box and degrades gracefully.
"""

import math
from dataclasses import dataclass
from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional, Sequence, Tuple

from ..utils.exceptions import GeometryError
from ..utils.utils import round_half_up


@dataclass(frozen=True)
class NormalizedBox:
    """Bounding box in fractional [0, 1] frame coordinates."""

    ymin: float
    xmin: float
    ymax: float
    xmax: float

    @property
    def width(self) -> float:
        return self.xmax - self.xmin

    @property
    def height(self) -> float:
        return self.ymax - self.ymin

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @property
    def center(self) -> Tuple[float, float]:
        """Center as (x, y)."""
        return (self.xmin + self.xmax) / 2, (self.ymin + self.ymax) / 2

    @property
    def aspect_ratio(self) -> float:
        """Long side over short side; infinite for degenerate boxes."""
        short_side = min(self.width, self.height)
        if short_side <= 0:
            return math.inf
        return max(self.width, self.height) / short_side

    def is_valid(self) -> bool:
        """True if the box is inside the frame and has positive extent."""
        return 0.0 <= self.xmin < self.xmax <= 1.0 and 0.0 <= self.ymin < self.ymax <= 1.0

    def to_xyxy(self, frame_width: float = 1.0, frame_height: float = 1.0) -> Tuple[float, float, float, float]:
        """Convert to (x1, y1, x2, y2), optionally scaled to pixels."""
        return (
            self.xmin * frame_width,
            self.ymin * frame_height,
            self.xmax * frame_width,
            self.ymax * frame_height,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"ymin": self.ymin, "xmin": self.xmin, "ymax": self.ymax, "xmax": self.xmax}


class FitMode(Enum):
    """How source media is scaled into its container (CSS object-fit)."""

    COVER = "cover"
    CONTAIN = "contain"


@dataclass(frozen=True)
class DisplayRect:
    """Where the scaled source media lands inside its container, in pixels."""

    x: float
    y: float
    width: float
    height: float
    scale: float


@dataclass(frozen=True)
class PixelBox:
    """On-screen rectangle for a box; x and y sit on half pixels for crisp strokes."""

    x: float
    y: float
    width: int
    height: int


def intersection_over_union(a: NormalizedBox, b: NormalizedBox) -> float:
    """
    Axis-aligned Intersection over Union of two boxes.

    Returns:
        float: Value in [0, 1]; 0 when the union has no area
    """
    x_left = max(a.xmin, b.xmin)
    y_top = max(a.ymin, b.ymin)
    x_right = min(a.xmax, b.xmax)
    y_bottom = min(a.ymax, b.ymax)

    intersection = max(0.0, x_right - x_left) * max(0.0, y_bottom - y_top)
    union = a.area + b.area - intersection

    if union <= 0:
        return 0.0
    return min(1.0, intersection / union)


def center_distance(a: NormalizedBox, b: NormalizedBox) -> float:
    """Euclidean distance between box centers."""
    ax, ay = a.center
    bx, by = b.center
    return math.hypot(ax - bx, ay - by)


def spatial_key(type_label: str, box: NormalizedBox) -> str:
    """
    Approximate identity of a physical location: lowercased type plus the box
    center quantized to a tenth of the frame on each axis.
    """
    center_x, center_y = box.center
    return f"{type_label.lower()}_{round_half_up(center_x * 10)}_{round_half_up(center_y * 10)}"


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def detect_scale(values: Sequence[float]) -> float:
    """
    Guess the coordinate scale of raw box values.

    Returns:
        float: 1000 for permille coordinates, 100 for percentages, 1 for fractions
    """
    largest = max(abs(v) for v in values)
    if largest > 100:
        return 1000.0
    if largest > 1:
        return 100.0
    return 1.0


def auto_scale_and_clamp(raw: Optional[Sequence[Any]]) -> Optional[NormalizedBox]:
    """
    Normalize a raw ``[ymin, xmin, ymax, xmax]`` tuple of unknown scale.

    The scale is inferred from the largest magnitude, inverted pairs are
    swapped and values clamped to [0, 1].

    Args:
        raw: Four coordinates on a 0-1, 0-100 or 0-1000 scale; extra items are ignored

    Returns:
        NormalizedBox, or None if the input is unusable or the result has no area
    """
    if raw is None or isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence) or len(raw) < 4:
        return None

    values = list(raw[:4])
    if not all(_is_number(v) for v in values):
        return None

    scale = detect_scale(values)
    ymin, xmin, ymax, xmax = (float(v) / scale for v in values)

    if ymin > ymax:
        ymin, ymax = ymax, ymin
    if xmin > xmax:
        xmin, xmax = xmax, xmin

    box = NormalizedBox(
        ymin=min(1.0, max(0.0, ymin)),
        xmin=min(1.0, max(0.0, xmin)),
        ymax=min(1.0, max(0.0, ymax)),
        xmax=min(1.0, max(0.0, xmax)),
    )

    if box.width <= 0 or box.height <= 0:
        return None
    return box


def get_display_rect(
    source_width: float,
    source_height: float,
    display_width: float,
    display_height: float,
    fit_mode: FitMode = FitMode.COVER,
) -> DisplayRect:
    """
    Compute where media of the source size is drawn inside a container.

    Under COVER the media is scaled until it fills the container and the
    overflowing axis is cropped; under CONTAIN it is scaled until it fits and
    the spare axis is letterboxed. The media is centered in both cases.

    Raises:
        GeometryError: If any dimension is not positive
    """
    dimensions = (source_width, source_height, display_width, display_height)
    if any(not _is_number(d) or d <= 0 for d in dimensions):
        raise GeometryError("display_rect", dimensions, "All dimensions must be positive numbers")

    fit_mode = FitMode(fit_mode)
    source_ratio = source_width / source_height
    display_ratio = display_width / display_height

    source_is_wider = source_ratio > display_ratio
    if fit_mode is FitMode.COVER:
        fill_height = source_is_wider
    else:
        fill_height = not source_is_wider

    if fill_height:
        height = display_height
        width = height * source_ratio
    else:
        width = display_width
        height = width / source_ratio

    return DisplayRect(
        x=(display_width - width) / 2,
        y=(display_height - height) / 2,
        width=width,
        height=height,
        scale=width / source_width,
    )


def transform_box_for_display(
    box: NormalizedBox,
    source_width: float,
    source_height: float,
    display_width: float,
    display_height: float,
    fit_mode: FitMode = FitMode.COVER,
) -> PixelBox:
    """
    Map a normalized source-space box onto a container showing the source with
    object-fit semantics.

    Args:
        box: Box normalized to the source media
        source_width: Intrinsic media width in pixels
        source_height: Intrinsic media height in pixels
        display_width: Container width in pixels
        display_height: Container height in pixels
        fit_mode: COVER or CONTAIN

    Returns:
        PixelBox in container pixels, origin snapped to the pixel grid plus 0.5
    """
    rect = get_display_rect(source_width, source_height, display_width, display_height, fit_mode)

    source_x = box.xmin * source_width
    source_y = box.ymin * source_height
    source_w = box.width * source_width
    source_h = box.height * source_height

    return PixelBox(
        x=round_half_up(rect.x + source_x * rect.scale) + 0.5,
        y=round_half_up(rect.y + source_y * rect.scale) + 0.5,
        width=round_half_up(source_w * rect.scale),
        height=round_half_up(source_h * rect.scale),
    )


def transform_box_simple(box: NormalizedBox, canvas_width: float, canvas_height: float) -> PixelBox:
    """Pixel box for a canvas with exactly the source dimensions."""
    return PixelBox(
        x=round_half_up(box.xmin * canvas_width) + 0.5,
        y=round_half_up(box.ymin * canvas_height) + 0.5,
        width=round_half_up(box.width * canvas_width),
        height=round_half_up(box.height * canvas_height),
    )
