"""
Box geometry for the face mesh pipeline.

Responsibility:
    Pure functions over axis-aligned boxes: creation, scaling,
    enlargement by a margin factor, size/center extraction, overlap
    (intersection-over-union) and cropping a box out of a frame.

Non-goals:
    - No tracking state (that belongs in slots / pipeline).
    - No model awareness.

Hard-coded:
    - Default enlargement factor is 1.5, applied around the box center.
    - Regions of a crop that fall outside the frame are zero-filled.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import cv2
import numpy as np

DEFAULT_ENLARGE_FACTOR = 1.5


@dataclass(frozen=True, slots=True)
class Box:
    """An axis-aligned rectangle in image coordinates.

    Attributes:
        start_point: Top-left corner (x, y).
        end_point: Bottom-right corner (x, y).

    The invariant start_point <= end_point holds on both axes; it is
    checked on construction.
    """

    start_point: Tuple[float, float]
    end_point: Tuple[float, float]

    def __post_init__(self) -> None:
        sx, sy = self.start_point
        ex, ey = self.end_point
        if sx > ex or sy > ey:
            raise ValueError(
                f"Box start_point must not exceed end_point, "
                f"got start={self.start_point}, end={self.end_point}."
            )

    @property
    def size(self) -> np.ndarray:
        """Box (width, height) as a float array."""
        return np.subtract(self.end_point, self.start_point, dtype=np.float64)

    @property
    def center(self) -> np.ndarray:
        """Box center (x, y) as a float array."""
        return np.add(self.start_point, self.end_point, dtype=np.float64) / 2.0

    @property
    def width(self) -> float:
        return self.end_point[0] - self.start_point[0]

    @property
    def height(self) -> float:
        return self.end_point[1] - self.start_point[1]

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_array(self) -> np.ndarray:
        """Return [x1, y1, x2, y2] as a float array."""
        return np.array(
            [*self.start_point, *self.end_point], dtype=np.float64
        )

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x1": round(self.start_point[0], 2),
            "y1": round(self.start_point[1], 2),
            "x2": round(self.end_point[0], 2),
            "y2": round(self.end_point[1], 2),
        }


def create_box(start_end: Sequence[float]) -> Box:
    """Build a Box from a flat [x1, y1, x2, y2] sequence or array."""
    values = np.asarray(start_end, dtype=np.float64).reshape(-1)
    if values.shape[0] != 4:
        raise ValueError(
            f"Expected 4 values [x1, y1, x2, y2], got {values.shape[0]}."
        )
    x1, y1, x2, y2 = (float(v) for v in values)
    return Box(start_point=(x1, y1), end_point=(x2, y2))


def get_box_size(box: Box) -> np.ndarray:
    return box.size


def get_box_center(box: Box) -> np.ndarray:
    return box.center


def scale_box(box: Box, factors: Sequence[float]) -> Box:
    """Multiply both corners of a box by per-axis factors (fx, fy)."""
    fx, fy = factors
    return Box(
        start_point=(box.start_point[0] * fx, box.start_point[1] * fy),
        end_point=(box.end_point[0] * fx, box.end_point[1] * fy),
    )


def enlarge_box(box: Box, factor: float = DEFAULT_ENLARGE_FACTOR) -> Box:
    """Grow a box around its center by a margin factor.

    Args:
        box: The box to enlarge.
        factor: Size multiplier. 1.5 turns a tight detector box into a
                crop that covers the full facial extent.

    Returns:
        A new Box with the same center and size * factor.
    """
    center = box.center
    half = box.size * factor / 2.0
    start = center - half
    end = center + half
    return Box(
        start_point=(float(start[0]), float(start[1])),
        end_point=(float(end[0]), float(end[1])),
    )


def intersection_over_union(a: Box, b: Box) -> float:
    """Compute the intersection-over-union of two boxes.

    Disjoint boxes yield 0.0. When the union area is not positive
    (both boxes degenerate) the result is defined as 0.0 instead of
    dividing by zero.
    """
    x1 = max(a.start_point[0], b.start_point[0])
    y1 = max(a.start_point[1], b.start_point[1])
    x2 = min(a.end_point[0], b.end_point[0])
    y2 = min(a.end_point[1], b.end_point[1])

    inter_area = max(0.0, x2 - x1) * max(0.0, y2 - y1)
    union_area = a.area + b.area - inter_area

    if union_area <= 0:
        return 0.0

    return float(inter_area / union_area)


def cut_box_from_image_and_resize(
    image: np.ndarray,
    box: Box,
    crop_size: Tuple[int, int],
) -> np.ndarray:
    """Crop a box out of a frame and resize it to a fixed size.

    Args:
        image: Source frame as an (H, W, C) numpy array.
        box: Region to crop, in image coordinates. May extend past the
             frame edges.
        crop_size: Output (width, height) in pixels.

    Returns:
        An array of shape (height, width, C) with the same dtype as the
        input. Pixels that map outside the frame are zero. A box that is
        flat on an axis samples one source pixel along it, so the crop
        replicates that row or column.
    """
    out_w, out_h = crop_size

    # Sampled extent is at least one source pixel
    sx = out_w / max(box.width, 1.0)
    sy = out_h / max(box.height, 1.0)

    # Affine map from image space into the crop's pixel grid
    matrix = np.array(
        [
            [sx, 0.0, -box.start_point[0] * sx],
            [0.0, sy, -box.start_point[1] * sy],
        ],
        dtype=np.float64,
    )

    return cv2.warpAffine(
        image,
        matrix,
        (int(out_w), int(out_h)),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
