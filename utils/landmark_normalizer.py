"""
Landmark Normalizer Module

Converts raw detector keypoints into the fixed per-frame summary consumed by
the emotion extractor: an (N, 2) point array plus an axis-aligned bounding box.

Coordinate contract:
  - The canonical space is normalized [0, 1] image coordinates.
  - Detectors that report native pixels must pass frame_size so points are
    divided by (width, height) here, at the boundary.
  - Pixel-space points without a frame size are kept as-is and a warning is
    logged. Mouth curvature is a ratio of vertical distances, so the emotion
    math is unaffected; only the bounding box stays in pixels.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Mesh-resolution keyframes (MediaPipe face mesh has 468 points)
MESH_LANDMARK_THRESHOLD = 200
# Smallest landmark set that still counts as "a face" (eyes, nose, mouth corners)
MIN_LANDMARK_COUNT = 6


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned face box, top-left and bottom-right corners."""
    top_left: Tuple[float, float]
    bottom_right: Tuple[float, float]

    @property
    def width(self) -> float:
        return abs(self.bottom_right[0] - self.top_left[0])

    @property
    def height(self) -> float:
        return abs(self.bottom_right[1] - self.top_left[1])

    def to_dict(self) -> Dict[str, List[float]]:
        return {
            "topLeft": [float(self.top_left[0]), float(self.top_left[1])],
            "bottomRight": [float(self.bottom_right[0]), float(self.bottom_right[1])],
        }


@dataclass(frozen=True)
class LandmarkFrame:
    """
    Normalized landmarks for one analysis call.

    Ephemeral: built per frame, consumed once by the emotion extractor.
    """
    points: np.ndarray  # (N, 2) float array
    box: BoundingBox

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def is_mesh(self) -> bool:
        """True when the frame has mesh-resolution landmarks."""
        return len(self) >= MESH_LANDMARK_THRESHOLD

    def point(self, index: int) -> Tuple[float, float]:
        """Return point at index, or (0, 0) when the index is out of range."""
        if 0 <= index < len(self):
            x, y = self.points[index]
            return float(x), float(y)
        return 0.0, 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "landmarks": self.points.tolist(),
            "box": self.box.to_dict(),
        }


def _keypoint_xy(kp: Any) -> Tuple[float, float]:
    if isinstance(kp, dict):
        if "x" not in kp or "y" not in kp:
            raise ValueError(f"Keypoint missing x/y: {kp!r}")
        return float(kp["x"]), float(kp["y"])
    seq = list(kp)
    if len(seq) < 2:
        raise ValueError(f"Keypoint needs at least 2 coordinates: {kp!r}")
    return float(seq[0]), float(seq[1])


def keypoints_to_array(keypoints: Iterable[Any]) -> np.ndarray:
    """
    Convert detector keypoints into an (N, 2) float array.

    Accepts dicts with "x"/"y" (an optional "z" is dropped), or
    sequences [x, y] / [x, y, z].

    Raises:
        ValueError: If a keypoint has no usable numeric x/y pair.
    """
    rows = []
    for kp in keypoints:
        try:
            rows.append(_keypoint_xy(kp))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Malformed keypoint {kp!r}: {e}") from e
    if not rows:
        return np.zeros((0, 2), dtype=np.float64)
    return np.asarray(rows, dtype=np.float64)


def envelope_box(points: np.ndarray) -> BoundingBox:
    """Min/max envelope of the points; a zero box for an empty array."""
    if points.size == 0:
        return BoundingBox((0.0, 0.0), (0.0, 0.0))
    x_min, y_min = points.min(axis=0)
    x_max, y_max = points.max(axis=0)
    return BoundingBox((float(x_min), float(y_min)), (float(x_max), float(y_max)))


def parse_box(box: Optional[Dict[str, Any]]) -> Optional[BoundingBox]:
    """
    Parse a detector box. Supports {topLeft, bottomRight} and
    {xMin, yMin, xMax, yMax} (the tfjs face-landmarks-detection shape).

    Raises:
        ValueError: If the box is not one of those shapes with numeric corners.
    """
    if not box:
        return None
    if isinstance(box, BoundingBox):
        return box
    if not isinstance(box, dict):
        raise ValueError(f"Bounding box must be an object: {box!r}")
    try:
        if "topLeft" in box and "bottomRight" in box:
            tl, br = box["topLeft"], box["bottomRight"]
            return BoundingBox((float(tl[0]), float(tl[1])), (float(br[0]), float(br[1])))
        if all(k in box for k in ("xMin", "yMin", "xMax", "yMax")):
            return BoundingBox(
                (float(box["xMin"]), float(box["yMin"])),
                (float(box["xMax"]), float(box["yMax"])),
            )
    except (TypeError, IndexError, ValueError) as e:
        raise ValueError(f"Malformed bounding box {box!r}: {e}") from e
    raise ValueError(f"Unrecognized bounding box: {box!r}")


def _scale_box(box: BoundingBox, width: float, height: float) -> BoundingBox:
    return BoundingBox(
        (box.top_left[0] / width, box.top_left[1] / height),
        (box.bottom_right[0] / width, box.bottom_right[1] / height),
    )


def normalize_landmarks(
    keypoints: Sequence[Any],
    box: Optional[Any] = None,
    frame_size: Optional[Tuple[int, int]] = None,
) -> LandmarkFrame:
    """
    Build a LandmarkFrame from raw keypoints.

    Pure function. An empty or short keypoint list is not an error: the caller
    checks len() / is_mesh and takes the insufficient-landmarks path.

    Args:
        keypoints: Detector keypoints (dicts or sequences)
        box: Optional detector bounding box; derived from the points if absent
        frame_size: (width, height) in pixels when keypoints are pixel-space

    Returns:
        LandmarkFrame in normalized coordinates (see module docstring)
    """
    points = keypoints_to_array(keypoints)
    parsed_box = parse_box(box)

    if frame_size is not None:
        width, height = float(frame_size[0]), float(frame_size[1])
        if width > 0 and height > 0:
            if points.size:
                points = points / np.array([width, height])
            if parsed_box is not None:
                parsed_box = _scale_box(parsed_box, width, height)
    elif points.size and float(np.max(np.abs(points))) > 1.0:
        logger.warning(
            "Landmarks look pixel-space (max=%.1f) but no frame size was given; keeping raw coordinates",
            float(np.max(np.abs(points))),
        )

    if parsed_box is None:
        parsed_box = envelope_box(points)
    return LandmarkFrame(points=points, box=parsed_box)
