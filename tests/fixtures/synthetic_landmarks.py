"""
Synthetic landmark generator for emotion extraction tests.

Creates MediaPipe-style 468-point face meshes in normalized [0, 1] space with
a controllable mouth geometry. The outline is an ellipse centred at
(0.5, 0.5) with a vertical radius of 0.2, so the face height is 0.4 and a
mouth offset d gives curvature d / 0.4.

Indices follow MediaPipe face mesh (see utils/emotion_extractor.py).
"""

import math
from typing import List, Tuple

import numpy as np

MESH_POINTS = 468
LEFT_MOUTH_CORNER, RIGHT_MOUTH_CORNER = 61, 291
UPPER_LIP, LOWER_LIP = 13, 14

FACE_CENTER = (0.5, 0.5)
FACE_RX, FACE_RY = 0.15, 0.2
FACE_HEIGHT = 2 * FACE_RY
LIP_CENTER_Y = 0.64


def make_mesh_landmarks(corner_offset: float = 0.0, n_points: int = MESH_POINTS) -> np.ndarray:
    """
    Build an (n_points, 2) normalized mesh.

    Args:
        corner_offset: Mouth-corner Y minus lip-center Y. Positive = corners
                       lower in the image than the lip center.
        n_points: Mesh size (468 for MediaPipe; smaller for sub-mesh tests)
    """
    angles = np.arange(n_points) * (2 * math.pi / n_points)
    lm = np.column_stack([
        FACE_CENTER[0] + FACE_RX * np.cos(angles),
        FACE_CENTER[1] + FACE_RY * np.sin(angles),
    ])
    if n_points > RIGHT_MOUTH_CORNER:
        lm[UPPER_LIP] = (0.5, LIP_CENTER_Y - 0.02)
        lm[LOWER_LIP] = (0.5, LIP_CENTER_Y + 0.02)
        lm[LEFT_MOUTH_CORNER] = (0.44, LIP_CENTER_Y + corner_offset)
        lm[RIGHT_MOUTH_CORNER] = (0.56, LIP_CENTER_Y + corner_offset)
    return lm


def as_keypoints(landmarks: np.ndarray, with_z: bool = True) -> List[dict]:
    """Detector-style keypoint dicts."""
    if with_z:
        return [{"x": float(x), "y": float(y), "z": 0.0} for x, y in landmarks]
    return [{"x": float(x), "y": float(y)} for x, y in landmarks]


def to_pixels(landmarks: np.ndarray, size: Tuple[int, int] = (640, 480)) -> np.ndarray:
    """Scale normalized landmarks to pixel space for a (width, height) frame."""
    return landmarks * np.array([size[0], size[1]], dtype=np.float64)


def make_face(corner_offset: float = 0.0, n_points: int = MESH_POINTS) -> dict:
    """JSON-ready face as the browser detector posts it."""
    return {"keypoints": as_keypoints(make_mesh_landmarks(corner_offset, n_points))}


def ready_frame_dict(faces: List[dict]) -> dict:
    """JSON-ready frame payload for a decodable 640x480 frame."""
    return {
        "faces": faces,
        "frame": {"width": 640, "height": 480, "readyState": 4, "currentTime": 1.5},
    }
