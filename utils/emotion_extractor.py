"""
Emotion Extractor Module

Maps a normalized landmark frame to a 7-dimensional emotion vector plus a
confidence value. This is a cheap geometric heuristic, not a trained
classifier; what matters is that the same landmarks always give the same
vector.

Mesh frames (>= 200 points):
  - Mouth curvature = (mouth-corner mean Y - lip-center mean Y) / face height
  - happiness rises with curvature, sadness falls with it, neutral is flat
  - happiness + sadness + neutral are renormalized to sum to 1
  - anger / fear / surprise / disgust are held at small constants

Anything smaller gets a fixed neutral-leaning default (confidence 0.6).
"""

from dataclasses import asdict, dataclass, fields
from typing import Dict, Optional

from utils.landmark_normalizer import LandmarkFrame, MESH_LANDMARK_THRESHOLD

# MediaPipe face mesh indices
LEFT_MOUTH_CORNER = 61
RIGHT_MOUTH_CORNER = 291
UPPER_LIP_CENTER = 13
LOWER_LIP_CENTER = 14

MESH_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.6

NEUTRAL_BASELINE = 0.4
ANGER_BASELINE = 0.1
FEAR_BASELINE = 0.1
SURPRISE_BASELINE = 0.1
DISGUST_BASELINE = 0.05


@dataclass(frozen=True)
class EmotionVector:
    """
    One emotion observation. Every component must lie in [0, 1].

    Immutable once created; owned by the emotion history store.
    """
    happiness: float
    sadness: float
    anger: float
    fear: float
    surprise: float
    disgust: float
    neutral: float
    confidence: float

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"EmotionVector.{f.name} must be a number, got {value!r}")
            if not 0.0 <= float(value) <= 1.0:
                raise ValueError(f"EmotionVector.{f.name} must be in [0, 1], got {value}")
            object.__setattr__(self, f.name, float(value))

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "EmotionVector":
        return cls(**{f.name: data[f.name] for f in fields(cls)})


# Returned when the frame has landmarks but not at mesh resolution
DEFAULT_EMOTIONS = EmotionVector(
    happiness=0.3,
    sadness=0.2,
    anger=0.15,
    fear=0.1,
    surprise=0.1,
    disgust=0.05,
    neutral=0.1,
    confidence=FALLBACK_CONFIDENCE,
)


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def mouth_curvature(frame: LandmarkFrame) -> Optional[float]:
    """
    Vertical mouth curvature relative to face height.

    Returns None when the face box has no height (curvature undefined).
    """
    face_height = frame.box.height
    if face_height <= 0:
        return None
    left = frame.point(LEFT_MOUTH_CORNER)
    right = frame.point(RIGHT_MOUTH_CORNER)
    upper = frame.point(UPPER_LIP_CENTER)
    lower = frame.point(LOWER_LIP_CENTER)
    mouth_center_y = (left[1] + right[1]) / 2.0
    lip_center_y = (upper[1] + lower[1]) / 2.0
    return (mouth_center_y - lip_center_y) / face_height


def extract_emotions(frame: Optional[LandmarkFrame]) -> EmotionVector:
    """
    Extract an emotion vector from a landmark frame.

    Args:
        frame: Normalized landmarks, or None when nothing usable was found

    Returns:
        EmotionVector; DEFAULT_EMOTIONS for sub-mesh or degenerate frames
    """
    if frame is None or len(frame) < MESH_LANDMARK_THRESHOLD:
        return DEFAULT_EMOTIONS

    curvature = mouth_curvature(frame)
    if curvature is None:
        return DEFAULT_EMOTIONS

    happiness = _clamp01(curvature * 3.0 + 0.3)
    sadness = _clamp01(-curvature * 2.0 + 0.2)
    neutral = NEUTRAL_BASELINE

    total = happiness + sadness + neutral
    if total > 0:
        happiness /= total
        sadness /= total
        neutral /= total

    return EmotionVector(
        happiness=happiness,
        sadness=sadness,
        anger=ANGER_BASELINE,
        fear=FEAR_BASELINE,
        surprise=SURPRISE_BASELINE,
        disgust=DISGUST_BASELINE,
        neutral=neutral,
        confidence=MESH_CONFIDENCE,
    )
