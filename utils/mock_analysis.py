"""
Mock Analysis Generator

Stand-in FacialAnalysis for ticks where no real face is available: the
detector found nothing, the frame was not decodable yet, or the detector
raised. Keeps the history advancing and lets the UI show "searching"
instead of a broken analysis.

The placeholder face is a ring of 30 points centred in a conceptual
1280x720 frame (radius = width / 4), expressed in normalized coordinates.
All randomness comes from the caller's RNG so a seeded session is
reproducible.
"""

import math
import random

import numpy as np

from utils.emotion_extractor import EmotionVector
from utils.face_detection_interface import FacialAnalysis
from utils.landmark_normalizer import BoundingBox, LandmarkFrame
from utils.micro_expression_scorer import MicroExpressionResult

MOCK_FRAME_WIDTH = 1280
MOCK_FRAME_HEIGHT = 720
MOCK_RING_POINTS = 30


def generate_mock_emotions(rng: random.Random) -> EmotionVector:
    return EmotionVector(
        happiness=0.4 + rng.random() * 0.2,
        sadness=0.1 + rng.random() * 0.1,
        anger=0.05 + rng.random() * 0.05,
        fear=0.05 + rng.random() * 0.05,
        surprise=0.1 + rng.random() * 0.1,
        disgust=0.05 + rng.random() * 0.05,
        neutral=0.25 + rng.random() * 0.1,
        confidence=0.7 + rng.random() * 0.2,
    )


def generate_mock_landmarks(num_points: int = MOCK_RING_POINTS) -> LandmarkFrame:
    """Circular placeholder face in normalized coordinates."""
    center_x = MOCK_FRAME_WIDTH / 2
    center_y = MOCK_FRAME_HEIGHT / 2
    radius = MOCK_FRAME_WIDTH / 4

    angles = np.arange(num_points) * (2 * math.pi / num_points)
    xs = (center_x + radius * np.cos(angles)) / MOCK_FRAME_WIDTH
    ys = (center_y + radius * np.sin(angles)) / MOCK_FRAME_HEIGHT
    points = np.column_stack([xs, ys])

    box = BoundingBox(
        ((center_x - radius) / MOCK_FRAME_WIDTH, (center_y - radius) / MOCK_FRAME_HEIGHT),
        ((center_x + radius) / MOCK_FRAME_WIDTH, (center_y + radius) / MOCK_FRAME_HEIGHT),
    )
    return LandmarkFrame(points=points, box=box)


def generate_mock_analysis(rng: random.Random) -> FacialAnalysis:
    """Plausible FacialAnalysis for a tick without a usable face."""
    return FacialAnalysis(
        landmarks=generate_mock_landmarks(),
        emotions=generate_mock_emotions(rng),
        micro_expressions=MicroExpressionResult(
            authenticity=0.75 + rng.random() * 0.2,
            confidence=0.8,
        ),
        is_mock=True,
    )
