"""
Utilities package for the authenticity analysis server.

Pure, per-component building blocks of the analysis pipeline: landmark
normalization, emotion extraction, micro-expression scoring, speech analysis,
final score aggregation and the mock fallback.

Detector backends (mediapipe_detector) and frame decoding (frame_decoder)
are not imported here; they pull in optional heavy dependencies.
"""

from .landmark_normalizer import BoundingBox, LandmarkFrame, normalize_landmarks
from .emotion_extractor import EmotionVector, extract_emotions
from .micro_expression_scorer import (
    MicroExpressionResult,
    analyze_micro_expressions,
    micro_expression_authenticity,
)
from .speech_analyzer import SpeechAnalysis, analyze_speech
from .authenticity_scorer import AuthenticityScore, AuthenticityScorer, emotional_stability
from .face_detection_interface import FaceDetectorInterface, Face, FacialAnalysis, VideoFrame
from .mock_analysis import generate_mock_analysis

__all__ = [
    'BoundingBox',
    'LandmarkFrame',
    'normalize_landmarks',
    'EmotionVector',
    'extract_emotions',
    'MicroExpressionResult',
    'analyze_micro_expressions',
    'micro_expression_authenticity',
    'SpeechAnalysis',
    'analyze_speech',
    'AuthenticityScore',
    'AuthenticityScorer',
    'emotional_stability',
    'FaceDetectorInterface',
    'Face',
    'FacialAnalysis',
    'VideoFrame',
    'generate_mock_analysis',
]
