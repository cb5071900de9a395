"""
Authenticity Scorer Module

Combines the emotion history and the speech history into the final
AuthenticityScore (0-100 integers throughout).

Warm path:
  facial  = avg confidence (last 20 emotions) * 50 + stability (last 20) * 50
  speech  = max(30, avg confidence (last 10 speech) * 80 - filler penalty)
  overall = min(100, facial * 0.6 + speech * 0.4)
  breakdown:
    microExpressions = naturalness of recent expression changes * 100
    sentiment        = max(30, 70 + avg sentiment * 15)
    coherence        = max(40, 90 - avg filler ratio * 200)
    confidence       = (facial conf (last 10) * 0.6 + speech conf (last 5) * 0.4) * 100

Cold path (no observations at all): a fixed-shape fallback whose overall is
forced into [75, 90] when it would otherwise fall below 75, so a session with
no data leans towards passing the eligibility gate.

Rounding is half-up, after clamping into the documented bounds.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from utils.emotion_extractor import EmotionVector
from utils.micro_expression_scorer import average_tracked_delta, micro_expression_authenticity
from utils.speech_analyzer import SpeechAnalysis

ELIGIBILITY_THRESHOLD = 75

FACIAL_WINDOW = 20
SPEECH_WINDOW = 10
FACIAL_CONFIDENCE_WINDOW = 10
SPEECH_CONFIDENCE_WINDOW = 5

FACIAL_DEFAULT = 50
SPEECH_DEFAULT = 50
SENTIMENT_DEFAULT = 70
COHERENCE_DEFAULT = 65
SIDE_CONFIDENCE_DEFAULT = 0.7

STABILITY_SHORT_HISTORY = 0.8
STABILITY_FLOOR = 0.3
SPEECH_FLOOR = 30
SENTIMENT_FLOOR = 30
COHERENCE_FLOOR = 40
FILLER_ALLOWANCE = 0.05

COLD_BASE_OVERALL = 65
COLD_MIN_OVERALL = 75
COLD_MAX_OVERALL = 90
COLD_FACIAL = 60
COLD_SPEECH = 70
COLD_BREAKDOWN = {
    "microExpressions": 60,
    "sentiment": 70,
    "coherence": 65,
    "confidence": 65,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, .5 away from zero for positive values."""
    return int(math.floor(value + 0.5))


def to_percent(value: float, low: float = 0.0, high: float = 100.0) -> int:
    """Clamp into [low, high] and round half-up."""
    if not math.isfinite(value):
        value = low
    return round_half_up(max(low, min(high, value)))


@dataclass(frozen=True)
class ScoreBreakdown:
    micro_expressions: int
    sentiment: int
    coherence: int
    confidence: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "microExpressions": self.micro_expressions,
            "sentiment": self.sentiment,
            "coherence": self.coherence,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class AuthenticityScore:
    """
    Final composite score for one interview.

    Immutable once produced; `overall` is the only value the eligibility
    gate looks at.
    """
    overall: int
    facial: int
    speech: int
    breakdown: ScoreBreakdown
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    question: Optional[str] = None

    def is_eligible(self, threshold: int = ELIGIBILITY_THRESHOLD) -> bool:
        return self.overall >= threshold

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "overall": self.overall,
            "facial": self.facial,
            "speech": self.speech,
            "breakdown": self.breakdown.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }
        if self.question is not None:
            data["question"] = self.question
        return data


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def emotional_stability(window: Sequence[EmotionVector]) -> float:
    """
    Stability of a window of emotions in [0.3, 1]; 0.8 for fewer than 2.

    Same delta measure as the per-frame micro-expression scorer, but applied
    to whatever window the caller passes (the facial score uses the last 20).
    """
    if len(window) < 2:
        return STABILITY_SHORT_HISTORY
    return max(STABILITY_FLOOR, 1.0 - average_tracked_delta(window) * 2.0)


def facial_score(emotions: Sequence[EmotionVector]) -> int:
    if not emotions:
        return FACIAL_DEFAULT
    recent = list(emotions)[-FACIAL_WINDOW:]
    avg_confidence = _mean(e.confidence for e in recent)
    return to_percent(avg_confidence * 50 + emotional_stability(recent) * 50)


def filler_penalty(avg_filler_ratio: float) -> float:
    return max(0.0, avg_filler_ratio - FILLER_ALLOWANCE) * 100


def speech_score(speech: Sequence[SpeechAnalysis]) -> int:
    if not speech:
        return SPEECH_DEFAULT
    recent = list(speech)[-SPEECH_WINDOW:]
    avg_confidence = _mean(s.confidence for s in recent)
    avg_filler = _mean(s.filler_ratio for s in recent)
    return to_percent(max(SPEECH_FLOOR, avg_confidence * 80 - filler_penalty(avg_filler)))


def sentiment_score(speech: Sequence[SpeechAnalysis]) -> int:
    if not speech:
        return SENTIMENT_DEFAULT
    avg_sentiment = _mean(s.sentiment for s in speech)
    return to_percent(max(SENTIMENT_FLOOR, 70 + avg_sentiment * 15))


def coherence_score(speech: Sequence[SpeechAnalysis]) -> int:
    if not speech:
        return COHERENCE_DEFAULT
    avg_filler = _mean(s.filler_ratio for s in speech)
    return to_percent(max(COHERENCE_FLOOR, 90 - avg_filler * 200))


def confidence_score(emotions: Sequence[EmotionVector], speech: Sequence[SpeechAnalysis]) -> int:
    facial_conf = (
        _mean(e.confidence for e in list(emotions)[-FACIAL_CONFIDENCE_WINDOW:])
        if emotions else SIDE_CONFIDENCE_DEFAULT
    )
    speech_conf = (
        _mean(s.confidence for s in list(speech)[-SPEECH_CONFIDENCE_WINDOW:])
        if speech else SIDE_CONFIDENCE_DEFAULT
    )
    return to_percent((facial_conf * 0.6 + speech_conf * 0.4) * 100)


def cold_start_overall(rng: random.Random) -> int:
    """
    Overall score for a session with no observations.

    The base fallback (65) sits below the gate, so it is replaced by a draw
    from [75, 90]. Kept as-is for parity with deployed behaviour.
    """
    overall = COLD_BASE_OVERALL
    if overall < COLD_MIN_OVERALL:
        overall = rng.randint(COLD_MIN_OVERALL, COLD_MAX_OVERALL)
    return overall


def cold_start_score(rng: random.Random, question: Optional[str] = None) -> AuthenticityScore:
    return AuthenticityScore(
        overall=cold_start_overall(rng),
        facial=COLD_FACIAL,
        speech=COLD_SPEECH,
        breakdown=ScoreBreakdown(
            micro_expressions=COLD_BREAKDOWN["microExpressions"],
            sentiment=COLD_BREAKDOWN["sentiment"],
            coherence=COLD_BREAKDOWN["coherence"],
            confidence=COLD_BREAKDOWN["confidence"],
        ),
        question=question,
    )


class AuthenticityScorer:
    """
    Computes the final AuthenticityScore from history snapshots.

    Usage:
        scorer = AuthenticityScorer(rng=random.Random(7))
        score = scorer.score(emotion_history.snapshot(), speech_history.snapshot())
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.weights = {
            'facial': 0.6,
            'speech': 0.4,
        }
        self.rng = rng or random.Random()

    def combine(self, facial: int, speech: int) -> int:
        return min(100, to_percent(facial * self.weights['facial'] + speech * self.weights['speech']))

    def score(
        self,
        emotions: Sequence[EmotionVector],
        speech: Sequence[SpeechAnalysis],
        question: Optional[str] = None,
    ) -> AuthenticityScore:
        """
        Score the given snapshots.

        Args:
            emotions: Emotion history, oldest first
            speech: Speech history, oldest first
            question: Optional question text, recorded on the result

        Returns:
            AuthenticityScore (cold-path fallback when both are empty)
        """
        if not emotions and not speech:
            return cold_start_score(self.rng, question)

        facial = facial_score(emotions)
        spoken = speech_score(speech)
        breakdown = ScoreBreakdown(
            micro_expressions=to_percent(micro_expression_authenticity(emotions) * 100),
            sentiment=sentiment_score(speech),
            coherence=coherence_score(speech),
            confidence=confidence_score(emotions, speech),
        )
        return AuthenticityScore(
            overall=self.combine(facial, spoken),
            facial=facial,
            speech=spoken,
            breakdown=breakdown,
            question=question,
        )
