"""
Micro-Expression Authenticity Scorer

Two related but independent measures over the emotion history:

  analyze_micro_expressions(history)
      Per-frame authenticity/confidence pair. Lower frame-to-frame volatility
      of happiness/sadness/anger over the last 5 entries scores higher,
      floored at 0.3. Fewer than 3 entries -> optimistic default (0.8, 0.8).

  micro_expression_authenticity(history)
      Feeds breakdown.microExpressions of the final score. Over the last 10
      entries it rewards moderate, non-zero happiness variation combined with
      smooth transitions (few jumps > 0.1). Fewer than 5 entries -> 0.8.
"""

from dataclasses import dataclass
from typing import Dict, Sequence

from utils.emotion_extractor import EmotionVector

VOLATILITY_MIN_HISTORY = 3
VOLATILITY_WINDOW = 5
VOLATILITY_FLOOR = 0.3
COLD_START_AUTHENTICITY = 0.8
COLD_START_CONFIDENCE = 0.8

NATURALNESS_MIN_HISTORY = 5
NATURALNESS_WINDOW = 10
NATURALNESS_DEFAULT = 0.8
TRANSITION_THRESHOLD = 0.1

TRACKED_EMOTIONS = ("happiness", "sadness", "anger")


@dataclass(frozen=True)
class MicroExpressionResult:
    """Authenticity and confidence in [0, 1]."""
    authenticity: float
    confidence: float

    def to_dict(self) -> Dict[str, float]:
        return {"authenticity": self.authenticity, "confidence": self.confidence}


def average_tracked_delta(window: Sequence[EmotionVector]) -> float:
    """
    Mean absolute frame-to-frame change per tracked emotion per transition.

    Sums |delta| of happiness, sadness and anger across consecutive pairs and
    divides by (len(window) - 1) * 3. Needs at least 2 entries.
    """
    if len(window) < 2:
        return 0.0
    total = 0.0
    for prev, curr in zip(window, window[1:]):
        for name in TRACKED_EMOTIONS:
            total += abs(getattr(curr, name) - getattr(prev, name))
    return total / (len(window) - 1) / len(TRACKED_EMOTIONS)


def analyze_micro_expressions(history: Sequence[EmotionVector]) -> MicroExpressionResult:
    """Volatility-based authenticity over the most recent entries."""
    if len(history) < VOLATILITY_MIN_HISTORY:
        return MicroExpressionResult(COLD_START_AUTHENTICITY, COLD_START_CONFIDENCE)

    recent = list(history)[-VOLATILITY_WINDOW:]
    avg_change = average_tracked_delta(recent)
    score = max(VOLATILITY_FLOOR, 1.0 - avg_change * 2.0)
    return MicroExpressionResult(authenticity=score, confidence=score)


def micro_expression_authenticity(history: Sequence[EmotionVector]) -> float:
    """
    Naturalness of recent expression changes, in [0, 1].

    Note the divisor is the window length, not the number of transitions.
    """
    if len(history) < NATURALNESS_MIN_HISTORY:
        return NATURALNESS_DEFAULT

    recent = list(history)[-NATURALNESS_WINDOW:]
    variance = 0.0
    transitions = 0
    for prev, curr in zip(recent, recent[1:]):
        diff = abs(curr.happiness - prev.happiness)
        variance += diff
        if diff > TRANSITION_THRESHOLD:
            transitions += 1

    natural_variance = variance / len(recent)
    smoothness = 1.0 - transitions / len(recent)
    return min(1.0, natural_variance * 2.0 + smoothness * 0.5)
