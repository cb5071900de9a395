"""
Speech Segment Analyzer

Turns one finalized transcript fragment into a SpeechAnalysis:
  - sentiment:     AFINN score / 5, clamped to [-1, 1]
  - confidence:    min(1, |score| / 3) when score != 0, else 0.5
                   (stronger sentiment either way reads as more confident)
  - filler_ratio:  filler tokens / word count (0 when there are no words)
  - speech_rate:   word count of this fragment (not a per-minute rate)

Filler matching is case-insensitive and on whole tokens only: "um" counts,
"umbrella" does not. The two-word filler "you know" counts once when both
tokens appear in sequence.
"""

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

from afinn import Afinn

TOKEN_PATTERN = re.compile(r"[a-z0-9']+")

FILLER_WORDS = frozenset({"um", "uh", "like", "actually", "basically"})
FILLER_PHRASES = (("you", "know"),)

SENTIMENT_SCALE = 5.0
CONFIDENCE_SCALE = 3.0
NEUTRAL_CONFIDENCE = 0.5

# Loaded once; scoring is read-only and safe to share across sessions
_afinn = Afinn(language="en")


@dataclass(frozen=True)
class SpeechAnalysis:
    """Analysis of one finalized fragment. Immutable; owned by the speech history."""
    sentiment: float
    confidence: float
    filler_ratio: float
    speech_rate: int
    transcript: str

    def __post_init__(self):
        if not -1.0 <= self.sentiment <= 1.0:
            raise ValueError(f"SpeechAnalysis.sentiment must be in [-1, 1], got {self.sentiment}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"SpeechAnalysis.confidence must be in [0, 1], got {self.confidence}")
        if not 0.0 <= self.filler_ratio <= 1.0:
            raise ValueError(f"SpeechAnalysis.filler_ratio must be in [0, 1], got {self.filler_ratio}")
        if self.speech_rate < 0:
            raise ValueError(f"SpeechAnalysis.speech_rate must be >= 0, got {self.speech_rate}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens; punctuation is dropped."""
    if not text:
        return []
    return TOKEN_PATTERN.findall(text.lower())


def count_fillers(words: List[str]) -> int:
    """Count filler tokens and filler phrases in lowercase word tokens."""
    count = sum(1 for w in words if w in FILLER_WORDS)
    for phrase in FILLER_PHRASES:
        n = len(phrase)
        i = 0
        while i <= len(words) - n:
            if tuple(words[i:i + n]) == phrase:
                count += 1
                i += n
            else:
                i += 1
    return count


def analyze_speech(text: str) -> SpeechAnalysis:
    """
    Analyze one finalized transcript fragment.

    Args:
        text: Finalized fragment (interim results must be filtered out upstream)

    Returns:
        SpeechAnalysis for the fragment
    """
    words = tokenize(text)
    word_count = len(words)
    score = _afinn.score(text) if word_count else 0.0

    filler_ratio = count_fillers(words) / word_count if word_count > 0 else 0.0
    normalized = max(-1.0, min(1.0, score / SENTIMENT_SCALE))
    if score != 0:
        confidence = min(1.0, abs(score) / CONFIDENCE_SCALE)
    else:
        confidence = NEUTRAL_CONFIDENCE

    return SpeechAnalysis(
        sentiment=normalized,
        confidence=confidence,
        filler_ratio=min(1.0, filler_ratio),
        speech_rate=word_count,
        transcript=text,
    )
