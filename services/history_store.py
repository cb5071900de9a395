"""
Bounded in-memory history stores for one analysis session.

EmotionHistory keeps the last 100 emotion vectors, SpeechHistory the last 50
speech analyses. Both evict oldest-first once full and keep chronological
order. Each store has its own lock; the two are never locked together.

A revision counter increments on every append/clear so callers can tell
whether the contents changed since they last looked.
"""

import threading
from collections import deque
from typing import Generic, List, Tuple, TypeVar

from utils.emotion_extractor import EmotionVector
from utils.speech_analyzer import SpeechAnalysis

EMOTION_HISTORY_MAX = 100
SPEECH_HISTORY_MAX = 50

T = TypeVar("T")


class BoundedHistory(Generic[T]):
    """Append-only FIFO buffer with a fixed capacity (thread-safe)."""

    def __init__(self, maxlen: int):
        if maxlen <= 0:
            raise ValueError(f"maxlen must be positive, got {maxlen}")
        self._items: deque = deque(maxlen=maxlen)
        self._lock = threading.Lock()
        self._revision = 0

    @property
    def maxlen(self) -> int:
        return self._items.maxlen

    @property
    def revision(self) -> int:
        with self._lock:
            return self._revision

    def append(self, item: T) -> None:
        with self._lock:
            self._items.append(item)
            self._revision += 1

    def snapshot(self) -> List[T]:
        """Copy of the contents, oldest first."""
        with self._lock:
            return list(self._items)

    def snapshot_with_revision(self) -> Tuple[List[T], int]:
        """Contents and revision read together under the store lock."""
        with self._lock:
            return list(self._items), self._revision

    def recent(self, n: int) -> List[T]:
        """The last n entries (fewer if the store holds fewer), oldest first."""
        if n <= 0:
            return []
        with self._lock:
            items = list(self._items)
        return items[-n:]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self._revision += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class EmotionHistory(BoundedHistory[EmotionVector]):
    """Rolling emotion vectors; backbone for the stability metrics."""

    def __init__(self, maxlen: int = EMOTION_HISTORY_MAX):
        super().__init__(maxlen)

    def append(self, item: EmotionVector) -> None:
        if not isinstance(item, EmotionVector):
            raise TypeError(f"EmotionHistory accepts EmotionVector, got {type(item).__name__}")
        super().append(item)


class SpeechHistory(BoundedHistory[SpeechAnalysis]):
    """Rolling speech analyses, one per finalized fragment."""

    def __init__(self, maxlen: int = SPEECH_HISTORY_MAX):
        super().__init__(maxlen)

    def append(self, item: SpeechAnalysis) -> None:
        if not isinstance(item, SpeechAnalysis):
            raise TypeError(f"SpeechHistory accepts SpeechAnalysis, got {type(item).__name__}")
        super().append(item)
