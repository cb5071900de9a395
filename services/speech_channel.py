"""
Speech segment channel and recognizer contract.

The speech-to-text engine is an outside collaborator. It pushes recognition
events into a SpeechSegmentChannel; the analysis session drains the channel
and analyzes only finalized text. Interim results never reach the analyzer.

HttpSpeechRecognizer is the recognizer used by the web server: the browser
runs STT and posts each result, and the route pushes it here.
"""

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class SpeechRecognitionUnavailable(RuntimeError):
    """No speech recognizer, or the recognizer refused to start."""


@dataclass(frozen=True)
class SpeechResult:
    """One recognition result as delivered by the STT engine."""
    transcript: str
    is_final: bool


class SpeechSegmentChannel:
    """
    Queue of recognition events, each a list of results.

    A single event may carry several results; the finalized ones are joined
    into one fragment, as the browser engine reports them.
    """

    def __init__(self):
        self._queue: "queue.Queue[List[SpeechResult]]" = queue.Queue()

    def publish(self, results: Sequence[SpeechResult]) -> None:
        if results:
            self._queue.put(list(results))

    def publish_one(self, transcript: str, is_final: bool) -> None:
        self.publish([SpeechResult(transcript=transcript, is_final=is_final)])

    def drain_final_fragments(self) -> List[str]:
        """Pop all pending events; return one fragment per event with final text."""
        fragments = []
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            final_text = "".join(r.transcript for r in event if r.is_final)
            if final_text:
                fragments.append(final_text)
        return fragments

    def clear(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def pending(self) -> int:
        return self._queue.qsize()


class SpeechRecognizer(ABC):
    """Contract for the speech-to-text collaborator."""

    @abstractmethod
    def start(self, channel: SpeechSegmentChannel) -> None:
        """
        Begin delivering results into channel.

        Raises:
            SpeechRecognitionUnavailable: If recognition cannot start
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    def is_available(self) -> bool:
        return True


class HttpSpeechRecognizer(SpeechRecognizer):
    """
    Recognizer fed over HTTP.

    Results posted while stopped are dropped, like a browser engine that is
    not listening.
    """

    def __init__(self, language: str = "en-US"):
        self.language = language
        self._channel: Optional[SpeechSegmentChannel] = None
        self._lock = threading.Lock()

    @property
    def is_listening(self) -> bool:
        with self._lock:
            return self._channel is not None

    def start(self, channel: SpeechSegmentChannel) -> None:
        with self._lock:
            self._channel = channel

    def stop(self) -> None:
        with self._lock:
            self._channel = None

    def push(self, transcript: str, is_final: bool) -> bool:
        """Deliver one result. Returns False when not listening."""
        with self._lock:
            channel = self._channel
        if channel is None:
            logger.debug("Speech result dropped: recognizer not listening")
            return False
        channel.publish_one(transcript, is_final)
        return True
