"""
Analysis Session.

One AnalysisSession per interview. It owns the emotion and speech histories,
drives per-frame facial analysis and finalized-speech analysis, and produces
the final AuthenticityScore once the interview ends.

Lifecycle:
  UNINITIALIZED -> initialize() -> INITIALIZED -> start() -> ANALYZING
  ANALYZING -> reset_for_new_question() -> ANALYZING   (histories kept)
  ANALYZING -> stop() -> STOPPED                       (histories kept)
  any -> reset_analysis() -> INITIALIZED               (everything cleared)

Degradation policy: nothing here ends the session. A detector that fails to
load leaves speech-only analysis running; a missing speech recognizer leaves
facial-only analysis running; a frame without a usable face yields a mock
analysis; scoring with no data yields the cold-path fallback.

Pipeline per tick: frame -> detector -> landmark normalizer -> emotion
extractor (+ micro-expression pair from prior history) -> emotion history.
Speech: recognizer -> channel -> finalized fragments -> speech analyzer ->
speech history -> listeners.
"""

import dataclasses
import logging
import random
import threading
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from services.history_store import EmotionHistory, SpeechHistory
from services.speech_channel import (
    SpeechRecognitionUnavailable,
    SpeechRecognizer,
    SpeechSegmentChannel,
)
from utils.authenticity_scorer import AuthenticityScore, AuthenticityScorer
from utils.emotion_extractor import extract_emotions
from utils.face_detection_interface import (
    AnalysisInitializationError,
    FaceDetectorInterface,
    FacialAnalysis,
    VideoFrame,
)
from utils.landmark_normalizer import MIN_LANDMARK_COUNT, normalize_landmarks
from utils.micro_expression_scorer import analyze_micro_expressions
from utils.mock_analysis import generate_mock_analysis
from utils.speech_analyzer import SpeechAnalysis, analyze_speech

logger = logging.getLogger(__name__)

INITIALIZATION_FAILED_MESSAGE = "Analysis service initialization failed"


class SessionState(Enum):
    """Lifecycle states of an analysis session."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    ANALYZING = "analyzing"
    STOPPED = "stopped"


class AnalysisBusyError(RuntimeError):
    """A facial analysis call was issued before the previous one settled."""


class AnalysisSession:
    """
    Authenticity analysis for a single interview.

    Usage:
        session = AnalysisSession(detector_factory=MediaPipeFaceDetector,
                                  speech_recognizer=HttpSpeechRecognizer())
        session.start()
        # every ~1 s:
        session.analyze_face(frame)
        # as STT results arrive:
        recognizer.push("I led the migration", is_final=True)
        session.process_speech()
        session.stop()
        score = session.generate_authenticity_score("Tell me about yourself")
    """

    def __init__(
        self,
        detector_factory: Optional[Callable[[], FaceDetectorInterface]] = None,
        speech_recognizer: Optional[SpeechRecognizer] = None,
        seed: Optional[int] = None,
        session_id: Optional[str] = None,
    ):
        """
        Args:
            detector_factory: Zero-argument callable returning a face detector.
                              Called lazily by initialize().
            speech_recognizer: Speech-to-text collaborator; None means speech
                               analysis is unavailable for this session.
            seed: Seed for the mock generator and cold-path draw. None uses
                  fresh OS entropy.
            session_id: Identifier assigned by the caller (e.g. the registry).
        """
        self.session_id = session_id
        self._detector_factory = detector_factory
        self._detector: Optional[FaceDetectorInterface] = None
        self._speech_recognizer = speech_recognizer

        self._rng = random.Random(seed)
        self._scorer = AuthenticityScorer(rng=self._rng)

        self.emotion_history = EmotionHistory()
        self.speech_history = SpeechHistory()
        self.speech_channel = SpeechSegmentChannel()

        self.speech_recognition: Optional[SpeechRecognizer] = None
        self._speech_callbacks: List[Callable[[SpeechAnalysis], None]] = []
        self._full_transcript = ""

        self.current_facial_analysis: Optional[FacialAnalysis] = None
        self.final_score: Optional[AuthenticityScore] = None
        self.error: Optional[str] = None
        self.state = SessionState.UNINITIALIZED

        self._lock = threading.RLock()
        self._face_busy = threading.Lock()
        self._speech_lock = threading.Lock()
        self._score_cache: Optional[Tuple[Tuple[int, int], AuthenticityScore]] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._detector is not None

    @property
    def is_analyzing(self) -> bool:
        return self.state == SessionState.ANALYZING

    @property
    def detection_method(self) -> Optional[str]:
        return self._detector.get_name() if self._detector is not None else None

    def initialize(self) -> None:
        """
        Load the face detector.

        Raises:
            AnalysisInitializationError: If no detector is configured, the
                factory raises, or the detector reports itself unavailable
        """
        with self._lock:
            if self._detector is not None:
                return
            if self._detector_factory is None:
                raise AnalysisInitializationError("No face detector configured")
            try:
                detector = self._detector_factory()
            except Exception as e:
                logger.error("Face detector failed to load: %s", e)
                raise AnalysisInitializationError(str(e)) from e
            if not detector.is_available():
                detector.close()
                logger.error("Face detector %s is not available", detector.get_name())
                raise AnalysisInitializationError(f"Face detector {detector.get_name()} is not available")
            self._detector = detector
            if self.state == SessionState.UNINITIALIZED:
                self.state = SessionState.INITIALIZED
            logger.info("Analysis session %s initialized (%s)", self.session_id, detector.get_name())

    def start(self) -> None:
        """
        Begin analysis. Never raises for a missing collaborator.

        Detector failure leaves speech-only analysis; recognizer failure
        leaves facial-only analysis.
        """
        with self._lock:
            self.error = None
            if not self.initialized:
                try:
                    self.initialize()
                except AnalysisInitializationError as e:
                    self.error = INITIALIZATION_FAILED_MESSAGE
                    logger.warning("Facial analysis disabled for session %s: %s", self.session_id, e)

            self.state = SessionState.ANALYZING

            try:
                self.start_speech_recognition()
            except SpeechRecognitionUnavailable as e:
                logger.warning("Speech recognition unavailable, continuing facial-only: %s", e)
                self.speech_recognition = None

    def stop(self) -> None:
        """Stop analysis and release the recognizer. Histories are kept for scoring."""
        with self._lock:
            self.process_speech()
            self.stop_speech_recognition()
            self.state = SessionState.STOPPED

    def reset_for_new_question(self) -> None:
        """Clear the current-frame display state only; the score spans all questions."""
        with self._lock:
            self.current_facial_analysis = None

    def reset_analysis(self) -> None:
        """Full teardown: recognizer, histories, transcript, score and error."""
        with self._lock:
            self.stop_speech_recognition()
            self.speech_channel.clear()
            self.emotion_history.clear()
            self.speech_history.clear()
            self._full_transcript = ""
            self.current_facial_analysis = None
            self.final_score = None
            self.error = None
            self._score_cache = None
            self.state = SessionState.INITIALIZED if self.initialized else SessionState.UNINITIALIZED

    def close(self) -> None:
        """Stop and release the detector."""
        with self._lock:
            if self.state == SessionState.ANALYZING:
                self.stop()
            else:
                self.stop_speech_recognition()
            if self._detector is not None:
                self._detector.close()
                self._detector = None

    # ------------------------------------------------------------------
    # Facial analysis
    # ------------------------------------------------------------------

    def analyze_face(self, frame: VideoFrame) -> Optional[FacialAnalysis]:
        """
        Analyze one video tick.

        Returns None (and records nothing) when the detector is not loaded or
        the session is not analyzing. A frame without a usable face returns a
        mock analysis instead of raising.

        Raises:
            AnalysisBusyError: If the previous call has not settled yet
        """
        if not self.initialized or not self.is_analyzing:
            logger.debug("Skipping analyze_face: initialized=%s state=%s", self.initialized, self.state.value)
            return None

        if not self._face_busy.acquire(blocking=False):
            raise AnalysisBusyError("Previous facial analysis is still running")
        try:
            analysis = self._analyze_frame(frame)
            self.emotion_history.append(analysis.emotions)
            self.current_facial_analysis = analysis
            return analysis
        finally:
            self._face_busy.release()

    def _analyze_frame(self, frame: VideoFrame) -> FacialAnalysis:
        if not frame.is_ready:
            logger.debug("Frame not ready (readyState=%s, %sx%s, t=%s); using mock analysis",
                         frame.ready_state, frame.width, frame.height, frame.current_time)
            return generate_mock_analysis(self._rng)

        try:
            faces = self._detector.estimate_faces(frame)
        except Exception as e:
            logger.warning("Face detection failed, using mock analysis: %s", e)
            return generate_mock_analysis(self._rng)

        if not faces:
            logger.debug("No face detected; using mock analysis")
            return generate_mock_analysis(self._rng)

        face = faces[0]
        try:
            landmarks = normalize_landmarks(face.keypoints, face.box, frame.frame_size)
        except (TypeError, ValueError) as e:
            logger.warning("Malformed landmarks, using mock analysis: %s", e)
            return generate_mock_analysis(self._rng)

        # Below the minimal set there is no usable face, only stray points
        if len(landmarks) < MIN_LANDMARK_COUNT:
            logger.debug("Face has %d keypoints; using mock analysis", len(landmarks))
            return generate_mock_analysis(self._rng)

        emotions = extract_emotions(landmarks)
        micro_expressions = analyze_micro_expressions(self.emotion_history.snapshot())
        return FacialAnalysis(
            landmarks=landmarks,
            emotions=emotions,
            micro_expressions=micro_expressions,
        )

    # ------------------------------------------------------------------
    # Speech analysis
    # ------------------------------------------------------------------

    def start_speech_recognition(self) -> None:
        """
        Connect the recognizer to this session's channel.

        Raises:
            SpeechRecognitionUnavailable: If no recognizer is usable
        """
        recognizer = self._speech_recognizer
        if recognizer is None or not recognizer.is_available():
            raise SpeechRecognitionUnavailable("Speech recognition not supported")
        recognizer.start(self.speech_channel)
        self.speech_recognition = recognizer

    def stop_speech_recognition(self) -> None:
        if self.speech_recognition is not None:
            self.speech_recognition.stop()
            self.speech_recognition = None

    def on_speech_analysis(self, callback: Callable[[SpeechAnalysis], None]) -> None:
        """Register a listener for every finalized speech analysis."""
        self._speech_callbacks.append(callback)

    def process_speech(self) -> List[SpeechAnalysis]:
        """
        Drain the channel and analyze every finalized fragment.

        Returns:
            The analyses produced, in arrival order
        """
        produced = []
        with self._speech_lock:
            for fragment in self.speech_channel.drain_final_fragments():
                analysis = analyze_speech(fragment)
                self._full_transcript += fragment + " "
                self.speech_history.append(analysis)
                produced.append(analysis)
            callbacks = list(self._speech_callbacks)

        # Listeners run outside the speech lock so they may call back into the session
        for analysis in produced:
            for callback in callbacks:
                try:
                    callback(analysis)
                except Exception:
                    logger.exception("Speech analysis listener failed")
        return produced

    @property
    def current_transcript(self) -> str:
        return self._full_transcript

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def generate_authenticity_score(self, question: Optional[str] = None) -> AuthenticityScore:
        """
        Produce the final score from the current histories.

        Calling again without new observations returns the identical score
        (same numbers and timestamp), even on the cold path.
        """
        self.process_speech()
        with self._lock:
            emotions, emotion_rev = self.emotion_history.snapshot_with_revision()
            speech, speech_rev = self.speech_history.snapshot_with_revision()
            key = (emotion_rev, speech_rev)

            if self._score_cache is not None and self._score_cache[0] == key:
                score = self._score_cache[1]
                if score.question != question:
                    score = dataclasses.replace(score, question=question)
            else:
                score = self._scorer.score(emotions, speech, question=question)
                logger.info("Authenticity score for session %s: overall=%d facial=%d speech=%d",
                            self.session_id, score.overall, score.facial, score.speech)
            self._score_cache = (key, score)
            self.final_score = score
            return score

    def status(self) -> Dict[str, Any]:
        """Snapshot of the session for the HTTP layer."""
        with self._lock:
            return {
                "sessionId": self.session_id,
                "state": self.state.value,
                "initialized": self.initialized,
                "detectionMethod": self.detection_method,
                "speechRecognition": self.speech_recognition is not None,
                "emotionHistorySize": len(self.emotion_history),
                "speechHistorySize": len(self.speech_history),
                "transcript": self.current_transcript,
                "currentFacialAnalysis": (
                    self.current_facial_analysis.to_dict() if self.current_facial_analysis else None
                ),
                "finalScore": self.final_score.to_dict() if self.final_score else None,
                "error": self.error,
            }
