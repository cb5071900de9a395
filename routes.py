"""
Flask routes for the authenticity analysis server.

Handles health/config, and the per-interview session API: create, start,
frame ticks, transcript results, stop, score, resets and teardown.
Every interview is its own AnalysisSession, looked up by id.
"""

import logging
from typing import Optional

from flask import Blueprint, jsonify, request

import config
from analysis_session import AnalysisBusyError, AnalysisSession
from services.session_registry import SessionRegistry
from services.speech_channel import HttpSpeechRecognizer
from utils.face_detection_interface import ClientFaceDetector, FaceDetectorInterface, VideoFrame
from utils.helpers import build_config_response, parse_bool

logger = logging.getLogger(__name__)

# Create a blueprint for better organization
api = Blueprint('api', __name__)


def _create_detector() -> FaceDetectorInterface:
    """Detector for a new session, per FACE_DETECTION_METHOD."""
    if config.FACE_DETECTION_METHOD == "mediapipe":
        # Lazy import: mediapipe/cv2 are optional and slow to load
        from utils.mediapipe_detector import MediaPipeFaceDetector
        return MediaPipeFaceDetector(
            min_detection_confidence=config.MIN_FACE_CONFIDENCE,
            min_tracking_confidence=config.MIN_FACE_CONFIDENCE,
        )
    return ClientFaceDetector()


def _create_session(session_id: str) -> AnalysisSession:
    return AnalysisSession(
        detector_factory=_create_detector,
        speech_recognizer=HttpSpeechRecognizer(language=config.SPEECH_LANGUAGE),
        seed=config.ANALYSIS_RANDOM_SEED,
        session_id=session_id,
    )


# Lazy registry: created on first use
_session_registry: Optional[SessionRegistry] = None


def get_session_registry() -> SessionRegistry:
    """Return the session registry, creating it on first call (lazy init)."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry(_create_session, max_sessions=config.MAX_SESSIONS)
    return _session_registry


def _session_or_404(session_id: str):
    session = get_session_registry().get(session_id)
    if session is None:
        return None, (jsonify({"error": f"Unknown session: {session_id}"}), 404)
    return session, None


# ============================================================================
# Health and Config Routes
# ============================================================================

@api.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@api.route("/config/all", methods=["GET"])
def get_all_config():
    """
    Get the client-facing analysis configuration.

    Returns:
        JSON: {"analysis": {...}, "history": {...}, "sessions": {...}}
    """
    return jsonify(build_config_response())


# ============================================================================
# Session Routes
# ============================================================================

@api.route("/session", methods=["POST"])
def create_session():
    """
    Create a new analysis session for one interview.

    Returns:
        JSON: {"sessionId": str, "state": "uninitialized"} with 201
    """
    try:
        session = get_session_registry().create()
        return jsonify({"sessionId": session.session_id, "state": session.state.value}), 201
    except Exception as e:
        logger.exception("Failed to create session")
        return jsonify({"error": "Failed to create session", "details": str(e)}), 500


@api.route("/session/<session_id>", methods=["GET"])
def get_session(session_id: str):
    session, err = _session_or_404(session_id)
    if err:
        return err
    return jsonify(session.status())


@api.route("/session/<session_id>", methods=["DELETE"])
def delete_session(session_id: str):
    if not get_session_registry().remove(session_id):
        return jsonify({"error": f"Unknown session: {session_id}"}), 404
    return "", 204


@api.route("/session/<session_id>/start", methods=["POST"])
def start_session(session_id: str):
    """
    Start analysis. Missing collaborators degrade the session instead of failing it.

    Returns:
        JSON: {
            "state": "analyzing",
            "facialAnalysis": bool,     # detector loaded
            "speechRecognition": bool,  # recognizer listening
            "error": str | null
        }
    """
    session, err = _session_or_404(session_id)
    if err:
        return err
    try:
        session.start()
        return jsonify({
            "state": session.state.value,
            "facialAnalysis": session.initialized,
            "speechRecognition": session.speech_recognition is not None,
            "detectionMethod": session.detection_method,
            "error": session.error,
        })
    except Exception as e:
        logger.exception("Failed to start session %s", session_id)
        return jsonify({"error": "Failed to start analysis", "details": str(e)}), 500


@api.route("/session/<session_id>/frame", methods=["POST"])
def analyze_frame(session_id: str):
    """
    Run one facial analysis tick.

    Request Body (client detection):
        {
            "faces": [{"keypoints": [{"x", "y", "z"?}, ...], "box"?: {...}}],
            "frame": {"width", "height", "readyState", "currentTime", "coordinateSpace"?}
        }
    Request Body (server detection): raw JPEG/PNG bytes; optional
        ?currentTime= query parameter (defaults to 1).

    Returns:
        JSON FacialAnalysis; 204 when the session is not analyzing;
        409 when the previous tick is still running.
    """
    session, err = _session_or_404(session_id)
    if err:
        return err

    try:
        if request.is_json:
            data = request.get_json(silent=True) or {}
            frame_data = dict(data.get("frame") or {})
            if "faces" in data:
                frame_data["faces"] = data.get("faces")
            frame = VideoFrame.from_dict(frame_data)
        else:
            frame = _decode_posted_frame()
    except (TypeError, ValueError) as e:
        return jsonify({"error": "Invalid frame payload", "details": str(e)}), 400

    try:
        analysis = session.analyze_face(frame)
    except AnalysisBusyError as e:
        return jsonify({"error": str(e)}), 409
    except Exception as e:
        logger.exception("Facial analysis failed for session %s", session_id)
        return jsonify({"error": "Facial analysis failed", "details": str(e)}), 500

    if analysis is None:
        return "", 204
    return jsonify(analysis.to_dict())


def _decode_posted_frame() -> VideoFrame:
    """Decode a raw image body; an undecodable body becomes a not-ready frame."""
    data = request.get_data()
    if not data and request.files:
        f = request.files.get("frame") or request.files.get("image") or next(iter(request.files.values()), None)
        if f:
            data = f.read()
    current_time = float(request.args.get("currentTime", "1"))
    if not data:
        return VideoFrame(ready_state=0, current_time=current_time)
    # Lazy import: cv2 is only needed for server-side detection
    from utils.frame_decoder import decode_frame
    frame = decode_frame(data, config.MAX_FRAME_WIDTH, current_time=current_time)
    if frame is None:
        return VideoFrame(ready_state=0, current_time=current_time)
    return frame


@api.route("/session/<session_id>/transcript", methods=["POST"])
def session_transcript(session_id: str):
    """
    Receive one speech recognition result from the browser.

    Body: JSON {"transcript": "...", "isFinal": bool}.
    Only finalized results are analyzed; interim ones return 204.

    Returns:
        JSON: {"analyses": [SpeechAnalysis, ...]} for finalized text, else 204
    """
    session, err = _session_or_404(session_id)
    if err:
        return err
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400

    data = request.get_json(silent=True) or {}
    transcript = data.get("transcript", "")
    if not isinstance(transcript, str):
        return jsonify({"error": "'transcript' must be a string"}), 400
    is_final = parse_bool(data.get("isFinal"), default=False)

    recognizer = session.speech_recognition
    if not isinstance(recognizer, HttpSpeechRecognizer) or not recognizer.push(transcript, is_final):
        return "", 204

    try:
        analyses = session.process_speech()
    except Exception as e:
        logger.exception("Speech analysis failed for session %s", session_id)
        return jsonify({"error": "Failed to process transcript", "details": str(e)}), 500
    if not analyses:
        return "", 204
    return jsonify({"analyses": [a.to_dict() for a in analyses]})


@api.route("/session/<session_id>/stop", methods=["POST"])
def stop_session(session_id: str):
    session, err = _session_or_404(session_id)
    if err:
        return err
    session.stop()
    return jsonify({"success": True, "state": session.state.value})


@api.route("/session/<session_id>/score", methods=["POST"])
def session_score(session_id: str):
    """
    Generate the final authenticity score.

    Body (optional): {"question": "..."}

    Returns:
        JSON AuthenticityScore plus "eligible": overall >= ELIGIBILITY_THRESHOLD
    """
    session, err = _session_or_404(session_id)
    if err:
        return err
    data = request.get_json(silent=True) if request.is_json else None
    question = (data or {}).get("question")
    if question is not None and not isinstance(question, str):
        return jsonify({"error": "'question' must be a string"}), 400
    try:
        score = session.generate_authenticity_score(question)
    except Exception as e:
        logger.exception("Scoring failed for session %s", session_id)
        return jsonify({"error": "Failed to generate score", "details": str(e)}), 500
    body = score.to_dict()
    body["eligible"] = score.is_eligible(config.ELIGIBILITY_THRESHOLD)
    return jsonify(body)


@api.route("/session/<session_id>/reset", methods=["POST"])
def reset_session(session_id: str):
    session, err = _session_or_404(session_id)
    if err:
        return err
    session.reset_analysis()
    return jsonify({"success": True, "state": session.state.value})


@api.route("/session/<session_id>/reset-question", methods=["POST"])
def reset_session_question(session_id: str):
    session, err = _session_or_404(session_id)
    if err:
        return err
    session.reset_for_new_question()
    return jsonify({"success": True, "state": session.state.value})


def register_routes(app):
    """
    Register all routes with the Flask application.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api)
