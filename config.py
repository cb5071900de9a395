"""
=============================================================================
CONFIGURATION FOR THE AUTHENTICITY ANALYSIS SERVER (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL runtime settings for the server in one place. Other files
read from here. Values come from the environment (your .env file or system
variables), so you can change behaviour without touching code.

MAIN GROUPS OF SETTINGS:
------------------------
  1. Face detection  - Who finds the face: the browser ("client") or the
                       server ("mediapipe").
  2. Analysis        - Frame cadence, random seed, eligibility threshold.
  3. Speech          - Language advertised to the browser speech engine.
  4. Sessions        - How many interviews the server keeps in memory.
  5. Server          - Host, port, debug mode and log level.

WHAT IS *NOT* HERE:
-------------------
The scoring constants (history sizes, windows, weights, floors) live next to
the code that uses them in utils/. They define what the score means and are
not meant to be tuned per deployment.
=============================================================================
"""

import os
from typing import Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def _env_optional_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# ============================================================================
# FACE DETECTION
# ============================================================================
#   "client"    - The browser runs the face mesh model and posts keypoints
#                 with each frame (default; no video leaves the device).
#   "mediapipe" - The browser posts JPEG frames and the server runs MediaPipe
#                 Face Mesh. Needs the "vision" extra (mediapipe, opencv).
# ----------------------------------------------------------------------------
FACE_DETECTION_METHOD: str = (os.getenv("FACE_DETECTION_METHOD") or "client").strip().lower()
if FACE_DETECTION_METHOD not in ("client", "mediapipe"):
    FACE_DETECTION_METHOD = "client"

# Minimum detection confidence for MediaPipe (0.01-0.99). Lower = more permissive.
MIN_FACE_CONFIDENCE: float = max(0.01, min(0.99, float(os.getenv("MIN_FACE_CONFIDENCE", "0.5"))))

# Frames wider than this are downscaled before detection (server-side only).
MAX_FRAME_WIDTH: int = int(os.getenv("MAX_FRAME_WIDTH", "640"))

# ============================================================================
# ANALYSIS
# ============================================================================
# Advisory cadence for the client timer that posts frames (seconds).
ANALYSIS_INTERVAL_SEC: float = float(os.getenv("ANALYSIS_INTERVAL_SEC", "1.0"))

# Seed for mock analyses and the no-data fallback score. Unset = random per session.
ANALYSIS_RANDOM_SEED: Optional[int] = _env_optional_int("ANALYSIS_RANDOM_SEED")

# Minimum overall score for the downstream eligibility gate.
ELIGIBILITY_THRESHOLD: int = int(os.getenv("ELIGIBILITY_THRESHOLD", "75"))

# ============================================================================
# SPEECH
# ============================================================================
# Language the browser speech engine should recognise.
SPEECH_LANGUAGE: str = (os.getenv("SPEECH_LANGUAGE") or "en-US").strip()

# ============================================================================
# SESSIONS
# ============================================================================
# Interviews kept in memory. When full, the oldest stopped session is evicted
# first, otherwise the oldest session.
MAX_SESSIONS: int = max(1, int(os.getenv("MAX_SESSIONS", "32")))

# ============================================================================
# SERVER
# ============================================================================
FLASK_PORT: int = int(os.getenv("FLASK_PORT", "5000"))
FLASK_DEBUG: bool = _env_bool("FLASK_DEBUG", "false")
FLASK_HOST: str = os.getenv("FLASK_HOST", "0.0.0.0")
LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()


def warn_missing_config() -> None:
    """
    Print warnings for settings that will not work as configured.
    Call from app startup. Does not raise.
    """
    import sys
    problems = []
    if FACE_DETECTION_METHOD == "mediapipe":
        try:
            import mediapipe  # noqa: F401
            import cv2  # noqa: F401
        except ImportError:
            problems.append(
                "FACE_DETECTION_METHOD=mediapipe but mediapipe/opencv are not installed "
                "(pip install '.[vision]'); facial analysis will be disabled"
            )
    if ELIGIBILITY_THRESHOLD < 0 or ELIGIBILITY_THRESHOLD > 100:
        problems.append(f"ELIGIBILITY_THRESHOLD={ELIGIBILITY_THRESHOLD} is outside 0-100")
    if problems:
        print("Config warning: " + "; ".join(problems), file=sys.stderr)


def get_analysis_config() -> dict:
    """Settings the client needs to drive a session."""
    return {
        "faceDetectionMethod": FACE_DETECTION_METHOD,
        "analysisIntervalSec": ANALYSIS_INTERVAL_SEC,
        "eligibilityThreshold": ELIGIBILITY_THRESHOLD,
        "speechLanguage": SPEECH_LANGUAGE,
    }
