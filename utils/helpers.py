"""
Helper utility functions.

Reusable helpers shared by the routes.
"""

from typing import Any, Dict

import config
from services.history_store import EMOTION_HISTORY_MAX, SPEECH_HISTORY_MAX


def build_config_response() -> Dict[str, Any]:
    """
    Build the configuration dictionary for the /config/all endpoint.

    Returns:
        dict: Client-facing analysis settings and server limits
    """
    return {
        "analysis": config.get_analysis_config(),
        "history": {
            "emotionMax": EMOTION_HISTORY_MAX,
            "speechMax": SPEECH_HISTORY_MAX,
        },
        "sessions": {
            "max": config.MAX_SESSIONS,
        },
    }


def parse_bool(value: Any, default: bool = False) -> bool:
    """Lenient boolean from JSON/query values ("true", 1, True ...)."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("true", "1", "yes")
