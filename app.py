"""
=============================================================================
AUTHENTICITY ANALYSIS SERVER - APPLICATION ENTRY POINT (app.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This is the "front door" of the server. When you run "python app.py", it
starts a web server that the interview page talks to:

  1. The page creates a session when an interview begins.
  2. About once a second it posts a video tick (face keypoints, or a JPEG
     frame when the server does detection).
  3. Whenever the browser speech engine finalizes a phrase, the page posts it.
  4. At the end it asks for the authenticity score, which decides whether the
     candidate may mint their reward.

The actual handlers live in routes.py; the analysis itself lives in
analysis_session.py and utils/.

HOW TO RUN:
-----------
  - From project root:  python app.py
  - By default the app is at:  http://localhost:5000

CONFIGURATION:
--------------
  - Settings come from the .env file and config.py.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: Load environment variables from .env (before anything else)
# ---------------------------------------------------------------------------
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Import the web framework and our own modules
# ---------------------------------------------------------------------------
import logging

from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

from routes import register_routes
import config

# ---------------------------------------------------------------------------
# Step 3: Warn the operator about settings that will not work
# ---------------------------------------------------------------------------
config.warn_missing_config()


def create_app() -> Flask:
    """
    Create and configure the Flask application.

    What it does:
      - Enables CORS so the interview page can call the API from its own origin.
      - Enables compression; frame analyses carry landmark arrays and shrink well.
      - Registers all URL routes from routes.py.

    Returns:
        The configured Flask application.
    """
    app = Flask(__name__)

    # In production you would restrict this to the interview page's origin.
    CORS(app, resources={r"/*": {"origins": "*"}})

    Compress(app)

    register_routes(app)

    return app


app = create_app()


if __name__ == "__main__":
    """
    - FLASK_DEBUG=true: Flask's development server (auto-reload, debugger).
    - Otherwise: Waitress, a production-style multi-threaded server.
    """
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    if config.FLASK_DEBUG:
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=6)
