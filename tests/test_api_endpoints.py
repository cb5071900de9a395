"""
API endpoint tests.

Tests health, config and the per-interview session routes using the Flask
test client. Detection runs in client mode so no vision stack is needed.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import unittest
from unittest.mock import patch

from tests.fixtures.synthetic_landmarks import make_face, ready_frame_dict


class ApiTestCase(unittest.TestCase):
    """Fresh app and session registry per test."""

    def setUp(self):
        import routes
        routes._session_registry = None
        self._patches = [
            patch("config.FACE_DETECTION_METHOD", "client"),
            patch("config.ANALYSIS_RANDOM_SEED", 3),
        ]
        for p in self._patches:
            p.start()
        from app import create_app
        self.app = create_app()
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def tearDown(self):
        import routes
        if routes._session_registry is not None:
            routes._session_registry.clear()
        routes._session_registry = None
        for p in self._patches:
            p.stop()

    def _new_session(self, start=True):
        r = self.client.post("/session")
        self.assertEqual(r.status_code, 201)
        sid = r.get_json()["sessionId"]
        if start:
            self.client.post(f"/session/{sid}/start")
        return sid


class TestHealthAndConfig(ApiTestCase):
    """Test health and config routes."""

    def test_health_returns_ok(self):
        """GET /health should return 200 and status ok."""
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.get_json(), {"status": "ok"})

    def test_config_all_returns_sections(self):
        """GET /config/all should return analysis, history and session limits."""
        r = self.client.get("/config/all")
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertIn("analysis", data)
        self.assertEqual(data["history"]["emotionMax"], 100)
        self.assertEqual(data["history"]["speechMax"], 50)
        self.assertIn("max", data["sessions"])


class TestSessionLifecycle(ApiTestCase):
    """Test create, start, stop, status and delete."""

    def test_create_and_start(self):
        """A new session starts in client mode with speech listening."""
        sid = self._new_session(start=False)
        r = self.client.post(f"/session/{sid}/start")
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertEqual(data["state"], "analyzing")
        self.assertTrue(data["facialAnalysis"])
        self.assertTrue(data["speechRecognition"])
        self.assertEqual(data["detectionMethod"], "client")
        self.assertIsNone(data["error"])

    def test_unknown_session_is_404(self):
        """Routes with an unknown id return 404."""
        self.assertEqual(self.client.get("/session/nope").status_code, 404)
        self.assertEqual(self.client.post("/session/nope/start").status_code, 404)
        self.assertEqual(self.client.post("/session/nope/score").status_code, 404)
        self.assertEqual(self.client.delete("/session/nope").status_code, 404)

    def test_status_stop_and_delete(self):
        """Status reflects the state; delete removes the session."""
        sid = self._new_session()
        self.assertEqual(self.client.get(f"/session/{sid}").get_json()["state"], "analyzing")
        r = self.client.post(f"/session/{sid}/stop")
        self.assertEqual(r.get_json()["state"], "stopped")
        self.assertEqual(self.client.delete(f"/session/{sid}").status_code, 204)
        self.assertEqual(self.client.get(f"/session/{sid}").status_code, 404)


class TestFrameRoute(ApiTestCase):
    """Test POST /session/<id>/frame."""

    def test_client_keypoints_are_analyzed(self):
        """Posted mesh keypoints produce a real analysis."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([make_face(corner_offset=0.04)]))
        self.assertEqual(r.status_code, 200)
        data = r.get_json()
        self.assertFalse(data["isMock"])
        self.assertAlmostEqual(data["emotions"]["happiness"], 0.6, places=6)
        self.assertIn("microExpressions", data)
        self.assertEqual(len(data["landmarks"]["landmarks"]), 468)

    def test_no_face_returns_mock(self):
        """A frame with no faces returns a flagged mock."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([]))
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.get_json()["isMock"])

    def test_not_analyzing_returns_204(self):
        """Frames before start are ignored."""
        sid = self._new_session(start=False)
        r = self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([make_face()]))
        self.assertEqual(r.status_code, 204)

    def test_invalid_payload_returns_400(self):
        """Bad coordinateSpace or faces shape is a client error."""
        sid = self._new_session()
        body = ready_frame_dict([make_face()])
        body["frame"]["coordinateSpace"] = "inches"
        self.assertEqual(self.client.post(f"/session/{sid}/frame", json=body).status_code, 400)
        self.assertEqual(
            self.client.post(f"/session/{sid}/frame", json={"faces": "x", "frame": {}}).status_code, 400
        )

    def test_wrongly_typed_keypoints_return_mock(self):
        """null x, scalar keypoints and scalar box corners degrade to a mock, not a 500."""
        sid = self._new_session()
        faces = [
            {"keypoints": [{"x": None, "y": 0.5}] * 10},
            {"keypoints": [1, 2, 3, 4, 5, 6]},
            {"keypoints": [[0.1, 0.2]] * 10, "box": {"topLeft": 1, "bottomRight": 2}},
        ]
        for face in faces:
            r = self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([face]))
            self.assertEqual(r.status_code, 200)
            self.assertTrue(r.get_json()["isMock"])

    def test_busy_returns_409(self):
        """An overlapping tick is rejected with 409."""
        from analysis_session import AnalysisBusyError
        sid = self._new_session()
        with patch("analysis_session.AnalysisSession.analyze_face", side_effect=AnalysisBusyError("busy")):
            r = self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([]))
        self.assertEqual(r.status_code, 409)


class TestTranscriptRoute(ApiTestCase):
    """Test POST /session/<id>/transcript."""

    def test_final_result_is_analyzed(self):
        """A final transcript returns its speech analysis."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/transcript",
                             json={"transcript": "um like I think basically yes", "isFinal": True})
        self.assertEqual(r.status_code, 200)
        analyses = r.get_json()["analyses"]
        self.assertEqual(len(analyses), 1)
        self.assertEqual(analyses[0]["filler_ratio"], 0.5)
        self.assertEqual(analyses[0]["speech_rate"], 6)

    def test_interim_result_returns_204(self):
        """Interim results are not analyzed."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/transcript", json={"transcript": "um", "isFinal": False})
        self.assertEqual(r.status_code, 204)
        self.assertEqual(self.client.get(f"/session/{sid}").get_json()["speechHistorySize"], 0)

    def test_requires_json(self):
        """Non-JSON bodies are rejected."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/transcript", data="hello")
        self.assertEqual(r.status_code, 400)

    def test_non_string_transcript_is_400(self):
        """transcript must be a string."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/transcript", json={"transcript": 5, "isFinal": True})
        self.assertEqual(r.status_code, 400)

    def test_after_stop_is_dropped(self):
        """Results after stop return 204 and change nothing."""
        sid = self._new_session()
        self.client.post(f"/session/{sid}/stop")
        r = self.client.post(f"/session/{sid}/transcript", json={"transcript": "late", "isFinal": True})
        self.assertEqual(r.status_code, 204)


class TestScoreRoute(ApiTestCase):
    """Test scoring and resets."""

    def test_cold_score_is_eligible_and_stable(self):
        """No data: overall in [75, 90], eligible, same on repeat."""
        sid = self._new_session()
        first = self.client.post(f"/session/{sid}/score").get_json()
        second = self.client.post(f"/session/{sid}/score").get_json()
        self.assertTrue(75 <= first["overall"] <= 90)
        self.assertTrue(first["eligible"])
        self.assertEqual(first, second)
        self.assertEqual(first["facial"], 60)
        self.assertEqual(first["speech"], 70)

    def test_score_with_question(self):
        """The question text is echoed back."""
        sid = self._new_session()
        self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([make_face()]))
        r = self.client.post(f"/session/{sid}/score", json={"question": "Tell me about yourself"})
        data = r.get_json()
        self.assertEqual(data["question"], "Tell me about yourself")
        self.assertEqual(data["speech"], 50)
        self.assertIn("timestamp", data)
        self.assertEqual(set(data["breakdown"]), {"microExpressions", "sentiment", "coherence", "confidence"})

    def test_bad_question_is_400(self):
        """A non-string question is rejected."""
        sid = self._new_session()
        r = self.client.post(f"/session/{sid}/score", json={"question": ["a"]})
        self.assertEqual(r.status_code, 400)

    def test_reset_question_keeps_history(self):
        """reset-question clears only the current analysis."""
        sid = self._new_session()
        self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([make_face()]))
        self.client.post(f"/session/{sid}/reset-question")
        status = self.client.get(f"/session/{sid}").get_json()
        self.assertEqual(status["emotionHistorySize"], 1)
        self.assertIsNone(status["currentFacialAnalysis"])

    def test_reset_clears_history(self):
        """reset wipes histories and returns to initialized."""
        sid = self._new_session()
        self.client.post(f"/session/{sid}/frame", json=ready_frame_dict([make_face()]))
        r = self.client.post(f"/session/{sid}/reset")
        self.assertEqual(r.get_json()["state"], "initialized")
        status = self.client.get(f"/session/{sid}").get_json()
        self.assertEqual(status["emotionHistorySize"], 0)


if __name__ == "__main__":
    unittest.main()
