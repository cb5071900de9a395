"""
Service layer tests.

Tests history stores, the speech segment channel, the HTTP-fed recognizer
and the session registry.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import threading
import unittest
from unittest.mock import MagicMock


def _emotion(happiness=0.3):
    from utils.emotion_extractor import EmotionVector
    return EmotionVector(happiness, 0.2, 0.1, 0.1, 0.1, 0.05, 0.3, 0.8)


class TestHistoryStore(unittest.TestCase):
    """Test bounded FIFO history stores."""

    def test_emotion_history_keeps_last_100(self):
        """Appending 105 entries keeps entries 6..105 in order."""
        from services.history_store import EmotionHistory
        history = EmotionHistory()
        for i in range(105):
            history.append(_emotion(happiness=i / 200))
        items = history.snapshot()
        self.assertEqual(len(items), 100)
        self.assertAlmostEqual(items[0].happiness, 5 / 200)
        self.assertAlmostEqual(items[-1].happiness, 104 / 200)

    def test_speech_history_cap(self):
        """Speech history holds at most 50 entries."""
        from services.history_store import SpeechHistory
        from utils.speech_analyzer import analyze_speech
        history = SpeechHistory()
        for i in range(60):
            history.append(analyze_speech(f"answer number {i}"))
        self.assertEqual(len(history), 50)
        self.assertEqual(history.snapshot()[0].transcript, "answer number 10")

    def test_recent_and_clear(self):
        """recent(n) returns the tail; clear empties and bumps the revision."""
        from services.history_store import EmotionHistory
        history = EmotionHistory()
        for i in range(4):
            history.append(_emotion(happiness=i / 10))
        self.assertEqual([e.happiness for e in history.recent(2)], [0.2, 0.3])
        self.assertEqual(len(history.recent(10)), 4)
        self.assertEqual(history.recent(0), [])
        rev = history.revision
        history.clear()
        self.assertEqual(len(history), 0)
        self.assertGreater(history.revision, rev)

    def test_revision_tracks_appends(self):
        """Each append increments the revision; snapshot_with_revision agrees."""
        from services.history_store import EmotionHistory
        history = EmotionHistory()
        history.append(_emotion())
        history.append(_emotion())
        items, rev = history.snapshot_with_revision()
        self.assertEqual(len(items), 2)
        self.assertEqual(rev, 2)

    def test_rejects_wrong_type(self):
        """Stores only accept their own element type."""
        from services.history_store import EmotionHistory, SpeechHistory
        with self.assertRaises(TypeError):
            EmotionHistory().append({"happiness": 0.3})
        with self.assertRaises(TypeError):
            SpeechHistory().append(_emotion())

    def test_concurrent_appends_are_not_lost(self):
        """Parallel appends from several threads are all counted."""
        from services.history_store import EmotionHistory
        history = EmotionHistory(maxlen=1000)

        def worker():
            for _ in range(100):
                history.append(_emotion())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(len(history), 400)
        self.assertEqual(history.revision, 400)

    def test_invalid_capacity(self):
        """Non-positive capacity is rejected."""
        from services.history_store import BoundedHistory
        with self.assertRaises(ValueError):
            BoundedHistory(0)


class TestSpeechChannel(unittest.TestCase):
    """Test finalized-segment delivery."""

    def test_interim_results_are_dropped(self):
        """Only is_final results become fragments."""
        from services.speech_channel import SpeechSegmentChannel
        channel = SpeechSegmentChannel()
        channel.publish_one("I led the", is_final=False)
        channel.publish_one("I led the team", is_final=True)
        self.assertEqual(channel.drain_final_fragments(), ["I led the team"])
        self.assertEqual(channel.pending(), 0)

    def test_multiple_final_results_in_one_event_are_joined(self):
        """Final results of one event form a single fragment."""
        from services.speech_channel import SpeechResult, SpeechSegmentChannel
        channel = SpeechSegmentChannel()
        channel.publish([
            SpeechResult("I think ", True),
            SpeechResult("maybe", False),
            SpeechResult("it went well", True),
        ])
        self.assertEqual(channel.drain_final_fragments(), ["I think it went well"])

    def test_clear(self):
        """clear discards pending events."""
        from services.speech_channel import SpeechSegmentChannel
        channel = SpeechSegmentChannel()
        channel.publish_one("hello", True)
        channel.publish([])
        self.assertEqual(channel.pending(), 1)
        channel.clear()
        self.assertEqual(channel.drain_final_fragments(), [])


class TestHttpSpeechRecognizer(unittest.TestCase):
    """Test the recognizer fed by the transcript route."""

    def test_push_only_while_listening(self):
        """Results are dropped until start() and after stop()."""
        from services.speech_channel import HttpSpeechRecognizer, SpeechSegmentChannel
        channel = SpeechSegmentChannel()
        recognizer = HttpSpeechRecognizer(language="en-GB")
        self.assertFalse(recognizer.push("early", True))
        recognizer.start(channel)
        self.assertTrue(recognizer.is_listening)
        self.assertTrue(recognizer.push("on time", True))
        recognizer.stop()
        self.assertFalse(recognizer.push("late", True))
        self.assertEqual(channel.drain_final_fragments(), ["on time"])
        self.assertEqual(recognizer.language, "en-GB")


class TestSessionRegistry(unittest.TestCase):
    """Test per-interview session bookkeeping."""

    def _registry(self, max_sessions=3):
        from analysis_session import AnalysisSession
        from services.session_registry import SessionRegistry
        return SessionRegistry(lambda sid: AnalysisSession(seed=1, session_id=sid), max_sessions=max_sessions)

    def test_create_get_remove(self):
        """Sessions are retrievable by id until removed."""
        registry = self._registry()
        session = registry.create()
        self.assertIs(registry.get(session.session_id), session)
        self.assertTrue(registry.remove(session.session_id))
        self.assertIsNone(registry.get(session.session_id))
        self.assertFalse(registry.remove(session.session_id))

    def test_evicts_stopped_session_first(self):
        """When full, a stopped session is evicted before older running ones."""
        registry = self._registry(max_sessions=3)
        a, b, c = registry.create(), registry.create(), registry.create()
        a.start()
        b.start()
        b.stop()
        registry.create()
        self.assertEqual(len(registry), 3)
        self.assertIsNotNone(registry.get(a.session_id))
        self.assertIsNone(registry.get(b.session_id))
        self.assertIsNotNone(registry.get(c.session_id))

    def test_evicts_oldest_when_none_stopped(self):
        """Without stopped sessions, the oldest one goes."""
        registry = self._registry(max_sessions=2)
        a = registry.create()
        b = registry.create()
        registry.create()
        self.assertIsNone(registry.get(a.session_id))
        self.assertIsNotNone(registry.get(b.session_id))

    def test_evicted_session_is_closed(self):
        """Eviction closes the session."""
        from services.session_registry import SessionRegistry
        sessions = []

        def factory(sid):
            s = MagicMock()
            s.session_id = sid
            sessions.append(s)
            return s

        registry = SessionRegistry(factory, max_sessions=1)
        registry.create()
        registry.create()
        sessions[0].close.assert_called_once()
        registry.clear()
        sessions[1].close.assert_called_once()
        self.assertEqual(len(registry), 0)


if __name__ == "__main__":
    unittest.main()
