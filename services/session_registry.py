"""
In-memory registry of analysis sessions for the web server.

Each interview gets its own AnalysisSession, created explicitly and looked up
by id. The registry is capped; when full, the oldest stopped session is
evicted first, otherwise the oldest session.
"""

import logging
import threading
import uuid
from collections import OrderedDict
from typing import Callable, Optional

from analysis_session import AnalysisSession, SessionState

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Thread-safe id -> AnalysisSession map."""

    def __init__(self, session_factory: Callable[[str], AnalysisSession], max_sessions: int = 32):
        """
        Args:
            session_factory: Builds a new session for the given id
            max_sessions: Capacity before eviction kicks in
        """
        self._factory = session_factory
        self._max_sessions = max(1, int(max_sessions))
        self._sessions: "OrderedDict[str, AnalysisSession]" = OrderedDict()
        self._lock = threading.Lock()

    def create(self) -> AnalysisSession:
        session_id = uuid.uuid4().hex
        session = self._factory(session_id)
        evicted = None
        with self._lock:
            if len(self._sessions) >= self._max_sessions:
                evicted = self._pop_eviction_candidate()
            self._sessions[session_id] = session
        if evicted is not None:
            logger.info("Evicting session %s (registry full)", evicted.session_id)
            evicted.close()
        return session

    def _pop_eviction_candidate(self) -> AnalysisSession:
        for sid, s in self._sessions.items():
            if s.state == SessionState.STOPPED:
                return self._sessions.pop(sid)
        _, oldest = self._sessions.popitem(last=False)
        return oldest

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for s in sessions:
            s.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
