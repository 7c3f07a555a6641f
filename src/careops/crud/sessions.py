# src/careops/crud/sessions.py
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from src.careops.crud.collections import RecordCollection
from src.careops.schemas.session_schema import LoginHistoryEntry, Session
from src.careops.utils.notifier import LOGIN_HISTORY_TOPIC, SESSIONS_TOPIC, ChangeNotifier
from src.careops.utils.storage import KeyValueStore

logger = logging.getLogger(__name__)

SESSIONS_KEY = "activeSessions"
LOGIN_HISTORY_KEY = "loginHistory"


class SessionStore:
    """Active sessions (insertion order) and login history (newest first, capped)."""

    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[ChangeNotifier] = None,
        history_max: int = 50,
    ) -> None:
        self._sessions = RecordCollection(store, SESSIONS_KEY, Session)
        self._history = RecordCollection(store, LOGIN_HISTORY_KEY, LoginHistoryEntry)
        self.notifier = notifier or ChangeNotifier()
        self.history_max = history_max

    # -------- Sessions --------
    def list_sessions(self) -> List[Session]:
        return self._sessions.list()

    def get_session(self, session_id: str) -> Optional[Session]:
        for s in self.list_sessions():
            if s.id == session_id:
                return s
        return None

    def append_session(self, session: Session) -> List[Session]:
        updated = self._sessions.append(session)
        self.notifier.publish(SESSIONS_TOPIC, updated)
        return updated

    def replace_all(self, sessions: Sequence[Session]) -> List[Session]:
        updated = self._sessions.replace_all(sessions)
        self.notifier.publish(SESSIONS_TOPIC, updated)
        return updated

    def delete_session(self, session_id: str) -> bool:
        """Remove one session by id. Missing ids are a no-op (returns False)."""
        sessions = self.list_sessions()
        remaining = [s for s in sessions if s.id != session_id]
        self.replace_all(remaining)
        return len(remaining) != len(sessions)

    # -------- Login history --------
    def list_login_history(self) -> List[LoginHistoryEntry]:
        return self._history.list()

    def append_login_history(self, entry: LoginHistoryEntry) -> List[LoginHistoryEntry]:
        updated = self._history.prepend(entry, cap=self.history_max)
        logger.debug("Login history: %s from %s (%d kept)", entry.status.value, entry.device, len(updated))
        self.notifier.publish(LOGIN_HISTORY_TOPIC, updated)
        return updated
