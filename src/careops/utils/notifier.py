# src/careops/utils/notifier.py
# Purpose: same-process change notifications for the session store and activity log
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

SESSIONS_TOPIC = "sessions"
LOGIN_HISTORY_TOPIC = "login_history"
ACTIVITY_TOPIC = "activity"

Listener = Callable[[Any], None]


class ChangeNotifier:
    """
    Observer registry. Listeners receive the changed collection itself, so
    they never need to re-read storage.
    """

    def __init__(self) -> None:
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, topic: str, listener: Listener) -> Callable[[], None]:
        self._listeners[topic].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[topic].remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, topic: str, payload: Any) -> None:
        # Fire-and-forget: a broken listener must not fail the write that triggered it
        for listener in list(self._listeners.get(topic, ())):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for topic '%s' failed", topic)
