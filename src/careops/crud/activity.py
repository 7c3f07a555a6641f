# src/careops/crud/activity.py
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from src.careops.crud.collections import RecordCollection
from src.careops.exceptions import StorageError
from src.careops.schemas.activity_log_schema import ActivityEntry, ActivityRead
from src.careops.utils.logger import diagnostics
from src.careops.utils.notifier import ACTIVITY_TOPIC, ChangeNotifier
from src.careops.utils.storage import KeyValueStore
from src.careops.utils.timezone import epoch_millis, time_ago

logger = logging.getLogger(__name__)

ACTIVITY_KEY = "userActivity"


class ActivityLog:
    def __init__(
        self,
        store: KeyValueStore,
        notifier: Optional[ChangeNotifier] = None,
        max_entries: int = 20,
        dedup_window_ms: int = 5000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries = RecordCollection(store, ACTIVITY_KEY, ActivityEntry)
        self.notifier = notifier or ChangeNotifier()
        self.max_entries = max_entries
        self.dedup_window_ms = dedup_window_ms
        self._clock = clock

    def _now_ms(self) -> int:
        return epoch_millis(self._clock())

    def record(self, action: str, icon: str = "📋") -> Optional[ActivityEntry]:
        """
        Prepend an entry unless the same action was logged inside the
        de-duplication window. Returns the new entry, or None when it was
        skipped or could not be stored.
        """
        if not action or not action.strip():
            return None

        now = self._now_ms()
        try:
            entries = self._entries.list()
            if any(e.action == action and now - e.timestamp < self.dedup_window_ms for e in entries):
                logger.debug("Skipping duplicate activity: %s", action)
                return None

            entry = ActivityEntry(action=action, timestamp=now, icon=icon or "📋")
            updated = self._entries.prepend(entry, cap=self.max_entries)
        except StorageError as e:
            diagnostics.warning("Failed to log activity %r: %s", action, e)
            return None

        logger.info("Activity logged: %s", action)
        self.notifier.publish(ACTIVITY_TOPIC, updated)
        return entry

    def query(self) -> List[ActivityEntry]:
        return self._entries.list()

    def query_with_time_ago(self, now_ms: Optional[int] = None) -> List[ActivityRead]:
        now = self._now_ms() if now_ms is None else now_ms
        return [
            ActivityRead(**e.model_dump(), time_ago=time_ago(e.timestamp, now_ms=now))
            for e in self.query()
        ]

    def clear(self) -> None:
        self._entries.clear()
        self.notifier.publish(ACTIVITY_TOPIC, [])

    def clean(self) -> Tuple[int, int]:
        """Drop invalid stored entries; returns (before, after) counts."""
        before = self._entries.raw_count()
        valid = self._entries.list()
        if before != len(valid):
            self._entries.replace_all(valid)
            self.notifier.publish(ACTIVITY_TOPIC, valid)
        logger.info("Cleaned activities: %d -> %d", before, len(valid))
        return before, len(valid)
