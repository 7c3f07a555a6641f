# src/careops/utils/session_manager.py
"""
Client-side session tracking.

One `SessionManager` belongs to one signed-in browser context. It is created by
the application context and lives exactly as long as that login: the auth
service calls `initialize_session()` after a successful login and
`clear_session()` on logout.

Tracking is telemetry, not a gate: every public method degrades to a failure
result (None / False) instead of raising, so login and logout always proceed.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from enum import Enum
from typing import Callable, List, Optional, Protocol

from src.careops.crud.sessions import SessionStore
from src.careops.exceptions import StorageError
from src.careops.schemas.session_schema import (
    ClientContext,
    LocationResult,
    LoginHistoryEntry,
    LoginStatus,
    Session,
)
from src.careops.utils.device import identify, session_fingerprint
from src.careops.utils.logger import diagnostics
from src.careops.utils.timezone import epoch_millis, from_epoch

logger = logging.getLogger(__name__)

INTERACTION_EVENTS = frozenset({"pointerdown", "mousedown", "keydown", "scroll", "touchstart"})

_ALPHABET = string.ascii_lowercase + string.digits


class Locator(Protocol):
    async def locate(self) -> LocationResult:
        ...


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    TERMINATED = "terminated"


def generate_session_id(now_s: Optional[float] = None) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"session_{epoch_millis(now_s)}_{suffix}"


def _report_heartbeat_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Heartbeat stopped unexpectedly: %s", exc, exc_info=exc)


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        locator: Locator,
        heartbeat_interval: float = 30.0,
        clock: Callable[[], float] = time.time,
        id_factory: Optional[Callable[[], str]] = None,
        default_user_agent: str = "",
    ) -> None:
        self.store = store
        self.locator = locator
        self.heartbeat_interval = float(heartbeat_interval)
        self._clock = clock
        self._id_factory = id_factory or (lambda: generate_session_id(self._clock()))
        self.default_user_agent = default_user_agent

        self.current_session_id: Optional[str] = None
        self.state = SessionState.NO_SESSION
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._last_interaction_update: Optional[float] = None

    # ---------------------------------------------------------------
    # Login / failed login
    # ---------------------------------------------------------------
    async def initialize_session(
        self,
        user_agent: Optional[str] = None,
        client: Optional[ClientContext] = None,
    ) -> Optional[Session]:
        """
        NO_SESSION -> ACTIVE. Returns the new session, or None when the probe
        or the store failed (the caller continues with login regardless).
        """
        try:
            ua = user_agent or (client.user_agent if client else "") or self.default_user_agent
            device = identify(ua)
            located = await self.locator.locate()
            loc = located.info

            now = from_epoch(self._clock())
            session = Session(
                id=self._id_factory(),
                device=device.device,
                device_type=device.device_type,
                browser=device.browser,
                os=device.os,
                location=loc.location,
                ip=loc.ip,
                login_time=now,
                last_active=now,
                current=True,
                fingerprint=(
                    session_fingerprint(ua, client.screen, client.language, client.timezone)
                    if client is not None
                    else None
                ),
            )

            # Exactly one current session per storage scope: the newest one
            previous = self.store.list_sessions()
            if any(s.current for s in previous):
                self.store.replace_all([s.model_copy(update={"current": False}) for s in previous])
            self.store.append_session(session)

            self.store.append_login_history(
                LoginHistoryEntry(
                    timestamp=now,
                    device=device.device,
                    location=loc.location,
                    ip=loc.ip,
                    status=LoginStatus.SUCCESS,
                )
            )
        except (StorageError, ValueError) as e:
            diagnostics.warning("Failed to initialize session: %s", e)
            return None

        self.current_session_id = session.id
        self.state = SessionState.ACTIVE
        self.start_activity_tracking()
        logger.info(
            "Session %s started on %s (%s, location via %s)",
            session.id, session.device, session.location, located.source.value,
        )
        return session

    async def add_failed_login(self, user_agent: Optional[str] = None) -> Optional[LoginHistoryEntry]:
        """Record a Failed attempt. Never touches active sessions or state."""
        try:
            device = identify(user_agent or self.default_user_agent)
            loc = (await self.locator.locate()).info
            entry = LoginHistoryEntry(
                timestamp=from_epoch(self._clock()),
                device=device.device,
                location=loc.location,
                ip=loc.ip,
                status=LoginStatus.FAILED,
            )
            self.store.append_login_history(entry)
        except (StorageError, ValueError) as e:
            diagnostics.warning("Failed to log failed attempt: %s", e)
            return None
        return entry

    # ---------------------------------------------------------------
    # Heartbeat
    # ---------------------------------------------------------------
    def start_activity_tracking(self) -> None:
        self.stop_activity_tracking()
        self._last_interaction_update = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; heartbeat limited to interactions")
            return
        self._heartbeat_task = loop.create_task(self._heartbeat_loop())
        self._heartbeat_task.add_done_callback(_report_heartbeat_exit)

    def stop_activity_tracking(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is not None and not task.done():
            task.cancel()

    @property
    def tracking(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    async def _heartbeat_loop(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self.update_last_active()

    def record_interaction(self, event_type: str) -> bool:
        """
        The first qualifying interaction in each heartbeat window refreshes
        `last_active`; later ones in the same window are ignored.
        """
        if self.state is not SessionState.ACTIVE:
            return False
        if (event_type or "").lower() not in INTERACTION_EVENTS:
            return False

        now = self._clock()
        last = self._last_interaction_update
        if last is not None and now - last < self.heartbeat_interval:
            return False

        self._last_interaction_update = now
        return self.update_last_active()

    def update_last_active(self) -> bool:
        if not self.current_session_id:
            return False
        try:
            now = from_epoch(self._clock())
            updated = [
                s.model_copy(update={"last_active": now}) if s.id == self.current_session_id else s
                for s in self.store.list_sessions()
            ]
            self.store.replace_all(updated)
        except StorageError as e:
            diagnostics.warning("Failed to update activity: %s", e)
            return False
        return True

    # ---------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------
    def get_active_sessions(self) -> List[Session]:
        try:
            return self.store.list_sessions()
        except StorageError as e:
            diagnostics.warning("Failed to get sessions: %s", e)
            return []

    def get_login_history(self) -> List[LoginHistoryEntry]:
        try:
            return self.store.list_login_history()
        except StorageError as e:
            diagnostics.warning("Failed to get login history: %s", e)
            return []

    def get_current_session(self) -> Optional[Session]:
        if not self.current_session_id:
            return None
        for s in self.get_active_sessions():
            if s.id == self.current_session_id:
                return s
        return None

    # ---------------------------------------------------------------
    # Termination / logout
    # ---------------------------------------------------------------
    def terminate_session(self, session_id: str) -> bool:
        """Remove one session by id; an unknown id is a successful no-op."""
        try:
            removed = self.store.delete_session(session_id)
        except StorageError as e:
            diagnostics.warning("Failed to terminate session %s: %s", session_id, e)
            return False

        if session_id == self.current_session_id:
            self.stop_activity_tracking()
            self.current_session_id = None
            self.state = SessionState.TERMINATED
        if removed:
            logger.info("Session %s terminated", session_id)
        return True

    def terminate_all_other_sessions(self) -> bool:
        try:
            keep = [s for s in self.store.list_sessions() if s.id == self.current_session_id]
            self.store.replace_all(keep)
        except StorageError as e:
            diagnostics.warning("Failed to terminate sessions: %s", e)
            return False
        logger.info("Terminated all sessions except %s", self.current_session_id)
        return True

    def clear_session(self) -> None:
        """Logout: stop the heartbeat and drop only this context's session."""
        self.stop_activity_tracking()
        session_id, self.current_session_id = self.current_session_id, None
        self.state = SessionState.NO_SESSION
        self._last_interaction_update = None
        if not session_id:
            return
        try:
            self.store.delete_session(session_id)
        except StorageError as e:
            diagnostics.warning("Failed to clear session %s: %s", session_id, e)
