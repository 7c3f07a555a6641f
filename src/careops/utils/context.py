# src/careops/utils/context.py
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request

from src.careops.config import Settings, settings as default_settings
from src.careops.crud.activity import ActivityLog
from src.careops.crud.sessions import SessionStore
from src.careops.exceptions import NotAuthenticated, StorageError
from src.careops.utils.activity_tracker import ActivityLogger
from src.careops.utils.api_client import BackendClient
from src.careops.utils.auth import AuthService, CredentialStore
from src.careops.utils.geolocation import GeoLocator
from src.careops.utils.notifier import ChangeNotifier
from src.careops.utils.session_manager import Locator, SessionManager
from src.careops.utils.storage import KeyValueStore, build_store

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything owned by one signed-in browser context."""
    settings: Settings
    session_scope: KeyValueStore
    persistent_scope: KeyValueStore
    notifier: ChangeNotifier
    locator: Locator
    session_store: SessionStore
    sessions: SessionManager
    activity_log: ActivityLog
    activity: ActivityLogger
    credentials: CredentialStore
    client: BackendClient
    auth: AuthService

    def shutdown(self) -> None:
        self.sessions.stop_activity_tracking()


def build_context(
    cfg: Optional[Settings] = None,
    persistent_scope: Optional[KeyValueStore] = None,
    locator: Optional[Locator] = None,
    client: Optional[BackendClient] = None,
) -> AppContext:
    cfg = cfg or default_settings
    session_scope = build_store("session", cfg)
    persistent = persistent_scope if persistent_scope is not None else build_store("persistent", cfg)
    notifier = ChangeNotifier()

    session_store = SessionStore(persistent, notifier, history_max=cfg.LOGIN_HISTORY_MAX)
    loc = locator or GeoLocator(cfg)
    sessions = SessionManager(
        session_store,
        loc,
        heartbeat_interval=cfg.HEARTBEAT_INTERVAL_SECONDS,
        default_user_agent=cfg.DEFAULT_USER_AGENT,
    )

    activity_log = ActivityLog(
        persistent,
        notifier,
        max_entries=cfg.ACTIVITY_LOG_MAX,
        dedup_window_ms=cfg.ACTIVITY_DEDUP_WINDOW_MS,
    )
    activity = ActivityLogger(activity_log)

    credentials = CredentialStore(session_scope, persistent)
    api = client or BackendClient(cfg.API_BASE_URL, credentials, timeout=cfg.API_TIMEOUT_SECONDS)
    if api.credentials is None:
        api.credentials = credentials
    auth = AuthService(api, credentials, sessions, activity)

    return AppContext(
        settings=cfg,
        session_scope=session_scope,
        persistent_scope=persistent,
        notifier=notifier,
        locator=loc,
        session_store=session_store,
        sessions=sessions,
        activity_log=activity_log,
        activity=activity,
        credentials=credentials,
        client=api,
        auth=auth,
    )


# -------------------------------------------------------------------
# FastAPI dependencies
# -------------------------------------------------------------------
def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def get_session_manager(request: Request) -> SessionManager:
    return get_context(request).sessions


def get_activity_log(request: Request) -> ActivityLog:
    return get_context(request).activity_log


def get_auth(request: Request) -> AuthService:
    return get_context(request).auth


def _extract_bearer(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if header:
        parts = header.split(" ", 1)
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()
    return None


def require_login(request: Request) -> Dict[str, Any]:
    """Signed-in user for this context; the caller must present the stored token."""
    ctx = get_context(request)
    presented = _extract_bearer(request)
    if not presented:
        raise NotAuthenticated()

    try:
        stored = ctx.credentials.get_token()
    except StorageError as e:
        logger.warning("Could not read stored token: %s", e)
        raise NotAuthenticated()

    if ctx.auth.user is None or not stored:
        raise NotAuthenticated()
    if not secrets.compare_digest(presented, stored):
        raise NotAuthenticated("Invalid token.")
    return ctx.auth.user
