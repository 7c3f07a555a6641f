# src/careops/utils/auth.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from src.careops.exceptions import BackendError, BackendUnavailable, CareOpsError, StorageError
from src.careops.schemas.auth_schema import LoginResult, PasswordChangeResult
from src.careops.schemas.session_schema import ClientContext
from src.careops.utils.activity_tracker import ActivityLogger
from src.careops.utils.api_client import BackendClient
from src.careops.utils.logger import diagnostics
from src.careops.utils.session_manager import SessionManager
from src.careops.utils.storage import KeyValueStore

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

TOKEN_KEY = "token"
USER_KEY = "user"
REMEMBER_KEY = "rememberMe"


# -------------------------------------------------------------------
# Token / user storage across the two scopes
# -------------------------------------------------------------------
class CredentialStore:
    def __init__(self, session_scope: KeyValueStore, persistent_scope: KeyValueStore) -> None:
        self.session_scope = session_scope
        self.persistent_scope = persistent_scope

    def save(self, token: str, user: Dict[str, Any], remember_me: bool = False) -> None:
        if remember_me:
            # Survives restarts
            self.persistent_scope.set(TOKEN_KEY, token)
            self.persistent_scope.set(USER_KEY, json.dumps(user))
            self.persistent_scope.set(REMEMBER_KEY, "true")
        else:
            self.session_scope.set(TOKEN_KEY, token)
            self.session_scope.set(USER_KEY, json.dumps(user))

    def get_token(self) -> Optional[str]:
        return self.session_scope.get(TOKEN_KEY) or self.persistent_scope.get(TOKEN_KEY)

    def get_user(self) -> Optional[Dict[str, Any]]:
        for scope in (self.session_scope, self.persistent_scope):
            raw = scope.get(USER_KEY)
            if not raw:
                continue
            try:
                user = json.loads(raw)
            except ValueError:
                diagnostics.warning("Stored user is not valid JSON; ignoring")
                continue
            if isinstance(user, dict):
                return user
        return None

    @property
    def remember_me(self) -> bool:
        return self.persistent_scope.get(REMEMBER_KEY) == "true"

    def clear(self) -> None:
        for scope in (self.session_scope, self.persistent_scope):
            scope.delete(TOKEN_KEY)
            scope.delete(USER_KEY)
        self.persistent_scope.delete(REMEMBER_KEY)


# -------------------------------------------------------------------
# Login / logout flow
# -------------------------------------------------------------------
class AuthService:
    def __init__(
        self,
        client: BackendClient,
        credentials: CredentialStore,
        sessions: SessionManager,
        activity: ActivityLogger,
    ) -> None:
        self.client = client
        self.credentials = credentials
        self.sessions = sessions
        self.activity = activity
        self.user: Optional[Dict[str, Any]] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def login(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
        user_agent: Optional[str] = None,
        client: Optional[ClientContext] = None,
    ) -> LoginResult:
        logger.info("Attempting login for %s (remember_me=%s)", email, remember_me)
        try:
            data = await asyncio.to_thread(
                self.client.post, "/auth/login", json={"email": (email or "").strip(), "password": password}
            )
        except (BackendError, BackendUnavailable) as e:
            logger.warning("Login failed for %s: %s", email, e.message)
            await self.sessions.add_failed_login(user_agent)
            return LoginResult(ok=False, error=e.message or "Login failed. Please try again.")

        token = data.get("token") if isinstance(data, dict) else None
        if not (isinstance(data, dict) and data.get("success") and token):
            logger.warning("Login failed for %s: no token in response", email)
            await self.sessions.add_failed_login(user_agent)
            return LoginResult(ok=False, error="Login failed")

        user = data.get("user") if isinstance(data.get("user"), dict) else {"email": email}
        try:
            self.credentials.save(str(token), user, remember_me=remember_me)
        except StorageError as e:
            # The user is still signed in for this process
            diagnostics.warning("Could not persist credentials: %s", e)
        self.user = user

        session = await self.sessions.initialize_session(user_agent, client)
        self.activity.login()
        logger.info("Login successful for %s", email)
        return LoginResult(ok=True, user=user, session=session, token=str(token))

    async def restore(self) -> Optional[Dict[str, Any]]:
        """Re-validate stored credentials with the backend; clear them when invalid."""
        try:
            user, token = self.credentials.get_user(), self.credentials.get_token()
        except StorageError as e:
            diagnostics.warning("Failed to load stored credentials: %s", e)
            return None
        if not (user and token):
            return None

        try:
            data = await asyncio.to_thread(self.client.get, "/auth/verify")
        except CareOpsError as e:
            logger.warning("Token verification failed: %s", e.message)
            self._clear_storage()
            return None

        if isinstance(data, dict) and data.get("success"):
            self.user = user
            return user
        self._clear_storage()
        return None

    async def change_password(self, current: str, new: str, confirm: str) -> PasswordChangeResult:
        """
        Validate locally, ask the backend to change the password, then sign
        out so the user logs in again with the new one.
        """
        if not current:
            return PasswordChangeResult(ok=False, error="Please enter your current password")
        if not new:
            return PasswordChangeResult(ok=False, error="Please enter a new password")
        if len(new) < MIN_PASSWORD_LENGTH:
            return PasswordChangeResult(
                ok=False, error=f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if new != confirm:
            return PasswordChangeResult(ok=False, error="New passwords do not match")

        email = (self.user or {}).get("email")
        try:
            await asyncio.to_thread(
                self.client.post,
                "/auth/change-password",
                json={"email": email, "currentPassword": current, "newPassword": new},
            )
        except (BackendError, BackendUnavailable) as e:
            logger.warning("Password change failed for %s: %s", email, e.message)
            return PasswordChangeResult(
                ok=False,
                error=e.message or "Failed to change password. Please check your current password.",
            )

        self.activity.password_change()
        self.logout()
        logger.info("Password changed for %s", email)
        return PasswordChangeResult(
            ok=True, message="Password changed successfully! Please login again with your new password."
        )

    def logout(self) -> None:
        self.sessions.clear_session()
        self.activity.logout()
        self._clear_storage()
        self.user = None
        logger.info("Logged out")

    def _clear_storage(self) -> None:
        try:
            self.credentials.clear()
        except StorageError as e:
            diagnostics.warning("Failed to clear stored credentials: %s", e)
