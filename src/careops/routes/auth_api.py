# src/careops/routes/auth_api.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from src.careops.schemas.auth_schema import InteractionEvent, LoginRequest, LoginResult
from src.careops.schemas.session_schema import ClientContext
from src.careops.utils.auth import AuthService
from src.careops.utils.context import get_auth, get_session_manager, require_login
from src.careops.utils.session_manager import SessionManager

auth_api = APIRouter()

# -----------------------------------------------------------------------------
# Login / logout
# -----------------------------------------------------------------------------

@auth_api.post("/login", response_model=LoginResult)
async def login(
    payload: LoginRequest,
    user_agent: Optional[str] = Header(default=None),
    auth: AuthService = Depends(get_auth),
):
    client = ClientContext(
        user_agent=user_agent or "",
        screen=payload.screen,
        language=payload.language,
        timezone=payload.timezone,
    )
    result = await auth.login(payload.email, payload.password, payload.remember_me, user_agent, client)
    if not result.ok:
        raise HTTPException(status_code=401, detail=result.error or "Invalid email or password.")
    return result


@auth_api.post("/logout")
async def logout(auth: AuthService = Depends(get_auth)):
    auth.logout()
    return {"message": "logged out"}


@auth_api.get("/me")
async def me(auth: AuthService = Depends(get_auth)):
    user = auth.user or await auth.restore()
    if user is None:
        raise HTTPException(status_code=401, detail="Not signed in.")
    return {"user": user, "session": auth.sessions.get_current_session()}


# -----------------------------------------------------------------------------
# Heartbeat
# -----------------------------------------------------------------------------

@auth_api.post("/heartbeat", dependencies=[Depends(require_login)])
async def heartbeat(sessions: SessionManager = Depends(get_session_manager)):
    if not sessions.update_last_active():
        raise HTTPException(status_code=409, detail="No active session")
    return {"message": "ok", "session_id": sessions.current_session_id}


@auth_api.post("/interaction", dependencies=[Depends(require_login)])
async def interaction(payload: InteractionEvent, sessions: SessionManager = Depends(get_session_manager)):
    return {"updated": sessions.record_interaction(payload.event)}
