# src/careops/routes/profile_security_api.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from src.careops.crud.activity import ActivityLog
from src.careops.schemas.activity_log_schema import ActivityCreate, ActivityRead
from src.careops.schemas.auth_schema import PasswordChangeRequest, PasswordChangeResult
from src.careops.schemas.session_schema import LoginHistoryEntry, Session
from src.careops.utils.auth import AuthService
from src.careops.utils.context import get_activity_log, get_auth, get_session_manager, require_login
from src.careops.utils.session_manager import SessionManager

router = APIRouter(
    prefix="/api/profile",
    tags=["Profile security"],
    dependencies=[Depends(require_login)],   # login required
)


# -------- Active sessions --------
@router.get("/sessions", response_model=List[Session])
async def list_sessions(sessions: SessionManager = Depends(get_session_manager)):
    return sessions.get_active_sessions()


@router.get("/sessions/current", response_model=Session)
async def current_session(sessions: SessionManager = Depends(get_session_manager)):
    current = sessions.get_current_session()
    if current is None:
        raise HTTPException(status_code=404, detail="No active session")
    return current


@router.delete("/sessions/{session_id}")
async def terminate_session(session_id: str, sessions: SessionManager = Depends(get_session_manager)):
    # Unknown ids succeed too: terminating is idempotent
    if not sessions.terminate_session(session_id):
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    return {"message": "terminated", "session_id": session_id}


@router.post("/sessions/terminate-others")
async def terminate_other_sessions(sessions: SessionManager = Depends(get_session_manager)):
    if not sessions.terminate_all_other_sessions():
        raise HTTPException(status_code=503, detail="Session storage unavailable")
    return {"message": "terminated", "remaining": len(sessions.get_active_sessions())}


# -------- Login history --------
@router.get("/login-history", response_model=List[LoginHistoryEntry])
async def login_history(sessions: SessionManager = Depends(get_session_manager)):
    return sessions.get_login_history()


# -------- Activity log --------
@router.get("/activity", response_model=List[ActivityRead])
async def list_activity(log: ActivityLog = Depends(get_activity_log)):
    return log.query_with_time_ago()


@router.post("/activity")
async def record_activity(payload: ActivityCreate, log: ActivityLog = Depends(get_activity_log)):
    entry = log.record(payload.action, payload.icon)
    return {"recorded": entry is not None, "entry": entry}


@router.delete("/activity")
async def clear_activity(log: ActivityLog = Depends(get_activity_log)):
    log.clear()
    return {"message": "cleared"}


# -------- Password --------
@router.post("/password", response_model=PasswordChangeResult)
async def change_password(payload: PasswordChangeRequest, auth: AuthService = Depends(get_auth)):
    result = await auth.change_password(payload.current_password, payload.new_password, payload.confirm_password)
    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)
    return result
