# src/careops/schemas/auth_schema.py
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from src.careops.schemas.session_schema import Session


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    remember_me: bool = False
    screen: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def _trim(cls, v: str) -> str:
        return (v or "").strip()


class LoginResult(BaseModel):
    ok: bool
    error: Optional[str] = None
    user: Optional[Dict[str, Any]] = None
    session: Optional[Session] = None
    # Clients send it back as "Authorization: Bearer <token>"
    token: Optional[str] = None


class InteractionEvent(BaseModel):
    event: str = Field(min_length=1, max_length=32)


class PasswordChangeRequest(BaseModel):
    # Checked by AuthService.change_password so the messages stay user-facing
    current_password: str = ""
    new_password: str = ""
    confirm_password: str = ""


class PasswordChangeResult(BaseModel):
    ok: bool
    error: Optional[str] = None
    message: Optional[str] = None
