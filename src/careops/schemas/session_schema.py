# src/careops/schemas/session_schema.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

UNKNOWN = "Unknown"
UNKNOWN_LOCATION = "Unknown Location"


class DeviceClass(str, Enum):
    DESKTOP = "Desktop"
    MOBILE = "Mobile"
    TABLET = "Tablet"


class LoginStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


class LookupSource(str, Enum):
    PRIMARY = "primary"
    CACHED = "cached"
    FALLBACK = "fallback"
    DEFAULT = "default"


# -------------------------------------------------------------------
# Probe results
# -------------------------------------------------------------------
class DeviceInfo(BaseModel):
    device: str                      # "Desktop - Chrome"
    device_type: DeviceClass = DeviceClass.DESKTOP
    browser: str = UNKNOWN
    os: str = UNKNOWN
    user_agent: str = ""


class ClientContext(BaseModel):
    """What the browser reports about itself besides the user agent."""
    user_agent: str = ""
    screen: Optional[str] = None     # "1920x1080"
    language: Optional[str] = None
    timezone: Optional[str] = None


class LocationInfo(BaseModel):
    ip: str = UNKNOWN
    city: str = UNKNOWN
    region: str = UNKNOWN
    country: str = UNKNOWN
    country_code: str = UNKNOWN
    location: str = UNKNOWN_LOCATION
    timezone: str = UNKNOWN
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LocationResult(BaseModel):
    info: LocationInfo
    source: LookupSource
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.source in (LookupSource.FALLBACK, LookupSource.DEFAULT)


# -------------------------------------------------------------------
# Stored records
# -------------------------------------------------------------------
class Session(BaseModel):
    id: str = Field(min_length=1)
    device: str
    device_type: DeviceClass = DeviceClass.DESKTOP
    browser: str = UNKNOWN
    os: str = UNKNOWN
    location: str = UNKNOWN_LOCATION
    ip: str = UNKNOWN
    login_time: datetime
    last_active: datetime
    current: bool = False
    fingerprint: Optional[str] = None


class LoginHistoryEntry(BaseModel):
    timestamp: datetime
    device: str
    location: str = UNKNOWN_LOCATION
    ip: str = UNKNOWN
    status: LoginStatus

    @field_validator("device", "location", "ip", mode="before")
    @classmethod
    def _blank_is_unknown(cls, v: Optional[str]) -> str:
        return (v or "").strip() or UNKNOWN
