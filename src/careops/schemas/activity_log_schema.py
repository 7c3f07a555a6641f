# src/careops/schemas/activity_log_schema.py
from pydantic import BaseModel, Field


class ActivityEntry(BaseModel):
    # Only integral, positive epoch millis count as valid; anything else is
    # dropped when the log is read.
    action: str = Field(min_length=1, strict=True)
    timestamp: int = Field(gt=0, strict=True)
    icon: str = "📋"


class ActivityRead(ActivityEntry):
    time_ago: str


class ActivityCreate(BaseModel):
    action: str = Field(min_length=1, max_length=255)
    icon: str = Field(default="📋", max_length=16)
