# src/careops/models/storage_entry.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from src.careops.utils.database import Base


class StorageEntry(Base):
    __tablename__ = "kv_store"

    key:        Mapped[str]      = mapped_column(String(255), primary_key=True)
    value:      Mapped[str]      = mapped_column(Text, nullable=False)
    updated_dt: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )
