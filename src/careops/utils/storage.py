# src/careops/utils/storage.py
"""
Durable key/value scopes.

Two scopes mirror what a browser offers: a "session" scope that lives as long
as the process, and a "persistent" (remember-me) scope backed by redis or a
local sqlite file. Values are plain strings; records are JSON-encoded by the
repositories in `src.careops.crud`.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Dict, Literal, Optional

from redis import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from src.careops.config import Settings, settings as default_settings
from src.careops.exceptions import StorageError
from src.careops.models.storage_entry import StorageEntry
from src.careops.utils.database import create_local_engine, make_session_factory

logger = logging.getLogger(__name__)

Scope = Literal["session", "persistent"]


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class RedisStore(KeyValueStore):
    def __init__(self, url: str, prefix: str = "", client: Optional[Redis] = None) -> None:
        self._prefix = prefix
        self._redis = client or Redis.from_url(url, encoding="utf-8", decode_responses=True)

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            raw = self._redis.get(self._k(key))
        except RedisError as e:
            raise StorageError(f"redis get failed for {key!r}: {e}") from e
        return raw if raw is None or isinstance(raw, str) else str(raw)

    def set(self, key: str, value: str) -> None:
        try:
            self._redis.set(self._k(key), value)
        except RedisError as e:
            raise StorageError(f"redis set failed for {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._redis.delete(self._k(key))
        except RedisError as e:
            raise StorageError(f"redis delete failed for {key!r}: {e}") from e


class SqlStore(KeyValueStore):
    def __init__(self, url: str, prefix: str = "") -> None:
        self._prefix = prefix
        self._engine = create_local_engine(url)
        self._sessions = make_session_factory(self._engine)

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            with self._sessions() as db:
                row = db.get(StorageEntry, self._k(key))
                return row.value if row is not None else None
        except SQLAlchemyError as e:
            raise StorageError(f"sqlite get failed for {key!r}: {e}") from e

    def set(self, key: str, value: str) -> None:
        try:
            with self._sessions() as db:
                db.merge(StorageEntry(key=self._k(key), value=value))
                db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"sqlite set failed for {key!r}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            with self._sessions() as db:
                row = db.get(StorageEntry, self._k(key))
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"sqlite delete failed for {key!r}: {e}") from e

    def dispose(self) -> None:
        self._engine.dispose()


def build_store(scope: Scope, cfg: Optional[Settings] = None) -> KeyValueStore:
    """Return the backend for a scope; the session scope is always in-memory."""
    cfg = cfg or default_settings
    if scope == "session":
        return MemoryStore()

    backend = (cfg.STORAGE_BACKEND or "memory").strip().lower()
    if backend == "redis":
        logger.info("Persistent scope: redis (%s)", cfg.REDIS_URL)
        return RedisStore(cfg.REDIS_URL, prefix=cfg.STORAGE_PREFIX)
    if backend == "sqlite":
        logger.info("Persistent scope: sqlite (%s)", cfg.SQLITE_URL)
        return SqlStore(cfg.SQLITE_URL, prefix=cfg.STORAGE_PREFIX)
    if backend != "memory":
        logger.warning("Unknown STORAGE_BACKEND '%s'; using memory", backend)
    return MemoryStore()
