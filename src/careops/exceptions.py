# src/careops/exceptions.py
from __future__ import annotations

from typing import Optional


class CareOpsError(Exception):
    """Base class for every error raised by this package."""

    status_code: int = 500

    def __init__(self, message: str = "Something went wrong.") -> None:
        super().__init__(message)
        self.message = message


class StorageError(CareOpsError):
    """A durable-store backend could not read or write a key."""


class BackendError(CareOpsError):
    """The REST backend answered with an error status."""

    def __init__(self, status_code: int, message: str, payload: Optional[dict] = None) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.payload = payload or {}


class BackendUnavailable(CareOpsError):
    """Network failure or timeout while talking to the backend."""

    status_code = 503

    def __init__(self, message: str = "Cannot connect to server. Please check if backend is running.") -> None:
        super().__init__(message)


class NotAuthenticated(CareOpsError):
    status_code = 401

    def __init__(self, message: str = "Not signed in.") -> None:
        super().__init__(message)
