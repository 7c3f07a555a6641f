# src/careops/utils/api_client.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests

from src.careops.exceptions import BackendError, BackendUnavailable

if TYPE_CHECKING:
    from src.careops.utils.auth import CredentialStore

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Thin JSON client for the hospital-operations REST backend.

    The bearer token comes from the session scope first, then the remember-me
    scope. Timeouts are reported exactly like connection failures.
    """

    def __init__(
        self,
        base_url: str,
        credentials: Optional["CredentialStore"] = None,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials
        self.timeout = float(timeout)
        self._http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.credentials.get_token() if self.credentials else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = self._url(path)
        logger.debug("API Request: %s %s", method.upper(), url)
        try:
            resp = self._http.request(
                method.upper(), url, json=json, params=params, headers=self._headers(), timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error("Network error - cannot reach backend at %s: %s", self.base_url, e)
            raise BackendUnavailable() from e

        if resp.status_code >= 400:
            payload: Dict[str, Any] = {}
            try:
                body = resp.json()
                payload = body if isinstance(body, dict) else {}
            except ValueError:
                pass
            message = str(payload.get("message") or resp.reason or f"HTTP {resp.status_code}")

            if resp.status_code == 401:
                logger.warning("401 Unauthorized from %s - clearing stored credentials", url)
                if self.credentials is not None:
                    self.credentials.clear()
            elif resp.status_code == 404:
                logger.error("404 Not Found - check API endpoint: %s", url)
            else:
                logger.error("%s from %s: %s", resp.status_code, url, message)
            raise BackendError(resp.status_code, message, payload)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise BackendError(resp.status_code, "Malformed response from server.") from e

    def get(self, path: str, **kw: Any) -> Any:
        return self.request("GET", path, **kw)

    def post(self, path: str, **kw: Any) -> Any:
        return self.request("POST", path, **kw)

    def patch(self, path: str, **kw: Any) -> Any:
        return self.request("PATCH", path, **kw)

    def delete(self, path: str, **kw: Any) -> Any:
        return self.request("DELETE", path, **kw)

    def close(self) -> None:
        self._http.close()
