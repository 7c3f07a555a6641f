# src/careops/utils/geolocation.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional, Tuple

import geoip2.database
import geoip2.errors
import requests

from src.careops.config import Settings, settings as default_settings
from src.careops.schemas.session_schema import (
    UNKNOWN,
    UNKNOWN_LOCATION,
    LocationInfo,
    LocationResult,
    LookupSource,
)
from src.careops.utils.logger import diagnostics
from src.careops.utils.timezone import local_timezone_name

logger = logging.getLogger(__name__)


class LookupFailed(Exception):
    """Internal: one tier of the lookup chain gave up."""


def _s(payload: Dict[str, Any], key: str) -> str:
    v = payload.get(key)
    return str(v).strip() if v not in (None, "") else UNKNOWN


def _f(payload: Dict[str, Any], key: str) -> Optional[float]:
    try:
        v = payload.get(key)
        return float(v) if v is not None else None
    except (TypeError, ValueError):
        return None


def default_location(ip: str = UNKNOWN) -> LocationInfo:
    return LocationInfo(ip=ip or UNKNOWN, location=UNKNOWN_LOCATION, timezone=local_timezone_name())


class GeoLocator:
    """
    Coarse location + public IP with a layered fallback chain:

        primary (ipapi-style JSON)  ->  fallback (IP only)  ->  all-"Unknown"

    `locate()` never raises; the returned `LocationResult.source` says which
    tier produced the answer.
    """

    def __init__(self, cfg: Optional[Settings] = None, http: Optional[requests.Session] = None) -> None:
        self.cfg = cfg or default_settings
        self._http = http or requests.Session()
        self._cache: Optional[Tuple[float, LocationInfo]] = None
        self._geoip: Optional[geoip2.database.Reader] = None

    # ---------------------------------------------------------------
    # Tiers
    # ---------------------------------------------------------------
    def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            r = self._http.get(url, timeout=max(0.05, float(self.cfg.GEOLOOKUP_TIMEOUT_SECONDS)))
            r.raise_for_status()
            payload = r.json()
        except (requests.RequestException, ValueError) as e:
            raise LookupFailed(f"{url}: {e}") from e
        if not isinstance(payload, dict):
            raise LookupFailed(f"{url}: expected a JSON object, got {type(payload).__name__}")
        return payload

    def _primary(self) -> LocationInfo:
        data = self._get_json(self.cfg.GEOLOOKUP_PRIMARY_URL)
        if data.get("error"):
            # ipapi answers 200 with {"error": true, "reason": "RateLimited"}
            raise LookupFailed(f"primary lookup refused: {data.get('reason') or 'unknown reason'}")

        city, region, code = _s(data, "city"), _s(data, "region"), _s(data, "country_code")
        tz = data.get("timezone") or local_timezone_name()
        return LocationInfo(
            ip=_s(data, "ip"),
            city=city,
            region=region,
            country=_s(data, "country_name"),
            country_code=code,
            location=f"{city}, {region}, {code}",
            timezone=str(tz),
            latitude=_f(data, "latitude"),
            longitude=_f(data, "longitude"),
        )

    def _fallback(self) -> LocationInfo:
        data = self._get_json(self.cfg.GEOLOOKUP_FALLBACK_URL)
        info = default_location(_s(data, "ip"))
        return self._enrich_from_geoip(info)

    def _enrich_from_geoip(self, info: LocationInfo) -> LocationInfo:
        """Fill city/region/country from a local GeoLite2 DB when one is configured."""
        if not self.cfg.GEOIP_DB_PATH or info.ip == UNKNOWN:
            return info
        try:
            if self._geoip is None:
                self._geoip = geoip2.database.Reader(self.cfg.GEOIP_DB_PATH)
            resp = self._geoip.city(info.ip)
        except (geoip2.errors.GeoIP2Error, OSError, ValueError, RuntimeError) as e:
            logger.debug("GeoIP enrichment skipped for %s: %s", info.ip, e)
            return info

        city = resp.city.name or UNKNOWN
        region = resp.subdivisions.most_specific.name or UNKNOWN
        code = resp.country.iso_code or UNKNOWN
        return info.model_copy(
            update={
                "city": city,
                "region": region,
                "country": resp.country.name or UNKNOWN,
                "country_code": code,
                "location": f"{city}, {region}, {code}",
                "timezone": resp.location.time_zone or info.timezone,
                "latitude": resp.location.latitude,
                "longitude": resp.location.longitude,
            }
        )

    # ---------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------
    def locate_sync(self) -> LocationResult:
        if not self.cfg.GEOLOOKUP_ENABLED:
            return LocationResult(info=default_location(), source=LookupSource.DEFAULT, error="lookup disabled")

        now_ts = time.time()
        if self._cache and self._cache[0] > now_ts:
            return LocationResult(info=self._cache[1], source=LookupSource.CACHED)

        try:
            info = self._primary()
            self._cache = (now_ts + max(5, int(self.cfg.GEOLOOKUP_TTL_SECONDS)), info)
            return LocationResult(info=info, source=LookupSource.PRIMARY)
        except LookupFailed as primary_err:
            diagnostics.warning("Primary location lookup failed: %s", primary_err)
            try:
                return LocationResult(
                    info=self._fallback(), source=LookupSource.FALLBACK, error=str(primary_err)
                )
            except LookupFailed as fallback_err:
                diagnostics.warning("Fallback IP lookup failed: %s", fallback_err)
                return LocationResult(
                    info=default_location(), source=LookupSource.DEFAULT, error=str(fallback_err)
                )

    async def locate(self) -> LocationResult:
        """Run the blocking lookup chain off the event loop."""
        return await asyncio.to_thread(self.locate_sync)

    def close(self) -> None:
        self._http.close()
        if self._geoip is not None:
            self._geoip.close()
            self._geoip = None
