# src/careops/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",            # auto-load .env (optional; process env wins)
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    APP_NAME: str = "careops-sessions"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    # Backend REST collaborator
    API_BASE_URL: str = "http://localhost:5001/api"
    API_TIMEOUT_SECONDS: float = 10.0

    # Geolocation (best-effort, never blocks login)
    GEOLOOKUP_ENABLED: bool = True
    GEOLOOKUP_PRIMARY_URL: str = "https://ipapi.co/json/"
    GEOLOOKUP_FALLBACK_URL: str = "https://api.ipify.org?format=json"
    GEOLOOKUP_TIMEOUT_SECONDS: float = 5.0
    GEOLOOKUP_TTL_SECONDS: int = 300
    GEOIP_DB_PATH: Optional[str] = None   # GeoLite2-City.mmdb, optional

    # Durable storage ("remember me" scope)
    STORAGE_BACKEND: str = "memory"    # "memory" | "redis" | "sqlite"
    REDIS_URL: str = "redis://localhost:6379/0"
    SQLITE_URL: str = "sqlite:///careops_local.db"
    STORAGE_PREFIX: str = "careops:"

    # Session / activity tracking
    HEARTBEAT_INTERVAL_SECONDS: float = 30.0
    LOGIN_HISTORY_MAX: int = 50
    ACTIVITY_LOG_MAX: int = 20
    ACTIVITY_DEDUP_WINDOW_MS: int = 5000
    DEFAULT_USER_AGENT: str = "careops-cli"


settings = Settings()
