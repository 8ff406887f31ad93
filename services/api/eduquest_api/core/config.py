from __future__ import annotations

from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="EDUQUEST_", extra="ignore")

    allowed_hosts: str = "localhost,127.0.0.1,testserver"
    cors_allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    log_json: bool = False

    db_url: str = "sqlite:///./artifacts/eduquest.db"

    # Calendar days (streaks, daily challenges) are cut in this zone.
    day_timezone: str = "UTC"

    auth_jwt_secret: str = "dev-secret-change-me"
    auth_jwt_issuer: str = "eduquest-local"
    auth_jwt_exp_minutes: int = 60 * 24 * 7

    admin_token: str | None = None

    # Remote XP sync (best-effort, never blocks local progression).
    # - off: nothing is enqueued
    # - mock: rows are enqueued and marked sent without a request
    # - http: rows are POSTed to sync_base_url
    sync_mode: str = "off"
    sync_base_url: str | None = None
    sync_api_key: str | None = None
    sync_timeout_sec: float = 10.0
    sync_max_attempts: int = 8
    sync_batch_size: int = 50

    scheduler_interval_seconds: int = 60

    @field_validator("sync_mode")
    @classmethod
    def _validate_sync_mode(cls, v: str) -> str:
        mode = str(v or "off").strip().lower()
        if mode not in {"off", "mock", "http"}:
            raise ValueError("sync_mode must be one of: off, mock, http")
        return mode


def day_tz(settings: Settings | None = None) -> tzinfo:
    name = str((settings or Settings()).day_timezone or "").strip()
    if not name or name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return UTC
