from __future__ import annotations

from datetime import UTC, datetime

import pytest


def test_settings_read_prefixed_env(monkeypatch) -> None:
    from eduquest_api.core.config import Settings

    monkeypatch.setenv("EDUQUEST_SYNC_MODE", "MOCK")
    monkeypatch.setenv("EDUQUEST_SYNC_MAX_ATTEMPTS", "3")
    settings = Settings()
    assert settings.sync_mode == "mock"
    assert settings.sync_max_attempts == 3


def test_settings_reject_unknown_sync_mode(monkeypatch) -> None:
    from pydantic import ValidationError

    from eduquest_api.core.config import Settings

    monkeypatch.setenv("EDUQUEST_SYNC_MODE", "carrier-pigeon")
    with pytest.raises(ValidationError):
        Settings()


def test_day_timezone_falls_back_to_utc() -> None:
    from zoneinfo import ZoneInfo

    from eduquest_api.core.config import Settings, day_tz

    assert day_tz(Settings(day_timezone="Asia/Kolkata")) == ZoneInfo("Asia/Kolkata")
    assert day_tz(Settings(day_timezone="Not/AZone")) is UTC
    assert day_tz(Settings(day_timezone="")) is UTC


def test_fixed_clock_and_today() -> None:
    from zoneinfo import ZoneInfo

    from eduquest_api.clock import FixedClock, today_in

    clock = FixedClock(datetime(2026, 3, 10, 20, 0, tzinfo=UTC))
    assert today_in(clock, UTC).isoformat() == "2026-03-10"
    assert today_in(clock, ZoneInfo("Asia/Kolkata")).isoformat() == "2026-03-11"
    clock.advance(hours=5)
    assert clock.now() == datetime(2026, 3, 11, 1, 0, tzinfo=UTC)


def test_access_token_round_trip() -> None:
    from eduquest_api.core.security import create_access_token, decode_token

    token = create_access_token(subject="user_demo")
    payload = decode_token(token)
    assert payload["sub"] == "user_demo"
    assert payload["iss"] == "eduquest-local"
