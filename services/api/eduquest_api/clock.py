from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Protocol

from eduquest_engine.streak import as_aware_utc


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Clock for tests and replays; only moves when told to."""

    def __init__(self, at: datetime) -> None:
        self._at = as_aware_utc(at) or datetime.now(UTC)

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = as_aware_utc(at) or self._at

    def advance(self, **kwargs: float) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


def today_in(clock: Clock, tz: tzinfo) -> date:
    return clock.now().astimezone(tz).date()
