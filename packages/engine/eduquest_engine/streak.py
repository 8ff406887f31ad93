from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Literal

GRACE_HOURS = 36
GRACE_WINDOW = timedelta(hours=GRACE_HOURS)

StreakOutcome = Literal["started", "continued", "same_day", "broken"]


def _utc(dt: datetime) -> datetime:
    if getattr(dt, "tzinfo", None) is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def as_aware_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return _utc(dt)


@dataclass(frozen=True)
class StreakState:
    last_activity_at: datetime | None
    current_streak: int = 0
    longest_streak: int = 0


@dataclass(frozen=True)
class StreakTransition:
    state: StreakState
    outcome: StreakOutcome
    hours_since_last: int | None

    @property
    def streak_broken(self) -> bool:
        return self.outcome == "broken"


class StreakTracker:
    """
    Streak state machine.

    Two rules apply together: a gap of more than 36 hours since the last
    recorded instant breaks the streak, and otherwise the streak grows only
    when the new activity lands on a later calendar day than the last one.
    """

    def __init__(self, tz: tzinfo = UTC) -> None:
        self.tz = tz

    def calendar_day(self, instant: datetime) -> date:
        return _utc(instant).astimezone(self.tz).date()

    def hours_since(self, last_activity_at: datetime | None, now: datetime) -> int | None:
        last = as_aware_utc(last_activity_at)
        if last is None:
            return None
        elapsed = _utc(now) - last
        return max(0, int(elapsed.total_seconds() // 3600))

    def hours_until_lost(self, last_activity_at: datetime | None, now: datetime) -> int:
        hours = self.hours_since(last_activity_at, now)
        if hours is None:
            return 0
        return max(0, GRACE_HOURS - hours)

    def is_broken(self, last_activity_at: datetime | None, now: datetime) -> bool:
        last = as_aware_utc(last_activity_at)
        if last is None:
            return False
        return (_utc(now) - last) > GRACE_WINDOW

    def is_active_today(self, last_activity_at: datetime | None, now: datetime) -> bool:
        if last_activity_at is None:
            return False
        return self.calendar_day(last_activity_at) == self.calendar_day(now)

    def advance(self, state: StreakState, now: datetime) -> StreakTransition:
        now_utc = _utc(now)
        current = int(state.current_streak)
        longest = int(state.longest_streak)
        hours = self.hours_since(state.last_activity_at, now_utc)

        if state.last_activity_at is None:
            return StreakTransition(
                state=StreakState(
                    last_activity_at=now_utc,
                    current_streak=1,
                    longest_streak=max(longest, 1),
                ),
                outcome="started",
                hours_since_last=None,
            )

        if self.is_broken(state.last_activity_at, now_utc):
            return StreakTransition(
                state=StreakState(
                    last_activity_at=now_utc,
                    current_streak=1,
                    longest_streak=max(longest, 1),
                ),
                outcome="broken",
                hours_since_last=hours,
            )

        if self.calendar_day(now_utc) > self.calendar_day(state.last_activity_at):
            current += 1
            return StreakTransition(
                state=StreakState(
                    last_activity_at=now_utc,
                    current_streak=current,
                    longest_streak=max(longest, current),
                ),
                outcome="continued",
                hours_since_last=hours,
            )

        # Same calendar day (or a clock that went backwards): refresh only.
        last = _utc(state.last_activity_at)
        return StreakTransition(
            state=StreakState(
                last_activity_at=max(last, now_utc),
                current_streak=current,
                longest_streak=longest,
            ),
            outcome="same_day",
            hours_since_last=hours,
        )
