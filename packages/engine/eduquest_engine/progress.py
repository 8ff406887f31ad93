from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from eduquest_engine.badges import Badge
from eduquest_engine.level_curve import level_for


class XpSource(str, Enum):
    QUIZ_COMPLETED = "quiz_completed"
    QUIZ_PERFECT_SCORE = "quiz_perfect_score"
    LESSON_COMPLETED = "lesson_completed"
    DAILY_CHALLENGE = "daily_challenge"
    BADGE_EARNED = "badge_earned"
    MANUAL = "manual"


class UserProgress(BaseModel):
    """
    One progression record per user.

    `level` is never stored on the model; it is always derived from `total_xp`.
    """

    user_id: str = Field(min_length=1)
    total_xp: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity_at: datetime | None = None
    last_activity_date: date | None = None
    quizzes_completed: int = Field(default=0, ge=0)
    perfect_scores: int = Field(default=0, ge=0)
    lessons_completed: int = Field(default=0, ge=0)
    subject_quiz_counts: dict[str, int] = Field(default_factory=dict)
    earned_badge_ids: set[str] = Field(default_factory=set)
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _validate_counters(self) -> "UserProgress":
        if self.longest_streak < self.current_streak:
            raise ValueError("longest_streak must be >= current_streak")
        for key, count in self.subject_quiz_counts.items():
            if int(count) < 0:
                raise ValueError(f"negative subject count for {key}")
        return self

    @classmethod
    def fresh(cls, user_id: str) -> "UserProgress":
        return cls(user_id=str(user_id))

    @property
    def level(self) -> int:
        return level_for(self.total_xp)

    def add_xp(self, amount: int) -> bool:
        before = self.level
        self.total_xp = int(self.total_xp) + max(0, int(amount))
        return self.level > before

    def subject_count(self, subject: str) -> int:
        return int(self.subject_quiz_counts.get(str(subject), 0))

    def increment_subject(self, subject: str) -> None:
        key = str(subject)
        self.subject_quiz_counts[key] = self.subject_count(key) + 1

    def has_badge(self, badge_id: str) -> bool:
        return str(badge_id) in self.earned_badge_ids


@dataclass(frozen=True)
class AwardResult:
    xp_awarded: int
    reason: str
    source: XpSource
    base_xp: int
    streak_bonus: int
    badge_xp: int
    new_total_xp: int
    new_level: int
    previous_level: int
    leveled_up: bool
    new_badges: tuple[Badge, ...] = ()
    message: str | None = None

    @property
    def new_badge_ids(self) -> list[str]:
        return [b.id for b in self.new_badges]


@dataclass(frozen=True)
class StreakStatus:
    current_streak: int
    longest_streak: int
    streak_broken: bool
    is_active_today: bool
    hours_until_streak_lost: int
    outcome: str = "unchanged"
    new_badges: tuple[Badge, ...] = field(default_factory=tuple)
