from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from eduquest_engine.badges import Badge, BadgeStatus
from eduquest_engine.challenges import DailyChallenge
from eduquest_engine.level_curve import (
    level_title,
    progress_percentage,
    xp_to_next_level,
)
from eduquest_engine.progress import AwardResult, StreakStatus, UserProgress


class BadgeOut(BaseModel):
    id: str
    name: str
    description: str
    xp_reward: int
    category: str
    predicate: str


class BadgeStatusOut(BadgeOut):
    earned: bool
    progress: float


class ProgressOut(BaseModel):
    user_id: str
    total_xp: int
    level: int
    level_title: str
    xp_to_next_level: int
    progress_percentage: int
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
    quizzes_completed: int
    perfect_scores: int
    lessons_completed: int
    subject_quiz_counts: dict[str, int]
    earned_badge_ids: list[str]


class AwardOut(BaseModel):
    xp_awarded: int
    base_xp: int
    streak_bonus: int
    badge_xp: int
    new_total_xp: int
    new_level: int
    previous_level: int
    leveled_up: bool
    reason: str
    source: str
    message: str | None = None
    new_badges: list[BadgeOut]


class StreakOut(BaseModel):
    current_streak: int
    longest_streak: int
    streak_broken: bool
    is_active_today: bool
    hours_until_streak_lost: int
    outcome: str
    new_badges: list[BadgeOut]


class ChallengeOut(BaseModel):
    id: str
    template_key: str
    type: str
    description: str
    xp_reward: int
    valid_on: date
    completed: bool
    completed_at: datetime | None = None
    target_subject: str | None = None


def badge_out(b: Badge) -> BadgeOut:
    return BadgeOut(
        id=b.id,
        name=b.name,
        description=b.description,
        xp_reward=int(b.xp_reward),
        category=b.category.value,
        predicate=b.predicate_description,
    )


def badge_status_out(s: BadgeStatus) -> BadgeStatusOut:
    return BadgeStatusOut(
        **badge_out(s.badge).model_dump(),
        earned=bool(s.earned),
        progress=round(float(s.progress), 4),
    )


def progress_out(p: UserProgress) -> ProgressOut:
    return ProgressOut(
        user_id=p.user_id,
        total_xp=int(p.total_xp),
        level=int(p.level),
        level_title=level_title(p.level),
        xp_to_next_level=xp_to_next_level(p.total_xp),
        progress_percentage=progress_percentage(p.total_xp),
        current_streak=int(p.current_streak),
        longest_streak=int(p.longest_streak),
        last_activity_date=p.last_activity_date,
        quizzes_completed=int(p.quizzes_completed),
        perfect_scores=int(p.perfect_scores),
        lessons_completed=int(p.lessons_completed),
        subject_quiz_counts=dict(sorted(p.subject_quiz_counts.items())),
        earned_badge_ids=sorted(p.earned_badge_ids),
    )


def award_out(r: AwardResult) -> AwardOut:
    return AwardOut(
        xp_awarded=int(r.xp_awarded),
        base_xp=int(r.base_xp),
        streak_bonus=int(r.streak_bonus),
        badge_xp=int(r.badge_xp),
        new_total_xp=int(r.new_total_xp),
        new_level=int(r.new_level),
        previous_level=int(r.previous_level),
        leveled_up=bool(r.leveled_up),
        reason=r.reason,
        source=r.source.value,
        message=r.message,
        new_badges=[badge_out(b) for b in r.new_badges],
    )


def streak_out(s: StreakStatus) -> StreakOut:
    return StreakOut(
        current_streak=int(s.current_streak),
        longest_streak=int(s.longest_streak),
        streak_broken=bool(s.streak_broken),
        is_active_today=bool(s.is_active_today),
        hours_until_streak_lost=int(s.hours_until_streak_lost),
        outcome=str(s.outcome),
        new_badges=[badge_out(b) for b in s.new_badges],
    )


def challenge_out(c: DailyChallenge) -> ChallengeOut:
    return ChallengeOut(**c.model_dump())
