from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Literal

from eduquest_engine.subjects import Subject

if TYPE_CHECKING:
    from eduquest_engine.progress import UserProgress


CATALOG_VERSION = "2026.1"

Metric = Literal[
    "quizzes_completed",
    "perfect_scores",
    "current_streak",
    "level",
    "subject_quizzes",
]


class BadgeCategory(str, Enum):
    QUIZ = "quiz"
    STREAK = "streak"
    LEVEL = "level"
    SUBJECT = "subject"


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    description: str
    xp_reward: int
    category: BadgeCategory
    metric: Metric
    threshold: int
    subject: str | None = None

    @property
    def predicate_description(self) -> str:
        if self.metric == "subject_quizzes":
            return f"subject_quiz_counts[{self.subject}] >= {self.threshold}"
        return f"{self.metric} >= {self.threshold}"


def _subject_badge(subject: Subject, label: str) -> Badge:
    return Badge(
        id=f"{subject.value}_expert",
        name=f"{label} Expert",
        description=f"Complete 5 {label} quizzes",
        xp_reward=150,
        category=BadgeCategory.SUBJECT,
        metric="subject_quizzes",
        threshold=5,
        subject=subject.value,
    )


BADGES: tuple[Badge, ...] = (
    Badge(
        id="quiz_first",
        name="First Quiz",
        description="Complete your first quiz",
        xp_reward=50,
        category=BadgeCategory.QUIZ,
        metric="quizzes_completed",
        threshold=1,
    ),
    Badge(
        id="quiz_10",
        name="Quiz Master",
        description="Complete 10 quizzes",
        xp_reward=200,
        category=BadgeCategory.QUIZ,
        metric="quizzes_completed",
        threshold=10,
    ),
    Badge(
        id="quiz_perfect",
        name="Perfect Score",
        description="Score 100% on any quiz",
        xp_reward=100,
        category=BadgeCategory.QUIZ,
        metric="perfect_scores",
        threshold=1,
    ),
    Badge(
        id="streak_3",
        name="On Fire",
        description="3-day learning streak",
        xp_reward=75,
        category=BadgeCategory.STREAK,
        metric="current_streak",
        threshold=3,
    ),
    Badge(
        id="streak_7",
        name="Week Warrior",
        description="7-day learning streak",
        xp_reward=150,
        category=BadgeCategory.STREAK,
        metric="current_streak",
        threshold=7,
    ),
    Badge(
        id="streak_30",
        name="Monthly Champion",
        description="30-day learning streak",
        xp_reward=500,
        category=BadgeCategory.STREAK,
        metric="current_streak",
        threshold=30,
    ),
    Badge(
        id="level_5",
        name="Level 5",
        description="Reach level 5",
        xp_reward=100,
        category=BadgeCategory.LEVEL,
        metric="level",
        threshold=5,
    ),
    Badge(
        id="level_10",
        name="Level 10",
        description="Reach level 10",
        xp_reward=250,
        category=BadgeCategory.LEVEL,
        metric="level",
        threshold=10,
    ),
    Badge(
        id="level_25",
        name="Level 25",
        description="Reach level 25",
        xp_reward=1000,
        category=BadgeCategory.LEVEL,
        metric="level",
        threshold=25,
    ),
    _subject_badge(Subject.MATH, "Math"),
    _subject_badge(Subject.SCIENCE, "Science"),
    _subject_badge(Subject.ENGLISH, "English"),
    _subject_badge(Subject.HINDI, "Hindi"),
    _subject_badge(Subject.SOCIAL_SCIENCE, "Social Science"),
)

BADGES_BY_ID: dict[str, Badge] = {b.id: b for b in BADGES}


def get_badge(badge_id: str) -> Badge | None:
    return BADGES_BY_ID.get(str(badge_id))


def badges_by_category(
    category: BadgeCategory, *, catalog: Iterable[Badge] = BADGES
) -> list[Badge]:
    return [b for b in catalog if b.category == category]


def metric_value(badge: Badge, progress: "UserProgress") -> int:
    if badge.metric == "quizzes_completed":
        return int(progress.quizzes_completed)
    if badge.metric == "perfect_scores":
        return int(progress.perfect_scores)
    if badge.metric == "current_streak":
        return int(progress.current_streak)
    if badge.metric == "level":
        return int(progress.level)
    return progress.subject_count(str(badge.subject or ""))


def is_unlocked_by(badge: Badge, progress: "UserProgress") -> bool:
    return metric_value(badge, progress) >= int(badge.threshold)


def badge_progress(badge: Badge, progress: "UserProgress") -> float:
    if badge.threshold <= 0:
        return 1.0
    return min(1.0, metric_value(badge, progress) / float(badge.threshold))


@dataclass(frozen=True)
class BadgeStatus:
    badge: Badge
    earned: bool
    progress: float


def badges_with_status(
    progress: "UserProgress", *, catalog: Iterable[Badge] = BADGES
) -> list[BadgeStatus]:
    return [
        BadgeStatus(
            badge=b,
            earned=progress.has_badge(b.id),
            progress=1.0 if progress.has_badge(b.id) else badge_progress(b, progress),
        )
        for b in catalog
    ]


class BadgeEvaluator:
    def __init__(self, catalog: Iterable[Badge] = BADGES) -> None:
        self.catalog: tuple[Badge, ...] = tuple(catalog)

    def eligible(self, progress: "UserProgress") -> list[Badge]:
        return [
            b
            for b in self.catalog
            if not progress.has_badge(b.id) and is_unlocked_by(b, progress)
        ]

    def evaluate(self, progress: "UserProgress") -> list[Badge]:
        """
        Award every badge that is eligible right now, in one pass.

        All predicates are checked against the progress as it was on entry; the
        XP of the awarded badges is folded into `total_xp` afterwards and is not
        re-evaluated here, so a level badge crossed by badge XP waits for the
        next event.
        """
        unlocked = self.eligible(progress)
        for b in unlocked:
            progress.earned_badge_ids.add(b.id)
        progress.total_xp = int(progress.total_xp) + sum(
            int(b.xp_reward) for b in unlocked
        )
        return unlocked
