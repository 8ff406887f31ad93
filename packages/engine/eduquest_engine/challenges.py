from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Literal
from uuid import uuid4

from pydantic import BaseModel, Field

from eduquest_engine.subjects import Subject

ChallengeType = Literal["quiz", "perfect_score", "subject_quiz", "streak"]
CompletionOutcome = Literal["completed", "already_completed", "stale", "missing"]


class DailyChallenge(BaseModel):
    id: str
    template_key: str
    type: ChallengeType
    description: str
    xp_reward: int = Field(ge=0)
    valid_on: date
    completed: bool = False
    completed_at: datetime | None = None
    target_subject: str | None = None

    def is_for(self, today: date) -> bool:
        return self.valid_on == today


@dataclass(frozen=True)
class ChallengeTemplate:
    key: str
    type: ChallengeType
    description: str
    xp_reward: int
    target_subject: str | None = None


TEMPLATES: tuple[ChallengeTemplate, ...] = (
    ChallengeTemplate(
        key="quiz_any",
        type="quiz",
        description="Complete any quiz today",
        xp_reward=50,
    ),
    ChallengeTemplate(
        key="perfect_score",
        type="perfect_score",
        description="Score 100% on any quiz",
        xp_reward=100,
    ),
    ChallengeTemplate(
        key="quiz_math",
        type="subject_quiz",
        description="Complete a Math quiz",
        xp_reward=75,
        target_subject=Subject.MATH.value,
    ),
    ChallengeTemplate(
        key="quiz_science",
        type="subject_quiz",
        description="Complete a Science quiz",
        xp_reward=75,
        target_subject=Subject.SCIENCE.value,
    ),
    ChallengeTemplate(
        key="streak_keep",
        type="streak",
        description="Maintain your streak",
        xp_reward=25,
    ),
)


def challenge_id(today: date) -> str:
    return f"challenge_{today.strftime('%Y%m%d')}_{uuid4().hex[:12]}"


def completion_outcome(challenge: DailyChallenge | None, *, today: date) -> CompletionOutcome:
    if challenge is None:
        return "missing"
    if not challenge.is_for(today):
        return "stale"
    if challenge.completed:
        return "already_completed"
    return "completed"


class DailyChallengeGenerator:
    def __init__(
        self,
        templates: Iterable[ChallengeTemplate] = TEMPLATES,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self.templates: tuple[ChallengeTemplate, ...] = tuple(templates)
        if not self.templates:
            raise ValueError("at least one challenge template is required")
        self.rng = rng or random.Random()

    def generate(self, *, today: date) -> DailyChallenge:
        tpl = self.rng.choice(self.templates)
        return DailyChallenge(
            id=challenge_id(today),
            template_key=tpl.key,
            type=tpl.type,
            description=tpl.description,
            xp_reward=int(tpl.xp_reward),
            valid_on=today,
            completed=False,
            completed_at=None,
            target_subject=tpl.target_subject,
        )

    def get_or_create_today_challenge(
        self, stored: DailyChallenge | None, *, today: date
    ) -> tuple[DailyChallenge, bool]:
        """Return (challenge, created); a stored challenge for `today` is returned as is."""
        if stored is not None and stored.is_for(today):
            return stored, False
        return self.generate(today=today), True

    def complete(
        self, challenge: DailyChallenge | None, *, today: date, now: datetime
    ) -> tuple[DailyChallenge | None, CompletionOutcome]:
        outcome = completion_outcome(challenge, today=today)
        if outcome != "completed" or challenge is None:
            return challenge, outcome
        done = challenge.model_copy(update={"completed": True, "completed_at": now})
        return done, outcome
