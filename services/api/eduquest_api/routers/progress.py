from __future__ import annotations

from fastapi import APIRouter, Header
from pydantic import BaseModel, Field

from eduquest_api.deps import Coordinator, CurrentUserId, require_admin
from eduquest_api.progression import ProgressionCoordinator
from eduquest_api.schemas import (
    AwardOut,
    BadgeStatusOut,
    ProgressOut,
    StreakOut,
    award_out,
    badge_status_out,
    progress_out,
    streak_out,
)
from eduquest_engine.errors import InvalidInputError
from eduquest_engine.level_curve import MAX_LEVEL, level_milestones, level_title
from eduquest_engine.progress import XpSource
from eduquest_engine.scoring import (
    DEFAULT_PASSING_SCORE,
    AnswerRecord,
    grade_quiz,
    result_from_counts,
)

router = APIRouter(prefix="/api/progress", tags=["progress"])


class LevelOut(BaseModel):
    level: int
    xp_required: int
    title: str


class LevelsOut(BaseModel):
    max_level: int
    levels: list[LevelOut]


class XpGrantIn(BaseModel):
    user_id: str = Field(min_length=1, max_length=80)
    # Range is checked by the coordinator so bad amounts map to invalid_input.
    amount: int
    reason: str = Field(max_length=200)
    source: XpSource = XpSource.MANUAL


class AnswerIn(BaseModel):
    question_id: str = Field(min_length=1, max_length=80)
    correct: bool
    topic: str | None = Field(default=None, max_length=120)


class QuizIn(BaseModel):
    subject: str | None = Field(default=None, max_length=80)
    answers: list[AnswerIn] | None = None
    total_questions: int | None = None
    correct_answers: int | None = None
    passing_score: int = Field(default=DEFAULT_PASSING_SCORE, ge=0, le=100)


class QuizOut(BaseModel):
    total_questions: int
    correct_answers: int
    score_percentage: float
    xp_earned: int
    is_perfect: bool
    passed: bool
    performance: str
    weak_topics: list[str]
    strong_topics: list[str]
    should_suggest_revision: bool
    award: AwardOut


class LessonIn(BaseModel):
    subject: str | None = Field(default=None, max_length=80)
    chapter: str | None = Field(default=None, max_length=200)


@router.get("/me", response_model=ProgressOut)
def progress_me(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> ProgressOut:
    return progress_out(coordinator.get_progress(user_id))


@router.get("/levels", response_model=LevelsOut)
def progress_levels() -> LevelsOut:
    return LevelsOut(
        max_level=MAX_LEVEL,
        levels=[
            LevelOut(level=i + 1, xp_required=int(xp), title=level_title(i + 1))
            for i, xp in enumerate(level_milestones())
        ],
    )


@router.post("/xp", response_model=AwardOut)
def progress_grant_xp(
    req: XpGrantIn,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
    coordinator: ProgressionCoordinator = Coordinator,
) -> AwardOut:
    require_admin(x_admin_token)
    res = coordinator.award_xp(req.user_id, req.amount, req.reason, source=req.source)
    return award_out(res)


@router.post("/quiz", response_model=QuizOut)
def progress_quiz(
    req: QuizIn,
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> QuizOut:
    if req.answers is not None:
        result = grade_quiz(
            [
                AnswerRecord(question_id=a.question_id, correct=a.correct, topic=a.topic)
                for a in req.answers
            ],
            subject=req.subject,
            passing_score=req.passing_score,
        )
    else:
        if req.total_questions is None or req.correct_answers is None:
            raise InvalidInputError("answers or total_questions/correct_answers required")
        result = result_from_counts(
            int(req.total_questions),
            int(req.correct_answers),
            subject=req.subject,
            passing_score=req.passing_score,
        )
    award = coordinator.on_quiz_completed(user_id, result)
    return QuizOut(
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        score_percentage=round(float(result.score_percentage), 2),
        xp_earned=result.xp_earned,
        is_perfect=result.is_perfect,
        passed=result.passed,
        performance=result.performance,
        weak_topics=list(result.weak_topics),
        strong_topics=list(result.strong_topics),
        should_suggest_revision=result.should_suggest_revision,
        award=award_out(award),
    )


@router.post("/lesson", response_model=AwardOut)
def progress_lesson(
    req: LessonIn,
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> AwardOut:
    res = coordinator.on_lesson_completed(user_id, subject=req.subject, chapter=req.chapter)
    return award_out(res)


@router.post("/streak", response_model=StreakOut)
def progress_update_streak(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> StreakOut:
    return streak_out(coordinator.update_streak(user_id))


@router.get("/streak", response_model=StreakOut)
def progress_streak(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> StreakOut:
    return streak_out(coordinator.streak_status(user_id))


@router.get("/badges", response_model=list[BadgeStatusOut])
def progress_badges(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> list[BadgeStatusOut]:
    return [badge_status_out(s) for s in coordinator.badges_with_status(user_id)]
