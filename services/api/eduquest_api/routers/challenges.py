from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from eduquest_api.deps import Coordinator, CurrentUserId
from eduquest_api.progression import ProgressionCoordinator
from eduquest_api.schemas import AwardOut, ChallengeOut, award_out, challenge_out

router = APIRouter(prefix="/api/challenges", tags=["challenges"])


class ChallengeCompleteOut(BaseModel):
    outcome: str
    completed: bool
    challenge: ChallengeOut | None = None
    award: AwardOut | None = None


@router.get("/today", response_model=ChallengeOut)
def challenges_today(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> ChallengeOut:
    return challenge_out(coordinator.get_or_create_daily_challenge(user_id))


@router.post("/today/complete", response_model=ChallengeCompleteOut)
def challenges_complete_today(
    user_id: str = CurrentUserId,
    coordinator: ProgressionCoordinator = Coordinator,
) -> ChallengeCompleteOut:
    res = coordinator.complete_daily_challenge(user_id)
    return ChallengeCompleteOut(
        outcome=res.outcome,
        completed=res.completed,
        challenge=challenge_out(res.challenge) if res.challenge is not None else None,
        award=award_out(res.award) if res.award is not None else None,
    )
