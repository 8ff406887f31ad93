from __future__ import annotations

import argparse
import os
import random
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Callable

import orjson
from sqlalchemy import delete
from sqlalchemy.orm import Session

from eduquest_api.clock import FixedClock
from eduquest_api.core.config import Settings, day_tz
from eduquest_api.db import Base, SessionLocal, engine
from eduquest_api.models import (
    DailyChallengeRecord,
    Event,
    ProgressRecord,
    UserBadge,
    XpSyncOutbox,
)
from eduquest_api.progression import ProgressionCoordinator
from eduquest_api.store import SqlProgressStore
from eduquest_engine.scoring import result_from_counts


DEMO_USER_ID = "user_demo"

# (day offset, subject, total, correct)
DEMO_QUIZZES = [
    (0, "Math", 10, 7),
    (0, "Science", 5, 5),
    (1, "Math", 8, 8),
    (2, "Hindi", 6, 3),
    (3, "Math", 10, 9),
    (4, "Social Science", 5, 4),
    (5, "Math", 10, 10),
    (6, "English", 8, 6),
]


def reset_user(session: Session, *, user_id: str) -> None:
    session.execute(delete(Event).where(Event.user_id == user_id))
    session.execute(delete(XpSyncOutbox).where(XpSyncOutbox.user_id == user_id))
    session.execute(delete(UserBadge).where(UserBadge.user_id == user_id))
    session.execute(
        delete(DailyChallengeRecord).where(DailyChallengeRecord.user_id == user_id)
    )
    session.execute(delete(ProgressRecord).where(ProgressRecord.user_id == user_id))
    session.commit()


def seed_demo(
    session_factory: Callable[[], Session],
    *,
    start: datetime,
    user_id: str = DEMO_USER_ID,
    seed: int = 7,
) -> dict[str, object]:
    """Replay a week of study for the demo user through the coordinator."""
    clock = FixedClock(start)
    coord = ProgressionCoordinator(
        SqlProgressStore(session_factory),
        clock=clock,
        tz=day_tz(Settings()),
        rng=random.Random(seed),
    )
    last_day = max(d for d, *_ in DEMO_QUIZZES)
    for day in range(last_day + 1):
        clock.set(start + timedelta(days=day))
        coord.update_streak(user_id)
        coord.get_or_create_daily_challenge(user_id)
        for quiz_day, subject, total, correct in DEMO_QUIZZES:
            if quiz_day == day:
                coord.on_quiz_completed(
                    user_id, result_from_counts(total, correct, subject=subject)
                )
        coord.on_lesson_completed(user_id, subject="Math", chapter=f"Chapter {day + 1}")
        if day % 2 == 0:
            coord.complete_daily_challenge(user_id)

    progress = coord.get_progress(user_id)
    return {
        "user_id": user_id,
        "total_xp": int(progress.total_xp),
        "level": int(progress.level),
        "current_streak": int(progress.current_streak),
        "badges": sorted(progress.earned_badge_ids),
    }


def main() -> None:
    settings = Settings()
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--reset", action="store_true", help="Delete the demo user's rows and regenerate."
    )
    args = parser.parse_args()

    if settings.db_url.startswith("sqlite:///"):
        db_path = Path(settings.db_url.removeprefix("sqlite:///"))
        os.makedirs(db_path.parent, exist_ok=True)
    Base.metadata.create_all(engine)

    with SessionLocal() as session:
        if args.reset:
            reset_user(session, user_id=DEMO_USER_ID)
        elif session.get(ProgressRecord, DEMO_USER_ID) is not None:
            print("[seed] demo user already present (use --reset)")
            return

    start = datetime.now(UTC).replace(hour=9, minute=0, second=0, microsecond=0)
    res = seed_demo(SessionLocal, start=start - timedelta(days=7))
    print(f"[seed] ok: {orjson.dumps(res).decode('utf-8')}")


if __name__ == "__main__":
    main()
