from __future__ import annotations

from datetime import UTC, datetime
from threading import Lock
from typing import Callable, Iterable, Protocol

import orjson
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eduquest_api.core.config import Settings
from eduquest_api.eventlog import ProgressEvent, log_event
from eduquest_api.models import DailyChallengeRecord, ProgressRecord, UserBadge
from eduquest_api.sync import XpSyncRequest, add_to_outbox
from eduquest_engine.badges import CATALOG_VERSION, get_badge
from eduquest_engine.challenges import DailyChallenge
from eduquest_engine.errors import StoreUnavailableError
from eduquest_engine.progress import UserProgress
from eduquest_engine.streak import as_aware_utc


class ProgressStore(Protocol):
    def load(self, user_id: str) -> UserProgress | None: ...
    def load_challenge(self, user_id: str) -> DailyChallenge | None: ...
    def save(
        self,
        user_id: str,
        progress: UserProgress,
        *,
        challenge: DailyChallenge | None = None,
        events: Iterable[ProgressEvent] = (),
        sync: Iterable[XpSyncRequest] = (),
        now: datetime | None = None,
    ) -> None: ...


class MemoryProgressStore:
    """
    In-process store.

    Records are copied on the way in and on the way out, so callers never share
    mutable state with the store. Set `available = False` to simulate an outage.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._progress: dict[str, UserProgress] = {}
        self._challenges: dict[str, DailyChallenge] = {}
        self.events: list[tuple[str, ProgressEvent]] = []
        self.outbox: list[tuple[str, XpSyncRequest]] = []
        self.available = True

    def _check(self, user_id: str) -> None:
        if not self.available:
            raise StoreUnavailableError("memory store offline", user_id=user_id)

    def load(self, user_id: str) -> UserProgress | None:
        self._check(user_id)
        with self._lock:
            row = self._progress.get(str(user_id))
            return row.model_copy(deep=True) if row is not None else None

    def load_challenge(self, user_id: str) -> DailyChallenge | None:
        self._check(user_id)
        with self._lock:
            row = self._challenges.get(str(user_id))
            return row.model_copy(deep=True) if row is not None else None

    def save(
        self,
        user_id: str,
        progress: UserProgress,
        *,
        challenge: DailyChallenge | None = None,
        events: Iterable[ProgressEvent] = (),
        sync: Iterable[XpSyncRequest] = (),
        now: datetime | None = None,
    ) -> None:
        self._check(user_id)
        with self._lock:
            self._progress[str(user_id)] = progress.model_copy(deep=True)
            if challenge is not None:
                self._challenges[str(user_id)] = challenge.model_copy(deep=True)
            self.events.extend((str(user_id), ev) for ev in events)
            self.outbox.extend((str(user_id), req) for req in sync)


def _subject_counts(raw: str | None) -> dict[str, int]:
    try:
        parsed = orjson.loads((raw or "{}").encode("utf-8"))
    except orjson.JSONDecodeError:
        return {}
    if not isinstance(parsed, dict):
        return {}
    return {str(k): max(0, int(v)) for k, v in parsed.items() if isinstance(v, int)}


def _progress_from_row(row: ProgressRecord, badge_ids: Iterable[str]) -> UserProgress:
    return UserProgress(
        user_id=str(row.user_id),
        total_xp=int(row.xp or 0),
        current_streak=int(row.current_streak or 0),
        longest_streak=max(int(row.longest_streak or 0), int(row.current_streak or 0)),
        last_activity_at=as_aware_utc(row.last_activity_at),
        last_activity_date=row.last_active_day,
        quizzes_completed=int(row.quizzes_completed or 0),
        perfect_scores=int(row.perfect_scores or 0),
        lessons_completed=int(row.lessons_completed or 0),
        subject_quiz_counts=_subject_counts(row.subject_counts_json),
        earned_badge_ids=set(str(b) for b in badge_ids),
        updated_at=as_aware_utc(row.updated_at),
    )


def _challenge_from_row(row: DailyChallengeRecord) -> DailyChallenge:
    return DailyChallenge(
        id=str(row.challenge_id),
        template_key=str(row.template_key),
        type=row.type,  # type: ignore[arg-type]
        description=str(row.description),
        xp_reward=int(row.xp_reward or 0),
        valid_on=row.valid_on,
        completed=bool(row.completed),
        completed_at=as_aware_utc(row.completed_at),
        target_subject=row.target_subject,
    )


class SqlProgressStore:
    """
    SQLAlchemy-backed store.

    A save writes the progress row, any new badge rows, the challenge row, the
    event rows and the sync outbox rows in one transaction; on failure nothing
    is committed. Outbox rows are skipped while `sync_mode` is off.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._sync_enabled = (settings or Settings()).sync_mode != "off"

    def load(self, user_id: str) -> UserProgress | None:
        try:
            with self._session_factory() as session:
                row = session.get(ProgressRecord, str(user_id))
                if row is None:
                    return None
                badge_ids = session.scalars(
                    select(UserBadge.badge_id).where(UserBadge.user_id == str(user_id))
                ).all()
                return _progress_from_row(row, badge_ids)
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("progress load failed", user_id=user_id) from exc

    def load_challenge(self, user_id: str) -> DailyChallenge | None:
        try:
            with self._session_factory() as session:
                row = session.get(DailyChallengeRecord, str(user_id))
                return _challenge_from_row(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("challenge load failed", user_id=user_id) from exc

    def save(
        self,
        user_id: str,
        progress: UserProgress,
        *,
        challenge: DailyChallenge | None = None,
        events: Iterable[ProgressEvent] = (),
        sync: Iterable[XpSyncRequest] = (),
        now: datetime | None = None,
    ) -> None:
        now_dt = now or datetime.now(UTC)
        uid = str(user_id)
        try:
            with self._session_factory() as session:
                try:
                    self._write(session, uid, progress, challenge, events, sync, now_dt)
                    session.commit()
                except SQLAlchemyError:
                    session.rollback()
                    raise
        except SQLAlchemyError as exc:
            raise StoreUnavailableError("progress save failed", user_id=uid) from exc

    def _write(
        self,
        session: Session,
        user_id: str,
        progress: UserProgress,
        challenge: DailyChallenge | None,
        events: Iterable[ProgressEvent],
        sync: Iterable[XpSyncRequest],
        now: datetime,
    ) -> None:
        row = session.get(ProgressRecord, user_id)
        if row is None:
            row = ProgressRecord(user_id=user_id, created_at=now)
            session.add(row)
        row.xp = int(progress.total_xp)
        row.level = int(progress.level)
        row.current_streak = int(progress.current_streak)
        row.longest_streak = int(progress.longest_streak)
        row.last_activity_at = progress.last_activity_at
        row.last_active_day = progress.last_activity_date
        row.quizzes_completed = int(progress.quizzes_completed)
        row.perfect_scores = int(progress.perfect_scores)
        row.lessons_completed = int(progress.lessons_completed)
        row.subject_counts_json = orjson.dumps(
            dict(progress.subject_quiz_counts), option=orjson.OPT_SORT_KEYS
        ).decode("utf-8")
        row.updated_at = now
        session.flush()

        existing = set(
            session.scalars(
                select(UserBadge.badge_id).where(UserBadge.user_id == user_id)
            ).all()
        )
        for badge_id in sorted(progress.earned_badge_ids - existing):
            badge = get_badge(badge_id)
            session.add(
                UserBadge(
                    user_id=user_id,
                    badge_id=str(badge_id),
                    xp_reward=int(badge.xp_reward) if badge else 0,
                    catalog_version=CATALOG_VERSION,
                    earned_at=now,
                )
            )

        if challenge is not None:
            crow = session.get(DailyChallengeRecord, user_id)
            if crow is None:
                crow = DailyChallengeRecord(user_id=user_id)
                session.add(crow)
            crow.challenge_id = challenge.id
            crow.template_key = challenge.template_key
            crow.type = challenge.type
            crow.description = challenge.description
            crow.xp_reward = int(challenge.xp_reward)
            crow.target_subject = challenge.target_subject
            crow.valid_on = challenge.valid_on
            crow.completed = bool(challenge.completed)
            crow.completed_at = challenge.completed_at

        for ev in events:
            log_event(
                session,
                type=ev.type,
                user_id=user_id,
                payload=ev.payload,
                now=now,
                event_id=ev.id,
            )

        if self._sync_enabled:
            for req in sync:
                add_to_outbox(session, user_id=user_id, request=req, now=now)
