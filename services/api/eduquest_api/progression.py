from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import Iterable

from eduquest_api.clock import Clock, SystemClock, today_in
from eduquest_api.eventlog import ProgressEvent
from eduquest_api.locks import user_lock
from eduquest_api.store import ProgressStore
from eduquest_api.sync import XpSyncRequest, idempotency_key
from eduquest_engine.badges import BADGES, Badge, BadgeEvaluator, BadgeStatus
from eduquest_engine.badges import badges_with_status as _badges_with_status
from eduquest_engine.challenges import (
    CompletionOutcome,
    DailyChallenge,
    DailyChallengeGenerator,
)
from eduquest_engine.errors import InvalidInputError
from eduquest_engine.level_curve import level_up_message
from eduquest_engine.progress import AwardResult, StreakStatus, UserProgress, XpSource
from eduquest_engine.scoring import QuizResult, QuizScorer
from eduquest_engine.streak import StreakState, StreakTracker
from eduquest_engine.subjects import subject_key

LESSON_XP = 20
STREAK_BONUS_PERCENT = 10


def streak_bonus(amount: int, current_streak: int) -> int:
    """floor(amount * streak * 0.1), computed in integers."""
    return max(0, int(amount) * max(0, int(current_streak)) * STREAK_BONUS_PERCENT // 100)


@dataclass(frozen=True)
class ChallengeCompletion:
    outcome: CompletionOutcome
    challenge: DailyChallenge | None
    award: AwardResult | None = None

    @property
    def completed(self) -> bool:
        return self.outcome == "completed"


class ProgressionCoordinator:
    """
    Single entry point for every progression mutation.

    Each operation holds the user's lock, works on a private copy of the stored
    record, and persists the record, the challenge and the event rows with one
    `store.save` call. If the save raises, nothing the caller can observe has
    changed. Remote sync requests ride along in the same save, keyed by the
    event that produced them; delivery happens later and never fails a call.
    """

    def __init__(
        self,
        store: ProgressStore,
        *,
        clock: Clock | None = None,
        tz: tzinfo = UTC,
        rng: random.Random | None = None,
        catalog: Iterable[Badge] = BADGES,
        scorer: QuizScorer | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.tz = tz
        self.catalog: tuple[Badge, ...] = tuple(catalog)
        self.streaks = StreakTracker(tz)
        self.badges = BadgeEvaluator(self.catalog)
        self.challenges = DailyChallengeGenerator(rng=rng)
        self.scorer = scorer or QuizScorer()

    # Reads

    def get_progress(self, user_id: str) -> UserProgress:
        uid = _check_user_id(user_id)
        return self._load(uid)

    def streak_status(self, user_id: str) -> StreakStatus:
        uid = _check_user_id(user_id)
        progress = self._load(uid)
        now = self.clock.now()
        return StreakStatus(
            current_streak=int(progress.current_streak),
            longest_streak=int(progress.longest_streak),
            streak_broken=self.streaks.is_broken(progress.last_activity_at, now),
            is_active_today=self.streaks.is_active_today(progress.last_activity_at, now),
            hours_until_streak_lost=self.streaks.hours_until_lost(
                progress.last_activity_at, now
            ),
        )

    def badges_with_status(self, user_id: str) -> list[BadgeStatus]:
        uid = _check_user_id(user_id)
        return _badges_with_status(self._load(uid), catalog=self.catalog)

    # Writes

    def award_xp(
        self,
        user_id: str,
        amount: int,
        reason: str,
        *,
        source: XpSource = XpSource.MANUAL,
    ) -> AwardResult:
        uid = _check_user_id(user_id)
        amount = _check_amount(amount)
        reason = _check_reason(reason)
        with user_lock(uid):
            progress = self._load(uid)
            events: list[ProgressEvent] = []
            sync_items: list[XpSyncRequest] = []
            result = self._apply_award(
                progress, amount, reason, source=source, events=events, sync_items=sync_items
            )
            self._commit(uid, progress, events=events, sync=sync_items)
        return result

    def on_quiz_completed(self, user_id: str, result: QuizResult) -> AwardResult:
        uid = _check_user_id(user_id)
        scored = self.scorer.score(result.total_questions, result.correct_answers)
        with user_lock(uid):
            progress = self._load(uid)
            progress.quizzes_completed += 1
            subject = subject_key(result.subject)
            if subject:
                progress.increment_subject(subject)
            if scored.is_perfect:
                progress.perfect_scores += 1

            events = [
                ProgressEvent(
                    type="quiz_completed",
                    payload={
                        "subject": subject,
                        "total_questions": int(result.total_questions),
                        "correct_answers": int(result.correct_answers),
                        "score_percentage": float(scored.score_percentage),
                        "is_perfect": bool(scored.is_perfect),
                        "performance": result.performance,
                    },
                )
            ]
            sync_items: list[XpSyncRequest] = []
            source = (
                XpSource.QUIZ_PERFECT_SCORE if scored.is_perfect else XpSource.QUIZ_COMPLETED
            )
            label = subject or "general"
            award = self._apply_award(
                progress,
                scored.xp_awarded,
                f"Quiz completed: {label} ({result.correct_answers}/{result.total_questions})",
                source=source,
                events=events,
                sync_items=sync_items,
            )
            self._commit(uid, progress, events=events, sync=sync_items)
        return award

    def on_lesson_completed(
        self,
        user_id: str,
        *,
        subject: str | None = None,
        chapter: str | None = None,
    ) -> AwardResult:
        uid = _check_user_id(user_id)
        with user_lock(uid):
            progress = self._load(uid)
            progress.lessons_completed += 1
            events = [
                ProgressEvent(
                    type="lesson_completed",
                    payload={"subject": subject_key(subject), "chapter": chapter},
                )
            ]
            sync_items: list[XpSyncRequest] = []
            reason = f"Lesson completed: {chapter}" if chapter else "Lesson completed"
            award = self._apply_award(
                progress,
                LESSON_XP,
                reason,
                source=XpSource.LESSON_COMPLETED,
                events=events,
                sync_items=sync_items,
            )
            self._commit(uid, progress, events=events, sync=sync_items)
        return award

    def update_streak(self, user_id: str) -> StreakStatus:
        uid = _check_user_id(user_id)
        now = self.clock.now()
        with user_lock(uid):
            progress = self._load(uid)
            transition = self.streaks.advance(
                StreakState(
                    last_activity_at=progress.last_activity_at,
                    current_streak=progress.current_streak,
                    longest_streak=progress.longest_streak,
                ),
                now,
            )
            state = transition.state
            previous_streak = int(progress.current_streak)
            # longest first so the model validator never sees longest < current
            progress.longest_streak = int(state.longest_streak)
            progress.current_streak = int(state.current_streak)
            progress.last_activity_at = state.last_activity_at
            progress.last_activity_date = self.streaks.calendar_day(state.last_activity_at)

            events: list[ProgressEvent] = []
            if transition.streak_broken:
                events.append(
                    ProgressEvent(
                        type="streak_broken",
                        payload={
                            "previous_streak": previous_streak,
                            "hours_since_last": transition.hours_since_last,
                        },
                    )
                )
            events.append(
                ProgressEvent(
                    type="streak_updated",
                    payload={
                        "outcome": transition.outcome,
                        "current_streak": int(progress.current_streak),
                        "longest_streak": int(progress.longest_streak),
                    },
                )
            )

            sync_items: list[XpSyncRequest] = []
            unlocked = self._evaluate_badges(progress, events=events, sync_items=sync_items)
            self._commit(uid, progress, events=events, sync=sync_items, now=now)

        return StreakStatus(
            current_streak=int(progress.current_streak),
            longest_streak=int(progress.longest_streak),
            streak_broken=transition.streak_broken,
            is_active_today=True,
            hours_until_streak_lost=self.streaks.hours_until_lost(
                progress.last_activity_at, now
            ),
            outcome=transition.outcome,
            new_badges=tuple(unlocked),
        )

    def get_or_create_daily_challenge(self, user_id: str) -> DailyChallenge:
        uid = _check_user_id(user_id)
        with user_lock(uid):
            stored = self.store.load_challenge(uid)
            today = today_in(self.clock, self.tz)
            challenge, created = self.challenges.get_or_create_today_challenge(
                stored, today=today
            )
            if not created:
                return challenge
            progress = self._load(uid)
            events = [
                ProgressEvent(
                    type="daily_challenge_created",
                    payload={
                        "challenge_id": challenge.id,
                        "template_key": challenge.template_key,
                        "xp_reward": int(challenge.xp_reward),
                        "valid_on": challenge.valid_on.isoformat(),
                        "replaced": stored.id if stored is not None else None,
                    },
                )
            ]
            self._commit(uid, progress, challenge=challenge, events=events)
            return challenge

    def complete_daily_challenge(self, user_id: str) -> ChallengeCompletion:
        uid = _check_user_id(user_id)
        now = self.clock.now()
        with user_lock(uid):
            stored = self.store.load_challenge(uid)
            done, outcome = self.challenges.complete(
                stored, today=today_in(self.clock, self.tz), now=now
            )
            if outcome != "completed" or done is None:
                return ChallengeCompletion(outcome=outcome, challenge=stored)

            progress = self._load(uid)
            events = [
                ProgressEvent(
                    type="daily_challenge_completed",
                    payload={"challenge_id": done.id, "xp_reward": int(done.xp_reward)},
                )
            ]
            sync_items: list[XpSyncRequest] = []
            award = self._apply_award(
                progress,
                int(done.xp_reward),
                f"Daily challenge: {done.description}",
                source=XpSource.DAILY_CHALLENGE,
                events=events,
                sync_items=sync_items,
            )
            self._commit(
                uid, progress, challenge=done, events=events, sync=sync_items, now=now
            )
        return ChallengeCompletion(outcome=outcome, challenge=done, award=award)

    # Internals

    def _load(self, user_id: str) -> UserProgress:
        loaded = self.store.load(user_id)
        if loaded is None:
            return UserProgress.fresh(user_id)
        return loaded.model_copy(deep=True)

    def _commit(
        self,
        user_id: str,
        progress: UserProgress,
        *,
        challenge: DailyChallenge | None = None,
        events: Iterable[ProgressEvent] = (),
        sync: Iterable[XpSyncRequest] = (),
        now: datetime | None = None,
    ) -> None:
        now_dt = now or self.clock.now()
        progress.updated_at = now_dt
        self.store.save(
            user_id,
            progress,
            challenge=challenge,
            events=list(events),
            sync=list(sync),
            now=now_dt,
        )

    def _apply_award(
        self,
        progress: UserProgress,
        amount: int,
        reason: str,
        *,
        source: XpSource,
        events: list[ProgressEvent],
        sync_items: list[XpSyncRequest],
    ) -> AwardResult:
        previous_level = progress.level
        streak = progress.current_streak
        # a lapsed streak earns nothing until update_streak resets it
        if self.streaks.is_broken(progress.last_activity_at, self.clock.now()):
            streak = 0
        bonus = streak_bonus(amount, streak)
        awarded = int(amount) + bonus
        progress.add_xp(awarded)
        awarded_event = ProgressEvent(
            type="xp_awarded",
            payload={
                "amount": awarded,
                "base_xp": int(amount),
                "streak_bonus": bonus,
                "reason": reason,
                "source": source.value,
            },
        )
        events.append(awarded_event)
        sync_items.append(
            XpSyncRequest(
                amount=awarded,
                source=source.value,
                description=reason,
                idempotency_key=idempotency_key(
                    user_id=progress.user_id, event_id=awarded_event.id
                ),
            )
        )

        unlocked = self._evaluate_badges(progress, events=events, sync_items=sync_items)
        badge_xp = sum(int(b.xp_reward) for b in unlocked)

        new_level = progress.level
        leveled_up = new_level > previous_level
        if leveled_up:
            events.append(
                ProgressEvent(
                    type="level_up",
                    payload={"from_level": previous_level, "to_level": new_level},
                )
            )

        return AwardResult(
            xp_awarded=awarded,
            reason=reason,
            source=source,
            base_xp=int(amount),
            streak_bonus=bonus,
            badge_xp=badge_xp,
            new_total_xp=int(progress.total_xp),
            new_level=new_level,
            previous_level=previous_level,
            leveled_up=leveled_up,
            new_badges=tuple(unlocked),
            message=level_up_message(new_level) if leveled_up else None,
        )

    def _evaluate_badges(
        self,
        progress: UserProgress,
        *,
        events: list[ProgressEvent],
        sync_items: list[XpSyncRequest],
    ) -> list[Badge]:
        unlocked = self.badges.evaluate(progress)
        for badge in unlocked:
            unlocked_event = ProgressEvent(
                type="badge_unlocked",
                payload={
                    "badge_id": badge.id,
                    "category": badge.category.value,
                    "xp_reward": int(badge.xp_reward),
                },
            )
            events.append(unlocked_event)
            if badge.xp_reward > 0:
                sync_items.append(
                    XpSyncRequest(
                        amount=int(badge.xp_reward),
                        source=XpSource.BADGE_EARNED.value,
                        description=f"Badge earned: {badge.name}",
                        idempotency_key=idempotency_key(
                            user_id=progress.user_id, event_id=unlocked_event.id
                        ),
                    )
                )
        return unlocked


def _check_user_id(user_id: str) -> str:
    uid = str(user_id or "").strip()
    if not uid:
        raise InvalidInputError("user_id is required")
    return uid


def _check_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError("xp amount must be an integer")
    if amount < 0:
        raise InvalidInputError("xp amount must be non-negative")
    return amount


def _check_reason(reason: str) -> str:
    text = str(reason or "").strip()
    if not text:
        raise InvalidInputError("reason is required")
    return text
