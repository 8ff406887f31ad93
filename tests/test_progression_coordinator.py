from __future__ import annotations

import random
from datetime import UTC, datetime, timedelta

import pytest

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


def _coordinator(store=None, *, seed: int = 1):
    from eduquest_api.clock import FixedClock
    from eduquest_api.progression import ProgressionCoordinator
    from eduquest_api.store import MemoryProgressStore

    store = store or MemoryProgressStore()
    clock = FixedClock(T0)
    coord = ProgressionCoordinator(store, clock=clock, rng=random.Random(seed))
    return coord, store, clock


def _seed(store, user_id: str, **fields) -> None:
    from eduquest_engine.progress import UserProgress

    store.save(user_id, UserProgress(user_id=user_id, **fields))


def test_streak_bonus_scenario() -> None:
    coord, store, _ = _coordinator()
    _seed(store, "u1", current_streak=3, longest_streak=3, earned_badge_ids={"streak_3"})

    res = coord.award_xp("u1", 10, "quiz")
    assert res.base_xp == 10
    assert res.streak_bonus == 3
    assert res.xp_awarded == 13
    assert res.new_total_xp == 13
    assert store.load("u1").total_xp == 13


def test_streak_bonus_rounds_down() -> None:
    from eduquest_api.progression import streak_bonus

    assert streak_bonus(10, 3) == 3
    assert streak_bonus(15, 1) == 1
    assert streak_bonus(9, 1) == 0
    assert streak_bonus(50, 0) == 0


def test_fresh_user_perfect_quiz_unlocks_two_badges() -> None:
    from eduquest_engine.scoring import result_from_counts

    coord, store, _ = _coordinator()
    res = coord.on_quiz_completed("fresh", result_from_counts(5, 5, subject="Math"))

    assert res.base_xp == 37
    assert res.xp_awarded == 37
    assert res.new_badge_ids == ["quiz_first", "quiz_perfect"]
    assert res.badge_xp == 150
    assert res.new_total_xp == 187
    assert res.previous_level == 1
    assert res.new_level == 2
    assert res.leveled_up is True
    assert res.message == "Level Up! You reached Level 2 - Beginner!"

    saved = store.load("fresh")
    assert saved.perfect_scores == 1
    assert saved.quizzes_completed == 1
    assert saved.subject_quiz_counts == {"math": 1}
    assert saved.earned_badge_ids == {"quiz_first", "quiz_perfect"}
    assert saved.total_xp == 187
    assert saved.level == 2

    types = [ev.type for uid, ev in store.events if uid == "fresh"]
    assert types == [
        "quiz_completed",
        "xp_awarded",
        "badge_unlocked",
        "badge_unlocked",
        "level_up",
    ]


def test_quiz_does_not_touch_streak() -> None:
    from eduquest_engine.scoring import result_from_counts

    coord, store, _ = _coordinator()
    coord.on_quiz_completed("u2", result_from_counts(4, 2, subject="Science"))
    saved = store.load("u2")
    assert saved.current_streak == 0
    assert saved.last_activity_at is None
    assert saved.perfect_scores == 0
    assert saved.subject_quiz_counts == {"science": 1}


def test_unknown_subject_is_counted_by_slug() -> None:
    from eduquest_engine.scoring import result_from_counts

    coord, store, _ = _coordinator()
    coord.on_quiz_completed("u3", result_from_counts(4, 2, subject="Fine Arts"))
    assert store.load("u3").subject_quiz_counts == {"fine_arts": 1}


def test_award_xp_is_monotonic() -> None:
    coord, store, _ = _coordinator()
    prev_xp = 0
    prev_level = 1
    for amount in (5, 40, 120, 300, 1):
        res = coord.award_xp("mono", amount, "manual grant")
        assert res.new_total_xp > prev_xp
        assert res.new_level >= prev_level
        prev_xp, prev_level = res.new_total_xp, res.new_level
    assert store.load("mono").total_xp == prev_xp


def test_max_level_keeps_accruing_xp() -> None:
    from eduquest_engine.level_curve import MAX_LEVEL, xp_required_for

    coord, store, _ = _coordinator()
    top = xp_required_for(MAX_LEVEL)
    _seed(store, "top", total_xp=top, earned_badge_ids={"level_5", "level_10", "level_25"})
    res = coord.award_xp("top", 100, "grind")
    assert res.new_total_xp == top + 100
    assert res.new_level == MAX_LEVEL
    assert res.leveled_up is False
    assert res.message is None


def test_lesson_awards_fixed_xp() -> None:
    from eduquest_engine.progress import XpSource

    coord, store, _ = _coordinator()
    res = coord.on_lesson_completed("lesson", subject="Hindi", chapter="Ch 1")
    assert res.base_xp == 20
    assert res.source is XpSource.LESSON_COMPLETED
    assert store.load("lesson").lessons_completed == 1


def test_invalid_input_is_rejected_without_state() -> None:
    from eduquest_engine.errors import InvalidInputError

    coord, store, _ = _coordinator()
    with pytest.raises(InvalidInputError):
        coord.award_xp("bad", -5, "negative")
    with pytest.raises(InvalidInputError):
        coord.award_xp("bad", 5, "   ")
    with pytest.raises(InvalidInputError):
        coord.award_xp("", 5, "no user")
    assert store.load("bad") is None
    assert store.events == []


def test_update_streak_progression_and_badge() -> None:
    coord, store, clock = _coordinator()

    first = coord.update_streak("s1")
    assert first.outcome == "started"
    assert first.current_streak == 1
    assert first.hours_until_streak_lost == 36

    clock.advance(hours=24)
    assert coord.update_streak("s1").current_streak == 2

    clock.advance(hours=35)
    third = coord.update_streak("s1")
    assert third.outcome == "continued"
    assert third.current_streak == 3
    assert [b.id for b in third.new_badges] == ["streak_3"]
    assert store.load("s1").total_xp == 75

    clock.advance(hours=37)
    broken = coord.update_streak("s1")
    assert broken.outcome == "broken"
    assert broken.streak_broken is True
    assert broken.current_streak == 1
    assert broken.longest_streak == 3
    assert broken.new_badges == ()

    types = [ev.type for uid, ev in store.events if uid == "s1"]
    assert "streak_broken" in types
    assert types.count("badge_unlocked") == 1


def test_update_streak_same_day_is_unchanged() -> None:
    coord, store, clock = _coordinator()
    coord.update_streak("s2")
    clock.advance(hours=8)
    again = coord.update_streak("s2")
    assert again.outcome == "same_day"
    assert again.current_streak == 1
    assert store.load("s2").last_activity_at == T0 + timedelta(hours=8)


def test_update_streak_with_clock_behind_keeps_latest_day() -> None:
    coord, store, clock = _coordinator()
    coord.update_streak("s4")
    clock.set(T0 - timedelta(hours=10))
    again = coord.update_streak("s4")
    assert again.outcome == "same_day"
    saved = store.load("s4")
    assert saved.last_activity_at == T0
    assert saved.last_activity_date == T0.date()


def test_streak_status_is_read_only() -> None:
    coord, store, clock = _coordinator()
    coord.update_streak("s3")
    clock.advance(hours=10)
    status = coord.streak_status("s3")
    assert status.current_streak == 1
    assert status.is_active_today is True
    assert status.hours_until_streak_lost == 26
    assert status.streak_broken is False

    clock.advance(hours=30)
    late = coord.streak_status("s3")
    assert late.streak_broken is True
    assert late.hours_until_streak_lost == 0
    assert store.load("s3").last_activity_at == T0


def test_daily_challenge_same_day_and_next_day() -> None:
    coord, store, clock = _coordinator(seed=4)
    first = coord.get_or_create_daily_challenge("c1")
    assert coord.get_or_create_daily_challenge("c1").id == first.id
    assert store.load_challenge("c1").id == first.id

    clock.advance(days=1)
    second = coord.get_or_create_daily_challenge("c1")
    assert second.id != first.id
    assert second.valid_on == first.valid_on + timedelta(days=1)


def test_complete_daily_challenge_once() -> None:
    coord, store, _ = _coordinator(seed=4)
    ch = coord.get_or_create_daily_challenge("c2")

    done = coord.complete_daily_challenge("c2")
    assert done.outcome == "completed"
    assert done.completed is True
    assert done.award is not None
    assert done.award.base_xp == ch.xp_reward
    total = store.load("c2").total_xp
    assert store.load_challenge("c2").completed is True

    again = coord.complete_daily_challenge("c2")
    assert again.outcome == "already_completed"
    assert again.award is None
    assert store.load("c2").total_xp == total


def test_stale_or_missing_challenge_awards_nothing() -> None:
    coord, store, clock = _coordinator(seed=4)
    assert coord.complete_daily_challenge("c3").outcome == "missing"

    coord.get_or_create_daily_challenge("c3")
    clock.advance(days=1)
    stale = coord.complete_daily_challenge("c3")
    assert stale.outcome == "stale"
    assert stale.award is None
    assert store.load("c3").total_xp == 0
    assert store.load_challenge("c3").completed is False


def test_failed_save_leaves_state_unchanged() -> None:
    from eduquest_api.store import MemoryProgressStore
    from eduquest_engine.errors import StoreUnavailableError

    class FlakyStore(MemoryProgressStore):
        fail_saves = False

        def save(self, user_id, progress, **kwargs):
            if self.fail_saves:
                raise StoreUnavailableError("disk full", user_id=user_id)
            return super().save(user_id, progress, **kwargs)

    store = FlakyStore()
    coord, _, _ = _coordinator(store)
    coord.award_xp("flaky", 30, "first")
    before = store.load("flaky")
    events_before = list(store.events)
    outbox_before = list(store.outbox)

    store.fail_saves = True
    with pytest.raises(StoreUnavailableError):
        coord.award_xp("flaky", 500, "second")

    assert store.load("flaky") == before
    assert store.events == events_before
    assert store.outbox == outbox_before


def test_unavailable_store_is_reported() -> None:
    from eduquest_engine.errors import StoreUnavailableError

    coord, store, _ = _coordinator()
    store.available = False
    with pytest.raises(StoreUnavailableError):
        coord.award_xp("down", 10, "offline")
    store.available = True
    assert store.load("down") is None


def test_sync_requests_are_saved_with_their_events() -> None:
    from eduquest_engine.scoring import result_from_counts

    coord, store, _ = _coordinator()
    coord.on_quiz_completed("sync1", result_from_counts(5, 5, subject="math"))

    requests = [req for uid, req in store.outbox if uid == "sync1"]
    assert [r.source for r in requests] == [
        "quiz_perfect_score",
        "badge_earned",
        "badge_earned",
    ]
    assert [r.amount for r in requests] == [37, 50, 100]

    event_ids = {
        ev.id for uid, ev in store.events if ev.type in {"xp_awarded", "badge_unlocked"}
    }
    assert {r.idempotency_key for r in requests} == {
        f"xp:sync1:{event_id}" for event_id in event_ids
    }


def test_lapsed_streak_earns_no_bonus() -> None:
    coord, store, clock = _coordinator()
    _seed(
        store,
        "lapsed",
        current_streak=10,
        longest_streak=10,
        last_activity_at=T0 - timedelta(days=30),
    )

    assert coord.streak_status("lapsed").streak_broken is True
    res = coord.award_xp("lapsed", 10, "quiz")
    assert res.streak_bonus == 0
    assert res.xp_awarded == 10
    assert store.load("lapsed").total_xp == 10


def test_streak_bonus_holds_inside_grace_window() -> None:
    coord, store, _ = _coordinator()
    _seed(
        store,
        "grace",
        current_streak=3,
        longest_streak=3,
        last_activity_at=T0 - timedelta(hours=35),
        earned_badge_ids={"streak_3"},
    )

    assert coord.award_xp("grace", 10, "quiz").streak_bonus == 3


def test_memory_store_returns_copies() -> None:
    coord, store, _ = _coordinator()
    coord.award_xp("copy", 10, "x")
    loaded = store.load("copy")
    loaded.total_xp = 9999
    loaded.earned_badge_ids.add("bogus")
    assert store.load("copy").total_xp == 10
    assert "bogus" not in store.load("copy").earned_badge_ids


def test_badges_with_status_for_user() -> None:
    coord, _, _ = _coordinator()
    coord.award_xp("bs", 10, "x")
    statuses = coord.badges_with_status("bs")
    assert len(statuses) == 14
    assert not any(s.earned for s in statuses)
