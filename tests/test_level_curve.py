from __future__ import annotations


def test_level_boundaries_round_trip() -> None:
    from eduquest_engine.level_curve import MAX_LEVEL, level_for, xp_required_for

    assert xp_required_for(1) == 0
    assert xp_required_for(2) == 50
    assert xp_required_for(3) == 200
    for level in range(1, MAX_LEVEL + 1):
        xp = xp_required_for(level)
        assert level_for(xp) == level
        if level > 1:
            assert level_for(xp - 1) == level - 1


def test_level_is_non_decreasing_and_at_least_one() -> None:
    from eduquest_engine.level_curve import level_for

    prev = 1
    for xp in range(0, 5000, 7):
        lvl = level_for(xp)
        assert lvl >= 1
        assert lvl >= prev
        prev = lvl


def test_level_ceiling_keeps_xp_but_stops_levels() -> None:
    from eduquest_engine.level_curve import (
        MAX_LEVEL,
        level_for,
        progress_percentage,
        progress_to_next_level,
        xp_required_for,
        xp_to_next_level,
    )

    top = xp_required_for(MAX_LEVEL)
    assert top == 49 * 49 * 50
    assert level_for(top) == MAX_LEVEL
    assert level_for(top * 10) == MAX_LEVEL
    assert xp_required_for(MAX_LEVEL + 5) == top
    assert progress_to_next_level(top + 1) == 1.0
    assert progress_percentage(top + 1) == 100
    assert xp_to_next_level(top + 1) == 0


def test_progress_to_next_level_fraction() -> None:
    from eduquest_engine.level_curve import (
        progress_percentage,
        progress_to_next_level,
        xp_to_next_level,
    )

    assert progress_to_next_level(0) == 0.0
    assert progress_to_next_level(25) == 0.5
    # level 2 spans 50..200
    assert progress_to_next_level(125) == 0.5
    assert progress_percentage(125) == 50
    assert xp_to_next_level(125) == 75
    assert xp_to_next_level(0) == 50


def test_level_titles_and_message() -> None:
    from eduquest_engine.level_curve import level_milestones, level_title, level_up_message

    assert level_title(1) == "Beginner"
    assert level_title(5) == "Beginner"
    assert level_title(6) == "Learner"
    assert level_title(20) == "Scholar"
    assert level_title(35) == "Expert"
    assert level_title(45) == "Master"
    assert level_title(50) == "Grandmaster"
    assert level_up_message(2) == "Level Up! You reached Level 2 - Beginner!"

    milestones = level_milestones()
    assert len(milestones) == 50
    assert milestones[:3] == [0, 50, 200]
    assert milestones == sorted(milestones)
