from __future__ import annotations

import math

XP_PER_LEVEL_UNIT = 50
MAX_LEVEL = 50

_TITLES: tuple[tuple[int, str], ...] = (
    (5, "Beginner"),
    (10, "Learner"),
    (20, "Scholar"),
    (35, "Expert"),
    (45, "Master"),
)


def level_for(total_xp: int) -> int:
    """
    Level for a running XP total.

    Level L starts at (L-1)^2 * 50 XP, so the level is floor(sqrt(xp / 50)) + 1,
    clamped to [1, MAX_LEVEL]. XP past the ceiling still accrues.
    """
    xp = int(total_xp)
    if xp <= 0:
        return 1
    # floor(sqrt(floor(x))) == floor(sqrt(x)); stays exact for large totals.
    return max(1, min(MAX_LEVEL, math.isqrt(xp // XP_PER_LEVEL_UNIT) + 1))


def xp_required_for(level: int) -> int:
    lvl = min(int(level), MAX_LEVEL)
    if lvl <= 1:
        return 0
    return (lvl - 1) * (lvl - 1) * XP_PER_LEVEL_UNIT


def progress_to_next_level(total_xp: int) -> float:
    level = level_for(total_xp)
    if level >= MAX_LEVEL:
        return 1.0
    floor_xp = xp_required_for(level)
    span = xp_required_for(level + 1) - floor_xp
    if span <= 0:
        return 1.0
    frac = (int(total_xp) - floor_xp) / span
    return max(0.0, min(1.0, frac))


def progress_percentage(total_xp: int) -> int:
    level = level_for(total_xp)
    if level >= MAX_LEVEL:
        return 100
    floor_xp = xp_required_for(level)
    span = xp_required_for(level + 1) - floor_xp
    if span <= 0:
        return 100
    return max(0, min(100, (int(total_xp) - floor_xp) * 100 // span))


def xp_to_next_level(total_xp: int) -> int:
    level = level_for(total_xp)
    if level >= MAX_LEVEL:
        return 0
    return max(0, xp_required_for(level + 1) - int(total_xp))


def level_title(level: int) -> str:
    for ceiling, title in _TITLES:
        if int(level) <= ceiling:
            return title
    return "Grandmaster"


def level_up_message(level: int) -> str:
    return f"Level Up! You reached Level {int(level)} - {level_title(level)}!"


def level_milestones() -> list[int]:
    return [xp_required_for(lvl) for lvl in range(1, MAX_LEVEL + 1)]
