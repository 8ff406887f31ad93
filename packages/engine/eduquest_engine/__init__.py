__all__ = [
    "BADGES",
    "CATALOG_VERSION",
    "MAX_LEVEL",
    "AwardResult",
    "Badge",
    "BadgeEvaluator",
    "DailyChallenge",
    "DailyChallengeGenerator",
    "InvalidInputError",
    "QuizScorer",
    "StoreUnavailableError",
    "StreakTracker",
    "UserProgress",
    "XpSource",
    "level_for",
    "xp_required_for",
]

from eduquest_engine.badges import BADGES, CATALOG_VERSION, Badge, BadgeEvaluator
from eduquest_engine.challenges import DailyChallenge, DailyChallengeGenerator
from eduquest_engine.errors import InvalidInputError, StoreUnavailableError
from eduquest_engine.level_curve import MAX_LEVEL, level_for, xp_required_for
from eduquest_engine.progress import AwardResult, UserProgress, XpSource
from eduquest_engine.scoring import QuizScorer
from eduquest_engine.streak import StreakTracker
