from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal

from eduquest_engine.errors import InvalidInputError

XP_PER_CORRECT = 5
XP_PARTICIPATION_FLOOR = 10
XP_QUIZ_CAP = 100
DEFAULT_PASSING_SCORE = 60

PerformanceTier = Literal["Excellent", "Good", "Average", "Needs Improvement"]


@dataclass(frozen=True)
class QuizScore:
    score_percentage: float
    xp_awarded: int
    is_perfect: bool


@dataclass(frozen=True)
class AnswerRecord:
    question_id: str
    correct: bool
    topic: str | None = None


@dataclass(frozen=True)
class QuizResult:
    total_questions: int
    correct_answers: int
    score_percentage: float
    xp_earned: int
    is_perfect: bool
    passed: bool
    performance: PerformanceTier
    weak_topics: tuple[str, ...]
    strong_topics: tuple[str, ...]
    subject: str | None = None

    @property
    def incorrect_answers(self) -> int:
        return self.total_questions - self.correct_answers

    @property
    def should_suggest_revision(self) -> bool:
        return bool(self.weak_topics) or self.score_percentage < 75


def _check_counts(total_questions: int, correct_answers: int) -> None:
    if int(total_questions) < 0 or int(correct_answers) < 0:
        raise InvalidInputError("question counts must be non-negative")
    if int(correct_answers) > int(total_questions):
        raise InvalidInputError("correct_answers exceeds total_questions")


def is_perfect_score(total_questions: int, correct_answers: int) -> bool:
    return int(total_questions) > 0 and int(correct_answers) == int(total_questions)


def score_percentage(total_questions: int, correct_answers: int) -> float:
    if int(total_questions) == 0:
        return 0.0
    return int(correct_answers) * 100 / int(total_questions)


def quiz_xp(correct_answers: int, *, is_perfect: bool) -> int:
    base = max(XP_PARTICIPATION_FLOOR, int(correct_answers) * XP_PER_CORRECT)
    if is_perfect:
        base = base * 3 // 2
    return min(XP_QUIZ_CAP, base)


class QuizScorer:
    def score(
        self,
        total_questions: int,
        correct_answers: int,
        is_perfect: bool | None = None,
    ) -> QuizScore:
        _check_counts(total_questions, correct_answers)
        perfect = is_perfect_score(total_questions, correct_answers)
        if is_perfect is not None and bool(is_perfect) != perfect:
            raise InvalidInputError("is_perfect does not match the question counts")
        return QuizScore(
            score_percentage=score_percentage(total_questions, correct_answers),
            xp_awarded=quiz_xp(correct_answers, is_perfect=perfect),
            is_perfect=perfect,
        )


def performance_tier(percentage: float) -> PerformanceTier:
    if percentage >= 90:
        return "Excellent"
    if percentage >= 75:
        return "Good"
    if percentage >= 60:
        return "Average"
    return "Needs Improvement"


def _topic_lists(answers: list[AnswerRecord]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    weak: list[str] = []
    correct_by_topic: dict[str, int] = {}
    for a in answers:
        topic = str(a.topic or "").strip()
        if not topic:
            continue
        if a.correct:
            correct_by_topic[topic] = correct_by_topic.get(topic, 0) + 1
        elif topic not in weak:
            weak.append(topic)
    strong = [t for t, n in correct_by_topic.items() if n >= 2]
    return tuple(weak), tuple(strong)


def grade_quiz(
    answers: Iterable[AnswerRecord],
    *,
    subject: str | None = None,
    passing_score: int = DEFAULT_PASSING_SCORE,
    scorer: QuizScorer | None = None,
) -> QuizResult:
    rows = list(answers)
    total = len(rows)
    correct = sum(1 for a in rows if a.correct)
    scored = (scorer or QuizScorer()).score(total, correct)
    weak, strong = _topic_lists(rows)
    return QuizResult(
        total_questions=total,
        correct_answers=correct,
        score_percentage=scored.score_percentage,
        xp_earned=scored.xp_awarded,
        is_perfect=scored.is_perfect,
        passed=scored.score_percentage >= int(passing_score),
        performance=performance_tier(scored.score_percentage),
        weak_topics=weak,
        strong_topics=strong,
        subject=subject,
    )


def result_from_counts(
    total_questions: int,
    correct_answers: int,
    *,
    subject: str | None = None,
    passing_score: int = DEFAULT_PASSING_SCORE,
    weak_topics: Iterable[str] = (),
    strong_topics: Iterable[str] = (),
    scorer: QuizScorer | None = None,
) -> QuizResult:
    scored = (scorer or QuizScorer()).score(total_questions, correct_answers)
    return QuizResult(
        total_questions=int(total_questions),
        correct_answers=int(correct_answers),
        score_percentage=scored.score_percentage,
        xp_earned=scored.xp_awarded,
        is_perfect=scored.is_perfect,
        passed=scored.score_percentage >= int(passing_score),
        performance=performance_tier(scored.score_percentage),
        weak_topics=tuple(dict.fromkeys(str(t) for t in weak_topics if str(t).strip())),
        strong_topics=tuple(dict.fromkeys(str(t) for t in strong_topics if str(t).strip())),
        subject=subject,
    )
