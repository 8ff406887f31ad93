from __future__ import annotations

import re
from enum import Enum


class Subject(str, Enum):
    MATH = "math"
    SCIENCE = "science"
    ENGLISH = "english"
    HINDI = "hindi"
    SOCIAL_SCIENCE = "social_science"


# Checked in order; "social science" must not be claimed by "science".
_ALIASES: tuple[tuple[Subject, tuple[str, ...]], ...] = (
    (Subject.MATH, ("math", "ganit")),
    (Subject.SOCIAL_SCIENCE, ("social", "samajik")),
    (Subject.SCIENCE, ("science", "vigyan")),
    (Subject.ENGLISH, ("english", "angrezi")),
    (Subject.HINDI, ("hindi",)),
)

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def parse_subject(raw: str | None) -> Subject | None:
    value = str(raw or "").strip().lower()
    if not value:
        return None
    for subject, aliases in _ALIASES:
        if any(a in value for a in aliases):
            return subject
    return None


def slugify_subject(raw: str | None) -> str | None:
    slug = _SLUG_RE.sub("_", str(raw or "").strip().lower()).strip("_")
    return slug[:80] or None


def subject_key(raw: str | None) -> str | None:
    """Counter key for a subject name; unknown subjects keep their own slug."""
    parsed = parse_subject(raw)
    if parsed is not None:
        return parsed.value
    return slugify_subject(raw)
