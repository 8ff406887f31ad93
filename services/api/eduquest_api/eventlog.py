from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import orjson
from sqlalchemy.orm import Session

from eduquest_api.models import Event


@dataclass(frozen=True)
class ProgressEvent:
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: f"ev_{uuid4().hex}")


def log_event(
    session: Session,
    *,
    type: str,
    user_id: str | None,
    payload: dict[str, Any] | None = None,
    now: datetime | None = None,
    event_id: str | None = None,
) -> Event:
    now_dt = now or datetime.now(UTC)
    p: dict[str, Any] = dict(payload or {})
    p.setdefault("v", 1)
    p.setdefault("user_id", user_id)

    ev = Event(
        id=event_id or f"ev_{uuid4().hex}",
        user_id=user_id,
        type=str(type),
        payload_json=orjson.dumps(p, default=str).decode("utf-8"),
        created_at=now_dt,
    )
    session.add(ev)
    return ev


def log_json(payload: dict[str, Any]) -> None:
    try:
        print(orjson.dumps(payload, default=str).decode("utf-8"))
    except TypeError:
        pass
