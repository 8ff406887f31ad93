from __future__ import annotations

from fastapi import Depends, Header, HTTPException

from eduquest_api.clock import Clock, SystemClock
from eduquest_api.core.config import Settings, day_tz
from eduquest_api.core.security import decode_token
from eduquest_api.db import SessionLocal
from eduquest_api.progression import ProgressionCoordinator
from eduquest_api.store import SqlProgressStore


def get_current_user_id(authorization: str | None = Header(default=None)) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    try:
        payload = decode_token(token)
    except Exception as e:  # noqa: BLE001
        raise HTTPException(status_code=401, detail="Invalid token") from e
    return str(payload.get("sub"))


def get_clock() -> Clock:
    return SystemClock()


def get_coordinator(clock: Clock = Depends(get_clock)) -> ProgressionCoordinator:
    settings = Settings()
    return ProgressionCoordinator(
        SqlProgressStore(SessionLocal, settings=settings),
        clock=clock,
        tz=day_tz(settings),
    )


def require_admin(x_admin_token: str | None) -> None:
    settings = Settings()
    expected = str(settings.admin_token or "").strip()
    if not expected:
        raise HTTPException(status_code=401, detail="admin_disabled")
    if str(x_admin_token or "").strip() != expected:
        raise HTTPException(status_code=401, detail="unauthorized")


CurrentUserId = Depends(get_current_user_id)
Coordinator = Depends(get_coordinator)
