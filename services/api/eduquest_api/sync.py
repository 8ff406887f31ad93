from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Callable
from uuid import uuid4

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from eduquest_api.core.config import Settings
from eduquest_api.eventlog import log_event, log_json
from eduquest_api.models import XpSyncOutbox
from eduquest_engine.errors import SyncError


@dataclass(frozen=True)
class XpSyncRequest:
    """One `uploadXpEvent` call, keyed by the local event that produced it."""

    amount: int
    source: str
    description: str
    idempotency_key: str


def idempotency_key(*, user_id: str, event_id: str) -> str:
    return f"xp:{user_id}:{event_id}"


def add_to_outbox(
    session: Session,
    *,
    user_id: str,
    request: XpSyncRequest,
    now: datetime | None = None,
) -> XpSyncOutbox | None:
    """
    Stage an outbox row in the caller's transaction.

    A key that is already queued is left alone, so replaying the same request
    never produces a second upload.
    """
    key = str(request.idempotency_key)[:200]
    existing = session.scalar(
        select(XpSyncOutbox.id).where(XpSyncOutbox.idempotency_key == key)
    )
    if existing is not None:
        return None
    row = XpSyncOutbox(
        id=f"xs_{uuid4().hex}",
        user_id=str(user_id),
        idempotency_key=key,
        amount=int(request.amount),
        source=str(request.source),
        description=str(request.description or "")[:200],
        status="queued",
        attempts=0,
        next_attempt_at=None,
        last_error=None,
        created_at=now or datetime.now(UTC),
        sent_at=None,
    )
    session.add(row)
    return row


@dataclass(frozen=True)
class SendResult:
    ok: bool
    status_code: int | None = None
    retry_after_sec: float | None = None
    error: str | None = None


def _payload_for(row: XpSyncOutbox) -> dict[str, Any]:
    return {
        "user_id": str(row.user_id),
        "amount": int(row.amount),
        "source": str(row.source),
        "description": str(row.description or ""),
        "idempotency_key": str(row.idempotency_key),
        "created_at": row.created_at.isoformat() if row.created_at else None,
    }


def upload_xp_event(settings: Settings, *, payload: dict[str, Any]) -> SendResult:
    if settings.sync_mode == "mock":
        return SendResult(ok=True, status_code=200)

    base = str(settings.sync_base_url or "").strip().rstrip("/")
    if not base:
        return SendResult(ok=False, error="missing_sync_base_url")

    headers = {"Idempotency-Key": str(payload.get("idempotency_key") or "")}
    if settings.sync_api_key:
        headers["Authorization"] = f"Bearer {settings.sync_api_key}"
    try:
        resp = httpx.post(
            f"{base}/xp-events",
            json=payload,
            headers=headers,
            timeout=float(settings.sync_timeout_sec),
        )
    except httpx.HTTPError as exc:
        return SendResult(ok=False, error=str(exc)[:300])

    if resp.status_code == 429:
        try:
            retry_after = float(resp.headers.get("Retry-After") or 1.0)
        except ValueError:
            retry_after = 1.0
        return SendResult(
            ok=False, status_code=429, retry_after_sec=retry_after, error="rate_limited"
        )
    # 409: the remote already has this idempotency key.
    if 200 <= resp.status_code < 300 or resp.status_code == 409:
        return SendResult(ok=True, status_code=resp.status_code)
    return SendResult(ok=False, status_code=resp.status_code, error=resp.text[:400])


def process_sync_outbox(
    session: Session,
    *,
    limit: int | None = None,
    now: datetime | None = None,
    sender: Callable[..., SendResult] = upload_xp_event,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or Settings()
    now_dt = now or datetime.now(UTC)
    if settings.sync_mode == "off":
        return {"ok": True, "processed": 0, "skipped": "sync_off"}

    batch = int(limit if limit is not None else settings.sync_batch_size)
    rows = session.scalars(
        select(XpSyncOutbox)
        .where(XpSyncOutbox.status == "queued")
        .where(
            (XpSyncOutbox.next_attempt_at.is_(None))
            | (XpSyncOutbox.next_attempt_at <= now_dt)
        )
        .order_by(XpSyncOutbox.created_at.asc())
        .limit(max(0, batch))
        .with_for_update(skip_locked=True)
    ).all()
    if not rows:
        return {"ok": True, "processed": 0}

    processed = 0
    sent = 0
    failed = 0
    retried = 0
    for row in rows:
        processed += 1
        try:
            res = sender(settings, payload=_payload_for(row))
        except SyncError as exc:
            res = SendResult(ok=False, error=str(exc))
        row.attempts = int(row.attempts or 0) + 1
        if res.ok:
            row.status = "sent"
            row.sent_at = now_dt
            row.last_error = None
            row.next_attempt_at = None
            sent += 1
            session.add(row)
            continue

        row.last_error = str(res.error or "send_failed")[:400]
        log_event(
            session,
            type="sync_failed",
            user_id=str(row.user_id),
            payload={
                "outbox_id": str(row.id),
                "attempts": int(row.attempts),
                "status_code": res.status_code,
                "error": row.last_error,
            },
            now=now_dt,
        )
        if settings.log_json:
            log_json(
                {
                    "level": "warning",
                    "msg": "xp_sync_failed",
                    "outbox_id": str(row.id),
                    "attempts": int(row.attempts),
                    "error": row.last_error,
                }
            )

        if res.status_code == 429 and res.retry_after_sec is not None:
            row.status = "queued"
            row.next_attempt_at = now_dt + timedelta(seconds=float(res.retry_after_sec))
            retried += 1
            session.add(row)
            continue

        if int(row.attempts or 0) >= int(settings.sync_max_attempts):
            row.status = "failed"
            row.next_attempt_at = None
            failed += 1
            session.add(row)
            continue

        backoff = min(3600.0, float(2 ** max(0, int(row.attempts or 1) - 1)))
        row.status = "queued"
        row.next_attempt_at = now_dt + timedelta(seconds=backoff)
        retried += 1
        session.add(row)

        # Avoid hammering the remote in a tight loop.
        time.sleep(0.05)

    session.commit()
    return {
        "ok": True,
        "processed": processed,
        "sent": sent,
        "failed": failed,
        "retried": retried,
    }
