from __future__ import annotations

import argparse
import signal
import time
from datetime import UTC, datetime

import orjson

from eduquest_api.core.config import Settings
from eduquest_api.db import SessionLocal
from eduquest_api.locks import advisory_lock
from eduquest_api.sync import process_sync_outbox


def run_once(*, limit: int | None = None, now: datetime | None = None) -> dict[str, object]:
    settings = Settings()
    now_dt = now or datetime.now(UTC)
    if settings.sync_mode == "off":
        return {"ok": True, "ran_at": now_dt.isoformat(), "skipped": "sync_off"}

    with SessionLocal() as session:
        with advisory_lock(session, name="scheduler_xp_sync") as acquired:
            if not acquired:
                return {"ok": True, "ran_at": now_dt.isoformat(), "skipped": "lock_busy"}
            res = process_sync_outbox(session, limit=limit, now=now_dt, settings=settings)
    return {"ran_at": now_dt.isoformat(), **res}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="EduQuest scheduler (remote XP sync delivery)."
    )
    parser.add_argument("--once", action="store_true", help="Run once and exit.")
    parser.add_argument(
        "--limit", type=int, default=None, help="Max outbox rows per run."
    )
    args = parser.parse_args(argv)

    settings = Settings()
    stop = {"flag": False}

    def _handle(_sig, _frame) -> None:  # noqa: ANN001
        stop["flag"] = True

    signal.signal(signal.SIGTERM, _handle)
    signal.signal(signal.SIGINT, _handle)

    interval_sec = max(1, int(settings.scheduler_interval_seconds or 60))

    while True:
        res = run_once(limit=args.limit)
        print(f"[scheduler] ok: {orjson.dumps(res).decode('utf-8')}")
        if args.once or stop["flag"]:
            return 0
        time.sleep(interval_sec)


if __name__ == "__main__":
    raise SystemExit(main())
