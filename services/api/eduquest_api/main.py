from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.trustedhost import TrustedHostMiddleware

from eduquest_api.core.config import Settings
from eduquest_api.db import SessionLocal
from eduquest_api.eventlog import log_json
from eduquest_engine.badges import CATALOG_VERSION
from eduquest_engine.errors import InvalidInputError, StoreUnavailableError


def _parse_csv(value: str) -> list[str]:
    raw = str(value or "").strip()
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _with_request_id(request: Request, resp: JSONResponse) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        resp.headers["X-Request-Id"] = str(request_id)
    return resp


def create_app(*, settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="EduQuest Progression API",
        version="0.1.0",
        openapi_url="/api/openapi.json",
        docs_url="/docs",
    )

    allowed_hosts = _parse_csv(settings.allowed_hosts) or ["*"]
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)

    cors_origins = _parse_csv(settings.cors_allowed_origins)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.middleware("http")
    async def _request_context(request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("x-request-id") or f"req_{uuid4().hex}"
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:  # noqa: BLE001
            if settings.log_json:
                log_json(
                    {
                        "level": "error",
                        "request_id": request_id,
                        "method": request.method,
                        "path": request.url.path,
                        "status": 500,
                        "duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
                    }
                )
            raise

        response.headers["X-Request-Id"] = request_id
        if settings.log_json:
            log_json(
                {
                    "level": "info",
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - start) * 1000.0, 2),
                }
            )
        return response

    @app.exception_handler(HTTPException)
    async def _with_request_id_http_exception(request: Request, exc: HTTPException):
        resp = await http_exception_handler(request, exc)
        return _with_request_id(request, resp)

    @app.exception_handler(RequestValidationError)
    async def _with_request_id_validation_error(
        request: Request, exc: RequestValidationError
    ):
        resp = await request_validation_exception_handler(request, exc)
        return _with_request_id(request, resp)

    @app.exception_handler(InvalidInputError)
    async def _invalid_input(request: Request, exc: InvalidInputError):
        resp = JSONResponse(
            status_code=422,
            content={"error": "invalid_input", "detail": str(exc)},
        )
        return _with_request_id(request, resp)

    @app.exception_handler(StoreUnavailableError)
    async def _store_unavailable(request: Request, exc: StoreUnavailableError):
        if settings.log_json:
            log_json(
                {
                    "level": "error",
                    "request_id": getattr(request.state, "request_id", None),
                    "msg": "store_unavailable",
                    "user_id": exc.user_id,
                    "error": str(exc.__cause__ or exc)[:400],
                }
            )
        resp = JSONResponse(
            status_code=503,
            content={
                "error": "store_unavailable",
                "detail": "progress may not have been saved; retry later",
            },
        )
        return _with_request_id(request, resp)

    @app.exception_handler(Exception)
    async def _with_request_id_unhandled(request: Request, exc: Exception):
        _ = exc
        resp = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        return _with_request_id(request, resp)

    @app.get("/api/health")
    def health() -> dict[str, object]:
        db_ok = False
        db_err: str | None = None
        try:
            with SessionLocal() as session:
                session.execute(text("SELECT 1"))
            db_ok = True
        except Exception as exc:  # noqa: BLE001
            db_err = str(exc)[:400]
        return {
            "status": "ok" if db_ok else "fail",
            "catalog_version": CATALOG_VERSION,
            "db": {"ok": db_ok, "error": db_err},
        }

    from eduquest_api.routers import auth, challenges, progress

    app.include_router(auth.router)
    app.include_router(progress.router)
    app.include_router(challenges.router)

    return app


app = create_app()
