from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from approvaldesk import db
from approvaldesk.config import ACTOR_EMAIL_HEADER, ACTOR_ID_HEADER, ACTOR_ROLE_HEADER, AppInfo, get_settings
from approvaldesk.core.logging import get_logger, setup_logging
from approvaldesk.core.runtime_state import record_audit_retry_pass, set_audit_retry_running
import approvaldesk.models  # noqa: F401  registers the tables
from approvaldesk.routers import get_api_router
from approvaldesk.services.audit import AuditRetryQueue, AuditTrail
from approvaldesk.utils.errors import ApprovalDeskError, error_response
from approvaldesk.utils.time import utcnow

logger = get_logger(__name__)
scheduler: AsyncIOScheduler | None = None
ALLOWED_CREATE_ENV = {"dev", "local", "test"}


def _configure_middlewares(fastapi_app: FastAPI) -> None:
    """Configure middleware using a fresh snapshot of the settings."""

    runtime_settings = get_settings()
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=runtime_settings.CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", ACTOR_ID_HEADER, ACTOR_EMAIL_HEADER, ACTOR_ROLE_HEADER],
        expose_headers=["Content-Disposition"],
    )

    if runtime_settings.PROMETHEUS_ENABLED:
        from starlette_exporter import PrometheusMiddleware, handle_metrics

        fastapi_app.add_middleware(PrometheusMiddleware)
        fastapi_app.add_route("/metrics", handle_metrics)

    if runtime_settings.SENTRY_DSN:
        import sentry_sdk

        sentry_sdk.init(dsn=runtime_settings.SENTRY_DSN, traces_sample_rate=0.2)


def retry_audit_appends(retry_queue: AuditRetryQueue) -> int:
    """Scheduled job: push queued audit entries back into storage."""

    if not len(retry_queue):
        return 0
    trail = AuditTrail(db.get_sessionmaker(), retry_queue=retry_queue)
    delivered = trail.retry_pending()
    record_audit_retry_pass(utcnow(), delivered, len(retry_queue))
    return delivered


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger.info("Application startup", extra={"env": settings.app_env})

    db.init_engine()  # sync, idempotent
    env_lower = settings.app_env.lower()
    if settings.ALLOW_DB_CREATE_ALL and env_lower in ALLOWED_CREATE_ENV:
        logger.warning(
            "Running Base.metadata.create_all() because APP_ENV=%s and ALLOW_DB_CREATE_ALL=True",
            settings.app_env,
        )
        db.create_all()
    else:
        logger.info(
            "Skipping create_all(); use Alembic migrations. APP_ENV=%s, ALLOW_DB_CREATE_ALL=%s",
            settings.app_env,
            settings.ALLOW_DB_CREATE_ALL,
        )

    # NOTE: the retry queue lives in process memory; every replica drains its own.
    set_audit_retry_running(False)
    global scheduler
    if settings.AUDIT_RETRY_ENABLED:
        scheduler = AsyncIOScheduler()
        scheduler.start()
        scheduler.add_job(
            retry_audit_appends,
            "interval",
            seconds=settings.AUDIT_RETRY_INTERVAL_SECONDS,
            args=[app.state.audit_retry_queue],
            id="audit-retry",
            replace_existing=True,
        )
        set_audit_retry_running(True)
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            scheduler = None
        set_audit_retry_running(False)
        pending = len(app.state.audit_retry_queue)
        if pending:
            logger.error("Shutting down with undelivered audit entries", extra={"pending": pending})
        db.close_engine()
        logger.info("Application shutdown", extra={"env": settings.app_env})


app_info = AppInfo()

app = FastAPI(title=app_info.name, version=app_info.version, lifespan=lifespan)
app.state.audit_retry_queue = AuditRetryQueue()

_configure_middlewares(app)
app.include_router(get_api_router())


@app.exception_handler(ApprovalDeskError)
async def approval_desk_exception_handler(request: Request, exc: ApprovalDeskError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Domain failure", extra={"code": exc.code, "details": exc.details})
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", exc_info=exc)
    payload = error_response("INTERNAL_SERVER_ERROR", "An unexpected error occurred.")
    return JSONResponse(status_code=500, content=payload)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict) and "error" in detail:
        content: dict[str, Any] = detail
    else:
        content = error_response("HTTP_ERROR", str(detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


__all__ = ["app", "retry_audit_appends"]
