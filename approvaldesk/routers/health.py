"""Health check endpoint."""
from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory
from fastapi import APIRouter, Request
from sqlalchemy import text

from approvaldesk.config import AppInfo, get_settings
from approvaldesk.core.runtime_state import is_audit_retry_running, last_audit_retry_pass
from approvaldesk.db import get_engine

router = APIRouter(prefix="/health", tags=["health"])
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def _db_status() -> str:
    """Return 'ok' if the DB is reachable, 'error' otherwise."""

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:  # noqa: BLE001
        logger.exception("DB health check failed")
        return "error"


def _expected_migration_head() -> str | None:
    try:
        config = Config(str(ALEMBIC_INI))
        script = ScriptDirectory.from_config(config)
        return script.get_current_head()
    except Exception:  # noqa: BLE001
        logger.exception("Failed to load Alembic head revision")
        return None


def _migrations_status() -> str:
    expected_head = _expected_migration_head()
    if expected_head is None:
        return "unknown"
    try:
        with get_engine().connect() as conn:
            current = conn.execute(text("SELECT version_num FROM alembic_version")).scalar()
    except Exception:  # noqa: BLE001
        logger.exception("Migration check failed")
        return "unknown"
    return "up_to_date" if current == expected_head else "out_of_date"


@router.get("", summary="Health check")
def healthcheck(request: Request) -> dict[str, object]:
    """Report database, migration and audit retry status."""

    settings = get_settings()
    db_status = _db_status()
    db_ok = db_status == "ok"
    migrations_status = _migrations_status() if db_ok else "unknown"
    queue = getattr(request.app.state, "audit_retry_queue", None)
    return {
        "status": "ok" if db_ok and migrations_status == "up_to_date" else "degraded",
        "version": AppInfo().version,
        "env": settings.app_env,
        "db_ok": db_ok,
        "db_status": db_status,
        "migrations_status": migrations_status,
        "audit_retry_enabled": bool(settings.AUDIT_RETRY_ENABLED),
        "audit_retry_running": is_audit_retry_running(),
        "audit_retry_last_pass": last_audit_retry_pass(),
        "audit_retry_pending": len(queue) if queue is not None else 0,
    }
