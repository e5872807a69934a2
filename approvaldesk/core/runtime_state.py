"""Process-wide state of the audit retry job, read by the health endpoint."""
from __future__ import annotations

from datetime import datetime

_audit_retry_running = False
_last_retry_pass: dict[str, object] | None = None


def set_audit_retry_running(running: bool) -> None:
    global _audit_retry_running
    _audit_retry_running = running


def is_audit_retry_running() -> bool:
    return _audit_retry_running


def record_audit_retry_pass(at: datetime, delivered: int, still_pending: int) -> None:
    """Remember the outcome of the latest retry pass."""

    global _last_retry_pass
    _last_retry_pass = {
        "at": at.isoformat(),
        "delivered": delivered,
        "still_pending": still_pending,
    }


def last_audit_retry_pass() -> dict[str, object] | None:
    return dict(_last_retry_pass) if _last_retry_pass is not None else None


__all__ = [
    "set_audit_retry_running",
    "is_audit_retry_running",
    "record_audit_retry_pass",
    "last_audit_retry_pass",
]
