"""FastAPI dependencies wiring the approval components together."""
from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from approvaldesk.config import get_settings
from approvaldesk.db import get_session_factory
from approvaldesk.services.approvals import ApprovalRegistry
from approvaldesk.services.audit import AuditRetryQueue, AuditTrail
from approvaldesk.services.export import ExportEngine


def get_audit_retry_queue(request: Request) -> AuditRetryQueue:
    """Return the process-wide queue the retry job drains."""

    queue = getattr(request.app.state, "audit_retry_queue", None)
    if queue is None:
        queue = AuditRetryQueue()
        request.app.state.audit_retry_queue = queue
    return queue


def get_audit_trail(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    retry_queue: AuditRetryQueue = Depends(get_audit_retry_queue),
) -> AuditTrail:
    return AuditTrail(session_factory, retry_queue=retry_queue, settings=get_settings())


def get_registry(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> ApprovalRegistry:
    return ApprovalRegistry(session_factory, audit_trail)


def get_export_engine() -> ExportEngine:
    return ExportEngine(get_settings())


__all__ = ["get_audit_retry_queue", "get_audit_trail", "get_registry", "get_export_engine"]
