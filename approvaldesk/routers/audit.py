"""Audit trail consultation and export endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from pydantic import ValidationError

from approvaldesk.dependencies import get_audit_trail, get_export_engine
from approvaldesk.models.audit import AuditAction
from approvaldesk.schemas.audit import AuditLogFilters, AuditLogList, AuditStats
from approvaldesk.security import require_capability
from approvaldesk.services.audit import AuditTrail
from approvaldesk.services.authorization import Capability
from approvaldesk.services.export import ExportEngine, ExportFormat, export_audit_logs
from approvaldesk.utils.errors import error_response

router = APIRouter(
    prefix="/audit",
    tags=["audit"],
    dependencies=[Depends(require_capability(Capability.view_audit))],
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _filters(
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    approver_id: str | None = Query(default=None),
    action: AuditAction | None = Query(default=None),
) -> AuditLogFilters:
    try:
        return AuditLogFilters(
            start_date=start_date,
            end_date=end_date,
            approver_id=approver_id,
            action=action,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=error_response(
                "INVALID_PERIOD",
                "Period bounds must be ISO 8601 dates or timestamps.",
                {"start_date": start_date, "end_date": end_date},
            ),
        ) from exc


@router.get("/logs", response_model=AuditLogList)
def list_audit_logs(
    filters: AuditLogFilters = Depends(_filters),
    audit_trail: AuditTrail = Depends(get_audit_trail),
):
    return AuditLogList(logs=audit_trail.query(filters))


@router.get("/stats", response_model=AuditStats)
def audit_stats(audit_trail: AuditTrail = Depends(get_audit_trail)):
    return audit_trail.stats()


def _export(fmt: ExportFormat, filters: AuditLogFilters, audit_trail: AuditTrail, engine: ExportEngine) -> Response:
    result = export_audit_logs(
        audit_trail,
        fmt,
        filters.start_date,
        filters.end_date,
        engine=engine,
    )
    headers = {
        "Content-Disposition": f'attachment; filename="{result.filename}"',
        **NO_CACHE_HEADERS,
    }
    return Response(content=result.content, media_type=result.media_type, headers=headers)


@router.get("/export/csv")
def export_csv(
    filters: AuditLogFilters = Depends(_filters),
    audit_trail: AuditTrail = Depends(get_audit_trail),
    engine: ExportEngine = Depends(get_export_engine),
):
    return _export(ExportFormat.csv, filters, audit_trail, engine)


@router.get("/export/pdf")
def export_pdf(
    filters: AuditLogFilters = Depends(_filters),
    audit_trail: AuditTrail = Depends(get_audit_trail),
    engine: ExportEngine = Depends(get_export_engine),
):
    return _export(ExportFormat.pdf, filters, audit_trail, engine)
