"""Approval lifecycle endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, status

from approvaldesk.dependencies import get_audit_trail, get_registry
from approvaldesk.schemas.actor import Actor
from approvaldesk.schemas.approval import (
    ApprovalCreate,
    ApprovalList,
    ApprovalRead,
    ApprovalResponse,
    ApprovalRestore,
    ApprovalSnapshot,
)
from approvaldesk.schemas.audit import AuditLogList
from approvaldesk.security import require_actor, require_capability
from approvaldesk.services.approvals import ApprovalRegistry
from approvaldesk.services.audit import AuditTrail
from approvaldesk.services.authorization import Capability
from approvaldesk.utils.errors import AlreadyExistsError

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.post("", response_model=ApprovalRead, status_code=status.HTTP_201_CREATED)
def create_approval(
    payload: ApprovalCreate,
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_actor),
):
    return registry.create_approval(payload)


@router.get("", response_model=ApprovalList)
def list_approvals(
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_actor),
):
    return ApprovalList(approvals=registry.get_all_approvals())


@router.get("/pending", response_model=ApprovalList)
def list_pending_approvals(
    approver_id: str | None = Query(default=None),
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_actor),
):
    return ApprovalList(approvals=registry.get_pending_approvals(approver_id))


@router.get("/{approval_id}", response_model=ApprovalRead)
def get_approval(
    approval_id: str,
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_actor),
):
    return registry.get_approval_by_id(approval_id)


@router.post("/{approval_id}/respond", response_model=ApprovalRead)
def respond_to_approval(
    approval_id: str,
    payload: ApprovalResponse,
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_capability(Capability.approve)),
):
    return registry.respond_to_approval(approval_id, payload, actor=actor)


@router.delete("/{approval_id}", response_model=ApprovalSnapshot)
def delete_approval(
    approval_id: str,
    registry: ApprovalRegistry = Depends(get_registry),
    actor: Actor = Depends(require_capability(Capability.delete)),
):
    return registry.delete_approval(approval_id, deleted_by=actor.email)


@router.post("/{approval_id}/restore", response_model=ApprovalRead)
def restore_approval(
    approval_id: str,
    payload: ApprovalRestore | None = Body(default=None),
    registry: ApprovalRegistry = Depends(get_registry),
    audit_trail: AuditTrail = Depends(get_audit_trail),
    actor: Actor = Depends(require_capability(Capability.restore)),
):
    snapshot = payload.deleted_approval if payload is not None else None
    if snapshot is None:
        snapshot = audit_trail.latest_deletion_snapshot(approval_id)
    if snapshot is None:
        # No snapshot on record: unknown ids surface as not found.
        registry.get_approval_by_id(approval_id)
        raise AlreadyExistsError(approval_id)
    return registry.restore_approval(approval_id, snapshot, restored_by=actor)


@router.get("/{approval_id}/history", response_model=AuditLogList)
def approval_history(
    approval_id: str,
    audit_trail: AuditTrail = Depends(get_audit_trail),
    actor: Actor = Depends(require_capability(Capability.view_audit)),
):
    return AuditLogList(logs=audit_trail.history(approval_id))
