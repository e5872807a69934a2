from decimal import Decimal

import pytest

from approvaldesk.models.approval import ApprovalStatus, ApprovalType
from approvaldesk.models.audit import AuditAction
from approvaldesk.schemas.approval import ApprovalCreate, ApprovalResponse
from approvaldesk.schemas.audit import AlterationMetadata, DeletionMetadata, RestorationMetadata
from approvaldesk.utils.errors import (
    AlreadyExistsError,
    AlreadyResolvedError,
    ApprovalNotFoundError,
    InvalidApprovalError,
    PermissionDeniedError,
)


def _response(action: ApprovalStatus, justification: str = "Looks fine", **kwargs) -> ApprovalResponse:
    return ApprovalResponse(action=action, justification=justification, **kwargs)


def test_create_starts_pending_without_audit_entry(make_approval, audit_trail):
    approval = make_approval()
    assert approval.status == ApprovalStatus.PENDING
    assert approval.amount == Decimal("150.00")
    assert approval.response_at is None
    assert audit_trail.history(approval.id) == []


def test_create_quantizes_amount(make_approval):
    approval = make_approval(amount=Decimal("10.005"))
    assert approval.amount == Decimal("10.01")


def test_vacation_has_no_amount(make_approval):
    approval = make_approval(type=ApprovalType.VACATION, amount=None)
    assert approval.amount is None


def test_vacation_with_amount_rejected(make_approval):
    with pytest.raises(InvalidApprovalError):
        make_approval(type=ApprovalType.VACATION, amount=Decimal("5"))


@pytest.mark.parametrize("approval_type", [ApprovalType.PURCHASE, ApprovalType.REIMBURSEMENT])
def test_amount_required_outside_vacation(make_approval, approval_type):
    with pytest.raises(InvalidApprovalError):
        make_approval(type=approval_type, amount=None)


def test_create_schema_rejects_non_positive_amount():
    with pytest.raises(ValueError):
        ApprovalCreate(type="purchase", amount=Decimal("0"), requester="a@example.com", approver="b@example.com")


def test_read_helpers(make_approval, registry, approver):
    first = make_approval(approver="one@example.com")
    second = make_approval(approver="two@example.com")
    registry.respond_to_approval(first.id, _response(ApprovalStatus.APPROVED), actor=approver)

    assert registry.get_approval_by_id(second.id).id == second.id
    assert [a.id for a in registry.get_pending_approvals()] == [second.id]
    assert registry.get_pending_approvals("one@example.com") == []
    assert {a.id for a in registry.get_all_approvals()} == {first.id, second.id}
    with pytest.raises(ApprovalNotFoundError):
        registry.get_approval_by_id("missing")


def test_first_resolution_records_decision(make_approval, registry, audit_trail, approver):
    approval = make_approval()
    resolved = registry.respond_to_approval(
        approval.id, _response(ApprovalStatus.APPROVED, "Budget ok"), actor=approver
    )

    assert resolved.status == ApprovalStatus.APPROVED
    assert resolved.justification == "Budget ok"
    assert resolved.response_by == approver.email
    assert resolved.response_at is not None

    stored = registry.get_approval_by_id(approval.id)
    assert stored.status == ApprovalStatus.APPROVED
    assert stored.response_at == resolved.response_at

    history = audit_trail.history(approval.id)
    assert len(history) == 1
    assert history[0].action == AuditAction.APPROVED
    assert history[0].approver == approver.email
    assert history[0].comment == "Budget ok"
    assert history[0].metadata is None


def test_explicit_approver_id_is_recorded(make_approval, registry, audit_trail, approver):
    approval = make_approval()
    registry.respond_to_approval(
        approval.id,
        _response(ApprovalStatus.REJECTED, approver_id="delegate@example.com"),
        actor=approver,
    )
    assert registry.get_approval_by_id(approval.id).response_by == "delegate@example.com"
    assert audit_trail.history(approval.id)[0].approver == "delegate@example.com"


def test_respond_unknown_approval(registry, approver):
    with pytest.raises(ApprovalNotFoundError):
        registry.respond_to_approval("missing", _response(ApprovalStatus.APPROVED), actor=approver)


def test_non_admin_cannot_alter_decision(make_approval, registry, audit_trail, approver, manager):
    approval = make_approval()
    registry.respond_to_approval(approval.id, _response(ApprovalStatus.APPROVED), actor=approver)

    with pytest.raises(PermissionDeniedError):
        registry.respond_to_approval(
            approval.id, _response(ApprovalStatus.REJECTED, is_alteration=True), actor=manager
        )

    assert registry.get_approval_by_id(approval.id).status == ApprovalStatus.APPROVED
    assert len(audit_trail.history(approval.id)) == 1


def test_resolved_approval_without_alteration_flag_conflicts(make_approval, registry, audit_trail, approver, admin):
    approval = make_approval()
    registry.respond_to_approval(approval.id, _response(ApprovalStatus.APPROVED), actor=approver)

    with pytest.raises(AlreadyResolvedError) as excinfo:
        registry.respond_to_approval(approval.id, _response(ApprovalStatus.REJECTED), actor=admin)

    assert excinfo.value.status_code == 409
    assert excinfo.value.expected_status == "pending"
    assert excinfo.value.current_status == "approved"
    assert registry.get_approval_by_id(approval.id).status == ApprovalStatus.APPROVED
    assert len(audit_trail.history(approval.id)) == 1


def test_admin_alteration_records_previous_status(make_approval, registry, audit_trail, approver, admin):
    approval = make_approval()
    registry.respond_to_approval(approval.id, _response(ApprovalStatus.APPROVED), actor=approver)
    altered = registry.respond_to_approval(
        approval.id,
        _response(ApprovalStatus.REJECTED, "Over budget after review", is_alteration=True),
        actor=admin,
    )

    assert altered.status == ApprovalStatus.REJECTED
    history = audit_trail.history(approval.id)
    assert [entry.action for entry in history] == [AuditAction.APPROVED, AuditAction.REJECTED]
    assert history[1].metadata == AlterationMetadata(
        previous_status=ApprovalStatus.APPROVED, new_status=ApprovalStatus.REJECTED
    )


def test_stale_previous_status_is_a_conflict(make_approval, registry, approver, admin):
    approval = make_approval()
    registry.respond_to_approval(approval.id, _response(ApprovalStatus.APPROVED), actor=approver)

    with pytest.raises(AlreadyResolvedError) as excinfo:
        registry.respond_to_approval(
            approval.id,
            _response(ApprovalStatus.REJECTED, previous_status=ApprovalStatus.PENDING),
            actor=admin,
        )
    assert excinfo.value.current_status == "approved"


def test_delete_keeps_snapshot_in_trail(make_approval, registry, audit_trail, admin):
    approval = make_approval(description="Conference travel")
    snapshot = registry.delete_approval(approval.id, deleted_by=admin.email)

    with pytest.raises(ApprovalNotFoundError):
        registry.get_approval_by_id(approval.id)

    history = audit_trail.history(approval.id)
    assert len(history) == 1
    entry = history[0]
    assert entry.action == AuditAction.DELETED
    assert entry.comment == f"Approval deleted by {admin.email}"
    assert isinstance(entry.metadata, DeletionMetadata)
    assert entry.metadata.snapshot == snapshot
    assert snapshot.description == "Conference travel"
    assert audit_trail.latest_deletion_snapshot(approval.id) == snapshot


def test_delete_losing_to_a_status_change_conflicts(make_approval, registry, session_factory, admin, monkeypatch):
    from sqlalchemy import update

    from approvaldesk.models.approval import Approval
    from approvaldesk.schemas.approval import ApprovalSnapshot

    approval = make_approval()

    class _ResolvedMeanwhile:
        @staticmethod
        def model_validate(row):
            snapshot = ApprovalSnapshot.model_validate(row)
            with session_factory() as other:
                other.execute(
                    update(Approval)
                    .where(Approval.id == snapshot.id)
                    .values(status=ApprovalStatus.APPROVED)
                )
                other.commit()
            return snapshot

    monkeypatch.setattr("approvaldesk.services.approvals.ApprovalSnapshot", _ResolvedMeanwhile)

    with pytest.raises(AlreadyResolvedError) as excinfo:
        registry.delete_approval(approval.id, deleted_by=admin.email)

    assert "deleted" in excinfo.value.message
    assert "resolved by another request" not in excinfo.value.message
    assert excinfo.value.expected_status == "pending"
    assert excinfo.value.current_status == "approved"
    assert registry.get_approval_by_id(approval.id).status == ApprovalStatus.APPROVED


def test_delete_unknown_approval(registry, admin):
    with pytest.raises(ApprovalNotFoundError):
        registry.delete_approval("missing", deleted_by=admin.email)


def test_delete_then_restore_round_trip(make_approval, registry, audit_trail, approver, admin):
    approval = make_approval()
    registry.respond_to_approval(approval.id, _response(ApprovalStatus.REJECTED, "No budget"), actor=approver)
    before = registry.get_approval_by_id(approval.id)

    snapshot = registry.delete_approval(approval.id, deleted_by=admin.email)
    restored = registry.restore_approval(approval.id, snapshot, restored_by=admin)
    after = registry.get_approval_by_id(approval.id)

    assert restored.status == ApprovalStatus.PENDING
    assert after.status == ApprovalStatus.PENDING
    assert after.model_dump(exclude={"status"}) == before.model_dump(exclude={"status"})

    actions = [entry.action for entry in audit_trail.history(approval.id)]
    assert actions == [AuditAction.REJECTED, AuditAction.DELETED, AuditAction.RESTORED]
    restoration = audit_trail.history(approval.id)[-1]
    assert restoration.metadata == RestorationMetadata(original_status=ApprovalStatus.REJECTED)
    assert restoration.comment == f"Approval restored by {admin.email} - original status: rejected"


def test_restore_active_approval_conflicts(make_approval, registry, admin):
    approval = make_approval()
    snapshot = registry.delete_approval(approval.id, deleted_by=admin.email)
    registry.restore_approval(approval.id, snapshot, restored_by=admin)

    with pytest.raises(AlreadyExistsError):
        registry.restore_approval(approval.id, snapshot, restored_by=admin)


@pytest.mark.parametrize("active", [True, False])
def test_restore_requires_admin_whether_or_not_active(make_approval, registry, admin, manager, active):
    approval = make_approval()
    snapshot = registry.delete_approval(approval.id, deleted_by=admin.email)
    if active:
        registry.restore_approval(approval.id, snapshot, restored_by=admin)

    with pytest.raises(PermissionDeniedError):
        registry.restore_approval(approval.id, snapshot, restored_by=manager)


def test_restore_rejects_foreign_snapshot(make_approval, registry, admin):
    first = make_approval()
    second = make_approval()
    snapshot = registry.delete_approval(first.id, deleted_by=admin.email)

    with pytest.raises(InvalidApprovalError):
        registry.restore_approval(second.id, snapshot, restored_by=admin)


def test_decision_survives_audit_failure(make_approval, registry, audit_trail, approver, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def _broken(entry):
        raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))

    approval = make_approval()
    monkeypatch.setattr(audit_trail, "_insert", _broken)

    resolved = registry.respond_to_approval(approval.id, _response(ApprovalStatus.APPROVED), actor=approver)

    assert resolved.status == ApprovalStatus.APPROVED
    assert registry.get_approval_by_id(approval.id).status == ApprovalStatus.APPROVED
    assert len(audit_trail.retry_queue) == 1

    monkeypatch.undo()
    assert audit_trail.retry_pending() == 1
    assert [entry.action for entry in audit_trail.history(approval.id)] == [AuditAction.APPROVED]
