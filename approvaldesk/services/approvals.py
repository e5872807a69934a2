"""Approval lifecycle services."""
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from approvaldesk.models.approval import Approval, ApprovalStatus, ApprovalType
from approvaldesk.models.audit import AuditAction
from approvaldesk.models.base import new_uuid
from approvaldesk.schemas.actor import Actor
from approvaldesk.schemas.approval import ApprovalCreate, ApprovalRead, ApprovalResponse, ApprovalSnapshot
from approvaldesk.schemas.audit import AlterationMetadata, AuditEntryCreate, DeletionMetadata, RestorationMetadata
from approvaldesk.services.audit import AuditTrail
from approvaldesk.services.authorization import AuthorizationGate
from approvaldesk.utils.errors import (
    AlreadyExistsError,
    AlreadyResolvedError,
    ApprovalNotFoundError,
    InvalidApprovalError,
    PermissionDeniedError,
)
from approvaldesk.utils.time import utcnow

logger = logging.getLogger(__name__)

_DECIMAL_QUANT = Decimal("0.01")


def _to_decimal(value: Any) -> Decimal:
    """Normalize amount inputs to two-decimal ``Decimal`` values."""

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            # str() avoids binary float artefacts
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidApprovalError(f"Invalid amount: {value!r}") from exc
    return amount.quantize(_DECIMAL_QUANT, rounding=ROUND_HALF_UP)


def _check_amount(approval_type: ApprovalType, amount: Any) -> Decimal | None:
    """An amount is required for every type except vacation, and forbidden there."""

    if approval_type == ApprovalType.VACATION:
        if amount is not None:
            raise InvalidApprovalError(
                "Vacation requests do not carry an amount.", details={"type": approval_type.value}
            )
        return None
    if amount is None:
        raise InvalidApprovalError(
            "Amount is required for this request type.", details={"type": approval_type.value}
        )
    value = _to_decimal(amount)
    if value <= 0:
        raise InvalidApprovalError("Amount must be positive.", details={"amount": str(value)})
    return value


class ApprovalRegistry:
    """Owns approvals and every transition between their states."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        audit_trail: AuditTrail,
        gate: AuthorizationGate | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._audit = audit_trail
        self._gate = gate or AuthorizationGate()

    def create_approval(self, payload: ApprovalCreate) -> ApprovalRead:
        """Create a new approval in ``pending``."""

        amount = _check_amount(payload.type, payload.amount)
        now = utcnow()
        approval = Approval(
            id=new_uuid(),
            type=payload.type,
            amount=amount,
            requester=str(payload.requester),
            approver=str(payload.approver),
            description=payload.description,
            justification=None,
            status=ApprovalStatus.PENDING,
            created_at=now,
            updated_at=now,
            response_at=None,
            response_by=None,
        )
        with self._session_factory() as session:
            session.add(approval)
            session.commit()

        logger.info(
            "Approval created",
            extra={
                "approval_id": approval.id,
                "type": approval.type.value,
                "requester": approval.requester,
                "status": approval.status.value,
            },
        )
        return ApprovalRead.model_validate(approval)

    def get_approval_by_id(self, approval_id: str) -> ApprovalRead:
        with self._session_factory() as session:
            approval = session.get(Approval, approval_id)
            if approval is None:
                raise ApprovalNotFoundError(approval_id)
            return ApprovalRead.model_validate(approval)

    def get_pending_approvals(self, approver_id: str | None = None) -> list[ApprovalRead]:
        stmt = select(Approval).where(Approval.status == ApprovalStatus.PENDING)
        if approver_id:
            stmt = stmt.where(Approval.approver == approver_id)
        stmt = stmt.order_by(Approval.created_at.desc())
        with self._session_factory() as session:
            return [ApprovalRead.model_validate(row) for row in session.execute(stmt).scalars().all()]

    def get_all_approvals(self) -> list[ApprovalRead]:
        stmt = select(Approval).order_by(Approval.created_at.desc())
        with self._session_factory() as session:
            return [ApprovalRead.model_validate(row) for row in session.execute(stmt).scalars().all()]

    def respond_to_approval(self, approval_id: str, payload: ApprovalResponse, *, actor: Actor) -> ApprovalRead:
        """Resolve a pending approval, or alter a resolved one.

        Both paths commit through a single conditional UPDATE guarded on the
        status observed before the call: of several concurrent callers
        exactly one matches a row, the others get ``AlreadyResolvedError``.
        Altering a resolved approval takes an explicit ``is_alteration``;
        without it a resolved approval is a conflict, whatever the role.
        """

        approver_id = str(payload.approver_id) if payload.approver_id else actor.email
        with self._session_factory() as session:
            current = session.get(Approval, approval_id)
            if current is None:
                raise ApprovalNotFoundError(approval_id)

            observed = current.status
            if payload.previous_status is not None and payload.previous_status != observed:
                raise AlreadyResolvedError(
                    approval_id,
                    expected_status=payload.previous_status.value,
                    current_status=observed.value,
                )

            is_alteration = observed != ApprovalStatus.PENDING
            if is_alteration and not payload.is_alteration:
                # A decision request that finds the approval resolved lost the race.
                raise AlreadyResolvedError(
                    approval_id,
                    expected_status=ApprovalStatus.PENDING.value,
                    current_status=observed.value,
                )
            if is_alteration and not self._gate.can_alter_decisions(actor.role):
                logger.warning(
                    "Decision alteration refused",
                    extra={"approval_id": approval_id, "actor": actor.email, "role": actor.role},
                )
                raise PermissionDeniedError(
                    "Only administrators can alter decisions.",
                    role=actor.role,
                    capability="alter_decisions",
                )

            now = utcnow()
            stmt = (
                update(Approval)
                .where(Approval.id == approval_id, Approval.status == observed)
                .values(
                    status=payload.action,
                    justification=payload.justification,
                    response_at=now,
                    response_by=approver_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            result = session.execute(stmt)
            if result.rowcount != 1:
                session.rollback()
                logger.info(
                    "Approval transition lost to a concurrent request",
                    extra={"approval_id": approval_id, "expected_status": observed.value},
                )
                raise AlreadyResolvedError(approval_id, expected_status=observed.value)
            session.commit()

            resolved = ApprovalRead.model_validate(current).model_copy(
                update={
                    "status": payload.action,
                    "justification": payload.justification,
                    "response_at": now,
                    "response_by": approver_id,
                    "updated_at": now,
                }
            )

        metadata = (
            AlterationMetadata(previous_status=observed, new_status=payload.action) if is_alteration else None
        )
        self._audit.append(
            AuditEntryCreate(
                approver=approver_id,
                action=AuditAction(payload.action.value),
                timestamp=now,
                comment=payload.justification,
                approval_id=approval_id,
                metadata=metadata,
            )
        )
        logger.info(
            "Decision altered" if is_alteration else "Approval resolved",
            extra={
                "approval_id": approval_id,
                "action": payload.action.value,
                "approver_id": approver_id,
                "previous_status": observed.value,
            },
        )
        return resolved

    def delete_approval(self, approval_id: str, deleted_by: str) -> ApprovalSnapshot:
        """Remove an approval, keeping its full field-set in the audit trail."""

        with self._session_factory() as session:
            approval = session.execute(
                select(Approval).where(Approval.id == approval_id).with_for_update()
            ).scalar_one_or_none()
            if approval is None:
                raise ApprovalNotFoundError(approval_id)

            snapshot = ApprovalSnapshot.model_validate(approval)
            result = session.execute(
                delete(Approval)
                .where(Approval.id == approval_id, Approval.status == snapshot.status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                current = session.get(Approval, approval_id, populate_existing=True)
                if current is None:
                    raise ApprovalNotFoundError(approval_id)
                raise AlreadyResolvedError(
                    approval_id,
                    expected_status=snapshot.status.value,
                    current_status=current.status.value,
                    message="Approval changed while it was being deleted; reload it and retry.",
                )
            session.commit()

        self._audit.append(
            AuditEntryCreate(
                approver=deleted_by,
                action=AuditAction.DELETED,
                comment=f"Approval deleted by {deleted_by}",
                approval_id=approval_id,
                metadata=DeletionMetadata(snapshot=snapshot),
            )
        )
        logger.info(
            "Approval deleted",
            extra={
                "approval_id": approval_id,
                "type": snapshot.type.value,
                "requester": snapshot.requester,
                "deleted_by": deleted_by,
            },
        )
        return snapshot

    def restore_approval(
        self, approval_id: str, deleted_approval: ApprovalSnapshot, *, restored_by: Actor
    ) -> ApprovalRead:
        """Re-create a deleted approval from its snapshot, back in ``pending``."""

        if not self._gate.can_restore(restored_by.role):
            logger.warning(
                "Approval restore refused",
                extra={"approval_id": approval_id, "actor": restored_by.email, "role": restored_by.role},
            )
            raise PermissionDeniedError(
                "Only administrators can restore approvals.",
                role=restored_by.role,
                capability="restore",
            )
        if deleted_approval.id != approval_id:
            raise InvalidApprovalError(
                "Snapshot belongs to a different approval.",
                details={"approval_id": approval_id, "snapshot_id": deleted_approval.id},
            )
        amount = _check_amount(deleted_approval.type, deleted_approval.amount)

        restored = Approval(
            id=approval_id,
            type=deleted_approval.type,
            amount=amount,
            requester=deleted_approval.requester,
            approver=deleted_approval.approver,
            description=deleted_approval.description,
            justification=deleted_approval.justification,
            status=ApprovalStatus.PENDING,
            created_at=deleted_approval.created_at,
            updated_at=deleted_approval.updated_at or deleted_approval.created_at,
            response_at=deleted_approval.response_at,
            response_by=deleted_approval.response_by,
        )
        with self._session_factory() as session:
            if session.get(Approval, approval_id) is not None:
                raise AlreadyExistsError(approval_id)
            session.add(restored)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise AlreadyExistsError(approval_id) from exc

        self._audit.append(
            AuditEntryCreate(
                approver=restored_by.email,
                action=AuditAction.RESTORED,
                comment=(
                    f"Approval restored by {restored_by.email} - "
                    f"original status: {deleted_approval.status.value}"
                ),
                approval_id=approval_id,
                metadata=RestorationMetadata(
                    original_status=deleted_approval.status,
                    restored_status=ApprovalStatus.PENDING,
                ),
            )
        )
        logger.info(
            "Approval restored",
            extra={
                "approval_id": approval_id,
                "restored_by": restored_by.email,
                "original_status": deleted_approval.status.value,
                "status": ApprovalStatus.PENDING.value,
            },
        )
        return ApprovalRead.model_validate(restored)


__all__ = ["ApprovalRegistry"]
