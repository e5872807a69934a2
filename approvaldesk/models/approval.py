"""Approval request model."""
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum as SqlEnum, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, _utcnow, new_uuid


class ApprovalType(str, PyEnum):
    """Kind of business request under decision."""

    PURCHASE = "purchase"
    REIMBURSEMENT = "reimbursement"
    VACATION = "vacation"


class ApprovalStatus(str, PyEnum):
    """Decision state of an active approval."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class Approval(Base):
    """A request awaiting, or having received, a decision."""

    __tablename__ = "approvals"
    __table_args__ = (
        Index("ix_approvals_status", "status"),
        Index("ix_approvals_requester", "requester"),
        Index("ix_approvals_approver", "approver"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    type: Mapped[ApprovalType] = mapped_column(
        SqlEnum(ApprovalType, name="approval_type", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    requester: Mapped[str] = mapped_column(String(255), nullable=False)
    approver: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[ApprovalStatus] = mapped_column(
        SqlEnum(ApprovalStatus, name="approval_status", native_enum=False, values_callable=_enum_values),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    response_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
