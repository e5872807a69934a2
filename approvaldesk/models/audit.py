"""Audit log model."""
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum as SqlEnum, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_uuid


class AuditAction(str, PyEnum):
    """Events recorded against an approval."""

    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"
    RESTORED = "restored"


class AuditLogEntry(Base):
    """Immutable record of one event affecting an approval.

    ``approval_id`` is a plain indexed value rather than a foreign key: the
    approval it names may have been deleted since, and its entries must
    outlive it.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_timestamp", "timestamp"),
        Index("ix_audit_logs_approver", "approver"),
        Index("ix_audit_logs_approval_id", "approval_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    approver: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[AuditAction] = mapped_column(
        SqlEnum(
            AuditAction,
            name="audit_action",
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    approval_id: Mapped[str] = mapped_column(String(36), nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
