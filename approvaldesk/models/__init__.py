"""ORM models package."""
from .approval import Approval, ApprovalStatus, ApprovalType
from .audit import AuditAction, AuditLogEntry
from .base import Base

__all__ = [
    "Approval",
    "ApprovalStatus",
    "ApprovalType",
    "AuditAction",
    "AuditLogEntry",
    "Base",
]
