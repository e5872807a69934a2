"""Schema package exports."""
from .actor import Actor
from .approval import (
    ApprovalCreate,
    ApprovalList,
    ApprovalRead,
    ApprovalResponse,
    ApprovalRestore,
    ApprovalSnapshot,
)
from .audit import (
    AlterationMetadata,
    AuditEntryCreate,
    AuditLogFilters,
    AuditLogList,
    AuditLogRead,
    AuditMetadata,
    AuditStats,
    DeletionMetadata,
    RestorationMetadata,
)

__all__ = [
    "Actor",
    "ApprovalCreate",
    "ApprovalList",
    "ApprovalRead",
    "ApprovalResponse",
    "ApprovalRestore",
    "ApprovalSnapshot",
    "AlterationMetadata",
    "AuditEntryCreate",
    "AuditLogFilters",
    "AuditLogList",
    "AuditLogRead",
    "AuditMetadata",
    "AuditStats",
    "DeletionMetadata",
    "RestorationMetadata",
]
