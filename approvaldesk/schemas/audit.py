"""Audit trail schemas.

Audit metadata is a tagged union discriminated by ``kind``. Stored JSON is
validated against it on every read, so a tampered or truncated payload
surfaces as ``AuditMetadataError`` instead of travelling on as opaque data.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from approvaldesk.models.approval import ApprovalStatus
from approvaldesk.models.audit import AuditAction, AuditLogEntry
from approvaldesk.models.base import new_uuid
from approvaldesk.schemas.approval import ApprovalSnapshot
from approvaldesk.utils.errors import AuditMetadataError
from approvaldesk.utils.time import ensure_utc, parse_period_bound, utcnow


class DeletionMetadata(BaseModel):
    kind: Literal["deletion"] = "deletion"
    snapshot: ApprovalSnapshot

    model_config = ConfigDict(frozen=True)


class RestorationMetadata(BaseModel):
    kind: Literal["restoration"] = "restoration"
    original_status: ApprovalStatus
    restored_status: ApprovalStatus = ApprovalStatus.PENDING

    model_config = ConfigDict(frozen=True)


class AlterationMetadata(BaseModel):
    kind: Literal["alteration"] = "alteration"
    previous_status: ApprovalStatus
    new_status: ApprovalStatus

    model_config = ConfigDict(frozen=True)


AuditMetadata = Annotated[
    Union[DeletionMetadata, RestorationMetadata, AlterationMetadata],
    Field(discriminator="kind"),
]

_METADATA_ADAPTER: TypeAdapter[Optional[AuditMetadata]] = TypeAdapter(Optional[AuditMetadata])


def dump_metadata(metadata: AuditMetadata | None) -> dict[str, Any] | None:
    """Serialize metadata for the JSON column."""

    if metadata is None:
        return None
    return metadata.model_dump(mode="json")


def load_metadata(raw: Any, *, entry_id: str) -> AuditMetadata | None:
    """Validate a stored payload against the known metadata variants."""

    try:
        return _METADATA_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise AuditMetadataError(entry_id, exc.errors(include_url=False)[0]["msg"]) from exc


class AuditEntryCreate(BaseModel):
    """An audit fact ready to be appended.

    The id and timestamp are fixed at creation so a retried append writes
    the same fact rather than a second one.
    """

    id: str = Field(default_factory=new_uuid)
    approver: str
    action: AuditAction
    timestamp: datetime = Field(default_factory=utcnow)
    comment: str = ""
    approval_id: str
    metadata: Optional[AuditMetadata] = None

    model_config = ConfigDict(frozen=True)

    def to_row(self) -> AuditLogEntry:
        return AuditLogEntry(
            id=self.id,
            approver=self.approver,
            action=self.action,
            timestamp=ensure_utc(self.timestamp),
            comment=self.comment,
            approval_id=self.approval_id,
            metadata_json=dump_metadata(self.metadata),
        )


class AuditLogRead(BaseModel):
    id: str
    approver: str
    action: AuditAction
    timestamp: datetime
    comment: str
    approval_id: str
    metadata: Optional[AuditMetadata] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_row(cls, row: AuditLogEntry) -> "AuditLogRead":
        return cls(
            id=row.id,
            approver=row.approver,
            action=row.action,
            timestamp=row.timestamp,
            comment=row.comment or "",
            approval_id=row.approval_id,
            metadata=load_metadata(row.metadata_json, entry_id=row.id),
        )


class AuditLogFilters(BaseModel):
    start_date: str | None = None
    end_date: str | None = None
    approver_id: str | None = None
    action: AuditAction | None = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _parsable(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        parse_period_bound(value)
        return value


class AuditLogList(BaseModel):
    logs: list[AuditLogRead]


class AuditStats(BaseModel):
    total: int
    by_action: dict[str, int]
    by_approver: dict[str, int]
    recent_activity: int
