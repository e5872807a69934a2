"""Approval schemas."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from approvaldesk.models.approval import ApprovalStatus, ApprovalType
from approvaldesk.utils.time import ensure_utc


class ApprovalCreate(BaseModel):
    type: ApprovalType
    amount: Decimal | None = Field(default=None, gt=Decimal("0"))
    requester: EmailStr
    approver: EmailStr
    description: str | None = Field(default=None, max_length=500)


class ApprovalResponse(BaseModel):
    action: ApprovalStatus
    approver_id: EmailStr | None = Field(default=None, validation_alias="approverID")
    justification: str = Field(min_length=1)
    is_alteration: bool = Field(default=False, validation_alias="isAlteration")
    previous_status: ApprovalStatus | None = Field(default=None, validation_alias="previousStatus")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("action")
    @classmethod
    def _decision_only(cls, value: ApprovalStatus) -> ApprovalStatus:
        if value == ApprovalStatus.PENDING:
            raise ValueError("action must be approved or rejected")
        return value


class ApprovalSnapshot(BaseModel):
    """Full field-set of an approval, as kept inside a deletion audit entry."""

    id: str
    type: ApprovalType
    amount: Decimal | None = None
    requester: str
    approver: str
    description: str | None = None
    justification: str | None = None
    status: ApprovalStatus
    created_at: datetime
    updated_at: datetime | None = None
    response_at: datetime | None = None
    response_by: str | None = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("created_at", "updated_at", "response_at")
    @classmethod
    def _as_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class ApprovalRead(ApprovalSnapshot):
    model_config = ConfigDict(from_attributes=True, frozen=True)


class ApprovalRestore(BaseModel):
    deleted_approval: ApprovalSnapshot | None = Field(default=None, validation_alias="deletedApproval")

    model_config = ConfigDict(populate_by_name=True)


class ApprovalList(BaseModel):
    approvals: list[ApprovalRead]
