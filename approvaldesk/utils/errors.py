"""Domain exceptions and helpers for standardized error responses.

Every expected failure of the approval core is a typed exception carrying a
machine-readable ``code`` and the HTTP status the API layer answers with, so
callers can tell "not found", "forbidden", "already restored" and "someone
else resolved it first" apart without parsing messages.
"""
from __future__ import annotations

from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class ApprovalDeskError(Exception):
    """Base class for expected, recoverable domain failures."""

    code = "APPROVAL_DESK_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict[str, Any]:
        return error_response(self.code, self.message, self.details or None)


class ApprovalNotFoundError(ApprovalDeskError):
    code = "APPROVAL_NOT_FOUND"
    status_code = 404

    def __init__(self, approval_id: str) -> None:
        super().__init__("Approval not found.", details={"approval_id": approval_id})
        self.approval_id = approval_id


class PermissionDeniedError(ApprovalDeskError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403

    def __init__(self, message: str, *, role: str | None = None, capability: str | None = None) -> None:
        details: dict[str, Any] = {}
        if role is not None:
            details["role"] = role
        if capability is not None:
            details["capability"] = capability
        super().__init__(message, details=details)
        self.role = role
        self.capability = capability


class AlreadyExistsError(ApprovalDeskError):
    code = "APPROVAL_ALREADY_EXISTS"
    status_code = 409

    def __init__(self, approval_id: str) -> None:
        super().__init__("Approval already exists.", details={"approval_id": approval_id})
        self.approval_id = approval_id


class AlreadyResolvedError(ApprovalDeskError):
    """The approval left the expected status before this call could commit."""

    code = "APPROVAL_ALREADY_RESOLVED"
    status_code = 409

    def __init__(
        self,
        approval_id: str,
        *,
        expected_status: str,
        current_status: str | None = None,
        message: str = "Approval was already resolved by another request.",
    ) -> None:
        details: dict[str, Any] = {"approval_id": approval_id, "expected_status": expected_status}
        if current_status is not None:
            details["current_status"] = current_status
        super().__init__(message, details=details)
        self.approval_id = approval_id
        self.expected_status = expected_status
        self.current_status = current_status


class InvalidApprovalError(ApprovalDeskError):
    code = "INVALID_APPROVAL"
    status_code = 422


class AuditMetadataError(ApprovalDeskError):
    """A stored audit entry carries metadata matching no known variant."""

    code = "AUDIT_METADATA_INVALID"
    status_code = 500

    def __init__(self, entry_id: str, reason: str) -> None:
        super().__init__("Audit entry metadata is invalid.", details={"entry_id": entry_id, "reason": reason})
        self.entry_id = entry_id


__all__ = [
    "error_response",
    "ApprovalDeskError",
    "ApprovalNotFoundError",
    "PermissionDeniedError",
    "AlreadyExistsError",
    "AlreadyResolvedError",
    "InvalidApprovalError",
    "AuditMetadataError",
]
